"""Data models for pagewatch."""

from .issues import AggregatedIssue, Issue

__all__ = [
    "AggregatedIssue",
    "Issue",
]

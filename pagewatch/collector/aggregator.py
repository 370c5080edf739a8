"""Issue aggregation for DevTools audit issues.

This module turns raw ``Audits.issueAdded`` payloads into Issue models and
merges issues reporting the same kind of problem into AggregatedIssue
records. Listeners are notified with the same aggregate instance every time
it absorbs another issue.
"""

import logging
from typing import Any, Callable, Dict, List

from ..models.issues import AggregatedIssue, Issue

logger = logging.getLogger(__name__)

AGGREGATED_ISSUE_UPDATED = "aggregated_issue_updated"


def create_issues_from_protocol_issue(payload: Any) -> List[Issue]:
    """Build issues from a protocol ``InspectorIssue`` payload.

    Args:
        payload: Dict with ``code`` and ``details`` keys

    Returns:
        List with the parsed issue, empty if the payload is unusable
    """
    if not isinstance(payload, dict):
        return []

    code = payload.get("code")
    if not code:
        logger.debug(f"Ignoring protocol issue without code: {payload!r}")
        return []

    details = payload.get("details")
    if details is None:
        details = {}
    if not isinstance(details, dict):
        logger.debug(f"Ignoring protocol issue with malformed details: {code}")
        return []

    return [Issue(code=code, details=details, issue_id=payload.get("issueId"))]


class IssueAggregator:
    """Merges issues by aggregation key and reports updated aggregates."""

    def __init__(self):
        self._aggregates: Dict[str, AggregatedIssue] = {}
        self._listeners: Dict[str, List[Callable[[AggregatedIssue], None]]] = {
            AGGREGATED_ISSUE_UPDATED: [],
        }

    def add_listener(self, event: str, callback: Callable[[AggregatedIssue], None]) -> None:
        """Register a callback for an aggregator event.

        Args:
            event: Event name, currently only ``AGGREGATED_ISSUE_UPDATED``
            callback: Function called with the updated aggregate
        """
        if event not in self._listeners:
            raise ValueError(f"Unknown aggregator event: {event}")
        self._listeners[event].append(callback)

    def remove_listener(self, event: str, callback: Callable[[AggregatedIssue], None]) -> None:
        callbacks = self._listeners.get(event, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def ingest_raw(self, issue: Issue) -> AggregatedIssue:
        """Merge an issue into its aggregate and notify listeners.

        Args:
            issue: Issue to aggregate

        Returns:
            The aggregate the issue was merged into
        """
        key = issue.aggregation_key()
        aggregate = self._aggregates.get(key)
        if aggregate is None:
            aggregate = AggregatedIssue(code=issue.code, aggregation_key=key)
            self._aggregates[key] = aggregate
            logger.debug(f"New aggregated issue: {key}")

        aggregate.add_issue(issue)

        for callback in list(self._listeners[AGGREGATED_ISSUE_UPDATED]):
            try:
                callback(aggregate)
            except Exception as e:
                logger.error(f"Error in aggregated issue callback: {e}")

        return aggregate

    def aggregated_issues(self) -> List[AggregatedIssue]:
        return list(self._aggregates.values())

    def clear(self) -> None:
        """Drop all aggregates and listeners."""
        self._aggregates.clear()
        for callbacks in self._listeners.values():
            callbacks.clear()

    def __repr__(self) -> str:
        return f"IssueAggregator(aggregates={len(self._aggregates)})"

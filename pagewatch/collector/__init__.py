"""Per-page collection of browser diagnostics for pagewatch.

This package observes the pages of a Playwright browser context and keeps
what happened on each page (network requests, console messages, page
errors, DevTools audit issues) grouped by navigation.

Main Components:
- Windowed Store: per-page navigation windows with stable item ids
- Event Bridge: page listener wiring and navigation-triggered rotation
- Issue Subscription: DevTools audit issue dedup and aggregation
- Page Collector: page lifecycle and the query API
- Network / Console Collectors: ready-made collectors

Usage:
    from pagewatch.collector import NetworkCollector

    collector = NetworkCollector(context)
    await collector.init()
    requests = collector.get_data(page)
"""

__all__ = [
    # Core
    "IdAssigner",
    "WindowedStore",
    "EventBridge",
    "IssueDeduper",
    "IssueSubscription",
    "IssueAggregator",
    "PageCollector",

    # Collectors
    "NetworkCollector",
    "ConsoleCollector",

    # Rotation strategies
    "start_empty",
    "split_at_navigation_request",

    # Configuration
    "CollectorConfig",
    "CollectorConfigManager",
    "get_config",

    # Errors
    "CollectorError",
    "NotFoundError",
    "PageNotFoundError",
    "ItemNotFoundError",
    "ConfigurationError",

    # Helpers
    "create_issues_from_protocol_issue",
    "AGGREGATED_ISSUE_UPDATED",
    "UNASSIGNED_ID",
]

from .ids import IdAssigner, UNASSIGNED_ID
from .storage import WindowedStore, start_empty
from .bridge import EventBridge
from .aggregator import (
    AGGREGATED_ISSUE_UPDATED,
    IssueAggregator,
    create_issues_from_protocol_issue,
)
from .issues import IssueDeduper, IssueSubscription
from .config import CollectorConfig, CollectorConfigManager, get_config
from .exceptions import (
    CollectorError,
    ConfigurationError,
    ItemNotFoundError,
    NotFoundError,
    PageNotFoundError,
)
from .page_collector import PageCollector
from .network import NetworkCollector, split_at_navigation_request
from .console import ConsoleCollector

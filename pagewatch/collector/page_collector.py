"""Page collector lifecycle and query API.

This module provides the PageCollector class that tracks every page of a
Playwright browser context, wires each page's events into a WindowedStore,
optionally subscribes to DevTools audit issues, and tears all per-page state
down when the page closes.

Usage:
    collector = NetworkCollector(context)
    await collector.init()
    requests = collector.get_data(page, include_history=True)
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from playwright.async_api import BrowserContext, Page

from .bridge import EventBridge, ListenerFactory
from .config import CollectorConfig, get_config
from .issues import IssueDeduper, IssueSubscription
from .storage import RotationStrategy, WindowedStore

logger = logging.getLogger(__name__)


class PageCollector:
    """Collects items per page and keeps them split by navigation."""

    def __init__(
        self,
        context: BrowserContext,
        listeners: ListenerFactory,
        rotation: Optional[RotationStrategy] = None,
        collect_issues: Optional[bool] = None,
        config: Optional[CollectorConfig] = None,
    ):
        """Initialize page collector.

        Args:
            context: Browser context whose pages are collected
            listeners: Builds the page event listeners from the ingestion callback
            rotation: Strategy deciding which items open a new navigation window
            collect_issues: Subscribe to DevTools audit issues (defaults to config)
            config: Collector configuration (loaded via get_config() if None)
        """
        self.context = context
        self.config = config or get_config().config
        self.collect_issues = (
            self.config.collect_issues if collect_issues is None else collect_issues
        )
        self.store = WindowedStore(rotation, max_retained=self.config.max_retained)

        self._listeners_factory = listeners
        self._deduper = IssueDeduper()
        self._bridges: Dict[Page, EventBridge] = {}
        self._subscriptions: Dict[Page, IssueSubscription] = {}
        self._close_handlers: Dict[Page, Callable[[Page], None]] = {}
        self._initialized = False

    async def init(self) -> None:
        """Collect existing pages and follow pages opened later."""
        if self._initialized:
            logger.warning("Page collector already initialized")
            return

        for page in list(self.context.pages):
            await self.add_page(page)

        self.context.on("page", self._on_page_created)
        self._initialized = True
        logger.info(f"{type(self).__name__} initialized with {len(self.store.pages())} page(s)")

    async def _on_page_created(self, page: Optional[Page]) -> None:
        if page is None:
            return
        await self.add_page(page)

    async def add_page(self, page: Page) -> None:
        """Start collecting a page. Pages already collected are left untouched.

        Args:
            page: Playwright page to collect
        """
        if not self.store.register(page):
            return

        def collect(item: Any) -> None:
            self.store.ingest(page, item)

        def on_close(closed: Page) -> None:
            self._cleanup_page_destroyed(page)

        page.on("close", on_close)
        self._close_handlers[page] = on_close

        bridge = EventBridge(page)
        self._bridges[page] = bridge
        bridge.attach(
            self._listeners_factory(collect),
            lambda: self.store.rotate(page)
        )

        if self.collect_issues:
            subscription = IssueSubscription(
                page,
                self._deduper,
                lambda aggregate: bridge.dispatch("issue", aggregate)
            )
            self._subscriptions[page] = subscription
            await subscription.start(enable_audits=self.config.enable_audits)

            if self._subscriptions.get(page) is not subscription:
                # Page closed while the DevTools session was opening
                subscription.close()
                return

        logger.debug(f"Collecting page {page!r}")

    def _cleanup_page_destroyed(self, page: Page) -> None:
        """Drop every piece of state held for a closed page."""
        if not self.store.is_registered(page):
            return

        # Unregister first so events racing the teardown become no-ops
        self.store.unregister(page)

        bridge = self._bridges.pop(page, None)
        if bridge:
            bridge.detach()

        on_close = self._close_handlers.pop(page, None)
        if on_close:
            try:
                page.remove_listener("close", on_close)
            except Exception as e:
                logger.debug(f"Failed to remove close listener: {e}")

        subscription = self._subscriptions.pop(page, None)
        if subscription:
            subscription.close()

        logger.debug(f"Stopped collecting page {page!r}")

    async def close(self) -> None:
        """Stop collecting all pages and stop following new ones."""
        for page in self.store.pages():
            self._cleanup_page_destroyed(page)

        if self._initialized:
            try:
                self.context.remove_listener("page", self._on_page_created)
            except Exception as e:
                logger.debug(f"Failed to remove page listener: {e}")
            self._initialized = False

    def pages(self) -> List[Page]:
        return self.store.pages()

    def get_data(self, page: Page, include_history: bool = False) -> List[Any]:
        """Get items collected for a page.

        Args:
            page: Page to query
            include_history: Include items from previous navigations, oldest first

        Returns:
            List of collected items, empty for pages that are not collected
        """
        return self.store.query(page, include_history)

    def get_id_for_item(self, item: Any) -> int:
        """Get the stable id of a collected item, or -1."""
        return self.store.get_id(item)

    def get_by_id(self, page: Page, stable_id: int) -> Any:
        """Get a collected item by stable id.

        Raises:
            PageNotFoundError: If the page is not collected
            ItemNotFoundError: If no retained item has the id
        """
        return self.store.get_by_id(page, stable_id)

    def find(self, page: Page, predicate: Callable[[Any], bool]) -> Optional[Any]:
        """Find the first item matching predicate, current navigation first."""
        return self.store.find(page, predicate)

    def get_stats(self) -> Dict[str, Any]:
        """Get collector statistics.

        Returns:
            Dictionary with page count and per-page storage statistics
        """
        pages = self.store.pages()
        return {
            'pages': len(pages),
            'issue_subscriptions': len(self._subscriptions),
            'items': sum(self.store.get_stats(page)['total_items'] for page in pages),
        }

    def __repr__(self) -> str:
        stats = self.get_stats()
        return (
            f"{type(self).__name__}(pages={stats['pages']}, "
            f"items={stats['items']})"
        )

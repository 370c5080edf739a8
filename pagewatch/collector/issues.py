"""Audit issue subscription for collected pages.

This module provides the IssueDeduper, which drops raw issues already
forwarded for a page, and the IssueSubscription, which listens for
``Audits.issueAdded`` on a page's DevTools session and feeds new issues to a
per-page IssueAggregator.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Hashable, Optional, Set

from playwright.async_api import CDPSession, Page

from ..models.issues import AggregatedIssue, Issue
from .aggregator import (
    AGGREGATED_ISSUE_UPDATED,
    IssueAggregator,
    create_issues_from_protocol_issue,
)

logger = logging.getLogger(__name__)

ISSUE_ADDED_EVENT = "Audits.issueAdded"


class IssueDeduper:
    """Tracks the primary keys of issues already forwarded per page."""

    def __init__(self):
        self._seen_keys: Dict[Hashable, Set[str]] = {}
        self._forwarders: Dict[Hashable, Callable[[Issue], Any]] = {}

    def register(self, page: Hashable, forward: Callable[[Issue], Any]) -> None:
        """Start tracking a page.

        Args:
            page: Page to track
            forward: Called with each issue not seen before on the page
        """
        if page in self._seen_keys:
            return
        self._seen_keys[page] = set()
        self._forwarders[page] = forward

    def offer(self, page: Hashable, issue: Issue) -> bool:
        """Forward an issue unless its primary key was already seen.

        Returns:
            True if the issue was forwarded
        """
        seen_keys = self._seen_keys.get(page)
        if seen_keys is None:
            return False

        primary_key = issue.primary_key()
        if primary_key in seen_keys:
            logger.debug(f"Skipping repeated issue: {issue.code}")
            return False

        seen_keys.add(primary_key)
        self._forwarders[page](issue)
        return True

    def seen_count(self, page: Hashable) -> int:
        return len(self._seen_keys.get(page, ()))

    def unregister(self, page: Hashable) -> None:
        self._seen_keys.pop(page, None)
        self._forwarders.pop(page, None)


class IssueSubscription:
    """Feeds a page's DevTools audit issues into an aggregator."""

    def __init__(
        self,
        page: Page,
        deduper: IssueDeduper,
        on_aggregated: Callable[[AggregatedIssue], None]
    ):
        """Initialize issue subscription.

        Args:
            page: Playwright page to subscribe to
            deduper: Shared deduper, the page is registered on it here
            on_aggregated: Called with every updated aggregate
        """
        self.page = page
        self.deduper = deduper
        self.aggregator = IssueAggregator()
        self.aggregator.add_listener(AGGREGATED_ISSUE_UPDATED, on_aggregated)
        self.session: Optional[CDPSession] = None

        deduper.register(page, self.aggregator.ingest_raw)

    async def start(self, enable_audits: bool = True) -> bool:
        """Open a DevTools session and start listening for issues.

        Args:
            enable_audits: Send ``Audits.enable`` on the new session

        Returns:
            True if the subscription is active
        """
        try:
            self.session = await self.page.context.new_cdp_session(self.page)
        except Exception as e:
            logger.warning(f"Issue capture unavailable for page: {e}")
            return False

        self.session.on(ISSUE_ADDED_EVENT, self._on_issue_added)

        if enable_audits:
            try:
                await self.session.send("Audits.enable")
            except Exception as e:
                logger.warning(f"Failed to enable audits: {e}")
                return False

        logger.debug("Issue subscription started")
        return True

    def _on_issue_added(self, params: Dict[str, Any]) -> None:
        """Handle an ``Audits.issueAdded`` notification.

        Args:
            params: Protocol event parameters
        """
        try:
            issues = create_issues_from_protocol_issue((params or {}).get("issue"))
        except Exception as e:
            logger.warning(f"Failed to parse protocol issue: {e}")
            return

        if not issues:
            return

        self.deduper.offer(self.page, issues[0])

    def close(self) -> None:
        """Stop listening and release the DevTools session."""
        self.deduper.unregister(self.page)
        self.aggregator.clear()

        session, self.session = self.session, None
        if session is None:
            return

        try:
            session.remove_listener(ISSUE_ADDED_EVENT, self._on_issue_added)
        except Exception as e:
            logger.debug(f"Failed to remove issue listener: {e}")

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        loop.create_task(self._detach(session))

    @staticmethod
    async def _detach(session: CDPSession) -> None:
        try:
            await session.detach()
        except Exception as e:
            # The session is already gone once its page has closed
            logger.debug(f"Failed to detach DevTools session: {e}")

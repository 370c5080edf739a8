"""Network request collection with navigation-aware windows.

The request that starts a navigation is observed before the navigation
commits. When the main frame navigates, the requests from the last main
frame navigation request onwards are moved into the new window so that they
are reported with the page they loaded.
"""

import logging
from typing import Any, List, Optional

from playwright.async_api import BrowserContext, Frame, Page, Request

from .bridge import Collect, ListenerFactory, ListenerMap
from .config import CollectorConfig
from .page_collector import PageCollector

logger = logging.getLogger(__name__)


def _is_main_frame_navigation(request: Request, main_frame: Frame) -> bool:
    try:
        return request.frame is main_frame and request.is_navigation_request()
    except Exception as e:
        # Service worker requests have no frame
        logger.debug(f"Cannot inspect request frame: {e}")
        return False


def split_at_navigation_request(page: Page, current: List[Any]) -> List[Any]:
    """Move requests belonging to the starting navigation out of current.

    Args:
        page: Page whose main frame navigated
        current: Window of the navigation being closed; modified in place

    Returns:
        The requests from the last main frame navigation request onwards,
        or an empty list if there is none
    """
    main_frame = page.main_frame
    for index in range(len(current) - 1, -1, -1):
        if _is_main_frame_navigation(current[index], main_frame):
            carried = current[index:]
            del current[index:]
            return carried
    return []


def collect_requests(collect: Collect) -> ListenerMap:
    """Default listeners: every request the page issues."""
    return {
        "request": collect,
    }


class NetworkCollector(PageCollector):
    """Collects Playwright requests per page and navigation."""

    def __init__(
        self,
        context: BrowserContext,
        listeners: Optional[ListenerFactory] = None,
        config: Optional[CollectorConfig] = None,
    ):
        super().__init__(
            context,
            listeners or collect_requests,
            rotation=split_at_navigation_request,
            collect_issues=False,
            config=config,
        )

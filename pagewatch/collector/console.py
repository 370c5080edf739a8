"""Console message, page error and audit issue collection."""

import logging
from typing import Any, Optional

from playwright.async_api import BrowserContext

from .bridge import Collect, ListenerFactory, ListenerMap
from .config import CollectorConfig
from .page_collector import PageCollector

logger = logging.getLogger(__name__)


def collect_console(collect: Collect) -> ListenerMap:
    """Default listeners for console output, uncaught errors and issues."""

    def on_page_error(error: Any) -> None:
        logger.debug(f"Page error: {error}")
        collect(error)

    return {
        "console": collect,
        "pageerror": on_page_error,
        "issue": collect,
    }


class ConsoleCollector(PageCollector):
    """Collects console messages, page errors and aggregated audit issues."""

    def __init__(
        self,
        context: BrowserContext,
        listeners: Optional[ListenerFactory] = None,
        config: Optional[CollectorConfig] = None,
    ):
        super().__init__(
            context,
            listeners or collect_console,
            config=config,
        )

"""Event wiring between a Playwright page and a collector.

This module provides the EventBridge class that attaches collector listeners
to a page's event stream, installs the navigation listener that rotates the
page's windows, and detaches everything again on teardown.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict

from playwright.async_api import Frame, Page

logger = logging.getLogger(__name__)

NAVIGATION_EVENT = "framenavigated"

# Events emitted by the collector itself rather than by Playwright.
SYNTHETIC_EVENTS = frozenset({"issue"})

Collect = Callable[[Any], None]
ListenerMap = Dict[str, Callable[[Any], None]]
ListenerFactory = Callable[[Collect], ListenerMap]


class EventBridge:
    """Attaches and detaches the listeners of one page."""

    def __init__(self, page: Page):
        """Initialize event bridge.

        Args:
            page: Playwright page whose events are bridged
        """
        self.page = page
        self._listeners: ListenerMap = {}
        self._synthetic: ListenerMap = {}

    def attach(
        self,
        listeners: ListenerMap,
        on_main_frame_navigation: Callable[[], None]
    ) -> None:
        """Attach listeners to the page.

        A main frame navigation listener is always installed under
        ``framenavigated`` and replaces any listener supplied for that event.

        Args:
            listeners: Event name to handler mapping
            on_main_frame_navigation: Called when the page's main frame navigates
        """
        listeners = dict(listeners)
        if NAVIGATION_EVENT in listeners:
            logger.debug("Replacing caller supplied framenavigated listener")

        def on_frame_navigated(frame: Frame) -> None:
            # Sub-frame navigations stay in the current window
            if frame is not self.page.main_frame:
                return
            on_main_frame_navigation()

        listeners[NAVIGATION_EVENT] = on_frame_navigated

        for name, handler in listeners.items():
            guarded = self._guard(name, handler)
            if name in SYNTHETIC_EVENTS:
                self._synthetic[name] = guarded
                continue
            self.page.on(name, guarded)
            self._listeners[name] = guarded

        logger.debug(
            f"Attached {len(self._listeners)} page listener(s) and "
            f"{len(self._synthetic)} synthetic listener(s)"
        )

    @staticmethod
    def _guard(name: str, handler: Callable[[Any], None]) -> Callable[[Any], None]:
        """Wrap a handler so its failures are logged instead of propagated.

        Coroutine handlers are scheduled on the running event loop.
        """
        def listener(event: Any) -> None:
            try:
                result = handler(event)
            except Exception as e:
                logger.error(f"Error in {name} listener: {e}")
                return

            if not asyncio.iscoroutine(result):
                return
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                result.close()
                logger.warning(f"No event loop running for async {name} listener")
                return
            loop.create_task(EventBridge._await_listener(name, result))
        return listener

    @staticmethod
    async def _await_listener(name: str, coroutine: Awaitable[Any]) -> None:
        try:
            await coroutine
        except Exception as e:
            logger.error(f"Error in {name} listener: {e}")

    def dispatch(self, event_name: str, payload: Any) -> None:
        """Deliver a collector-emitted event to its listener, if any.

        Args:
            event_name: Synthetic event name, e.g. ``issue``
            payload: Event payload
        """
        handler = self._synthetic.get(event_name)
        if handler is None:
            return
        handler(payload)

    def detach(self) -> None:
        """Remove every attached listener from the page."""
        for name, handler in self._listeners.items():
            try:
                self.page.remove_listener(name, handler)
            except Exception as e:
                logger.warning(f"Failed to detach {name} listener: {e}")

        self._listeners = {}
        self._synthetic = {}
        logger.debug("Event bridge detached")

    def __repr__(self) -> str:
        return f"EventBridge(listeners={sorted(self._listeners)}, synthetic={sorted(self._synthetic)})"

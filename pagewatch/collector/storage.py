"""Per-page windowed storage of collected items.

This module provides the WindowedStore class that keeps, for every registered
page, an ordered list of navigation windows. Window 0 holds the items of the
current navigation, older windows hold the items of previous navigations up to
a bounded retention count.

Items are tagged with a stable id on first observation and deduplicated by
object identity, since update notifications re-deliver the same object.
"""

import logging
from typing import Any, Callable, Dict, Hashable, List, Optional, Set, Tuple

from .exceptions import ItemNotFoundError, PageNotFoundError
from .ids import UNASSIGNED_ID, IdAssigner

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETAINED = 3

Window = List[Any]

# Receives the page and its current window; removes and returns the items
# that open the next window.
RotationStrategy = Callable[[Hashable, Window], Window]


def start_empty(page: Hashable, current: Window) -> Window:
    """Default rotation: the new navigation starts with an empty window."""
    return []


class WindowedStore:
    """Stores collected items per page, split by navigation."""

    def __init__(
        self,
        rotation: Optional[RotationStrategy] = None,
        max_retained: int = DEFAULT_MAX_RETAINED
    ):
        """Initialize the store.

        Args:
            rotation: Strategy deciding which items carry over into a new window
            max_retained: Number of navigation windows kept per page
        """
        if max_retained < 1:
            raise ValueError("max_retained must be at least 1")

        self.rotation = rotation or start_empty
        self.max_retained = max_retained
        self._windows: Dict[Hashable, List[Window]] = {}
        self._id_assigners: Dict[Hashable, IdAssigner] = {}

        # id(item) -> (item, stable id); holding the item keeps id() unique.
        # Entries are dropped once their item leaves every retained window.
        self._tags: Dict[int, Tuple[Any, int]] = {}
        self._page_tags: Dict[Hashable, Set[int]] = {}

    def register(self, page: Hashable) -> bool:
        """Start tracking a page.

        Args:
            page: Page to register

        Returns:
            True if the page was newly registered, False if already known
        """
        if page in self._windows:
            return False

        self._windows[page] = [[]]
        self._id_assigners[page] = IdAssigner()
        self._page_tags[page] = set()
        logger.debug(f"Registered page {page!r}")
        return True

    def is_registered(self, page: Hashable) -> bool:
        return page in self._windows

    def unregister(self, page: Hashable) -> None:
        """Discard every window, id counter and tag belonging to a page."""
        self._windows.pop(page, None)
        self._id_assigners.pop(page, None)
        for key in self._page_tags.pop(page, set()):
            self._tags.pop(key, None)
        logger.debug(f"Unregistered page {page!r}")

    def ingest(self, page: Hashable, item: Any) -> None:
        """Add an item to the current window of a page.

        Re-ingesting an object already present in the current window leaves
        the window and the item's id unchanged.

        Args:
            page: Page the item was observed on
            item: Observed item
        """
        windows = self._windows.get(page)
        if windows is None:
            logger.debug(f"Dropping item for unregistered page {page!r}")
            return

        key = id(item)
        if key not in self._tags:
            self._tags[key] = (item, self._id_assigners[page].next())
            self._page_tags[page].add(key)

        current = windows[0]
        if not any(existing is item for existing in current):
            current.append(item)

    def rotate(self, page: Hashable) -> None:
        """Close the current window of a page and open a new one.

        Args:
            page: Page that navigated
        """
        windows = self._windows.get(page)
        if windows is None:
            return

        carried = self.rotation(page, windows[0])
        windows.insert(0, carried)
        evicted = windows[self.max_retained:]
        del windows[self.max_retained:]
        if evicted:
            self._forget(page, evicted, windows)

        logger.debug(
            f"Rotated windows for {page!r}: carried {len(carried)} item(s), "
            f"{len(windows)} window(s) retained"
        )

    def _forget(self, page: Hashable, evicted: List[Window], retained: List[Window]) -> None:
        """Drop the tags of evicted items no retained window still holds."""
        page_tags = self._page_tags[page]
        retained_keys = {id(item) for window in retained for item in window}
        for window in evicted:
            for item in window:
                key = id(item)
                if key in retained_keys or key not in page_tags:
                    continue
                entry = self._tags.get(key)
                if entry is not None and entry[0] is item:
                    del self._tags[key]
                    page_tags.discard(key)

    def query(self, page: Hashable, include_history: bool = False) -> List[Any]:
        """Get items collected for a page.

        Args:
            page: Page to query
            include_history: Include previous navigations, oldest first

        Returns:
            List of items, empty for unknown pages
        """
        windows = self._windows.get(page)
        if windows is None:
            return []

        if not include_history:
            return list(windows[0])

        items: List[Any] = []
        for window in reversed(windows):
            items.extend(window)
        return items

    def get_id(self, item: Any) -> int:
        """Return the stable id of an item, or -1 if it was never collected."""
        entry = self._tags.get(id(item))
        if entry is None or entry[0] is not item:
            return UNASSIGNED_ID
        return entry[1]

    def get_by_id(self, page: Hashable, stable_id: int) -> Any:
        """Find an item by stable id in any retained window.

        Raises:
            PageNotFoundError: If the page is not registered
            ItemNotFoundError: If no retained item carries the id
        """
        if page not in self._windows:
            raise PageNotFoundError()

        item = self.find(page, lambda candidate: self.get_id(candidate) == stable_id)
        if item is None:
            raise ItemNotFoundError(stable_id)
        return item

    def find(self, page: Hashable, predicate: Callable[[Any], bool]) -> Optional[Any]:
        """Return the first item matching predicate, newest window first."""
        windows = self._windows.get(page)
        if windows is None:
            return None

        for window in windows:
            for item in window:
                if predicate(item):
                    return item
        return None

    def windows(self, page: Hashable) -> List[Window]:
        """Return a copy of the window list of a page (empty if unknown)."""
        return [list(window) for window in self._windows.get(page, [])]

    def pages(self) -> List[Hashable]:
        return list(self._windows)

    def get_stats(self, page: Hashable) -> Dict[str, int]:
        """Get storage statistics for a page.

        Returns:
            Dictionary with window and item counts
        """
        windows = self._windows.get(page, [])
        return {
            'windows': len(windows),
            'current_items': len(windows[0]) if windows else 0,
            'total_items': sum(len(window) for window in windows),
        }

    def __repr__(self) -> str:
        return f"WindowedStore(pages={len(self._windows)}, max_retained={self.max_retained})"

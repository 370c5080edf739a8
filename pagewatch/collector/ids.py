"""Stable identity generation for collected items."""

import logging

logger = logging.getLogger(__name__)

# Largest integer a JavaScript consumer can represent exactly.
MAX_SAFE_INTEGER = 2 ** 53 - 1

UNASSIGNED_ID = -1


class IdAssigner:
    """Monotonic id counter starting at 1.

    After handing out ``MAX_SAFE_INTEGER`` the counter wraps to 0 and keeps
    counting from there. Each page gets its own assigner.
    """

    def __init__(self, start: int = 1):
        self._next = start

    def next(self) -> int:
        """Return the next id and advance the counter."""
        if self._next > MAX_SAFE_INTEGER:
            logger.debug("Stable id counter wrapped around")
            self._next = 0
        value = self._next
        self._next += 1
        return value

    def __repr__(self) -> str:
        return f"IdAssigner(next={self._next})"

"""Exceptions raised by the page collectors.

Only lookups surface errors to callers. Late events, duplicate registrations
and repeated raw issues are handled as no-ops inside the collectors.
"""

from typing import Optional


class CollectorError(Exception):
    """Base collector error."""

    def __init__(
        self,
        message: str = "Collector error",
        error_code: str = "collector_error",
        details: Optional[dict] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(CollectorError, LookupError):
    """Raised when a lookup cannot be satisfied."""

    def __init__(
        self,
        message: str = "Not found",
        error_code: str = "not_found",
        details: Optional[dict] = None
    ):
        super().__init__(message=message, error_code=error_code, details=details)


class PageNotFoundError(NotFoundError):
    """Raised when a lookup targets a page that is not registered."""

    def __init__(self, message: str = "No data found for selected page"):
        super().__init__(message=message, error_code="page_not_found")


class ItemNotFoundError(NotFoundError):
    """Raised when no retained item carries the requested stable id."""

    def __init__(
        self,
        stable_id: int,
        message: str = "Item not found for selected page"
    ):
        self.stable_id = stable_id
        super().__init__(
            message=message,
            error_code="item_not_found",
            details={"stable_id": stable_id}
        )


class ConfigurationError(CollectorError):
    """Raised when collector configuration cannot be loaded or validated."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(
            message=message,
            error_code="invalid_configuration",
            details={"path": path} if path else {}
        )

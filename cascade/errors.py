"""Exceptions raised by the feed engine and its collaborators."""

from __future__ import annotations


class CascadeError(Exception):
    """Base class for all feed engine errors."""
    pass


class MalformedFeedItemError(CascadeError, ValueError):
    """Raised when a pool record is missing its kind or required payload."""

    def __init__(self, item_id: str | None, reason: str):
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"Malformed feed item {item_id!r}: {reason}")


class FeedApiError(CascadeError):
    """Raised when a backend request fails at the transport or HTTP level."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class InvalidScheduleError(CascadeError, ValueError):
    """Raised when a timetable entry cannot be interpreted."""
    pass

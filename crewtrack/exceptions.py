"""Exception hierarchy for the crew tracker.

Only two of these ever leave the core: ``RefreshTooSoon`` (mapped to HTTP 429)
and ``ConfigurationError`` (raised at startup). ``FetchError`` is caught by the
pipeline orchestrator and degrades the cycle to zero scraped rows.
"""
from __future__ import annotations

from typing import Any, Optional


class TrackerError(Exception):
    """Base exception carrying structured context for logging."""

    def __init__(self, message: str, error_data: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_data = error_data or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_data": self.error_data,
        }


class FetchError(TrackerError):
    """Transport failure or non-2xx response from the results source."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, {"url": url, "status_code": status_code})
        self.url = url
        self.status_code = status_code


class RefreshTooSoon(TrackerError):
    """A manual refresh arrived before the cooldown elapsed."""

    def __init__(self, retry_after: float):
        retry_after = max(0.0, retry_after)
        super().__init__(
            f"Refresh cooldown active, retry in {retry_after:.1f}s",
            {"retry_after": retry_after},
        )
        self.retry_after = retry_after


class ConfigurationError(TrackerError):
    """An environment value could not be turned into a valid setting."""

    def __init__(self, message: str, parameter: Optional[str] = None, received: Any = None):
        super().__init__(
            message,
            {"parameter": parameter, "received": str(received)[:200] if received is not None else None},
        )
        self.parameter = parameter
        self.received = received

"""Typed failures raised by the shelter cache layers.

Lower layers raise these; only the HTTP error handlers in ``app.py`` turn
them into user-facing messages.
"""

from __future__ import annotations


class ShelterCacheError(RuntimeError):
    """Base class for cache/source/store failures."""


class UpstreamError(ShelterCacheError):
    """A source fetch failed (network, non-2xx, timeout or malformed payload)."""

    def __init__(self, message: str, *, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


class ParseSkipError(ShelterCacheError):
    """One malformed record inside a batch; the caller logs it and moves on."""

    def __init__(self, message: str, *, record_name: str | None = None) -> None:
        super().__init__(message)
        self.record_name = record_name


class StoreError(ShelterCacheError):
    """A persistent-store write failed and was rolled back."""


class QueryValidationError(ValueError):
    """Caller-supplied query parameters are missing or out of range."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field

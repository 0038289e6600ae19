"""Time helpers.

Keep all timestamps consistent and timezone-aware.
SQLite drops tzinfo on DateTime columns; use `ensure_utc` when reading them back.
"""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current time as a timezone-aware datetime in UTC (+00:00)."""

    return datetime.now(timezone.utc)


def utcnow_sa_default() -> datetime:
    """SQLAlchemy-friendly default callable for UTC timestamps."""

    return utcnow()


def ensure_utc(dt: datetime) -> datetime:
    """Return a timezone-aware UTC datetime.

    - If `dt` is naive, it is treated as UTC.
    - If `dt` is timezone-aware, it is converted to UTC.
    """

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def age_hours(since: datetime | None, *, now: datetime | None = None) -> float | None:
    """Hours elapsed between `since` and `now` (default: current UTC time)."""

    if since is None:
        return None
    current = ensure_utc(now) if now is not None else utcnow()
    return (current - ensure_utc(since)).total_seconds() / 3600.0

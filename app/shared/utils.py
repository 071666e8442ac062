"""Shared utility functions."""

from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Return aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize datetime to UTC timezone."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_local(dt: datetime, tz: ZoneInfo) -> datetime:
    """Convert an instant to wall-clock time in ``tz`` (naive input is UTC)."""
    return ensure_utc(dt).astimezone(tz)


def local_date(dt: datetime, tz: ZoneInfo) -> date:
    """Calendar date of an instant as seen in ``tz``."""
    return to_local(dt, tz).date()

"""Utility functions for time handling.

All timestamps should be UTC and timezone-aware. Naive datetimes handed in by
callers are treated as UTC. Timestamps are persisted as fixed-width UTC
strings via sqlite_timestamp() so that SQL string comparisons stay
chronological.
"""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Protocol

SQLITE_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def utc_now() -> datetime:
    """Return current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Return *dt* as an aware UTC datetime (naive values are assumed UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def sqlite_timestamp(dt: datetime) -> str:
    """Format a datetime for chronological string comparison in SQLite."""
    return ensure_utc(dt).strftime(SQLITE_TIMESTAMP_FORMAT)

def parse_sqlite_timestamp(value: str) -> datetime:
    """Inverse of sqlite_timestamp()."""
    return datetime.strptime(value, SQLITE_TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)

def coerce_datetime(value: Any) -> datetime | None:
    """
    Coerce value to datetime, returning None on failure.

    Args:
        value: String or datetime to coerce

    Returns:
        Datetime in timezone.utc or None if invalid
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw.replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None

    return ensure_utc(parsed)

# ---------------------------------------------------------------------------
# Clocks
# ---------------------------------------------------------------------------

class Clock(Protocol):
    """Source of "current time" injected into time-dependent services."""

    def now(self) -> datetime: ...

class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return utc_now()

class FixedClock:
    """Manually driven clock for tests and replays.

    Example::

        clock = FixedClock(datetime(2026, 1, 5, 9, 55, tzinfo=timezone.utc))
        clock.advance(minutes=10)
    """

    def __init__(self, start: datetime) -> None:
        self._now = ensure_utc(start)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = ensure_utc(value)

    def advance(self, **delta: float) -> datetime:
        """Move the clock forward by ``timedelta(**delta)`` and return the new time."""
        with self._lock:
            self._now = self._now + timedelta(**delta)
            return self._now

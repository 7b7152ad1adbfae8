"""Clock sources for the feed aggregator."""

from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    """Anything that can tell the current time."""

    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Deterministic clock for tests and replays.

    The time only changes when :meth:`set` or :meth:`advance` is called.
    """

    def __init__(self, value: Optional[datetime] = None):
        self._value = ensure_utc(value) if value else datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self._value

    def set(self, value: datetime) -> None:
        self._value = ensure_utc(value)

    def advance(self, **kwargs) -> datetime:
        """Move the clock forward by a ``timedelta(**kwargs)``."""
        self._value = self._value + timedelta(**kwargs)
        return self._value


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with millisecond precision.

    Example: ``2024-01-02T03:04:05.678Z``
    """
    return ensure_utc(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")

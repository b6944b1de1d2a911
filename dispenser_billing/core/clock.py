"""
Time source and timestamp formatting.

Timestamps are timezone-aware UTC datetimes truncated to millisecond
precision, so durations are always a whole number of milliseconds.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Callable

Clock = Callable[[], datetime]

_ONE_MS = timedelta(milliseconds=1)


def truncate_to_millis(value: datetime) -> datetime:
    """Drop sub-millisecond precision and normalize to UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def utc_now() -> datetime:
    """Default clock: current UTC time at millisecond precision."""
    return truncate_to_millis(datetime.now(timezone.utc))


def elapsed_seconds(start: datetime, end: datetime) -> Decimal:
    """Exact elapsed seconds between two timestamps (millisecond resolution)."""
    millis = (end - start) // _ONE_MS
    return Decimal(millis) / Decimal(1000)


def format_timestamp(value: datetime) -> str:
    """Render an ISO-8601 UTC timestamp with milliseconds, e.g. 2022-01-01T02:00:00.000Z."""
    return truncate_to_millis(value).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class FixedClock:
    """Manually advanced clock for deterministic callers such as tests and replays."""

    def __init__(self, start: datetime):
        self.current = truncate_to_millis(start)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> datetime:
        """Move the clock forward and return the new time."""
        if seconds < 0:
            raise ValueError("clock cannot move backwards")
        self.current = truncate_to_millis(self.current + timedelta(seconds=seconds))
        return self.current

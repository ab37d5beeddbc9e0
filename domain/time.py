"""
Domain time utilities (pure).

Centralized timestamp validation helpers.

Behavior and error messages must remain consistent across the domain model.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Enforces that timestamps are UTC.

    Invariants:
    - Timestamps must be timezone-aware.
    - Timestamps must have UTC offset 0.
    """

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0)")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def start_of_utc_day(value: datetime) -> datetime:
    """Midnight (UTC) of the day containing `value`."""

    require_utc_timestamp("value", value)
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def whole_minutes_between(start: datetime, end: datetime) -> int:
    """Floor of the elapsed minutes from `start` to `end` (never negative)."""

    require_utc_timestamp("start", start)
    require_utc_timestamp("end", end)
    if end < start:
        return 0
    return int((end - start) // timedelta(minutes=1))


def as_utc(value: datetime | None) -> datetime | None:
    """Normalise a client-supplied timestamp: naive values are taken as UTC."""

    if value is None:
        return None
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

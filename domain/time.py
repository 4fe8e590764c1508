"""
Domain time utilities (pure).

Centralized timestamp validation plus the venue wall-clock conversions used by
pricing, cart date rules and redemption.

Behavior and error messages must remain consistent across the domain model.
All timestamps are passed explicitly. utc_now is only the default clock
services are constructed with; the rules themselves never read it.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

WEEKDAY_NAMES: tuple[str, ...] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Enforces the requirement that timestamps are UTC.

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


def weekday_name(day: date) -> str:
    """English weekday name for a calendar date ("Friday")."""

    return WEEKDAY_NAMES[day.weekday()]


def local_datetime(day: date, at: time, tz: ZoneInfo) -> datetime:
    """Venue wall-clock (day, at) as a UTC timestamp."""

    return datetime.combine(day, at, tzinfo=tz).astimezone(timezone.utc)


def local_today(now: datetime, tz: ZoneInfo) -> date:
    """Calendar date at the venue for a UTC instant."""

    if now.tzinfo is None or now.utcoffset() is None:
        raise ValueError("now must be timezone-aware (UTC)")
    return now.astimezone(tz).date()


def parse_clock(value: str) -> time:
    """Parse "HH:MM" (24h) into a time. Raises ValueError on bad input."""

    hour_text, _, minute_text = value.strip().partition(":")
    return time(int(hour_text), int(minute_text or 0))


__all__ = [
    "WEEKDAY_NAMES",
    "require_utc_timestamp",
    "utc_now",
    "weekday_name",
    "local_datetime",
    "local_today",
    "parse_clock",
]

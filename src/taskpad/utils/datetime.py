"""Datetime utilities with consistent timezone handling.

All datetimes that flow through taskpad are timezone-aware. Naive values
coming from files or user input are assumed to be UTC.
"""

from datetime import datetime, date, time, timedelta, timezone
from typing import Optional


def now_utc() -> datetime:
    """Return current datetime in UTC timezone."""
    return datetime.now(timezone.utc)


def now_local() -> datetime:
    """Return current datetime in the machine's local timezone."""
    return datetime.now().astimezone()


def ensure_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure datetime is timezone-aware, assuming UTC if naive.

    Args:
        dt: Datetime to check/convert, or None

    Returns:
        Timezone-aware datetime, or None if input was None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt


def min_utc() -> datetime:
    """Return datetime.min with UTC timezone for sorting fallbacks."""
    return datetime.min.replace(tzinfo=timezone.utc)


def to_iso_string(dt: Optional[datetime]) -> Optional[str]:
    """Convert datetime to ISO string with timezone info."""
    if dt is None:
        return None
    return ensure_aware(dt).isoformat()


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string into an aware datetime.

    Returns None for empty or unparseable input.
    """
    if not value:
        return None
    try:
        return ensure_aware(datetime.fromisoformat(value))
    except (TypeError, ValueError):
        return None


def add_elapsed(dt: datetime, delta: timedelta) -> datetime:
    """Add an exact amount of elapsed time, keeping dt's timezone.

    Plain ``dt + delta`` moves the wall clock, which is off by an hour when
    the span crosses a daylight-saving change.
    """
    dt = ensure_aware(dt)
    return (dt.astimezone(timezone.utc) + delta).astimezone(dt.tzinfo)


def local_date(dt: datetime, tz=None) -> date:
    """Calendar day of ``dt`` as seen from ``tz`` (or dt's own zone)."""
    dt = ensure_aware(dt)
    if tz is not None:
        dt = dt.astimezone(tz)
    return dt.date()


def at_time_of_day(day: date, hhmm: str, tz=timezone.utc) -> datetime:
    """Combine a calendar day with an ``HH:MM`` string in the given zone."""
    hour, _, minute = hhmm.partition(":")
    return datetime.combine(day, time(int(hour), int(minute or 0)), tzinfo=tz)

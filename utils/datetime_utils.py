"""
Datetime utilities for consistent timezone handling across the application.

Instants are stored and compared as timezone-aware UTC datetimes. Weekly
availability is expressed in marketplace wall-clock time, so conversions to
the configured local zone live here too.
"""

from datetime import date, datetime, time, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


@lru_cache(maxsize=8)
def get_zone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def ensure_aware(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_local(dt: datetime, tz_name: str) -> datetime:
    """Convert an instant to wall-clock time in the given zone."""
    return ensure_aware(dt).astimezone(get_zone(tz_name))


def local_day_of_week(local_dt: datetime) -> int:
    """
    Day of week with Sunday as 0 and Saturday as 6.

    Availability rows use this numbering, unlike datetime.weekday().
    """
    return (local_dt.weekday() + 1) % 7


def seconds_since_midnight(value: time | datetime) -> int:
    return value.hour * 3600 + value.minute * 60 + value.second


def combine_local(day: date, at: time, tz_name: str) -> datetime:
    """Build an aware datetime for a wall-clock time on a local date."""
    return datetime.combine(day, at, tzinfo=get_zone(tz_name))


def parse_iso_datetime(iso_string: str) -> datetime:
    """
    Parse ISO format datetime string to timezone-aware datetime.
    Handles both 'Z' suffix and '+00:00' timezone formats.

    Args:
        iso_string: ISO format datetime string

    Returns:
        Timezone-aware datetime object

    Raises:
        ValueError: If datetime string cannot be parsed
    """
    normalized = iso_string.replace("Z", "+00:00")

    try:
        return ensure_aware(datetime.fromisoformat(normalized))
    except ValueError as e:
        raise ValueError(f"Invalid datetime string: {iso_string}") from e


def to_iso_string(dt: datetime) -> str:
    """
    Convert datetime to ISO format string.

    Args:
        dt: Datetime object (timezone-aware or naive)

    Returns:
        ISO format string
    """
    return ensure_aware(dt).isoformat()

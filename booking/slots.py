"""
Slot legality against weekly availability windows.

A start is legal when it lies strictly in the future, falls no later than
the booking horizon (counted in local calendar days), and the whole
consultation fits inside one active window of that weekday.
"""

from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional

from booking.conflicts import find_conflict
from config import settings
from models.availability import Availability
from models.booking import Booking
from utils.datetime_utils import (
    combine_local,
    ensure_aware,
    local_day_of_week,
    seconds_since_midnight,
    to_local,
    utc_now,
)


def _fits_window(window: Availability, start_seconds: int, duration_minutes: int) -> bool:
    window_start = seconds_since_midnight(window.start_time)
    window_end = seconds_since_midnight(window.end_time)
    return (
        window_start <= start_seconds
        and start_seconds + duration_minutes * 60 <= window_end
    )


def within_horizon(
    requested_start: datetime,
    now: datetime,
    horizon_days: int,
    tz_name: str,
) -> bool:
    """True when the start is in the future and within the horizon."""
    if ensure_aware(requested_start) <= ensure_aware(now):
        return False
    last_day = to_local(now, tz_name).date() + timedelta(days=horizon_days)
    return to_local(requested_start, tz_name).date() <= last_day


def is_legal_slot(
    availabilities: Iterable[Availability],
    requested_start: datetime,
    duration_minutes: int,
    now: Optional[datetime] = None,
    horizon_days: Optional[int] = None,
    tz_name: Optional[str] = None,
) -> bool:
    """
    Check whether a consultation may start at requested_start.

    Args:
        availabilities: The diviner's weekly windows
        requested_start: Requested start instant
        duration_minutes: Service duration
        now: Current instant (defaults to utc_now())
        horizon_days: Booking horizon (defaults to settings)
        tz_name: Marketplace timezone (defaults to settings)

    Returns:
        True if the slot is legal
    """
    if duration_minutes <= 0:
        return False

    now = now or utc_now()
    horizon_days = settings.booking_horizon_days if horizon_days is None else horizon_days
    tz_name = tz_name or settings.timezone

    if not within_horizon(requested_start, now, horizon_days, tz_name):
        return False

    local_start = to_local(requested_start, tz_name)
    weekday = local_day_of_week(local_start)
    start_seconds = seconds_since_midnight(local_start)

    return any(
        window.is_available
        and window.day_of_week == weekday
        and _fits_window(window, start_seconds, duration_minutes)
        for window in availabilities
    )


def generate_time_slots(
    availabilities: Iterable[Availability],
    day: date,
    duration_minutes: int,
    now: Optional[datetime] = None,
    step_minutes: Optional[int] = None,
    bookings: Iterable[Booking] = (),
    horizon_days: Optional[int] = None,
    tz_name: Optional[str] = None,
) -> List[datetime]:
    """
    List bookable start instants on a local calendar day.

    Each active window of the day's weekday is walked from its start in
    fixed steps. Starts that are illegal or collide with one of the given
    bookings are skipped.
    """
    now = now or utc_now()
    step = timedelta(minutes=step_minutes or settings.slot_step_minutes)
    duration = timedelta(minutes=duration_minutes)
    horizon_days = settings.booking_horizon_days if horizon_days is None else horizon_days
    tz_name = tz_name or settings.timezone
    weekday = (day.weekday() + 1) % 7
    bookings = list(bookings)

    starts = set()
    for window in availabilities:
        if not window.is_available or window.day_of_week != weekday:
            continue

        current = combine_local(day, window.start_time, tz_name)
        window_end = combine_local(day, window.end_time, tz_name)
        while current + duration <= window_end:
            if within_horizon(current, now, horizon_days, tz_name) and not find_conflict(
                bookings, current, current + duration
            ):
                starts.add(current)
            current += step

    return sorted(starts)

"""Double-booking detection over half-open [start, end) intervals."""

from datetime import datetime
from typing import Iterable, Optional

from models.booking import Booking, BookingStatus

# Bookings in these states hold the diviner's time
BLOCKING_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


def intervals_overlap(
    start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime
) -> bool:
    """
    True when [start_a, end_a) and [start_b, end_b) share at least one instant.

    Intervals that only touch (end_a == start_b) do not overlap.
    """
    return start_a < end_b and start_b < end_a


def find_conflict(
    bookings: Iterable[Booking],
    requested_start: datetime,
    requested_end: datetime,
) -> Optional[Booking]:
    """
    Return the first pending/confirmed booking overlapping the requested
    interval, or None when the interval is free.
    """
    for booking in bookings:
        if booking.status not in BLOCKING_STATUSES:
            continue
        if intervals_overlap(
            requested_start, requested_end, booking.scheduled_at, booking.scheduled_end
        ):
            return booking
    return None

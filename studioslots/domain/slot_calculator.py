"""
Core business logic for calculating bookable studio slots.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O).
"""

from datetime import date
from typing import Iterable, List, Optional

from .exceptions import InvalidDuration
from .models import Booking, Slot, TimeRange, WorkingInterval

DEFAULT_BUFFER_MINUTES = 15


def has_conflict(
    candidate: TimeRange,
    existing_bookings: Iterable[Booking],
    exclude_booking_id: Optional[str] = None,
) -> bool:
    """
    Check whether ``candidate`` overlaps any active booking.

    Cancelled bookings are ignored, and so is the booking with
    ``exclude_booking_id`` (used when moving a booking to a new time).
    Back-to-back intervals do not conflict.
    """
    for booking in existing_bookings:
        if not booking.is_active:
            continue
        if exclude_booking_id is not None and booking.id == exclude_booking_id:
            continue
        if candidate.overlaps(booking.time_range):
            return True
    return False


def validate_duration(duration_minutes: int) -> None:
    """Raise InvalidDuration unless duration_minutes is a positive integer."""
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int):
        raise InvalidDuration(
            f"Service duration must be a whole number of minutes, got {duration_minutes!r}"
        )
    if duration_minutes <= 0:
        raise InvalidDuration(
            f"Service duration must be greater than zero, got {duration_minutes}"
        )


class SlotCalculator:
    """
    Calculates bookable slots for one studio day.

    Algorithm:
    1. Anchor a cursor at the opening time of the target date
    2. While a full service duration still fits before closing time,
       emit the candidate unless it overlaps an active booking
    3. Advance the cursor by duration + buffer, whether or not the
       candidate was emitted
    """

    def __init__(self, buffer_minutes: int = DEFAULT_BUFFER_MINUTES):
        if buffer_minutes < 0:
            raise ValueError(f"buffer_minutes must not be negative, got {buffer_minutes}")
        self.buffer_minutes = buffer_minutes

    def compute_available_slots(
        self,
        working_interval: Optional[WorkingInterval],
        duration_minutes: int,
        existing_bookings: Iterable[Booking],
        target_date: date,
    ) -> List[Slot]:
        """
        Compute the open slots for ``target_date``.

        Args:
            working_interval: Opening hours for the weekday of target_date,
                or None when the studio is closed that day
            duration_minutes: Length of the requested service
            existing_bookings: Bookings of the studio touching target_date,
                in any status
            target_date: Calendar date in the studio's local frame

        Returns:
            Slots in chronological order; empty when the studio is closed
            or nothing fits

        Raises:
            InvalidDuration: If duration_minutes is not a positive integer
        """
        validate_duration(duration_minutes)

        if working_interval is None:
            return []

        bookings = list(existing_bookings)
        cursor, close = working_interval.anchor(target_date)
        stride = duration_minutes + self.buffer_minutes

        slots: List[Slot] = []

        while cursor.add(minutes=duration_minutes) <= close:
            candidate = TimeRange.from_duration(cursor, duration_minutes)

            if not has_conflict(candidate, bookings):
                slots.append(Slot(time_range=candidate))

            # Stride is anchored on the previous candidate, not the last emitted slot
            cursor = cursor.add(minutes=stride)

        return slots

    def has_conflict(
        self,
        candidate: TimeRange,
        existing_bookings: Iterable[Booking],
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        """Check ``candidate`` against existing bookings."""
        return has_conflict(candidate, existing_bookings, exclude_booking_id)

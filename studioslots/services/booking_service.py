"""
Application services for browsing and committing studio bookings.

The service coordinates reads from a booking store adapter and delegates
the slot arithmetic to the domain-level ``SlotCalculator``. Writes go
through a lock-recheck-insert sequence so that a slot shown as free at
browse time is validated again right before it is persisted.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, AsyncContextManager, List, Optional, Protocol

import pendulum
from pendulum import DateTime

from ..domain.exceptions import (
    BookingNotFound,
    BookingStoreError,
    ServiceNotFound,
    SlotNoLongerAvailable,
)
from ..domain.models import (
    Booking,
    BookingRequest,
    BookingStatus,
    Service,
    Slot,
    TimeRange,
    WorkingInterval,
    weekday_number,
)
from ..domain.slot_calculator import SlotCalculator, has_conflict, validate_duration

logger = logging.getLogger(__name__)

DEFAULT_CANCEL_REASON = "Cancelled by studio"


class BookingStoreProtocol(Protocol):
    """Protocol describing the booking store behaviour needed by the service."""

    async def get_service(self, studio_id: str, service_id: str) -> Optional[Service]:
        """Return the studio's service, or None."""

    async def get_working_interval(
        self,
        studio_id: str,
        day_of_week: int,
    ) -> Optional[WorkingInterval]:
        """Return the active opening hours for a weekday (0=Sunday), or None."""

    async def get_bookings(
        self,
        studio_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[Booking]:
        """Return bookings in any status that intersect ``[start, end]``."""

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        """Return a single booking, or None."""

    async def insert_booking(self, request: BookingRequest) -> Booking:
        """Persist a new booking and return it."""

    async def update_booking(self, booking_id: str, **changes: Any) -> Booking:
        """Apply ``changes`` to a booking and return the updated row."""

    def lock(self, studio_id: str) -> AsyncContextManager[None]:
        """Serialise conflict re-checks and writes for one studio."""


class BookingService:
    """
    Orchestrates booking-store reads, slot calculation and commits.

    Dependency inversion toward a protocol makes it easy to plug in the
    Supabase adapter or the in-memory store in tests.
    """

    def __init__(
        self,
        booking_store: BookingStoreProtocol,
        slot_calculator: SlotCalculator,
    ) -> None:
        self._store = booking_store
        self._slot_calculator = slot_calculator

    async def get_available_time_slots(
        self,
        studio_id: str,
        service_id: str,
        day: date,
    ) -> List[str]:
        """Return the bookable start instants of ``day`` as ISO-8601 strings."""
        slots = await self.find_slots(studio_id, service_id, day)
        return [slot.to_iso8601() for slot in slots]

    async def find_slots(
        self,
        studio_id: str,
        service_id: str,
        day: date,
    ) -> List[Slot]:
        """
        Fetch duration, opening hours and bookings, then compute slots.

        Raises:
            ServiceNotFound: If the service does not exist for the studio
            InvalidDuration: If the stored duration is not positive
            BookingStoreError: If the store returns hours for another weekday
        """
        service = await self._require_service(studio_id, service_id)

        working_interval = await self._store.get_working_interval(
            studio_id, weekday_number(day)
        )
        if working_interval is not None and not working_interval.applies_to(day):
            raise BookingStoreError(
                f"Store returned hours for weekday {working_interval.day_of_week} "
                f"when asked for {day} (weekday {weekday_number(day)})"
            )
        existing: List[Booking] = []

        if working_interval is None:
            logger.debug("Studio %s is closed on %s", studio_id, day)
        else:
            day_start = pendulum.datetime(
                day.year, day.month, day.day, tz=working_interval.timezone
            )
            existing = await self._store.get_bookings(
                studio_id,
                day_start,
                day_start.end_of("day"),
            )

        slots = self._slot_calculator.compute_available_slots(
            working_interval=working_interval,
            duration_minutes=service.duration_minutes,
            existing_bookings=existing,
            target_date=day,
        )

        logger.debug(
            "Computed %d slot(s) for studio %s, service %s on %s (%d booking(s) read)",
            len(slots), studio_id, service_id, day, len(existing),
        )
        return slots

    async def is_time_slot_available(
        self,
        studio_id: str,
        candidate: TimeRange,
        exclude_booking_id: Optional[str] = None,
    ) -> bool:
        """Check ``candidate`` against a fresh read of the studio's bookings."""
        existing = await self._store.get_bookings(studio_id, candidate.start, candidate.end)
        return not has_conflict(candidate, existing, exclude_booking_id)

    async def commit_booking(
        self,
        *,
        studio_id: str,
        service_id: str,
        start_time: DateTime,
        client_name: str,
        client_email: str,
        client_phone: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Booking:
        """
        Persist a pending-payment booking if its interval is still free.

        Raises:
            ServiceNotFound: If the service does not exist for the studio
            SlotNoLongerAvailable: If another booking took the interval
                since the slot list was fetched
        """
        service = await self._require_service(studio_id, service_id)
        validate_duration(service.duration_minutes)
        candidate = TimeRange.from_duration(start_time, service.duration_minutes)

        async with self._store.lock(studio_id):
            await self._ensure_free(studio_id, candidate)

            booking = await self._store.insert_booking(
                BookingRequest(
                    studio_id=studio_id,
                    service_id=service_id,
                    time_range=candidate,
                    client_name=client_name,
                    client_email=client_email,
                    client_phone=client_phone,
                    notes=notes,
                    total_price_cents=service.price_cents,
                )
            )

        logger.info("Booked %s for studio %s (booking %s)", candidate, studio_id, booking.id)
        return booking

    async def reschedule_booking(self, booking_id: str, new_start_time: DateTime) -> Booking:
        """
        Move a booking to ``new_start_time``, keeping its duration.

        Raises:
            BookingNotFound: If the booking does not exist
            ValueError: If the booking has been cancelled
            SlotNoLongerAvailable: If the new interval is taken
        """
        booking = await self._require_booking(booking_id)
        if not booking.is_active:
            raise ValueError(f"Cancelled booking {booking_id} cannot be rescheduled")

        candidate = TimeRange.from_duration(
            new_start_time,
            booking.time_range.duration_minutes(),
        )

        async with self._store.lock(booking.studio_id):
            await self._ensure_free(booking.studio_id, candidate, exclude_booking_id=booking_id)
            updated = await self._store.update_booking(booking_id, time_range=candidate)

        logger.info("Rescheduled booking %s to %s", booking_id, candidate)
        return updated

    async def cancel_booking(self, booking_id: str, reason: Optional[str] = None) -> Booking:
        """Mark a booking cancelled, freeing its interval."""
        await self._require_booking(booking_id)

        updated = await self._store.update_booking(
            booking_id,
            status=BookingStatus.CANCELLED,
            internal_notes=reason or DEFAULT_CANCEL_REASON,
        )

        logger.info("Cancelled booking %s", booking_id)
        return updated

    async def _ensure_free(
        self,
        studio_id: str,
        candidate: TimeRange,
        exclude_booking_id: Optional[str] = None,
    ) -> None:
        if not await self.is_time_slot_available(studio_id, candidate, exclude_booking_id):
            logger.warning("Slot %s at studio %s is no longer available", candidate, studio_id)
            raise SlotNoLongerAvailable(
                f"The slot {candidate} is no longer available. Please choose another time."
            )

    async def _require_service(self, studio_id: str, service_id: str) -> Service:
        service = await self._store.get_service(studio_id, service_id)
        if service is None:
            raise ServiceNotFound(f"Service not found: {service_id} (studio {studio_id})")
        return service

    async def _require_booking(self, booking_id: str) -> Booking:
        booking = await self._store.get_booking(booking_id)
        if booking is None:
            raise BookingNotFound(f"Booking not found: {booking_id}")
        return booking

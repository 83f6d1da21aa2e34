"""
In-memory booking store for tests and offline use without a database.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import replace
from pathlib import Path
from typing import Any, AsyncContextManager, Dict, Iterable, List, Optional, Tuple

from pendulum import DateTime

from ..domain.exceptions import BookingNotFound
from ..domain.models import Booking, BookingRequest, Service, WorkingInterval
from .locks import StudioLocks
from .rows import parse_booking, parse_service, parse_working_interval

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_studio_data.json"


class InMemoryBookingStore:
    """
    Booking store keeping services, opening hours and bookings in dicts.

    Re-checks and writes are serialised with one ``asyncio.Lock`` per
    studio, which is enough for a single process.
    """

    def __init__(
        self,
        timezone: str = "UTC",
        services: Iterable[Service] = (),
        working_intervals: Iterable[Tuple[str, WorkingInterval]] = (),
        bookings: Iterable[Booking] = (),
    ):
        self.timezone = timezone
        self._services: Dict[str, Service] = {}
        self._intervals: Dict[Tuple[str, int], WorkingInterval] = {}
        self._bookings: Dict[str, Booking] = {}
        self._locks = StudioLocks()

        for service in services:
            self.add_service(service)
        for studio_id, interval in working_intervals:
            self.set_working_interval(studio_id, interval)
        for booking in bookings:
            self.add_booking(booking)

    @classmethod
    def from_json(cls, data_file: Optional[Path] = None) -> "InMemoryBookingStore":
        """
        Load mock studio data from a JSON file.

        Args:
            data_file: Path to the JSON file, defaults to the bundled mock data

        Returns:
            InMemoryBookingStore instance

        Raises:
            FileNotFoundError: If the data file doesn't exist
        """
        data_file = data_file or DEFAULT_DATA_FILE

        if not data_file.exists():
            raise FileNotFoundError(f"Mock data file not found: {data_file}")

        with open(data_file, "r", encoding="utf-8") as f:
            data = json.load(f)

        timezone = data.get("timezone", "UTC")
        store = cls(timezone=timezone)

        for row in data.get("services", []):
            store.add_service(parse_service(row))

        for row in data.get("studio_availability", []):
            if row.get("active", True):
                store.set_working_interval(
                    str(row["studio_id"]),
                    parse_working_interval(row, timezone),
                )

        for row in data.get("bookings", []):
            store.add_booking(parse_booking(row, timezone))

        logger.debug(
            "Loaded %d service(s), %d interval(s), %d booking(s) from %s",
            len(store._services), len(store._intervals), len(store._bookings), data_file,
        )
        return store

    def add_service(self, service: Service) -> None:
        self._services[service.id] = service

    def set_working_interval(self, studio_id: str, interval: WorkingInterval) -> None:
        self._intervals[(studio_id, interval.day_of_week)] = interval

    def add_booking(self, booking: Booking) -> None:
        self._bookings[booking.id] = booking

    async def get_service(self, studio_id: str, service_id: str) -> Optional[Service]:
        service = self._services.get(service_id)
        if service is None or service.studio_id != studio_id:
            return None
        return service

    async def get_working_interval(
        self,
        studio_id: str,
        day_of_week: int,
    ) -> Optional[WorkingInterval]:
        return self._intervals.get((studio_id, day_of_week))

    async def get_bookings(
        self,
        studio_id: str,
        start: DateTime,
        end: DateTime,
    ) -> List[Booking]:
        matches = [
            booking for booking in self._bookings.values()
            if booking.studio_id == studio_id
            and booking.time_range.start < end
            and booking.time_range.end > start
        ]
        return sorted(matches, key=lambda b: b.time_range.start)

    async def get_booking(self, booking_id: str) -> Optional[Booking]:
        return self._bookings.get(booking_id)

    async def insert_booking(self, request: BookingRequest) -> Booking:
        booking = Booking(
            id=str(uuid.uuid4()),
            studio_id=request.studio_id,
            service_id=request.service_id,
            time_range=request.time_range,
            status=request.status,
            client_name=request.client_name,
            client_email=request.client_email,
            client_phone=request.client_phone,
            notes=request.notes,
            total_price_cents=request.total_price_cents,
        )
        self.add_booking(booking)
        return booking

    async def update_booking(self, booking_id: str, **changes: Any) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise BookingNotFound(f"Booking not found: {booking_id}")

        updated = replace(booking, **changes)
        self._bookings[booking_id] = updated
        return updated

    def lock(self, studio_id: str) -> AsyncContextManager[None]:
        return self._locks.hold(studio_id)

"""
Tests for the in-memory booking store and its bundled mock data.
"""

import asyncio
import gc
import json

import pendulum
import pytest

from studioslots.adapters.locks import StudioLocks
from studioslots.adapters.memory_store import InMemoryBookingStore
from studioslots.domain.exceptions import BookingNotFound, BookingStoreError
from studioslots.domain.models import BookingRequest, BookingStatus, TimeRange


class TestBundledMockData:
    """The JSON shipped with the package loads into a usable store."""

    def test_loads_services_and_hours(self):
        store = InMemoryBookingStore.from_json()

        service = asyncio.run(store.get_service("studio-1", "svc-mixing"))
        monday = asyncio.run(store.get_working_interval("studio-1", 1))

        assert store.timezone == "Europe/Berlin"
        assert service.duration_minutes == 60
        assert monday.open_time.hour == 10
        assert monday.close_time.hour == 20
        assert monday.timezone == "Europe/Berlin"

    def test_inactive_availability_rows_are_skipped(self):
        store = InMemoryBookingStore.from_json()

        assert asyncio.run(store.get_working_interval("studio-1", 0)) is None

    def test_bookings_are_parsed_with_status(self):
        store = InMemoryBookingStore.from_json()

        booking = asyncio.run(store.get_booking("bk-1002"))

        assert booking.status is BookingStatus.CANCELLED
        assert booking.time_range.duration_minutes() == 120

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            InMemoryBookingStore.from_json(tmp_path / "nope.json")

    def test_invalid_booking_row_raises(self, tmp_path):
        data_file = tmp_path / "data.json"
        data_file.write_text(json.dumps({
            "bookings": [{
                "id": "broken",
                "studio_id": "s",
                "service_id": "x",
                "start_time": "2024-11-25T12:00:00Z",
                "end_time": "2024-11-25T11:00:00Z",
            }]
        }))

        with pytest.raises(BookingStoreError, match="broken"):
            InMemoryBookingStore.from_json(data_file)


class TestInMemoryBookingStore:
    """Tests for reads and writes against the in-memory store."""

    def _range(self, start, end):
        return TimeRange(
            start=pendulum.parse(f"2024-11-25 {start}", tz="UTC"),
            end=pendulum.parse(f"2024-11-25 {end}", tz="UTC"),
        )

    def _request(self, start, end, studio_id="studio-1"):
        return BookingRequest(
            studio_id=studio_id,
            service_id="svc",
            time_range=self._range(start, end),
            client_name="Client",
            client_email="client@example.com",
        )

    def test_get_bookings_returns_intersecting_rows_sorted(self):
        store = InMemoryBookingStore()
        late = asyncio.run(store.insert_booking(self._request("15:00", "16:00")))
        early = asyncio.run(store.insert_booking(self._request("09:00", "10:00")))
        asyncio.run(store.insert_booking(self._request("18:00", "19:00")))
        asyncio.run(store.insert_booking(self._request("09:00", "10:00", studio_id="other")))

        window = self._range("09:30", "15:30")
        found = asyncio.run(store.get_bookings("studio-1", window.start, window.end))

        assert [b.id for b in found] == [early.id, late.id]

    def test_insert_assigns_id_and_pending_status(self):
        store = InMemoryBookingStore()

        booking = asyncio.run(store.insert_booking(self._request("09:00", "10:00")))

        assert booking.id
        assert booking.status is BookingStatus.PENDING_PAYMENT

    def test_update_booking(self):
        store = InMemoryBookingStore()
        booking = asyncio.run(store.insert_booking(self._request("09:00", "10:00")))

        updated = asyncio.run(store.update_booking(booking.id, status=BookingStatus.CONFIRMED))

        assert updated.status is BookingStatus.CONFIRMED
        assert asyncio.run(store.get_booking(booking.id)).status is BookingStatus.CONFIRMED

    def test_update_unknown_booking_raises(self):
        store = InMemoryBookingStore()

        with pytest.raises(BookingNotFound):
            asyncio.run(store.update_booking("nope", status=BookingStatus.CONFIRMED))

    def test_lock_serialises_same_studio(self):
        store = InMemoryBookingStore()
        order = []

        async def worker(name):
            async with store.lock("studio-1"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        async def main():
            await asyncio.gather(worker("a"), worker("b"))

        asyncio.run(main())

        assert order == ["a-in", "a-out", "b-in", "b-out"]

    def test_lock_does_not_block_other_studios(self):
        store = InMemoryBookingStore()
        order = []

        async def worker(studio_id):
            async with store.lock(studio_id):
                order.append(f"{studio_id}-in")
                await asyncio.sleep(0.01)
                order.append(f"{studio_id}-out")

        async def main():
            await asyncio.gather(worker("studio-1"), worker("studio-2"))

        asyncio.run(main())

        assert order[:2] == ["studio-1-in", "studio-2-in"]


class TestStudioLocks:
    """Tests for the per-studio lock registry."""

    def test_entry_exists_only_while_held(self):
        locks = StudioLocks()
        seen_while_held = []

        async def main():
            async with locks.hold("studio-1"):
                seen_while_held.append("studio-1" in locks)

        asyncio.run(main())
        gc.collect()

        assert seen_while_held == [True]
        assert "studio-1" not in locks
        assert len(locks) == 0

    def test_many_studios_leave_no_entries_behind(self):
        locks = StudioLocks()

        async def main():
            for i in range(100):
                async with locks.hold(f"studio-{i}"):
                    pass

        asyncio.run(main())
        gc.collect()

        assert len(locks) == 0

    def test_waiters_share_one_lock(self):
        locks = StudioLocks()
        order = []

        async def worker(name):
            async with locks.hold("studio-1"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        async def main():
            await asyncio.gather(worker("a"), worker("b"), worker("c"))

        asyncio.run(main())

        assert order == ["a-in", "a-out", "b-in", "b-out", "c-in", "c-out"]

"""
Tests for slot calculator.
"""

from datetime import time

import pendulum
import pytest

from studioslots.domain.exceptions import InvalidDuration
from studioslots.domain.models import Booking, BookingStatus, TimeRange, WorkingInterval
from studioslots.domain.slot_calculator import SlotCalculator, has_conflict

MONDAY = pendulum.date(2024, 11, 25)


def _hours(open_at="09:00", close_at="17:00", tz="UTC"):
    return WorkingInterval(
        day_of_week=1,
        open_time=time.fromisoformat(open_at),
        close_time=time.fromisoformat(close_at),
        timezone=tz,
    )


def _at(hhmm, tz="UTC"):
    return pendulum.parse(f"2024-11-25 {hhmm}", tz=tz)


def _booking(start, end, status=BookingStatus.CONFIRMED, booking_id="b1"):
    return Booking(
        id=booking_id,
        studio_id="studio-1",
        service_id="svc",
        time_range=TimeRange(start=_at(start), end=_at(end)),
        status=status,
    )


def _starts(slots):
    return [slot.start.format("HH:mm") for slot in slots]


class TestSlotCalculator:
    """Tests for SlotCalculator."""

    def test_slots_without_bookings_follow_stride(self):
        """60 min service with a 15 min buffer yields a start every 75 minutes."""
        calculator = SlotCalculator()

        slots = calculator.compute_available_slots(_hours(), 60, [], MONDAY)

        # 16:30 would end at 17:30, after closing
        assert _starts(slots) == ["09:00", "10:15", "11:30", "12:45", "14:00", "15:15"]

    def test_active_booking_suppresses_overlapping_candidate(self):
        calculator = SlotCalculator()
        bookings = [_booking("10:00", "11:00")]

        slots = calculator.compute_available_slots(_hours(), 60, bookings, MONDAY)

        assert _starts(slots) == ["09:00", "11:30", "12:45", "14:00", "15:15"]

    def test_cancelled_booking_is_ignored(self):
        calculator = SlotCalculator()
        cancelled = [_booking("10:00", "11:00", status=BookingStatus.CANCELLED)]

        assert (
            calculator.compute_available_slots(_hours(), 60, cancelled, MONDAY)
            == calculator.compute_available_slots(_hours(), 60, [], MONDAY)
        )

    def test_cancelled_full_day_booking_does_not_block(self):
        calculator = SlotCalculator()
        whole_day = [_booking("00:00", "23:59", status=BookingStatus.CANCELLED)]

        slots = calculator.compute_available_slots(_hours(), 60, whole_day, MONDAY)

        assert len(slots) == 6

    def test_active_full_day_booking_blocks_everything(self):
        calculator = SlotCalculator()
        whole_day = [_booking("00:00", "23:59", status=BookingStatus.PENDING_PAYMENT)]

        assert calculator.compute_available_slots(_hours(), 60, whole_day, MONDAY) == []

    def test_back_to_back_bookings_are_allowed(self):
        """A booking filling exactly the gap between two candidates blocks nothing."""
        calculator = SlotCalculator()
        bookings = [_booking("10:00", "10:15")]

        slots = calculator.compute_available_slots(_hours(), 60, bookings, MONDAY)

        assert "09:00" in _starts(slots)  # ends when the booking starts
        assert "10:15" in _starts(slots)  # starts when the booking ends

    def test_stride_is_anchored_on_rejected_candidates(self):
        """A rejected candidate still advances the cursor by a full stride."""
        calculator = SlotCalculator()
        bookings = [_booking("09:30", "09:45")]

        slots = calculator.compute_available_slots(_hours(), 60, bookings, MONDAY)

        # 09:45 would fit after the booking, but the next candidate is 10:15
        assert _starts(slots)[0] == "10:15"

    def test_last_slot_may_end_exactly_at_closing(self):
        calculator = SlotCalculator(buffer_minutes=0)

        slots = calculator.compute_available_slots(_hours("09:00", "12:00"), 60, [], MONDAY)

        assert _starts(slots) == ["09:00", "10:00", "11:00"]
        assert slots[-1].end == _at("12:00")

    def test_custom_buffer(self):
        calculator = SlotCalculator(buffer_minutes=30)

        slots = calculator.compute_available_slots(_hours("09:00", "13:00"), 60, [], MONDAY)

        assert _starts(slots) == ["09:00", "10:30", "12:00"]

    def test_negative_buffer_raises_error(self):
        with pytest.raises(ValueError):
            SlotCalculator(buffer_minutes=-5)

    def test_closed_day_returns_empty(self):
        calculator = SlotCalculator()

        assert calculator.compute_available_slots(None, 60, [], MONDAY) == []

    def test_degenerate_interval_returns_empty(self):
        calculator = SlotCalculator()

        assert calculator.compute_available_slots(_hours("09:00", "09:00"), 60, [], MONDAY) == []

    def test_duration_longer_than_opening_returns_empty(self):
        calculator = SlotCalculator()

        assert calculator.compute_available_slots(_hours("09:00", "10:00"), 61, [], MONDAY) == []

    @pytest.mark.parametrize("duration", [0, -30])
    def test_non_positive_duration_raises(self, duration):
        calculator = SlotCalculator()

        with pytest.raises(InvalidDuration):
            calculator.compute_available_slots(_hours(), duration, [], MONDAY)

    def test_invalid_duration_checked_before_closed_day(self):
        calculator = SlotCalculator()

        with pytest.raises(InvalidDuration):
            calculator.compute_available_slots(None, 0, [], MONDAY)

    def test_result_is_deterministic(self):
        calculator = SlotCalculator()
        bookings = [_booking("11:00", "12:00"), _booking("14:30", "15:00", booking_id="b2")]

        first = calculator.compute_available_slots(_hours(), 45, bookings, MONDAY)
        second = calculator.compute_available_slots(_hours(), 45, bookings, MONDAY)

        assert first == second

    def test_slots_respect_all_invariants(self):
        """Chronological, within hours, conflict free and spaced by duration + buffer."""
        calculator = SlotCalculator()
        duration = 50
        bookings = [
            _booking("09:20", "10:00"),
            _booking("12:00", "13:30", booking_id="b2"),
            _booking("15:00", "16:00", status=BookingStatus.CANCELLED, booking_id="b3"),
        ]
        open_at, close_at = _hours("08:30", "18:00").anchor(MONDAY)

        slots = calculator.compute_available_slots(
            _hours("08:30", "18:00"), duration, bookings, MONDAY
        )

        assert slots
        for slot in slots:
            assert open_at <= slot.start
            assert slot.end <= close_at
            assert slot.time_range.duration_minutes() == duration
            assert not has_conflict(slot.time_range, bookings)

        for previous, current in zip(slots, slots[1:]):
            assert current.start > previous.start
            assert (current.start - previous.start).in_minutes() >= duration + 15

    def test_slots_are_anchored_in_local_time(self):
        calculator = SlotCalculator()
        hours = _hours("09:00", "11:00", tz="America/New_York")

        slots = calculator.compute_available_slots(hours, 60, [], MONDAY)

        assert [slot.to_iso8601() for slot in slots] == [
            pendulum.datetime(2024, 11, 25, 14, tz="UTC").to_iso8601_string()
        ]


class TestHasConflict:
    """Tests for the standalone conflict predicate."""

    def test_overlap_is_a_conflict(self):
        candidate = TimeRange(start=_at("10:30"), end=_at("11:30"))

        assert has_conflict(candidate, [_booking("10:00", "11:00")])

    def test_adjacent_is_not_a_conflict(self):
        candidate = TimeRange(start=_at("11:00"), end=_at("12:00"))

        assert not has_conflict(candidate, [_booking("10:00", "11:00")])

    def test_cancelled_is_not_a_conflict(self):
        candidate = TimeRange(start=_at("10:30"), end=_at("11:30"))

        assert not has_conflict(
            candidate, [_booking("10:00", "11:00", status=BookingStatus.CANCELLED)]
        )

    def test_excluded_booking_is_skipped(self):
        candidate = TimeRange(start=_at("10:30"), end=_at("11:30"))
        bookings = [_booking("10:00", "11:00", booking_id="moving")]

        assert not has_conflict(candidate, bookings, exclude_booking_id="moving")
        assert has_conflict(candidate, bookings, exclude_booking_id="other")

    def test_no_bookings(self):
        candidate = TimeRange(start=_at("10:30"), end=_at("11:30"))

        assert not has_conflict(candidate, [])
        assert not SlotCalculator().has_conflict(candidate, [])

"""
Domain models for studio hours, bookings and bookable slots.
"""

from dataclasses import dataclass
from datetime import date, time
from enum import Enum
from typing import Optional, Tuple

import pendulum
from pendulum import DateTime


def weekday_number(day: date) -> int:
    """Return the weekday of ``day`` as 0=Sunday .. 6=Saturday."""
    return day.isoweekday() % 7


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable time range with start and end datetime.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")

    @classmethod
    def from_duration(cls, start: DateTime, minutes: int) -> "TimeRange":
        """Build a range of ``minutes`` length starting at ``start``."""
        return cls(start=start, end=start.add(minutes=minutes))

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int((self.end - self.start).total_seconds() / 60)

    def overlaps(self, other: "TimeRange") -> bool:
        """
        Check if this range overlaps with another.

        Ranges are half-open, so a range ending exactly when the other
        starts does not overlap it.
        """
        return self.start < other.end and self.end > other.start

    def __str__(self) -> str:
        return f"{self.start.format('DD.MM.YYYY HH:mm')} - {self.end.format('HH:mm')}"


@dataclass(frozen=True)
class WorkingInterval:
    """
    A studio's opening hours for one weekday.

    ``day_of_week`` counts from 0=Sunday to 6=Saturday. Times of day are
    interpreted in ``timezone``; overnight intervals are not supported.
    """
    day_of_week: int
    open_time: time
    close_time: time
    timezone: str = "UTC"

    def __post_init__(self):
        if not 0 <= self.day_of_week <= 6:
            raise ValueError(f"day_of_week must be between 0 and 6, got {self.day_of_week}")
        if self.open_time > self.close_time:
            raise ValueError(
                f"Opening time {self.open_time} must not be after closing time {self.close_time}"
            )

    def applies_to(self, day: date) -> bool:
        """Check whether this interval describes the weekday of ``day``."""
        return weekday_number(day) == self.day_of_week

    def anchor(self, day: date) -> Tuple[DateTime, DateTime]:
        """Return the opening and closing instants for ``day``."""
        return self._at(day, self.open_time), self._at(day, self.close_time)

    def _at(self, day: date, moment: time) -> DateTime:
        return pendulum.datetime(
            day.year,
            day.month,
            day.day,
            moment.hour,
            moment.minute,
            moment.second,
            tz=self.timezone,
        )


@dataclass(frozen=True)
class Service:
    """A bookable studio service (recording, mixing, ...)."""
    id: str
    studio_id: str
    name: str
    duration_minutes: int
    price_cents: int = 0
    active: bool = True


class BookingStatus(str, Enum):
    """Lifecycle states of a booking row."""
    PENDING_PAYMENT = "pending_payment"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


@dataclass(frozen=True)
class BookingRequest:
    """A booking about to be persisted by the commit path."""
    studio_id: str
    service_id: str
    time_range: TimeRange
    client_name: str
    client_email: str
    client_phone: Optional[str] = None
    notes: Optional[str] = None
    total_price_cents: int = 0
    status: BookingStatus = BookingStatus.PENDING_PAYMENT


@dataclass(frozen=True)
class Booking:
    """
    A persisted booking as read back from the booking store.
    """
    id: str
    studio_id: str
    service_id: str
    time_range: TimeRange
    status: BookingStatus = BookingStatus.PENDING_PAYMENT
    client_name: str = ""
    client_email: str = ""
    client_phone: Optional[str] = None
    notes: Optional[str] = None
    internal_notes: Optional[str] = None
    total_price_cents: int = 0

    @property
    def is_active(self) -> bool:
        """Cancelled bookings no longer occupy their interval."""
        return self.status != BookingStatus.CANCELLED


@dataclass(frozen=True)
class Slot:
    """
    A bookable start time, derived per request and never persisted.
    """
    time_range: TimeRange

    @property
    def start(self) -> DateTime:
        return self.time_range.start

    @property
    def end(self) -> DateTime:
        return self.time_range.end

    def to_iso8601(self) -> str:
        """Serialise the start instant as an ISO-8601 UTC timestamp."""
        return self.start.in_timezone("UTC").to_iso8601_string()

    def format_display(self) -> str:
        """
        Format the slot for display.
        Format: Weekday, DD.MM.YYYY | HH:mm - HH:mm (N min)
        """
        start = self.time_range.start
        end = self.time_range.end

        date_str = start.format("dddd, DD.MM.YYYY", locale="en")
        time_str = f"{start.format('HH:mm')} - {end.format('HH:mm')}"

        return f"{date_str} | {time_str} ({self.time_range.duration_minutes()} min)"

"""
Conversion between booking-store rows (plain dicts) and domain models.

Rows use the column names of the hosted database tables ``services``,
``studio_availability`` and ``bookings``; the JSON mock data uses the
same shape.
"""

from datetime import time
from typing import Any, Dict, Iterable, Optional

import pendulum
from pendulum import DateTime

from ..domain.exceptions import BookingStoreError
from ..domain.models import (
    Booking,
    BookingRequest,
    BookingStatus,
    Service,
    TimeRange,
    WorkingInterval,
)

Row = Dict[str, Any]


def parse_datetime(value: str, timezone: str) -> DateTime:
    """
    Parse an ISO 8601 timestamp into a pendulum DateTime in ``timezone``.

    Raises:
        ValueError: If the value is not a datetime
    """
    dt = pendulum.parse(value, tz=timezone)

    if isinstance(dt, DateTime):
        return dt.in_timezone(timezone)

    raise ValueError(f"Could not parse datetime: {value}")


def parse_time_of_day(value: str) -> time:
    """Parse ``"09:00"`` or ``"09:00:00"`` into a time."""
    return time.fromisoformat(value)


def parse_service(row: Row) -> Service:
    try:
        return Service(
            id=str(row["id"]),
            studio_id=str(row["studio_id"]),
            name=row.get("name", ""),
            duration_minutes=row["duration_minutes"],
            price_cents=row.get("price_cents") or 0,
            active=row.get("active", True),
        )
    except KeyError as e:
        raise BookingStoreError(f"Service row is missing column {e}") from e


def parse_working_interval(row: Row, timezone: str) -> WorkingInterval:
    try:
        return WorkingInterval(
            day_of_week=int(row["day_of_week"]),
            open_time=parse_time_of_day(row["start_time"]),
            close_time=parse_time_of_day(row["end_time"]),
            timezone=row.get("timezone") or timezone,
        )
    except (KeyError, ValueError) as e:
        raise BookingStoreError(f"Invalid studio_availability row {row!r}: {e}") from e


def parse_booking(row: Row, timezone: str) -> Booking:
    try:
        time_range = TimeRange(
            start=parse_datetime(row["start_time"], timezone),
            end=parse_datetime(row["end_time"], timezone),
        )
        return Booking(
            id=str(row["id"]),
            studio_id=str(row["studio_id"]),
            service_id=str(row["service_id"]),
            time_range=time_range,
            status=BookingStatus(row.get("status", BookingStatus.PENDING_PAYMENT.value)),
            client_name=row.get("client_name", ""),
            client_email=row.get("client_email", ""),
            client_phone=row.get("client_phone"),
            notes=row.get("notes"),
            internal_notes=row.get("internal_notes"),
            total_price_cents=row.get("total_price_cents") or 0,
        )
    except (KeyError, ValueError) as e:
        raise BookingStoreError(f"Invalid booking row {row.get('id')!r}: {e}") from e


def booking_request_to_row(request: BookingRequest) -> Row:
    row: Row = {
        "studio_id": request.studio_id,
        "service_id": request.service_id,
        "client_name": request.client_name,
        "client_email": request.client_email,
        "total_price_cents": request.total_price_cents,
        "status": request.status.value,
    }
    row.update(_time_range_columns(request.time_range))

    if request.client_phone:
        row["client_phone"] = request.client_phone
    if request.notes:
        row["notes"] = request.notes

    return row


def booking_changes_to_row(changes: Dict[str, Any]) -> Row:
    """Translate ``update_booking`` keyword changes into row columns."""
    row: Row = {}

    for key, value in changes.items():
        if key == "time_range":
            row.update(_time_range_columns(value))
        elif isinstance(value, BookingStatus):
            row[key] = value.value
        else:
            row[key] = value

    return row


def _time_range_columns(time_range: TimeRange) -> Row:
    return {
        "start_time": time_range.start.in_timezone("UTC").to_iso8601_string(),
        "end_time": time_range.end.in_timezone("UTC").to_iso8601_string(),
    }


def find_active_interval(
    rows: Iterable[Row],
    studio_id: str,
    day_of_week: int,
    timezone: str,
) -> Optional[WorkingInterval]:
    """Return the first active availability row matching studio and weekday."""
    for row in rows:
        if str(row.get("studio_id")) != studio_id:
            continue
        if int(row.get("day_of_week", -1)) != day_of_week:
            continue
        if not row.get("active", True):
            continue
        return parse_working_interval(row, timezone)
    return None

"""
Domain layer - Pure business logic without external dependencies.
"""

from .exceptions import (
    BookingNotFound,
    BookingStoreError,
    InvalidDuration,
    ServiceNotFound,
    SlotNoLongerAvailable,
    StudioSlotsError,
)
from .models import (
    Booking,
    BookingRequest,
    BookingStatus,
    Service,
    Slot,
    TimeRange,
    WorkingInterval,
)
from .slot_calculator import (
    DEFAULT_BUFFER_MINUTES,
    SlotCalculator,
    has_conflict,
    validate_duration,
)

__all__ = [
    "Booking",
    "BookingNotFound",
    "BookingRequest",
    "BookingStatus",
    "BookingStoreError",
    "DEFAULT_BUFFER_MINUTES",
    "InvalidDuration",
    "Service",
    "ServiceNotFound",
    "Slot",
    "SlotCalculator",
    "SlotNoLongerAvailable",
    "StudioSlotsError",
    "TimeRange",
    "WorkingInterval",
    "has_conflict",
    "validate_duration",
]

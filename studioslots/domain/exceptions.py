"""
Domain-specific exception hierarchy for the studio booking engine.
"""


class StudioSlotsError(Exception):
    """Base class for all application-level errors."""


class InvalidDuration(StudioSlotsError, ValueError):
    """Raised when a service duration is not a positive number of minutes."""


class SlotNoLongerAvailable(StudioSlotsError):
    """Raised at commit time when the requested interval was taken meanwhile."""


class ServiceNotFound(StudioSlotsError):
    """Raised when a studio service cannot be found."""


class BookingNotFound(StudioSlotsError):
    """Raised when a booking cannot be found."""


class BookingStoreError(StudioSlotsError):
    """Raised when booking data cannot be fetched, parsed or written."""

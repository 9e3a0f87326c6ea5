"""
Custom exceptions for the booking engines.
Raised in engine/service modules and translated to JSON errors in views.
Each class carries the HTTP status the API answers with.
"""


class BookingEngineError(Exception):
    """Base exception for all booking engine errors."""
    status_code = 400


class SlotNotFoundError(BookingEngineError):
    """Raised when no slot matches the given id or instructor/date/time."""
    status_code = 404


class SlotUnavailableError(BookingEngineError):
    """Raised when a slot is already held or booked by someone else."""
    status_code = 409


class NotSlotOwnerError(BookingEngineError):
    """Raised when a student acts on a slot held or booked by another student."""
    status_code = 403


class InvalidTransitionError(BookingEngineError):
    """Raised when the requested status change is not allowed from the current status."""
    pass


class NoCreditAvailableError(BookingEngineError):
    """Raised when redeeming without an unconsumed credit of matching class type and duration."""
    status_code = 403


class NoCancellationFeeDueError(BookingEngineError):
    """Raised when a fee order is requested for a cancellation that is free."""
    pass

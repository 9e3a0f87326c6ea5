from apps.bookings.exceptions import BookingEngineError


class TicketClassNotFoundError(BookingEngineError):
    status_code = 404


class ClassFullError(BookingEngineError):
    """Raised when every seat of the class is taken."""
    status_code = 409


class AlreadyEnrolledError(BookingEngineError):
    """Raised when the student already holds a pending or confirmed seat."""
    pass


class NotEnrolledError(BookingEngineError):
    pass


class CancellationNotAllowedError(BookingEngineError):
    """Raised when cancelling on the class day or after it."""
    pass

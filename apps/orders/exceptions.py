from apps.bookings.exceptions import BookingEngineError


class NotOrderOwnerError(BookingEngineError):
    status_code = 403


class OrderStateError(BookingEngineError):
    """Raised when an order is not in a state that allows the operation."""
    status_code = 409


class EmptyCartError(BookingEngineError):
    pass

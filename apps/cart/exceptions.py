from apps.bookings.exceptions import BookingEngineError


class AlreadyInCartError(BookingEngineError):
    """Raised when the slot or class seat already sits in a cart."""
    status_code = 409


class CartItemNotFoundError(BookingEngineError):
    status_code = 404

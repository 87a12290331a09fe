class BookingError(Exception):
    pass


class BookingValidationError(BookingError):
    """Raised for an incomplete or malformed booking payload, id or filter value."""

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.message = message
        self.errors = errors or {}

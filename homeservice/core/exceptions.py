from typing import Iterable


class BookingError(Exception):
    """Base class for every caller-visible failure of the booking core."""

    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(BookingError):
    """Missing or malformed input fields."""
    pass


class MissingFields(ValidationError):
    def __init__(self, fields: Iterable[str]):
        self.fields = list(fields)
        super().__init__(f"Missing required fields: {', '.join(self.fields)}")


class Unverified(BookingError):
    """OTP verification was not completed for this email."""

    status_code = 403


class NotServiceable(BookingError):
    """Postal code is outside the configured coverage list."""
    pass


class PastDateTime(BookingError):
    """Requested slot has already elapsed."""
    pass


class NotFound(BookingError):
    status_code = 404


class OtpNotFound(NotFound):
    # The public OTP form treats a missing code as a plain bad request
    status_code = 400


class OtpExpired(BookingError):
    pass


class OtpMismatch(BookingError):
    pass


class InvalidStatus(BookingError):
    pass


class InvalidTransition(BookingError):
    status_code = 409


class Conflict(BookingError):
    """Booking was modified concurrently; the caller may retry."""

    status_code = 409


class NotificationFailure(RuntimeError):
    """Raised by notifiers when delivery fails. Never fatal to a booking operation."""
    pass


class StoreFailure(BookingError):
    """Persistence layer failed. Surfaced to callers as a generic 5xx."""

    status_code = 500

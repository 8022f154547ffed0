"""
Booking core exceptions.

Each error carries the HTTP status code the API layer answers with and a
human-readable message returned to the client as ``{"message": ...}``.
"""


class BookingError(Exception):
    """Base class for booking core failures."""

    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BookingValidationError(BookingError):
    """Request is malformed or conflicts with the appointment's current state."""

    status_code = 400


class ForbiddenError(BookingError):
    """Actor lacks a role permitting the requested action."""

    status_code = 403


class NotFoundError(BookingError):
    """Referenced appointment, service or staff profile does not exist."""

    status_code = 404


class UpstreamError(BookingError):
    """A required external dependency (datastore, mail provider) failed."""

    status_code = 502

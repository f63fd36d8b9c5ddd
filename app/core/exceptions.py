"""Custom application exceptions."""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ):
        """Initialize exception with message, status code and optional details."""
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404)


class UnauthorizedException(AppException):
    """Unauthorized access exception."""

    def __init__(self, message: str = "Unauthorized"):
        """Initialize with 401 status code."""
        super().__init__(message, status_code=401)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    def __init__(self, message: str = "Forbidden"):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403)


class ConflictException(AppException):
    """Conflict exception."""

    def __init__(self, message: str = "Conflict", details: dict[str, Any] | None = None):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409, details=details)


class ValidationException(AppException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation error"):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422)


class RateLimitException(AppException):
    """Rate limit exceeded exception."""

    def __init__(self, message: str = "Rate limit exceeded"):
        """Initialize with 429 status code."""
        super().__init__(message, status_code=429)


# Clinic domain errors. Class names are part of the API contract: the
# error handler reports them verbatim in the "error" field.


class AppointmentNotFound(NotFoundException):
    """Appointment does not exist."""

    def __init__(self, appointment_id: str):
        """Initialize with the missing appointment ID."""
        super().__init__(f"Appointment {appointment_id} not found")
        self.appointment_id = appointment_id


class PermissionDenied(ForbiddenException):
    """Caller's role does not allow the operation."""

    def __init__(self, message: str = "Permission denied"):
        """Initialize with 403 status code."""
        super().__init__(message)


class SlotNoLongerAvailable(ConflictException):
    """Requested time slot was booked by someone else."""

    def __init__(self, date: str, time: str, available_slots: list[str] | None = None):
        """
        Initialize with the contested slot and a refreshed availability list.

        Args:
            date: Calendar date in ISO format
            time: Slot label that was requested
            available_slots: Slots still open on that date
        """
        super().__init__(
            f"Time slot {time} on {date} is no longer available",
            details={
                "date": date,
                "time": time,
                "available_slots": available_slots or [],
            },
        )
        self.date = date
        self.time = time
        self.available_slots = available_slots or []


class InvalidStatusTransition(ConflictException):
    """Appointment status change not allowed from the current state."""

    def __init__(self, current: str, requested: str):
        """Initialize with the current and requested statuses."""
        super().__init__(
            f"Cannot change appointment status from '{current}' to '{requested}'",
            details={"current_status": current, "requested_status": requested},
        )


class DatastoreUnavailable(AppException):
    """Document datastore could not be reached."""

    def __init__(self, message: str = "Datastore unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)


# Datastore-level errors. These are raised by document store backends and
# handled inside the service layer; they never reach the client as-is.


class DatastoreError(Exception):
    """Base class for document store errors."""


class QueryNotSupportedError(DatastoreError):
    """Datastore rejected a query (e.g. a composite index is missing)."""


class DocumentExistsError(DatastoreError):
    """Create-if-absent write hit an existing document."""


class DocumentNotFoundError(DatastoreError):
    """Update targeted a document that does not exist."""


class WriteConflictError(DatastoreError):
    """Conditional write found the document changed since it was read."""

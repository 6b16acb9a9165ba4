"""
Scheduling error taxonomy.

Every failure on the booking path is raised as one of these, carrying a
stable code for clients and a message that can be shown to a patient.
Notification failures are deliberately absent: they never fail an
operation and travel as warnings on the result instead.
"""

from typing import Optional


NOTIFICATION_FAILED = "notification_failed"


class SchedulingError(Exception):
    """Base class for booking-path failures."""

    code: str = "scheduling_error"
    status_code: int = 500
    default_message: str = "Scheduling request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert to API error body."""
        return {"error": self.code, "detail": self.message}


class InvalidInputError(SchedulingError):
    """Missing or malformed request fields."""

    code = "invalid_input"
    status_code = 400
    default_message = "Missing required fields"


class NotFoundError(SchedulingError):
    """Doctor, appointment or session does not exist."""

    code = "not_found"
    status_code = 404
    default_message = "Not found"


class SlotConflictError(SchedulingError):
    """The requested slot is occupied or was taken by a concurrent request."""

    code = "conflict"
    status_code = 409
    default_message = "This time slot is already booked"


class UnavailableError(SchedulingError):
    """Doctor inactive, or nothing bookable in the requested window."""

    code = "unavailable"
    status_code = 409
    default_message = "Doctor not found or not available"


class InternalError(SchedulingError):
    """Storage or transaction failure."""

    code = "internal"
    status_code = 500
    default_message = "Internal scheduling error"


def notification_warning(kind: str, detail: str) -> str:
    """Format a non-fatal notification failure for a response envelope."""
    return f"{NOTIFICATION_FAILED}: {kind} notification could not be sent ({detail})"

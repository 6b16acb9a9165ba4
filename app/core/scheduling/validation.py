"""
Validation helpers for booking requests.

Dates are normalized to calendar days and times to zero-padded HH:MM so
every lookup for a slot agrees on its key.
"""

import re
import uuid
from datetime import date, datetime
from typing import Any, Optional, Union

from app.core.scheduling.errors import InvalidInputError


TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


def parse_uuid(value: Any, what: str = "id") -> uuid.UUID:
    """Parse an identifier.

    Args:
        value: UUID or its string form
        what: Field name for the error message

    Returns:
        Parsed UUID

    Raises:
        InvalidInputError: If the value is missing or not a UUID
    """
    if isinstance(value, uuid.UUID):
        return value
    if not value:
        raise InvalidInputError(f"{what} is required")
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise InvalidInputError(f"Invalid {what}: {value}")


def parse_calendar_date(value: Union[date, datetime, str, None]) -> date:
    """Normalize a date-ish value to its calendar day.

    Accepts date objects, datetimes (time of day discarded) and ISO strings
    such as "2025-03-14" or "2025-03-14T10:30:00Z".

    Raises:
        InvalidInputError: If the value is missing or unparseable
    """
    if value is None or value == "":
        raise InvalidInputError("Date is required")
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise InvalidInputError("Invalid date format")


def normalize_time(value: Optional[str], what: str = "time") -> str:
    """Normalize "9:00" to "09:00" and validate the clock range."""
    if not value:
        raise InvalidInputError(f"{what} is required")

    match = TIME_PATTERN.match(str(value).strip())
    if not match:
        raise InvalidInputError(f"Invalid {what}: expected HH:MM")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise InvalidInputError(f"Invalid {what}: {value}")

    return f"{hours:02d}:{minutes:02d}"


def validate_time_range(start_time: Optional[str], end_time: Optional[str]) -> tuple[str, str]:
    """Normalize a start/end pair and require start < end."""
    start = normalize_time(start_time, "start time")
    end = normalize_time(end_time, "end time")
    if start >= end:
        raise InvalidInputError("Start time must be before end time")
    return start, end


def require_fields(**fields: Any) -> None:
    """Raise InvalidInputError naming every blank field."""
    missing = [
        name for name, value in fields.items()
        if value is None or (isinstance(value, str) and not value.strip())
    ]
    if missing:
        raise InvalidInputError(f"Missing required fields: {', '.join(missing)}")

"""
Session data models.

A DialogueSession is the per-caller state of a conversational booking:
which step it is on, what has been collected so far and when the caller
last spoke. Sessions live only in the process-local SessionStore.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from .state import DialogueStep


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def generate_session_id() -> str:
    """Opaque session identifier."""
    return f"session_{uuid4().hex}"


@dataclass
class DialogueSession:
    """
    Conversational booking state for one caller.

    The lock serializes turns on this session and marks it busy so the
    expiry sweep leaves it alone while a turn is in flight.
    """

    # Identifiers
    session_id: str = field(default_factory=generate_session_id)

    # Doctor being booked
    doctor_id: Optional[str] = None
    doctor_name: Optional[str] = None
    doctor_specialization: Optional[str] = None

    # Flow
    step: DialogueStep = DialogueStep.NAME

    # Collected patient data
    patient_name: Optional[str] = None
    patient_email: Optional[str] = None
    patient_phone: Optional[str] = None
    symptoms: Optional[str] = None

    # Metadata
    turn_count: int = 0
    created_at: datetime = field(default_factory=_utcnow)
    last_activity: datetime = field(default_factory=_utcnow)

    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def is_corrupted(self) -> bool:
        """A session without its doctor cannot book anything."""
        return not self.doctor_id or not self.doctor_name

    @property
    def is_busy(self) -> bool:
        """A turn is currently running on this session."""
        return self.lock.locked()

    def idle_seconds(self, now: Optional[datetime] = None) -> float:
        """Seconds since the caller last spoke."""
        return ((now or _utcnow()) - self.last_activity).total_seconds()

    def reset_collected(self) -> None:
        """Forget every collected patient detail."""
        self.patient_name = None
        self.patient_email = None
        self.patient_phone = None
        self.symptoms = None

    def collected(self) -> dict:
        """Collected patient details (None for missing)."""
        return {
            "patient_name": self.patient_name,
            "patient_email": self.patient_email,
            "patient_phone": self.patient_phone,
            "symptoms": self.symptoms,
        }

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "session_id": self.session_id,
            "step": self.step.value,
            "doctor": {
                "id": self.doctor_id,
                "name": self.doctor_name,
                "specialization": self.doctor_specialization,
            },
            "collected": self.collected(),
            "turn_count": self.turn_count,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
        }

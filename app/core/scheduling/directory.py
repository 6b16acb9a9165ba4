"""
Doctor directory.

Read-only view of the users table used by booking and session start.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Optional, Union

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.scheduling.errors import NotFoundError, UnavailableError
from app.core.scheduling.validation import parse_uuid
from app.models.database import User, UserRole

logger = logging.getLogger(__name__)


@dataclass
class DoctorInfo:
    """Doctor details attached to appointments and sessions."""

    id: str
    name: str
    specialization: Optional[str] = None

    @classmethod
    def from_model(cls, user: User) -> "DoctorInfo":
        """Create from a User row."""
        return cls(
            id=str(user.id),
            name=user.name,
            specialization=user.specialization,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "specialization": self.specialization,
        }


class DoctorDirectory:
    """Looks up doctors that can take appointments."""

    async def find_active_doctor(
        self,
        db: AsyncSession,
        doctor_id: Union[str, uuid.UUID],
    ) -> DoctorInfo:
        """Find a bookable doctor.

        Args:
            db: Session of the enclosing unit of work
            doctor_id: Doctor identifier

        Returns:
            DoctorInfo for the doctor

        Raises:
            NotFoundError: No user with that id, or the user is not a doctor
            UnavailableError: The doctor is inactive
        """
        user = await db.get(User, parse_uuid(doctor_id, "doctor id"))

        if user is None or user.role != UserRole.DOCTOR:
            logger.warning(f"Doctor not found: {doctor_id}")
            raise NotFoundError("Doctor not found")

        if not user.is_active:
            logger.warning(f"Doctor inactive: {doctor_id}")
            raise UnavailableError("Doctor not found or not available")

        return DoctorInfo.from_model(user)

    async def get_doctor(
        self,
        db: AsyncSession,
        doctor_id: uuid.UUID,
    ) -> Optional[DoctorInfo]:
        """Get a doctor regardless of status (for display only)."""
        user = await db.get(User, doctor_id)
        return DoctorInfo.from_model(user) if user else None

    async def list_active_doctors(
        self,
        db: AsyncSession,
        search: Optional[str] = None,
        specialization: Optional[str] = None,
    ) -> list[DoctorInfo]:
        """List active doctors, optionally filtered.

        Args:
            db: Database session
            search: Case-insensitive match on name, email or specialization
            specialization: Case-insensitive match on specialization ("all" ignored)

        Returns:
            Doctors sorted by name
        """
        stmt = select(User).where(
            User.role == UserRole.DOCTOR,
            User.is_active.is_(True),
        )

        if search:
            pattern = f"%{search.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(User.name).like(pattern),
                    func.lower(User.email).like(pattern),
                    func.lower(User.specialization).like(pattern),
                )
            )

        if specialization and specialization.lower() != "all":
            stmt = stmt.where(
                func.lower(User.specialization).like(f"%{specialization.lower()}%")
            )

        result = await db.execute(stmt.order_by(User.name))
        return [DoctorInfo.from_model(user) for user in result.scalars().all()]

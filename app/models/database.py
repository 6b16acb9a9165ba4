"""
Database Models

SQLAlchemy ORM models for doctor appointment scheduling.
"""

import uuid
from datetime import date as calendar_date, datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint, Uuid, Enum as SQLEnum, text
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def _enum_values(enum_cls: type[Enum]) -> list[str]:
    """Persist enum values ("cancelled") rather than member names."""
    return [member.value for member in enum_cls]


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        nullable=False
    )


class UserRole(str, Enum):
    """User role enumeration."""
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    MISSED = "missed"


class User(Base, TimestampMixin):
    """
    User model.

    Only the directory fields needed by scheduling live here; credentials
    are managed by the authentication service.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("idx_user_role_active", "role", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(
            UserRole,
            name="user_role",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        nullable=False
    )
    specialization: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, name='{self.name}', role={self.role.value})>"


class Appointment(Base, TimestampMixin):
    """
    Appointment model.

    Appointments are never deleted by the scheduling engine; cancelling one
    is a status transition. The partial unique index below is what keeps two
    live appointments out of the same doctor/date/start slot, including when
    two bookings race each other.
    """

    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointment_doctor_date", "doctor_id", "date"),
        Index("idx_appointment_patient_email", "patient_email", "date"),
        Index("idx_appointment_status_date", "status", "date"),
        Index(
            "uq_appointment_live_slot",
            "doctor_id",
            "date",
            "start_time",
            unique=True,
            postgresql_where=text("status <> 'cancelled'"),
            sqlite_where=text("status <> 'cancelled'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    doctor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    patient_name: Mapped[str] = mapped_column(String(255), nullable=False)
    patient_email: Mapped[str] = mapped_column(String(255), nullable=False)
    patient_phone: Mapped[str] = mapped_column(String(50), nullable=False)
    date: Mapped[calendar_date] = mapped_column(Date, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    symptoms: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[AppointmentStatus] = mapped_column(
        SQLEnum(
            AppointmentStatus,
            name="appointment_status",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
        default=AppointmentStatus.CONFIRMED,
        nullable=False
    )
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )
    booked_via: Mapped[str] = mapped_column(String(20), default="form")

    @property
    def is_live(self) -> bool:
        """Live appointments occupy their slot."""
        return self.status != AppointmentStatus.CANCELLED

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, doctor_id={self.doctor_id}, "
            f"date={self.date}, start={self.start_time}, "
            f"status={self.status.value})>"
        )


class AvailabilityRecord(Base, TimestampMixin):
    """
    Doctor-authored availability for one calendar day.

    Days without a record fall back to the default grid.
    """

    __tablename__ = "availability"
    __table_args__ = (
        UniqueConstraint("doctor_id", "date", name="uq_availability_doctor_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    doctor_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False
    )
    date: Mapped[calendar_date] = mapped_column(Date, nullable=False)

    def __repr__(self) -> str:
        return f"<AvailabilityRecord(doctor_id={self.doctor_id}, date={self.date})>"


class AvailabilitySlot(Base):
    """
    One slot of an availability record.

    Each slot is its own row so booking, cancelling, rescheduling and
    availability edits only ever touch the single slot they target.
    """

    __tablename__ = "availability_slots"
    __table_args__ = (
        UniqueConstraint(
            "record_id", "start_time", "end_time", name="uq_availability_slot_key"
        ),
        Index("idx_availability_slot_appointment", "appointment_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4
    )
    record_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("availability.id", ondelete="CASCADE"),
        nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    appointment_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("appointments.id", ondelete="SET NULL"),
        nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<AvailabilitySlot(record_id={self.record_id}, "
            f"{self.start_time}-{self.end_time}, available={self.available})>"
        )

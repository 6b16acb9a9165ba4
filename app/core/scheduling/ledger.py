"""
Booking ledger.

Creates, cancels and reschedules appointments. Each operation is one
transaction over the appointments and availability_slots tables; the
partial unique index on live appointments is the final arbiter when two
requests race for the same slot. Notifications go out after commit and
can only ever add a warning.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional, Union

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.scheduling.directory import DoctorDirectory, DoctorInfo
from app.core.scheduling.errors import (
    InternalError,
    NotFoundError,
    SchedulingError,
    SlotConflictError,
    notification_warning,
)
from app.core.scheduling.validation import (
    parse_calendar_date,
    parse_uuid,
    require_fields,
    validate_time_range,
)
from app.infra.database import get_db_context
from app.infra.notifications import (
    AppointmentNotice,
    NotificationSender,
    get_notification_sender,
    mask_email,
)
from app.models.database import (
    Appointment,
    AppointmentStatus,
    AvailabilityRecord,
    AvailabilitySlot,
)

logger = logging.getLogger(__name__)

UNKNOWN_DOCTOR = "Unknown Doctor"


@dataclass
class AppointmentRecord:
    """Detached view of an appointment with its doctor attached for display."""

    id: str
    doctor_id: str
    doctor_name: str
    doctor_specialization: Optional[str]
    patient_name: str
    patient_email: str
    patient_phone: str
    date: date
    start_time: str
    end_time: str
    symptoms: str
    status: AppointmentStatus
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    booked_via: str = "form"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(
        cls,
        appointment: Appointment,
        doctor: Optional[DoctorInfo] = None,
    ) -> "AppointmentRecord":
        """Create from an Appointment row."""
        return cls(
            id=str(appointment.id),
            doctor_id=str(appointment.doctor_id),
            doctor_name=doctor.name if doctor else UNKNOWN_DOCTOR,
            doctor_specialization=doctor.specialization if doctor else None,
            patient_name=appointment.patient_name,
            patient_email=appointment.patient_email,
            patient_phone=appointment.patient_phone,
            date=appointment.date,
            start_time=appointment.start_time,
            end_time=appointment.end_time,
            symptoms=appointment.symptoms,
            status=appointment.status,
            cancellation_reason=appointment.cancellation_reason,
            cancelled_at=appointment.cancelled_at,
            booked_via=appointment.booked_via,
            created_at=appointment.created_at,
            updated_at=appointment.updated_at,
        )

    def to_notice(self) -> AppointmentNotice:
        """What the notification sender needs to know."""
        return AppointmentNotice(
            to=self.patient_email,
            patient_name=self.patient_name,
            doctor_name=self.doctor_name,
            date=self.date,
            start_time=self.start_time,
            end_time=self.end_time,
            appointment_id=self.id,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "doctor": {
                "id": self.doctor_id,
                "name": self.doctor_name,
                "specialization": self.doctor_specialization,
            },
            "patient_name": self.patient_name,
            "patient_email": self.patient_email,
            "patient_phone": self.patient_phone,
            "date": self.date.isoformat(),
            "start_time": self.start_time,
            "end_time": self.end_time,
            "symptoms": self.symptoms,
            "status": self.status.value,
            "cancellation_reason": self.cancellation_reason,
            "cancelled_at": self.cancelled_at.isoformat() if self.cancelled_at else None,
            "booked_via": self.booked_via,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class BookingResult:
    """Outcome of a ledger mutation: the appointment plus non-fatal warnings."""

    appointment: AppointmentRecord
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to response envelope."""
        return {
            "appointment": self.appointment.to_dict(),
            "warnings": list(self.warnings),
        }


class BookingLedger:
    """
    Transactional appointment store.

    All writes to a slot go through _reserve_slot/_release_slot, which are
    single-row conditional UPDATEs so edits to other slots of the same day
    are never overwritten.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        directory: Optional[DoctorDirectory] = None,
        notifier: Optional[NotificationSender] = None,
    ):
        """Initialize ledger.

        Args:
            session_factory: Session factory (defaults to the app factory)
            directory: Doctor lookups
            notifier: Notification sender (defaults to the app sender)
        """
        self._session_factory = session_factory
        self._directory = directory or DoctorDirectory()
        self._notifier = notifier

    @property
    def notifier(self) -> NotificationSender:
        if self._notifier is None:
            self._notifier = get_notification_sender()
        return self._notifier

    # === Mutations ===

    async def book(
        self,
        doctor_id: Union[str, uuid.UUID],
        patient_name: str,
        patient_email: str,
        patient_phone: str,
        date: Union[date, datetime, str],
        start_time: str,
        end_time: str,
        symptoms: str,
        booked_via: str = "form",
    ) -> BookingResult:
        """Book a slot.

        Args:
            doctor_id: Doctor to book with
            patient_name: Patient full name
            patient_email: Patient e-mail (confirmation recipient)
            patient_phone: Patient phone
            date: Calendar day (time of day is ignored)
            start_time: Slot start, HH:MM
            end_time: Slot end, HH:MM
            symptoms: Reason for the visit
            booked_via: "form" or "voice"

        Returns:
            BookingResult with the confirmed appointment

        Raises:
            InvalidInputError: Missing or malformed fields
            NotFoundError: Doctor does not exist
            UnavailableError: Doctor is inactive
            SlotConflictError: Slot is taken or blocked
            InternalError: Storage failure
        """
        require_fields(
            doctor_id=doctor_id,
            patient_name=patient_name,
            patient_email=patient_email,
            patient_phone=patient_phone,
            date=date,
            start_time=start_time,
            end_time=end_time,
            symptoms=symptoms,
        )
        doctor_uuid = parse_uuid(doctor_id, "doctor id")
        day = parse_calendar_date(date)
        start, end = validate_time_range(start_time, end_time)

        try:
            async with get_db_context(self._session_factory) as db:
                doctor = await self._directory.find_active_doctor(db, doctor_uuid)
                await self._ensure_slot_free(db, doctor_uuid, day, start)

                slot = await self._custom_slot(db, doctor_uuid, day, start, end)
                if slot is not None and not slot.available:
                    raise SlotConflictError("This time slot is not available")

                appointment = Appointment(
                    doctor_id=doctor_uuid,
                    patient_name=patient_name.strip(),
                    patient_email=patient_email.strip().lower(),
                    patient_phone=patient_phone.strip(),
                    date=day,
                    start_time=start,
                    end_time=end,
                    symptoms=symptoms.strip(),
                    status=AppointmentStatus.CONFIRMED,
                    booked_via=booked_via,
                )
                db.add(appointment)
                await db.flush()

                if slot is not None:
                    reserved = await self._reserve_slot(
                        db, doctor_uuid, day, start, end, appointment.id
                    )
                    if not reserved:
                        raise SlotConflictError("This time slot is not available")

                record = AppointmentRecord.from_model(appointment, doctor)

        except SchedulingError:
            raise
        except IntegrityError as e:
            logger.warning(f"Slot race lost for doctor {doctor_uuid} on {day} {start}: {e.orig}")
            raise SlotConflictError() from e
        except SQLAlchemyError as e:
            logger.error(f"Failed to create appointment: {e}")
            raise InternalError("Error creating appointment") from e

        logger.info(
            f"Appointment {record.id} booked: doctor={record.doctor_id} "
            f"{record.date} {record.start_time}-{record.end_time} "
            f"patient={mask_email(record.patient_email)} via={booked_via}"
        )

        warnings = await self._notify("confirmation", record)
        return BookingResult(appointment=record, warnings=warnings)

    async def cancel(
        self,
        appointment_id: Union[str, uuid.UUID],
        reason: Optional[str] = None,
    ) -> BookingResult:
        """Cancel an appointment and free its slot.

        Cancelling an already-cancelled appointment returns it unchanged
        and sends nothing.

        Raises:
            NotFoundError: Appointment does not exist
            InternalError: Storage failure
        """
        appointment_uuid = parse_uuid(appointment_id, "appointment id")

        try:
            async with get_db_context(self._session_factory) as db:
                appointment = await db.get(Appointment, appointment_uuid, with_for_update=True)
                if appointment is None:
                    raise NotFoundError("Appointment not found")

                already_cancelled = appointment.status == AppointmentStatus.CANCELLED
                if not already_cancelled:
                    appointment.status = AppointmentStatus.CANCELLED
                    appointment.cancellation_reason = reason
                    appointment.cancelled_at = datetime.now(timezone.utc)
                    await self._release_slot(db, appointment)
                    await db.flush()

                doctor = await self._directory.get_doctor(db, appointment.doctor_id)
                record = AppointmentRecord.from_model(appointment, doctor)

        except SchedulingError:
            raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to cancel appointment {appointment_id}: {e}")
            raise InternalError("Error cancelling appointment") from e

        if already_cancelled:
            logger.info(f"Appointment {record.id} already cancelled")
            return BookingResult(appointment=record)

        logger.info(f"Appointment {record.id} cancelled: {record.date} {record.start_time}")

        warnings = await self._notify("cancellation", record)
        return BookingResult(appointment=record, warnings=warnings)

    async def reschedule(
        self,
        appointment_id: Union[str, uuid.UUID],
        new_date: Union[date, datetime, str],
        new_start_time: str,
        new_end_time: str,
    ) -> BookingResult:
        """Move an appointment to another slot.

        The old slot is released and the new one reserved in the same
        transaction; any failure leaves both as they were.

        Raises:
            InvalidInputError: Malformed date or times
            NotFoundError: Appointment does not exist
            SlotConflictError: New slot is occupied or not available
            InternalError: Storage failure
        """
        appointment_uuid = parse_uuid(appointment_id, "appointment id")
        require_fields(date=new_date, start_time=new_start_time, end_time=new_end_time)
        day = parse_calendar_date(new_date)
        start, end = validate_time_range(new_start_time, new_end_time)

        try:
            async with get_db_context(self._session_factory) as db:
                appointment = await db.get(Appointment, appointment_uuid, with_for_update=True)
                if appointment is None:
                    raise NotFoundError("Appointment not found")

                await self._ensure_slot_free(
                    db, appointment.doctor_id, day, start, exclude_id=appointment.id
                )

                old_key = (appointment.date, appointment.start_time, appointment.end_time)
                await self._release_slot(db, appointment)

                slot = await self._custom_slot(db, appointment.doctor_id, day, start, end)
                if slot is not None:
                    reserved = await self._reserve_slot(
                        db, appointment.doctor_id, day, start, end, appointment.id
                    )
                    if not reserved:
                        raise SlotConflictError("The new time slot is not available")
                elif await self._has_custom_slots(db, appointment.doctor_id, day):
                    # The doctor published this day's slots and this one is not among them
                    raise SlotConflictError("The new time slot is not available")

                appointment.date = day
                appointment.start_time = start
                appointment.end_time = end
                appointment.status = AppointmentStatus.CONFIRMED
                appointment.cancellation_reason = None
                appointment.cancelled_at = None
                await db.flush()

                doctor = await self._directory.get_doctor(db, appointment.doctor_id)
                record = AppointmentRecord.from_model(appointment, doctor)

        except SchedulingError:
            raise
        except IntegrityError as e:
            logger.warning(f"Reschedule race lost for {appointment_id}: {e.orig}")
            raise SlotConflictError() from e
        except SQLAlchemyError as e:
            logger.error(f"Failed to reschedule appointment {appointment_id}: {e}")
            raise InternalError("Error rescheduling appointment") from e

        logger.info(
            f"Appointment {record.id} rescheduled: "
            f"{old_key[0]} {old_key[1]} -> {record.date} {record.start_time}"
        )

        warnings = await self._notify("confirmation", record)
        return BookingResult(appointment=record, warnings=warnings)

    # === Queries ===

    async def get_appointment(self, appointment_id: Union[str, uuid.UUID]) -> AppointmentRecord:
        """Get one appointment or raise NotFoundError."""
        appointment_uuid = parse_uuid(appointment_id, "appointment id")

        try:
            async with get_db_context(self._session_factory) as db:
                appointment = await db.get(Appointment, appointment_uuid)
                if appointment is None:
                    raise NotFoundError("Appointment not found")
                doctor = await self._directory.get_doctor(db, appointment.doctor_id)
                return AppointmentRecord.from_model(appointment, doctor)
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch appointment {appointment_id}: {e}")
            raise InternalError("Error fetching appointment") from e

    async def list_patient_appointments(self, email: str) -> list[AppointmentRecord]:
        """All appointments for a patient e-mail, newest first."""
        require_fields(email=email)

        try:
            async with get_db_context(self._session_factory) as db:
                result = await db.execute(
                    select(Appointment)
                    .where(Appointment.patient_email == email.strip().lower())
                    .order_by(Appointment.date.desc(), Appointment.start_time.desc())
                )
                appointments = result.scalars().all()

                doctors: dict[uuid.UUID, Optional[DoctorInfo]] = {}
                records = []
                for appointment in appointments:
                    if appointment.doctor_id not in doctors:
                        doctors[appointment.doctor_id] = await self._directory.get_doctor(
                            db, appointment.doctor_id
                        )
                    records.append(
                        AppointmentRecord.from_model(appointment, doctors[appointment.doctor_id])
                    )
                return records
        except SQLAlchemyError as e:
            logger.error(f"Failed to list appointments for {mask_email(email)}: {e}")
            raise InternalError("Error fetching appointments") from e

    # === Slot helpers ===

    async def _ensure_slot_free(
        self,
        db: AsyncSession,
        doctor_id: uuid.UUID,
        day: date,
        start_time: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        """Raise SlotConflictError if a live appointment holds the slot."""
        stmt = select(Appointment.id).where(
            Appointment.doctor_id == doctor_id,
            Appointment.date == day,
            Appointment.start_time == start_time,
            Appointment.status != AppointmentStatus.CANCELLED,
        )
        if exclude_id is not None:
            stmt = stmt.where(Appointment.id != exclude_id)

        result = await db.execute(stmt.limit(1))
        if result.scalar_one_or_none() is not None:
            raise SlotConflictError()

    @staticmethod
    def _record_ids(doctor_id: uuid.UUID, day: date):
        return select(AvailabilityRecord.id).where(
            AvailabilityRecord.doctor_id == doctor_id,
            AvailabilityRecord.date == day,
        )

    async def _custom_slot(
        self,
        db: AsyncSession,
        doctor_id: uuid.UUID,
        day: date,
        start_time: str,
        end_time: str,
    ) -> Optional[AvailabilitySlot]:
        """The doctor-authored slot for this key, if the day has one."""
        result = await db.execute(
            select(AvailabilitySlot).where(
                AvailabilitySlot.record_id.in_(self._record_ids(doctor_id, day)),
                AvailabilitySlot.start_time == start_time,
                AvailabilitySlot.end_time == end_time,
            )
        )
        return result.scalar_one_or_none()

    async def _has_custom_slots(self, db: AsyncSession, doctor_id: uuid.UUID, day: date) -> bool:
        """Whether the day has a record with at least one slot (an empty one means default grid)."""
        result = await db.execute(
            select(AvailabilitySlot.id)
            .where(AvailabilitySlot.record_id.in_(self._record_ids(doctor_id, day)))
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def _reserve_slot(
        self,
        db: AsyncSession,
        doctor_id: uuid.UUID,
        day: date,
        start_time: str,
        end_time: str,
        appointment_id: uuid.UUID,
    ) -> bool:
        """Flip one open slot to reserved. False if it was no longer open."""
        result = await db.execute(
            update(AvailabilitySlot)
            .where(
                AvailabilitySlot.record_id.in_(self._record_ids(doctor_id, day)),
                AvailabilitySlot.start_time == start_time,
                AvailabilitySlot.end_time == end_time,
                AvailabilitySlot.available.is_(True),
            )
            .values(available=False, appointment_id=appointment_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _release_slot(self, db: AsyncSession, appointment: Appointment) -> None:
        """Free the slot held by this appointment, if it is in a custom record."""
        await db.execute(
            update(AvailabilitySlot)
            .where(
                AvailabilitySlot.record_id.in_(
                    self._record_ids(appointment.doctor_id, appointment.date)
                ),
                AvailabilitySlot.start_time == appointment.start_time,
                AvailabilitySlot.end_time == appointment.end_time,
                AvailabilitySlot.appointment_id == appointment.id,
            )
            .values(available=True, appointment_id=None)
            .execution_options(synchronize_session=False)
        )

    # === Notifications ===

    async def _notify(self, kind: str, record: AppointmentRecord) -> list[str]:
        """Send a notification; failures come back as warnings."""
        notice = record.to_notice()
        try:
            if kind == "cancellation":
                sent = await self.notifier.send_appointment_cancellation(notice)
            else:
                sent = await self.notifier.send_appointment_confirmation(notice)
        except Exception as e:
            logger.warning(f"{kind.capitalize()} notification for {record.id} raised: {e}")
            return [notification_warning(kind, str(e) or type(e).__name__)]

        if not sent:
            logger.warning(f"{kind.capitalize()} notification for {record.id} was not sent")
            return [notification_warning(kind, "sender reported failure")]
        return []

"""
Slot calendar.

Computes bookable slots for a doctor on a day from the doctor's own
availability record (or the default 09:00-17:00 grid when there is none)
minus the slots already held by live appointments. Also owns the
doctor-authored availability records themselves.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional, Union

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import get_settings
from app.core.scheduling.directory import DoctorDirectory
from app.core.scheduling.errors import (
    InternalError,
    InvalidInputError,
    SchedulingError,
    SlotConflictError,
)
from app.core.scheduling.validation import (
    normalize_time,
    parse_calendar_date,
    parse_uuid,
    validate_time_range,
)
from app.infra.database import get_db_context
from app.models.database import (
    Appointment,
    AppointmentStatus,
    AvailabilityRecord,
    AvailabilitySlot,
)

logger = logging.getLogger(__name__)


@dataclass
class TimeSlot:
    """A start/end pair on a day, optionally held by an appointment."""

    start_time: str  # HH:MM
    end_time: str
    available: bool = True
    appointment_id: Optional[str] = None

    @property
    def key(self) -> tuple[str, str]:
        """Identity of the slot within a day."""
        return (self.start_time, self.end_time)

    @classmethod
    def from_dict(cls, data: dict) -> "TimeSlot":
        """Create from request dict (accepts camelCase keys too)."""
        return cls(
            start_time=data.get("start_time", data.get("startTime", "")),
            end_time=data.get("end_time", data.get("endTime", "")),
            available=data.get("available", True),
        )

    @classmethod
    def from_model(cls, slot: AvailabilitySlot) -> "TimeSlot":
        """Create from an availability_slots row."""
        return cls(
            start_time=slot.start_time,
            end_time=slot.end_time,
            available=slot.available,
            appointment_id=str(slot.appointment_id) if slot.appointment_id else None,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        result = {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "available": self.available,
        }
        if self.appointment_id:
            result["appointment_id"] = self.appointment_id
        return result


def generate_time_slots(
    start: str = "09:00",
    end: str = "17:00",
    interval_minutes: int = 30,
) -> list[TimeSlot]:
    """Build contiguous slots from start (inclusive) to end (exclusive).

    >>> [s.start_time for s in generate_time_slots("09:00", "10:30")]
    ['09:00', '09:30', '10:00']
    """
    current = datetime.strptime(normalize_time(start), "%H:%M")
    stop = datetime.strptime(normalize_time(end), "%H:%M")
    step = timedelta(minutes=interval_minutes)

    slots = []
    while current + step <= stop:
        following = current + step
        slots.append(
            TimeSlot(
                start_time=current.strftime("%H:%M"),
                end_time=following.strftime("%H:%M"),
            )
        )
        current = following
    return slots


class SlotCalendar:
    """
    Read side of scheduling plus availability authoring.

    The read methods that take a session (open_slots, find_next_available)
    run inside the caller's transaction so the ledger sees the same
    snapshot it then writes against.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        directory: Optional[DoctorDirectory] = None,
        day_start: Optional[str] = None,
        day_end: Optional[str] = None,
        slot_minutes: Optional[int] = None,
    ):
        """Initialize calendar.

        Args:
            session_factory: Session factory (defaults to the app factory)
            directory: Doctor directory used when authoring availability
            day_start: Default grid start (defaults to settings)
            day_end: Default grid end (defaults to settings)
            slot_minutes: Default grid slot length (defaults to settings)
        """
        settings = get_settings()
        self._session_factory = session_factory
        self._directory = directory or DoctorDirectory()
        self.day_start = day_start or settings.default_day_start
        self.day_end = day_end or settings.default_day_end
        self.slot_minutes = slot_minutes or settings.slot_duration_minutes

    def default_grid(self) -> list[TimeSlot]:
        """Slots offered on days without a custom record."""
        return generate_time_slots(self.day_start, self.day_end, self.slot_minutes)

    # === Read ===

    async def compute_available_slots(
        self,
        doctor_id: Union[str, uuid.UUID],
        day: Union[date, datetime, str],
    ) -> list[TimeSlot]:
        """Compute bookable slots for a doctor on a day.

        Args:
            doctor_id: Doctor identifier
            day: Calendar day (time of day is ignored)

        Returns:
            Open slots in candidate order (chronological for the default grid)
        """
        doctor_uuid = parse_uuid(doctor_id, "doctor id")
        calendar_day = parse_calendar_date(day)

        try:
            async with get_db_context(self._session_factory) as db:
                return await self.open_slots(db, doctor_uuid, calendar_day)
        except SQLAlchemyError as e:
            logger.error(f"Failed to compute slots: {e}")
            raise InternalError("Error fetching available slots") from e

    async def open_slots(
        self,
        db: AsyncSession,
        doctor_id: uuid.UUID,
        day: date,
    ) -> list[TimeSlot]:
        """Open slots for a day within an existing session."""
        custom = await self.record_slots(db, doctor_id, day)
        occupied = await self.occupied_keys(db, doctor_id, day)

        if custom:
            candidates = [slot for slot in custom if slot.available]
        else:
            candidates = self.default_grid()

        open_slots = [
            TimeSlot(start_time=slot.start_time, end_time=slot.end_time)
            for slot in candidates
            if slot.key not in occupied
        ]

        logger.debug(
            f"Slots for doctor {doctor_id} on {day}: "
            f"{len(open_slots)} open of {len(candidates)} "
            f"({'custom' if custom else 'default'} grid)"
        )
        return open_slots

    async def record_slots(
        self,
        db: AsyncSession,
        doctor_id: uuid.UUID,
        day: date,
    ) -> list[TimeSlot]:
        """Slots of the doctor's availability record for the day (may be empty)."""
        stmt = (
            select(AvailabilitySlot)
            .join(AvailabilityRecord, AvailabilitySlot.record_id == AvailabilityRecord.id)
            .where(
                AvailabilityRecord.doctor_id == doctor_id,
                AvailabilityRecord.date == day,
            )
            .order_by(AvailabilitySlot.position, AvailabilitySlot.start_time)
        )
        result = await db.execute(stmt)
        return [TimeSlot.from_model(slot) for slot in result.scalars().all()]

    async def occupied_keys(
        self,
        db: AsyncSession,
        doctor_id: uuid.UUID,
        day: date,
    ) -> set[tuple[str, str]]:
        """(start, end) pairs held by live appointments."""
        stmt = select(Appointment.start_time, Appointment.end_time).where(
            Appointment.doctor_id == doctor_id,
            Appointment.date == day,
            Appointment.status != AppointmentStatus.CANCELLED,
        )
        result = await db.execute(stmt)
        return {(row.start_time, row.end_time) for row in result.all()}

    async def live_appointment_ids(
        self,
        db: AsyncSession,
        doctor_id: uuid.UUID,
        day: date,
    ) -> dict[tuple[str, str], uuid.UUID]:
        """Live appointment id per (start, end) pair."""
        stmt = select(Appointment.id, Appointment.start_time, Appointment.end_time).where(
            Appointment.doctor_id == doctor_id,
            Appointment.date == day,
            Appointment.status != AppointmentStatus.CANCELLED,
        )
        result = await db.execute(stmt)
        return {(row.start_time, row.end_time): row.id for row in result.all()}

    async def find_next_available(
        self,
        db: AsyncSession,
        doctor_id: uuid.UUID,
        start_day: date,
        days: int,
    ) -> Optional[tuple[date, TimeSlot]]:
        """First open slot from start_day over the following days.

        Args:
            db: Session of the enclosing unit of work
            doctor_id: Doctor identifier
            start_day: First day to consider
            days: Number of days to search

        Returns:
            (day, slot) or None if nothing is open in the window
        """
        for offset in range(days):
            day = start_day + timedelta(days=offset)
            slots = await self.open_slots(db, doctor_id, day)
            if slots:
                logger.info(f"Next available slot for {doctor_id}: {day} {slots[0].start_time}")
                return day, slots[0]
            logger.debug(f"No available slots on {day}")
        return None

    # === Availability authoring ===

    async def get_availability(
        self,
        doctor_id: Union[str, uuid.UUID],
        day: Union[date, datetime, str],
    ) -> list[TimeSlot]:
        """The doctor-authored slots for a day ([] when there is no record)."""
        doctor_uuid = parse_uuid(doctor_id, "doctor id")
        calendar_day = parse_calendar_date(day)

        try:
            async with get_db_context(self._session_factory) as db:
                return await self.record_slots(db, doctor_uuid, calendar_day)
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch availability: {e}")
            raise InternalError("Error fetching availability") from e

    async def set_availability(
        self,
        doctor_id: Union[str, uuid.UUID],
        day: Union[date, datetime, str],
        slots: list[Union[TimeSlot, dict]],
    ) -> list[TimeSlot]:
        """Replace a doctor's offered slots for a day.

        Each slot is applied on its own (start, end) key. Slots that hold an
        appointment keep their reservation and are never dropped.

        Args:
            doctor_id: Doctor identifier
            day: Calendar day
            slots: New slot list, in display order

        Returns:
            The record's slots after the update
        """
        doctor_uuid = parse_uuid(doctor_id, "doctor id")
        calendar_day = parse_calendar_date(day)
        wanted = self._normalize_slots(slots)

        try:
            async with get_db_context(self._session_factory) as db:
                await self._directory.find_active_doctor(db, doctor_uuid)

                record = await self._get_or_create_record(db, doctor_uuid, calendar_day)
                existing = {
                    (row.start_time, row.end_time): row
                    for row in (
                        await db.execute(
                            select(AvailabilitySlot).where(
                                AvailabilitySlot.record_id == record.id
                            )
                        )
                    ).scalars().all()
                }
                booked = await self.live_appointment_ids(db, doctor_uuid, calendar_day)

                for position, slot in enumerate(wanted):
                    row = existing.pop(slot.key, None)
                    if row is None:
                        # A slot already booked off the default grid starts out reserved
                        holder = booked.get(slot.key)
                        db.add(
                            AvailabilitySlot(
                                record_id=record.id,
                                position=position,
                                start_time=slot.start_time,
                                end_time=slot.end_time,
                                available=slot.available if holder is None else False,
                                appointment_id=holder,
                            )
                        )
                        continue

                    await db.execute(
                        update(AvailabilitySlot)
                        .where(AvailabilitySlot.id == row.id)
                        .values(position=position)
                        .execution_options(synchronize_session=False)
                    )
                    # Only unreserved slots take the doctor's flag
                    await db.execute(
                        update(AvailabilitySlot)
                        .where(
                            AvailabilitySlot.id == row.id,
                            AvailabilitySlot.appointment_id.is_(None),
                        )
                        .values(available=slot.available)
                        .execution_options(synchronize_session=False)
                    )

                for row in existing.values():
                    await db.execute(
                        delete(AvailabilitySlot)
                        .where(
                            AvailabilitySlot.id == row.id,
                            AvailabilitySlot.appointment_id.is_(None),
                        )
                        .execution_options(synchronize_session=False)
                    )

                await db.flush()
                db.expire_all()
                result = await self.record_slots(db, doctor_uuid, calendar_day)

            logger.info(
                f"Availability set for doctor {doctor_uuid} on {calendar_day}: "
                f"{len(result)} slots"
            )
            return result

        except SchedulingError:
            raise
        except IntegrityError as e:
            logger.warning(f"Concurrent availability update: {e}")
            raise SlotConflictError("Availability was modified concurrently, please retry") from e
        except SQLAlchemyError as e:
            logger.error(f"Failed to set availability: {e}")
            raise InternalError("Error setting availability") from e

    async def _get_or_create_record(
        self,
        db: AsyncSession,
        doctor_id: uuid.UUID,
        day: date,
    ) -> AvailabilityRecord:
        """Fetch the day's record, creating it lazily."""
        result = await db.execute(
            select(AvailabilityRecord).where(
                AvailabilityRecord.doctor_id == doctor_id,
                AvailabilityRecord.date == day,
            )
        )
        record = result.scalar_one_or_none()
        if record is None:
            record = AvailabilityRecord(doctor_id=doctor_id, date=day)
            db.add(record)
            await db.flush()
        return record

    def _normalize_slots(self, slots: list[Union[TimeSlot, dict, Any]]) -> list[TimeSlot]:
        """Validate and zero-pad incoming slots, rejecting duplicates."""
        normalized: list[TimeSlot] = []
        seen: set[tuple[str, str]] = set()

        for raw in slots:
            slot = raw if isinstance(raw, TimeSlot) else TimeSlot.from_dict(dict(raw))
            start, end = validate_time_range(slot.start_time, slot.end_time)
            key = (start, end)
            if key in seen:
                raise InvalidInputError(f"Duplicate slot {start}-{end}")
            seen.add(key)
            normalized.append(TimeSlot(start_time=start, end_time=end, available=bool(slot.available)))

        return normalized

"""
Scheduling Engine - Main Orchestrator.

Single entry point for the API: direct booking operations go straight to
the ledger and calendar, conversational turns go through the session store
and dialogue flow and end in the same ledger booking call.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import get_settings
from app.core.intelligence.session.models import DialogueSession
from app.core.intelligence.session.state import DialogueStep
from app.core.intelligence.session.store import SessionStore, get_session_store
from app.core.scheduling.calendar import SlotCalendar, TimeSlot
from app.core.scheduling.directory import DoctorDirectory, DoctorInfo
from app.core.scheduling.errors import (
    InternalError,
    InvalidInputError,
    NotFoundError,
    SchedulingError,
    SlotConflictError,
    UnavailableError,
)
from app.core.scheduling.flow import DialogueFlow, get_dialogue_flow
from app.core.scheduling.ledger import AppointmentRecord, BookingLedger, BookingResult
from app.core.scheduling.response import ResponseGenerator, get_response_generator
from app.core.scheduling.validation import parse_uuid, require_fields
from app.infra.database import get_db_context
from app.infra.notifications import NotificationSender

logger = logging.getLogger(__name__)

VOICE_SYMPTOMS_DEFAULT = "Not specified via voice"

# A voice booking re-selects a slot if the chosen one is taken meanwhile
VOICE_BOOKING_ATTEMPTS = 3


@dataclass
class SessionStart:
    """Response to starting a conversational booking."""

    session_id: str
    message: str
    next_step: DialogueStep
    doctor: DoctorInfo

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "session_id": self.session_id,
            "welcome_message": self.message,
            "next_step": self.next_step.value,
            "doctor": self.doctor.to_dict(),
        }


@dataclass
class TurnResult:
    """Response to one dialogue turn."""

    session_id: str
    message: str
    next_step: DialogueStep
    done: bool = False
    collected: dict = field(default_factory=dict)
    appointment: Optional[AppointmentRecord] = None
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        result = {
            "session_id": self.session_id,
            "message": self.message,
            "next_step": self.next_step.value,
            "done": self.done,
            "collected": self.collected,
            "warnings": list(self.warnings),
        }
        if self.appointment:
            result["appointment"] = self.appointment.to_dict()
        return result


class SchedulingEngine:
    """
    Main orchestrator for appointment scheduling.

    Coordinates:
    - Doctor lookups
    - Slot calendar and availability authoring
    - Booking ledger
    - Dialogue sessions
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        store: Optional[SessionStore] = None,
        notifier: Optional[NotificationSender] = None,
        flow: Optional[DialogueFlow] = None,
        responses: Optional[ResponseGenerator] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        """Initialize engine with optional dependencies.

        Args:
            session_factory: Database session factory (defaults to the app factory)
            store: Dialogue session store
            notifier: Notification sender for the ledger
            flow: Dialogue flow
            responses: Response generator
            today: Source of the current date for voice slot search
        """
        self._settings = get_settings()
        self._session_factory = session_factory
        self._directory = DoctorDirectory()
        self._calendar = SlotCalendar(session_factory=session_factory, directory=self._directory)
        self._ledger = BookingLedger(
            session_factory=session_factory,
            directory=self._directory,
            notifier=notifier,
        )
        self._store = store or get_session_store()
        self._flow = flow or get_dialogue_flow()
        self._responses = responses or get_response_generator()
        self._today = today or date.today

    @property
    def store(self) -> SessionStore:
        return self._store

    @property
    def calendar(self) -> SlotCalendar:
        return self._calendar

    @property
    def ledger(self) -> BookingLedger:
        return self._ledger

    # === Direct booking ===

    async def book_appointment(
        self,
        doctor_id: Union[str, uuid.UUID],
        patient_name: str,
        patient_email: str,
        patient_phone: str,
        date: Union[date, datetime, str],
        start_time: str,
        end_time: str,
        symptoms: str,
    ) -> BookingResult:
        """Book a specific slot (form path)."""
        return await self._ledger.book(
            doctor_id=doctor_id,
            patient_name=patient_name,
            patient_email=patient_email,
            patient_phone=patient_phone,
            date=date,
            start_time=start_time,
            end_time=end_time,
            symptoms=symptoms,
        )

    async def cancel_appointment(
        self,
        appointment_id: Union[str, uuid.UUID],
        reason: Optional[str] = None,
    ) -> BookingResult:
        return await self._ledger.cancel(appointment_id, reason)

    async def reschedule_appointment(
        self,
        appointment_id: Union[str, uuid.UUID],
        new_date: Union[date, datetime, str],
        new_start_time: str,
        new_end_time: str,
    ) -> BookingResult:
        return await self._ledger.reschedule(
            appointment_id, new_date, new_start_time, new_end_time
        )

    async def get_appointment(self, appointment_id: Union[str, uuid.UUID]) -> AppointmentRecord:
        return await self._ledger.get_appointment(appointment_id)

    async def list_patient_appointments(self, email: str) -> list[AppointmentRecord]:
        return await self._ledger.list_patient_appointments(email)

    async def get_available_slots(
        self,
        doctor_id: Union[str, uuid.UUID],
        day: Union[date, datetime, str],
    ) -> list[TimeSlot]:
        return await self._calendar.compute_available_slots(doctor_id, day)

    async def set_availability(
        self,
        doctor_id: Union[str, uuid.UUID],
        day: Union[date, datetime, str],
        slots: list,
    ) -> list[TimeSlot]:
        return await self._calendar.set_availability(doctor_id, day, slots)

    async def get_availability(
        self,
        doctor_id: Union[str, uuid.UUID],
        day: Union[date, datetime, str],
    ) -> list[TimeSlot]:
        return await self._calendar.get_availability(doctor_id, day)

    async def list_doctors(
        self,
        search: Optional[str] = None,
        specialization: Optional[str] = None,
    ) -> list[DoctorInfo]:
        """Active doctors, optionally filtered."""
        try:
            async with get_db_context(self._session_factory) as db:
                return await self._directory.list_active_doctors(db, search, specialization)
        except SQLAlchemyError as e:
            logger.error(f"Failed to list doctors: {e}")
            raise InternalError("Error fetching doctors") from e

    # === Voice booking ===

    async def voice_book(
        self,
        doctor_id: Union[str, uuid.UUID],
        patient_name: str,
        patient_email: str,
        patient_phone: str,
        symptoms: Optional[str] = None,
    ) -> BookingResult:
        """
        Book the doctor's next available slot, starting tomorrow.

        Raises:
            InvalidInputError: Missing patient fields
            NotFoundError / UnavailableError: Doctor missing or inactive,
                or nothing open in the search window
            SlotConflictError: Every chosen slot was taken concurrently
        """
        require_fields(
            doctor_id=doctor_id,
            patient_name=patient_name,
            patient_email=patient_email,
            patient_phone=patient_phone,
        )
        doctor_uuid = parse_uuid(doctor_id, "doctor id")
        days = self._settings.voice_booking_search_days

        last_conflict: Optional[SlotConflictError] = None
        for attempt in range(1, VOICE_BOOKING_ATTEMPTS + 1):
            day, slot = await self._next_available(doctor_uuid, days)
            try:
                return await self._ledger.book(
                    doctor_id=doctor_uuid,
                    patient_name=patient_name,
                    patient_email=patient_email,
                    patient_phone=patient_phone,
                    date=day,
                    start_time=slot.start_time,
                    end_time=slot.end_time,
                    symptoms=symptoms or VOICE_SYMPTOMS_DEFAULT,
                    booked_via="voice",
                )
            except SlotConflictError as e:
                logger.info(
                    f"Voice booking attempt {attempt} lost {day} {slot.start_time}, retrying"
                )
                last_conflict = e

        raise last_conflict

    async def _next_available(self, doctor_id: uuid.UUID, days: int) -> tuple[date, TimeSlot]:
        """Pick the first open slot in the voice search window."""
        start_day = self._today() + timedelta(days=1)

        try:
            async with get_db_context(self._session_factory) as db:
                await self._directory.find_active_doctor(db, doctor_id)
                found = await self._calendar.find_next_available(db, doctor_id, start_day, days)
        except SQLAlchemyError as e:
            logger.error(f"Failed to search slots for {doctor_id}: {e}")
            raise InternalError("Error fetching available slots") from e

        if found is None:
            raise UnavailableError(
                f"No available slots found in the next {days} days. "
                f"Please try another doctor or contact the clinic."
            )
        return found

    # === Dialogue sessions ===

    async def start_session(self, doctor_id: Union[str, uuid.UUID]) -> SessionStart:
        """Start a conversational booking with a doctor."""
        doctor = await self._find_doctor(doctor_id)
        session = await self._store.create(doctor.id, doctor.name, doctor.specialization)

        return SessionStart(
            session_id=session.session_id,
            message=self._responses.welcome(doctor.name, doctor.specialization),
            next_step=session.step,
            doctor=doctor,
        )

    async def get_session(self, session_id: str) -> DialogueSession:
        """Get an active session or raise NotFoundError."""
        session = await self._store.get(session_id)
        if session is None:
            raise NotFoundError("Session not found or expired")
        return session

    async def advance_session(
        self,
        text: str,
        session_id: Optional[str] = None,
        doctor_id: Optional[Union[str, uuid.UUID]] = None,
    ) -> TurnResult:
        """Process one caller utterance.

        Args:
            text: Transcribed caller text
            session_id: Session to continue
            doctor_id: Doctor to reuse or start a session for, when the
                caller has no session id

        Returns:
            TurnResult with the reply and next step

        Raises:
            InvalidInputError: Empty text, or neither session nor doctor given
            NotFoundError: Unknown session, or the session ended meanwhile
        """
        if not text or not text.strip():
            raise InvalidInputError("No speech detected. Please speak clearly and try again.")

        session = await self._resolve_session(session_id, doctor_id)

        async with session.lock:
            if await self._store.get(session.session_id) is not session:
                raise NotFoundError("Session not found or expired")

            await self._store.touch(session)
            session.turn_count += 1
            action = self._flow.process(session, text)

            if action.should_end:
                await self._store.delete(session.session_id)
                logger.info(f"Session {session.session_id} closed at {action.next_step.value}")
                return self._turn(session, action.message, action.next_step, done=True)

            if action.should_book:
                return await self._book_from_session(session)

            return self._turn(session, action.message, action.next_step)

    async def _book_from_session(self, session: DialogueSession) -> TurnResult:
        """Run the final booking for a completed dialogue."""
        try:
            result = await self.voice_book(
                doctor_id=session.doctor_id,
                patient_name=session.patient_name,
                patient_email=session.patient_email,
                patient_phone=session.patient_phone,
                symptoms=session.symptoms,
            )
        except SchedulingError as e:
            logger.warning(f"Voice booking failed for session {session.session_id}: {e.message}")
            return self._turn(
                session,
                self._responses.booking_failed(e.message),
                DialogueStep.ERROR,
            )

        await self._store.delete(session.session_id)
        appointment = result.appointment

        return self._turn(
            session,
            self._responses.booking_confirmed(
                appointment.doctor_name,
                appointment.date,
                appointment.start_time,
                appointment.end_time,
            ),
            DialogueStep.ENDED,
            done=True,
            appointment=appointment,
            warnings=result.warnings,
        )

    async def _resolve_session(
        self,
        session_id: Optional[str],
        doctor_id: Optional[Union[str, uuid.UUID]],
    ) -> DialogueSession:
        """Find the caller's session, reusing or creating one by doctor."""
        if session_id:
            return await self.get_session(session_id)

        if not doctor_id:
            raise InvalidInputError("Doctor ID is required to start a session")

        doctor_key = str(parse_uuid(doctor_id, "doctor id"))
        session = await self._store.find_recent_for_doctor(
            doctor_key, self._settings.session_reuse_window_seconds
        )
        if session is not None:
            logger.debug(f"Reusing session {session.session_id} for doctor {doctor_key}")
            return session

        doctor = await self._find_doctor(doctor_key)
        return await self._store.create(doctor.id, doctor.name, doctor.specialization)

    async def _find_doctor(self, doctor_id: Union[str, uuid.UUID]) -> DoctorInfo:
        try:
            async with get_db_context(self._session_factory) as db:
                return await self._directory.find_active_doctor(db, doctor_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to look up doctor {doctor_id}: {e}")
            raise InternalError("Error fetching doctor") from e

    @staticmethod
    def _turn(
        session: DialogueSession,
        message: str,
        next_step: DialogueStep,
        done: bool = False,
        appointment: Optional[AppointmentRecord] = None,
        warnings: Optional[list[str]] = None,
    ) -> TurnResult:
        return TurnResult(
            session_id=session.session_id,
            message=message,
            next_step=next_step,
            done=done,
            collected=session.collected(),
            appointment=appointment,
            warnings=warnings or [],
        )


# Singleton
_engine: Optional[SchedulingEngine] = None


def get_scheduling_engine() -> SchedulingEngine:
    """Get singleton SchedulingEngine."""
    global _engine
    if _engine is None:
        _engine = SchedulingEngine()
    return _engine

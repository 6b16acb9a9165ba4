"""
Scheduling Module

Provides the booking ledger, slot calendar, doctor directory, response
generation and conversation flow, tied together by the scheduling engine.

Usage:
    from app.core.scheduling import get_scheduling_engine

    engine = get_scheduling_engine()

    # Form booking
    result = await engine.book_appointment(
        doctor_id="...",
        patient_name="Jane Doe",
        patient_email="jane@example.com",
        patient_phone="555-123-4567",
        date="2025-03-14",
        start_time="09:00",
        end_time="09:30",
        symptoms="Persistent cough",
    )
    print(result.appointment.status)  # AppointmentStatus.CONFIRMED

    # Conversational booking
    start = await engine.start_session(doctor_id="...")
    turn = await engine.advance_session("Jane Doe", session_id=start.session_id)
    print(turn.message)
"""

# Errors
from app.core.scheduling.errors import (
    SchedulingError,
    InvalidInputError,
    NotFoundError,
    SlotConflictError,
    UnavailableError,
    InternalError,
)

# Doctor Directory
from app.core.scheduling.directory import DoctorDirectory, DoctorInfo

# Slot Calendar
from app.core.scheduling.calendar import SlotCalendar, TimeSlot, generate_time_slots

# Booking Ledger
from app.core.scheduling.ledger import AppointmentRecord, BookingLedger, BookingResult

# Response Generator
from app.core.scheduling.response import ResponseGenerator, get_response_generator

# Conversation Flow
from app.core.scheduling.flow import DialogueFlow, FlowAction, get_dialogue_flow

# Scheduling Engine (main orchestrator)
from app.core.scheduling.engine import (
    SchedulingEngine,
    SessionStart,
    TurnResult,
    get_scheduling_engine,
)

__all__ = [
    # Errors
    "SchedulingError",
    "InvalidInputError",
    "NotFoundError",
    "SlotConflictError",
    "UnavailableError",
    "InternalError",
    # Directory
    "DoctorDirectory",
    "DoctorInfo",
    # Calendar
    "SlotCalendar",
    "TimeSlot",
    "generate_time_slots",
    # Ledger
    "AppointmentRecord",
    "BookingLedger",
    "BookingResult",
    # Response Generator
    "ResponseGenerator",
    "get_response_generator",
    # Conversation Flow
    "DialogueFlow",
    "FlowAction",
    "get_dialogue_flow",
    # Scheduling Engine
    "SchedulingEngine",
    "SessionStart",
    "TurnResult",
    "get_scheduling_engine",
]

"""
Appointment Endpoints.

Form booking, slot lookup, patient history, cancellation and reschedule.
All business rules live in the scheduling engine; these handlers only
translate HTTP to engine calls. SchedulingError is mapped to a response by
the application exception handler.
"""

import logging
from datetime import date as calendar_date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from app.core.scheduling.engine import SchedulingEngine, get_scheduling_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


class BookAppointmentRequest(BaseModel):
    """Form booking request."""

    doctor_id: str = Field(..., description="Doctor identifier")
    patient_name: str = Field(..., max_length=200, examples=["Jane Doe"])
    patient_email: str = Field(..., max_length=320, examples=["jane.doe@example.com"])
    patient_phone: str = Field(..., max_length=40, examples=["555-123-4567"])
    date: calendar_date = Field(..., description="Appointment day")
    start_time: str = Field(..., examples=["09:00"])
    end_time: str = Field(..., examples=["09:30"])
    symptoms: str = Field(..., max_length=2000, examples=["Persistent cough for a week"])


class CancelRequest(BaseModel):
    """Cancellation request."""

    reason: Optional[str] = Field(default=None, max_length=500)


class RescheduleRequest(BaseModel):
    """Reschedule request."""

    date: calendar_date
    start_time: str = Field(..., examples=["10:00"])
    end_time: str = Field(..., examples=["10:30"])


class BookingResponse(BaseModel):
    """Appointment plus non-fatal warnings (e.g. notification failures)."""

    appointment: dict
    warnings: list[str] = Field(default_factory=list)


class SlotsResponse(BaseModel):
    """Open slots for a doctor on a day."""

    doctor_id: str
    date: calendar_date
    slots: list[dict]


class PatientAppointmentsResponse(BaseModel):
    """A patient's appointments, newest first."""

    appointments: list[dict]
    count: int


@router.post(
    "",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book an appointment",
)
async def book_appointment(
    request: BookAppointmentRequest,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> BookingResponse:
    """
    Book a specific slot.

    Returns 409 if the slot is taken (including by a concurrent request)
    or the doctor is not available.
    """
    result = await engine.book_appointment(**request.model_dump())
    return BookingResponse(**result.to_dict())


@router.get(
    "/availability",
    response_model=SlotsResponse,
    summary="Available slots for a doctor on a day",
)
async def available_slots(
    doctor_id: str = Query(..., description="Doctor identifier"),
    day: calendar_date = Query(..., alias="date", description="Calendar day"),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> SlotsResponse:
    slots = await engine.get_available_slots(doctor_id, day)
    return SlotsResponse(
        doctor_id=doctor_id,
        date=day,
        slots=[slot.to_dict() for slot in slots],
    )


@router.get(
    "/patient",
    response_model=PatientAppointmentsResponse,
    summary="Appointments for a patient e-mail",
)
async def patient_appointments(
    email: str = Query(..., min_length=3),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> PatientAppointmentsResponse:
    records = await engine.list_patient_appointments(email)
    return PatientAppointmentsResponse(
        appointments=[record.to_dict() for record in records],
        count=len(records),
    )


@router.get(
    "/{appointment_id}",
    response_model=dict,
    summary="Get one appointment",
)
async def get_appointment(
    appointment_id: str,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> dict:
    record = await engine.get_appointment(appointment_id)
    return record.to_dict()


@router.patch(
    "/{appointment_id}/cancel",
    response_model=BookingResponse,
    summary="Cancel an appointment",
)
async def cancel_appointment(
    appointment_id: str,
    request: Optional[CancelRequest] = None,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> BookingResponse:
    """Cancel an appointment. Cancelling twice returns it unchanged."""
    reason = request.reason if request else None
    result = await engine.cancel_appointment(appointment_id, reason)
    return BookingResponse(**result.to_dict())


@router.patch(
    "/{appointment_id}/reschedule",
    response_model=BookingResponse,
    summary="Move an appointment to another slot",
)
async def reschedule_appointment(
    appointment_id: str,
    request: RescheduleRequest,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> BookingResponse:
    result = await engine.reschedule_appointment(
        appointment_id,
        request.date,
        request.start_time,
        request.end_time,
    )
    return BookingResponse(**result.to_dict())

"""
Doctor Availability Endpoints.

Lets a doctor author the slots offered on a given day. Days without a
record fall back to the default grid when computing bookable slots.
"""

import logging
from datetime import date as calendar_date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from app.core.scheduling.engine import SchedulingEngine, get_scheduling_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/availability", tags=["Availability"])


class SlotIn(BaseModel):
    """One offered slot."""

    start_time: str = Field(..., examples=["09:00"])
    end_time: str = Field(..., examples=["09:30"])
    available: bool = True


class SetAvailabilityRequest(BaseModel):
    """Replace a doctor's slots for one day."""

    doctor_id: str
    date: calendar_date
    slots: list[SlotIn] = Field(default_factory=list)


class AvailabilityResponse(BaseModel):
    """A doctor's authored slots for one day."""

    doctor_id: str
    date: calendar_date
    slots: list[dict]


@router.put(
    "",
    response_model=AvailabilityResponse,
    summary="Set a doctor's slots for a day",
)
async def set_availability(
    request: SetAvailabilityRequest,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> AvailabilityResponse:
    """
    Set the slots offered on a day.

    Slots holding an appointment keep their reservation even if the new
    list marks them available or leaves them out.
    """
    slots = await engine.set_availability(
        request.doctor_id,
        request.date,
        [slot.model_dump() for slot in request.slots],
    )
    return AvailabilityResponse(
        doctor_id=request.doctor_id,
        date=request.date,
        slots=[slot.to_dict() for slot in slots],
    )


@router.get(
    "",
    response_model=AvailabilityResponse,
    summary="Get a doctor's authored slots for a day",
)
async def get_availability(
    doctor_id: str = Query(...),
    day: calendar_date = Query(..., alias="date"),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> AvailabilityResponse:
    slots = await engine.get_availability(doctor_id, day)
    return AvailabilityResponse(
        doctor_id=doctor_id,
        date=day,
        slots=[slot.to_dict() for slot in slots],
    )

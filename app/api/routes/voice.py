"""
Voice Booking Endpoints.

Conversational booking: a client starts a session with a doctor, then
posts each transcribed caller utterance and speaks back the reply. The
final turn books the doctor's next available slot.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from app.core.scheduling.engine import SchedulingEngine, get_scheduling_engine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/voice", tags=["Voice"])


class InitiateRequest(BaseModel):
    """Start a voice booking."""

    doctor_id: str = Field(..., description="Doctor to book with")


class InitiateResponse(BaseModel):
    session_id: str
    welcome_message: str
    next_step: str
    doctor: dict


class ProcessRequest(BaseModel):
    """One caller utterance."""

    text: str = Field(
        default="",
        max_length=2000,
        description="Transcribed caller speech",
        examples=["john dot smith at gmail dot com"],
    )
    session_id: Optional[str] = Field(
        default=None,
        description="Session to continue",
    )
    doctor_id: Optional[str] = Field(
        default=None,
        description="Doctor, used to resume or start a session when no session id is sent",
    )


class ProcessResponse(BaseModel):
    session_id: str
    message: str
    next_step: str
    done: bool
    collected: dict
    appointment: Optional[dict] = None
    warnings: list[str] = Field(default_factory=list)


class VoiceBookRequest(BaseModel):
    """Next-available booking without a dialogue."""

    doctor_id: str
    patient_name: str = Field(..., max_length=200)
    patient_email: str = Field(..., max_length=320)
    patient_phone: str = Field(..., max_length=40)
    symptoms: Optional[str] = Field(default=None, max_length=2000)


class VoiceBookResponse(BaseModel):
    appointment: dict
    warnings: list[str] = Field(default_factory=list)


@router.post(
    "/session/initiate",
    response_model=InitiateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start a voice booking session",
)
async def initiate_session(
    request: InitiateRequest,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> InitiateResponse:
    started = await engine.start_session(request.doctor_id)
    return InitiateResponse(**started.to_dict())


@router.post(
    "/process",
    response_model=ProcessResponse,
    summary="Process one caller utterance",
)
async def process_speech(
    request: ProcessRequest,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> ProcessResponse:
    """
    Advance a voice booking by one turn.

    The session_id should be preserved across requests. A client that
    lost it may send doctor_id instead to resume the doctor's most recent
    session.
    """
    turn = await engine.advance_session(
        request.text,
        session_id=request.session_id,
        doctor_id=request.doctor_id,
    )
    return ProcessResponse(**turn.to_dict())


@router.post(
    "/book",
    response_model=VoiceBookResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book the next available slot",
)
async def voice_book(
    request: VoiceBookRequest,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> VoiceBookResponse:
    result = await engine.voice_book(**request.model_dump())
    return VoiceBookResponse(**result.to_dict())


@router.get(
    "/session/{session_id}",
    response_model=dict,
    summary="Inspect a voice booking session",
)
async def get_session(
    session_id: str,
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> dict:
    session = await engine.get_session(session_id)
    return session.to_dict()

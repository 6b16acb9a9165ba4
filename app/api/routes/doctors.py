"""
Doctor Directory Endpoint.

Public list of active doctors.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.core.scheduling.engine import SchedulingEngine, get_scheduling_engine

router = APIRouter(prefix="/doctors", tags=["Doctors"])


class DoctorOut(BaseModel):
    id: str
    name: str
    specialization: Optional[str] = None


class DoctorListResponse(BaseModel):
    doctors: list[DoctorOut]
    count: int


@router.get(
    "",
    response_model=DoctorListResponse,
    summary="List active doctors",
)
async def list_doctors(
    search: Optional[str] = Query(default=None, description="Name, e-mail or specialization"),
    specialization: Optional[str] = Query(default=None),
    engine: SchedulingEngine = Depends(get_scheduling_engine),
) -> DoctorListResponse:
    doctors = await engine.list_doctors(search=search, specialization=specialization)
    return DoctorListResponse(
        doctors=[DoctorOut(**doctor.to_dict()) for doctor in doctors],
        count=len(doctors),
    )

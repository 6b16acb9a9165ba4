"""
Health Check Endpoints

Liveness, readiness and a basic status probe for the booking service.
Only the database gates readiness; voice sessions and notifications are
reported for operators but never make the service unready.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from app.config import settings
from app.core.intelligence.session.store import get_session_store
from app.infra.database import check_db_health

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["Health"])

_start_time: Optional[datetime] = None


def set_start_time() -> None:
    """Record application start. Called once from the lifespan."""
    global _start_time
    _start_time = datetime.now(timezone.utc)


def get_uptime_seconds() -> Optional[float]:
    if _start_time is None:
        return None
    return (datetime.now(timezone.utc) - _start_time).total_seconds()


def notification_mode() -> str:
    """"email" when patient e-mails go out, "log" when they are only logged."""
    if settings.notifications_enabled and settings.resend_api_key:
        return "email"
    return "log"


class HealthResponse(BaseModel):
    status: str
    service: str
    timestamp: datetime
    environment: str


class SessionStats(BaseModel):
    active: int
    sweeper: str
    idle_timeout_seconds: int


class ReadyResponse(BaseModel):
    """Readiness with per-dependency status."""
    status: str
    timestamp: datetime
    database: str
    notifications: str
    sessions: SessionStats


class LiveResponse(BaseModel):
    status: str
    timestamp: datetime
    uptime_seconds: Optional[float] = None


@router.get(
    "",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    summary="Basic health check",
    description="Returns 200 if the application is running. Does not check the database.",
)
async def health() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        service=settings.app_name,
        timestamp=datetime.now(timezone.utc),
        environment=settings.app_env,
    )


@router.get(
    "/ready",
    response_model=ReadyResponse,
    summary="Readiness probe",
    description="Checks the database. Returns 503 if bookings cannot be stored.",
    responses={
        200: {"description": "Bookings can be accepted"},
        503: {"description": "The database is unavailable"},
    },
)
async def ready() -> ReadyResponse:
    """
    Readiness probe.

    The service is ready when the database answers. Session store and
    notification mode are included for visibility only.
    """
    try:
        db_ok = await check_db_health()
        database = "ok" if db_ok else "failed"
    except Exception as e:
        db_ok = False
        database = "error"
        logger.error(f"Readiness check: Database error - {e}")

    if not db_ok:
        logger.warning(f"Readiness check: database {database}")

    store = get_session_store()
    response = ReadyResponse(
        status="ready" if db_ok else "not_ready",
        timestamp=datetime.now(timezone.utc),
        database=database,
        notifications=notification_mode(),
        sessions=SessionStats(
            active=store.count(),
            sweeper="running" if store.sweeper_running else "stopped",
            idle_timeout_seconds=settings.session_idle_timeout_seconds,
        ),
    )

    if not db_ok:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=response.model_dump(mode="json"),
        )

    return response


@router.get(
    "/live",
    response_model=LiveResponse,
    status_code=status.HTTP_200_OK,
    summary="Liveness probe",
)
async def live() -> LiveResponse:
    return LiveResponse(
        status="alive",
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=get_uptime_seconds(),
    )

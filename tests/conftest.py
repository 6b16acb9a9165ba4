"""Shared fixtures: a throwaway SQLite database with seeded users."""

from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.infra.notifications import AppointmentNotice
from app.models.database import Base, User, UserRole


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory over a file database, one connection per session.

    A file (not :memory:) so concurrent sessions really are separate
    connections contending on the same database.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'booking.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    await engine.dispose()


@pytest_asyncio.fixture
async def users(session_factory) -> dict[str, User]:
    """Two active doctors, one inactive doctor and a patient."""
    seeded = {
        "smith": User(
            name="Alice Smith",
            email="alice.smith@clinic.test",
            role=UserRole.DOCTOR,
            specialization="Cardiologist",
        ),
        "jones": User(
            name="Bob Jones",
            email="bob.jones@clinic.test",
            role=UserRole.DOCTOR,
            specialization="Dermatologist",
        ),
        "retired": User(
            name="Carol White",
            email="carol.white@clinic.test",
            role=UserRole.DOCTOR,
            specialization="Cardiologist",
            is_active=False,
        ),
        "patient": User(
            name="Dan Brown",
            email="dan.brown@example.com",
            role=UserRole.PATIENT,
        ),
    }
    async with session_factory() as db:
        db.add_all(seeded.values())
        await db.commit()
    return seeded


@pytest.fixture
def doctor_id(users) -> str:
    return str(users["smith"].id)


class FakeNotificationSender:
    """Records notices; can be told to report failure or raise."""

    def __init__(self, result: bool = True, error: Optional[Exception] = None):
        self.result = result
        self.error = error
        self.confirmations: list[AppointmentNotice] = []
        self.cancellations: list[AppointmentNotice] = []

    async def send_appointment_confirmation(self, notice: AppointmentNotice) -> bool:
        self.confirmations.append(notice)
        if self.error:
            raise self.error
        return self.result

    async def send_appointment_cancellation(self, notice: AppointmentNotice) -> bool:
        self.cancellations.append(notice)
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def notifier() -> FakeNotificationSender:
    return FakeNotificationSender()

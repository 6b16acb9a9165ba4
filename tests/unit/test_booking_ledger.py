"""Tests for the booking ledger against a real SQLite database."""

import asyncio
import uuid
from datetime import date, timedelta

import pytest
from sqlalchemy import select

from app.core.scheduling.calendar import SlotCalendar
from app.core.scheduling.errors import (
    InvalidInputError,
    NotFoundError,
    SlotConflictError,
    UnavailableError,
)
from app.core.scheduling.ledger import UNKNOWN_DOCTOR, AppointmentRecord, BookingLedger
from app.models.database import Appointment, AppointmentStatus, AvailabilitySlot
from tests.conftest import FakeNotificationSender

DAY = date(2030, 3, 14)


def booking(doctor_id, **overrides) -> dict:
    fields = {
        "doctor_id": doctor_id,
        "patient_name": "Jane Doe",
        "patient_email": "Jane.Doe@Example.com",
        "patient_phone": "555-123-4567",
        "date": DAY,
        "start_time": "09:00",
        "end_time": "09:30",
        "symptoms": "Persistent cough",
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def ledger(session_factory, notifier) -> BookingLedger:
    return BookingLedger(session_factory=session_factory, notifier=notifier)


@pytest.fixture
def calendar(session_factory) -> SlotCalendar:
    return SlotCalendar(session_factory=session_factory)


async def slot_row(session_factory, start_time: str) -> AvailabilitySlot:
    async with session_factory() as db:
        result = await db.execute(
            select(AvailabilitySlot).where(AvailabilitySlot.start_time == start_time)
        )
        return result.scalar_one()


class TestBook:
    """Test creating appointments."""

    @pytest.mark.asyncio
    async def test_book_default_grid_slot(self, ledger, calendar, doctor_id, notifier):
        result = await ledger.book(**booking(doctor_id))

        appointment = result.appointment
        assert appointment.status == AppointmentStatus.CONFIRMED
        assert appointment.patient_email == "jane.doe@example.com"
        assert appointment.doctor_name == "Alice Smith"
        assert appointment.booked_via == "form"
        assert result.warnings == []

        assert len(notifier.confirmations) == 1
        assert notifier.confirmations[0].to == "jane.doe@example.com"

        slots = await calendar.compute_available_slots(doctor_id, DAY)
        assert ("09:00", "09:30") not in [slot.key for slot in slots]
        assert len(slots) == 15

    @pytest.mark.asyncio
    async def test_book_normalizes_times_and_datetime(self, ledger, doctor_id):
        result = await ledger.book(
            **booking(doctor_id, date="2030-03-14T18:45:00", start_time="9:00", end_time="9:30")
        )

        assert result.appointment.date == DAY
        assert result.appointment.start_time == "09:00"

    @pytest.mark.asyncio
    async def test_second_booking_same_slot_conflicts(self, ledger, doctor_id):
        await ledger.book(**booking(doctor_id))

        with pytest.raises(SlotConflictError) as exc_info:
            await ledger.book(**booking(doctor_id, patient_email="other@example.com"))

        assert exc_info.value.message == "This time slot is already booked"

    @pytest.mark.asyncio
    async def test_concurrent_bookings_one_wins(self, ledger, session_factory, doctor_id):
        attempts = [
            ledger.book(**booking(doctor_id, patient_email=f"patient{i}@example.com"))
            for i in range(5)
        ]

        results = await asyncio.gather(*attempts, return_exceptions=True)

        succeeded = [r for r in results if not isinstance(r, Exception)]
        conflicts = [r for r in results if isinstance(r, SlotConflictError)]
        assert len(succeeded) == 1
        assert len(conflicts) == 4

        async with session_factory() as db:
            rows = (await db.execute(select(Appointment))).scalars().all()
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_missing_fields(self, ledger, doctor_id):
        with pytest.raises(InvalidInputError) as exc_info:
            await ledger.book(**booking(doctor_id, patient_name="", symptoms="  "))

        assert "patient_name" in exc_info.value.message
        assert "symptoms" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_start_after_end(self, ledger, doctor_id):
        with pytest.raises(InvalidInputError):
            await ledger.book(**booking(doctor_id, start_time="10:00", end_time="09:30"))

    @pytest.mark.asyncio
    async def test_unknown_doctor(self, ledger, users):
        with pytest.raises(NotFoundError):
            await ledger.book(**booking(str(uuid.uuid4())))

    @pytest.mark.asyncio
    async def test_non_doctor_user(self, ledger, users):
        with pytest.raises(NotFoundError):
            await ledger.book(**booking(str(users["patient"].id)))

    @pytest.mark.asyncio
    async def test_inactive_doctor(self, ledger, users):
        with pytest.raises(UnavailableError):
            await ledger.book(**booking(str(users["retired"].id)))

    @pytest.mark.asyncio
    async def test_book_custom_slot_reserves_it(self, ledger, calendar, session_factory, doctor_id):
        await calendar.set_availability(
            doctor_id,
            DAY,
            [{"start_time": "14:00", "end_time": "14:30"}],
        )

        result = await ledger.book(**booking(doctor_id, start_time="14:00", end_time="14:30"))

        row = await slot_row(session_factory, "14:00")
        assert row.available is False
        assert str(row.appointment_id) == result.appointment.id
        assert await calendar.compute_available_slots(doctor_id, DAY) == []

    @pytest.mark.asyncio
    async def test_book_blocked_custom_slot(self, ledger, calendar, doctor_id):
        await calendar.set_availability(
            doctor_id,
            DAY,
            [{"start_time": "14:00", "end_time": "14:30", "available": False}],
        )

        with pytest.raises(SlotConflictError) as exc_info:
            await ledger.book(**booking(doctor_id, start_time="14:00", end_time="14:30"))

        assert exc_info.value.message == "This time slot is not available"


class TestCancel:
    """Test cancelling appointments."""

    @pytest.mark.asyncio
    async def test_cancel_frees_slot(self, ledger, calendar, doctor_id, notifier):
        booked = await ledger.book(**booking(doctor_id))

        result = await ledger.cancel(booked.appointment.id, "Feeling better")

        assert result.appointment.status == AppointmentStatus.CANCELLED
        assert result.appointment.cancellation_reason == "Feeling better"
        assert result.appointment.cancelled_at is not None
        assert len(notifier.cancellations) == 1

        slots = await calendar.compute_available_slots(doctor_id, DAY)
        assert ("09:00", "09:30") in [slot.key for slot in slots]

        rebooked = await ledger.book(**booking(doctor_id, patient_email="next@example.com"))
        assert rebooked.appointment.status == AppointmentStatus.CONFIRMED

    @pytest.mark.asyncio
    async def test_cancel_releases_custom_slot(self, ledger, calendar, session_factory, doctor_id):
        await calendar.set_availability(doctor_id, DAY, [{"start_time": "14:00", "end_time": "14:30"}])
        booked = await ledger.book(**booking(doctor_id, start_time="14:00", end_time="14:30"))

        await ledger.cancel(booked.appointment.id)

        row = await slot_row(session_factory, "14:00")
        assert row.available is True
        assert row.appointment_id is None

    @pytest.mark.asyncio
    async def test_cancel_twice_is_idempotent(self, ledger, doctor_id, notifier):
        booked = await ledger.book(**booking(doctor_id))
        await ledger.cancel(booked.appointment.id, "first")

        second = await ledger.cancel(booked.appointment.id, "second")

        assert second.appointment.status == AppointmentStatus.CANCELLED
        assert second.appointment.cancellation_reason == "first"
        assert second.warnings == []
        assert len(notifier.cancellations) == 1

    @pytest.mark.asyncio
    async def test_cancel_unknown(self, ledger, users):
        with pytest.raises(NotFoundError) as exc_info:
            await ledger.cancel(str(uuid.uuid4()))

        assert exc_info.value.message == "Appointment not found"

    @pytest.mark.asyncio
    async def test_cancel_invalid_id(self, ledger, users):
        with pytest.raises(InvalidInputError):
            await ledger.cancel("not-a-uuid")


class TestReschedule:
    """Test moving appointments."""

    @pytest.mark.asyncio
    async def test_reschedule_moves_slot(self, ledger, calendar, doctor_id, notifier):
        booked = await ledger.book(**booking(doctor_id))
        new_day = DAY + timedelta(days=1)

        result = await ledger.reschedule(booked.appointment.id, new_day, "11:00", "11:30")

        assert result.appointment.date == new_day
        assert result.appointment.start_time == "11:00"
        assert result.appointment.status == AppointmentStatus.CONFIRMED
        assert len(notifier.confirmations) == 2

        old_day_slots = await calendar.compute_available_slots(doctor_id, DAY)
        assert ("09:00", "09:30") in [slot.key for slot in old_day_slots]
        new_day_slots = await calendar.compute_available_slots(doctor_id, new_day)
        assert ("11:00", "11:30") not in [slot.key for slot in new_day_slots]

    @pytest.mark.asyncio
    async def test_reschedule_into_taken_slot(self, ledger, doctor_id):
        first = await ledger.book(**booking(doctor_id))
        await ledger.book(**booking(doctor_id, start_time="10:00", end_time="10:30"))

        with pytest.raises(SlotConflictError):
            await ledger.reschedule(first.appointment.id, DAY, "10:00", "10:30")

        unchanged = await ledger.get_appointment(first.appointment.id)
        assert unchanged.start_time == "09:00"

    @pytest.mark.asyncio
    async def test_failed_reschedule_keeps_old_reservation(
        self, ledger, calendar, session_factory, doctor_id
    ):
        await calendar.set_availability(
            doctor_id,
            DAY,
            [
                {"start_time": "14:00", "end_time": "14:30"},
                {"start_time": "15:00", "end_time": "15:30", "available": False},
            ],
        )
        booked = await ledger.book(**booking(doctor_id, start_time="14:00", end_time="14:30"))

        with pytest.raises(SlotConflictError) as exc_info:
            await ledger.reschedule(booked.appointment.id, DAY, "15:00", "15:30")

        assert exc_info.value.message == "The new time slot is not available"

        old = await slot_row(session_factory, "14:00")
        assert old.available is False
        assert str(old.appointment_id) == booked.appointment.id

        unchanged = await ledger.get_appointment(booked.appointment.id)
        assert unchanged.start_time == "14:00"

    @pytest.mark.asyncio
    async def test_reschedule_into_unoffered_slot(
        self, ledger, calendar, session_factory, doctor_id
    ):
        await calendar.set_availability(
            doctor_id,
            DAY,
            [
                {"start_time": "14:00", "end_time": "14:30"},
                {"start_time": "15:00", "end_time": "15:30"},
            ],
        )
        booked = await ledger.book(**booking(doctor_id, start_time="14:00", end_time="14:30"))

        with pytest.raises(SlotConflictError) as exc_info:
            await ledger.reschedule(booked.appointment.id, DAY, "09:00", "09:30")

        assert exc_info.value.message == "The new time slot is not available"

        old = await slot_row(session_factory, "14:00")
        assert old.available is False
        assert str(old.appointment_id) == booked.appointment.id

        unchanged = await ledger.get_appointment(booked.appointment.id)
        assert unchanged.start_time == "14:00"

        open_keys = [slot.key for slot in await calendar.compute_available_slots(doctor_id, DAY)]
        assert open_keys == [("15:00", "15:30")]

    @pytest.mark.asyncio
    async def test_reschedule_into_day_with_empty_record(self, ledger, calendar, doctor_id):
        booked = await ledger.book(**booking(doctor_id))
        new_day = DAY + timedelta(days=1)
        await calendar.set_availability(doctor_id, new_day, [])

        result = await ledger.reschedule(booked.appointment.id, new_day, "11:00", "11:30")

        assert result.appointment.date == new_day
        assert result.appointment.start_time == "11:00"

    @pytest.mark.asyncio
    async def test_reschedule_same_slot_is_allowed(self, ledger, doctor_id):
        booked = await ledger.book(**booking(doctor_id))

        result = await ledger.reschedule(booked.appointment.id, DAY, "09:00", "09:30")

        assert result.appointment.start_time == "09:00"

    @pytest.mark.asyncio
    async def test_reschedule_revives_cancelled(self, ledger, doctor_id):
        booked = await ledger.book(**booking(doctor_id))
        await ledger.cancel(booked.appointment.id, "clash")

        result = await ledger.reschedule(booked.appointment.id, DAY, "12:00", "12:30")

        assert result.appointment.status == AppointmentStatus.CONFIRMED
        assert result.appointment.cancellation_reason is None
        assert result.appointment.cancelled_at is None


class TestNotifications:
    """Test that notification failures never fail the operation."""

    @pytest.mark.asyncio
    async def test_sender_reports_failure(self, session_factory, doctor_id):
        ledger = BookingLedger(
            session_factory=session_factory,
            notifier=FakeNotificationSender(result=False),
        )

        result = await ledger.book(**booking(doctor_id))

        assert result.appointment.status == AppointmentStatus.CONFIRMED
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("notification_failed")

    @pytest.mark.asyncio
    async def test_sender_raises(self, session_factory, doctor_id):
        ledger = BookingLedger(
            session_factory=session_factory,
            notifier=FakeNotificationSender(error=RuntimeError("smtp down")),
        )

        booked = await ledger.book(**booking(doctor_id))
        cancelled = await ledger.cancel(booked.appointment.id)

        assert "smtp down" in booked.warnings[0]
        assert cancelled.appointment.status == AppointmentStatus.CANCELLED
        assert "cancellation" in cancelled.warnings[0]


class TestQueries:
    """Test read operations."""

    @pytest.mark.asyncio
    async def test_patient_appointments_newest_first(self, ledger, doctor_id):
        await ledger.book(**booking(doctor_id))
        await ledger.book(**booking(doctor_id, date=DAY + timedelta(days=2)))
        await ledger.book(**booking(doctor_id, start_time="13:00", end_time="13:30"))

        records = await ledger.list_patient_appointments("JANE.DOE@example.com")

        assert [(r.date, r.start_time) for r in records] == [
            (DAY + timedelta(days=2), "09:00"),
            (DAY, "13:00"),
            (DAY, "09:00"),
        ]
        assert all(r.doctor_name == "Alice Smith" for r in records)

    @pytest.mark.asyncio
    async def test_get_appointment_unknown(self, ledger, users):
        with pytest.raises(NotFoundError):
            await ledger.get_appointment(str(uuid.uuid4()))

    def test_record_without_doctor(self):
        appointment = Appointment(
            id=uuid.uuid4(),
            doctor_id=uuid.uuid4(),
            patient_name="Jane Doe",
            patient_email="jane@example.com",
            patient_phone="555",
            date=DAY,
            start_time="09:00",
            end_time="09:30",
            symptoms="Cough",
            status=AppointmentStatus.CONFIRMED,
            booked_via="voice",
        )

        record = AppointmentRecord.from_model(appointment)
        data = record.to_dict()

        assert record.doctor_name == UNKNOWN_DOCTOR
        assert data["status"] == "confirmed"
        assert data["date"] == "2030-03-14"
        assert data["doctor"]["name"] == UNKNOWN_DOCTOR

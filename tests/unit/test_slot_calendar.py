"""Tests for the slot calendar."""

import uuid
from datetime import date, timedelta

import pytest

from app.core.scheduling.calendar import SlotCalendar, TimeSlot, generate_time_slots
from app.core.scheduling.errors import InvalidInputError, NotFoundError, UnavailableError
from app.core.scheduling.ledger import BookingLedger

DAY = date(2030, 3, 14)


@pytest.fixture
def calendar(session_factory) -> SlotCalendar:
    return SlotCalendar(session_factory=session_factory)


@pytest.fixture
def ledger(session_factory, notifier) -> BookingLedger:
    return BookingLedger(session_factory=session_factory, notifier=notifier)


async def book(ledger, doctor_id, day, start, end):
    return await ledger.book(
        doctor_id=doctor_id,
        patient_name="Jane Doe",
        patient_email="jane@example.com",
        patient_phone="555-123-4567",
        date=day,
        start_time=start,
        end_time=end,
        symptoms="Headache",
    )


class TestGenerateTimeSlots:
    """Test default grid generation."""

    def test_default_day(self):
        slots = generate_time_slots("09:00", "17:00", 30)

        assert len(slots) == 16
        assert slots[0].key == ("09:00", "09:30")
        assert slots[-1].key == ("16:30", "17:00")

    def test_end_is_exclusive(self):
        slots = generate_time_slots("09:00", "10:15", 30)

        assert [s.start_time for s in slots] == ["09:00", "09:30"]

    def test_unpadded_bounds(self):
        slots = generate_time_slots("9:00", "10:00", 60)

        assert slots == [TimeSlot(start_time="09:00", end_time="10:00")]


class TestTimeSlot:
    """Test TimeSlot conversions."""

    def test_from_camel_case_dict(self):
        slot = TimeSlot.from_dict({"startTime": "09:00", "endTime": "09:30", "available": False})

        assert slot.key == ("09:00", "09:30")
        assert slot.available is False

    def test_to_dict_omits_empty_appointment(self):
        assert TimeSlot("09:00", "09:30").to_dict() == {
            "start_time": "09:00",
            "end_time": "09:30",
            "available": True,
        }


class TestComputeAvailableSlots:
    """Test bookable slot computation."""

    @pytest.mark.asyncio
    async def test_default_grid_when_no_record(self, calendar, doctor_id):
        slots = await calendar.compute_available_slots(doctor_id, DAY)

        assert len(slots) == 16
        assert slots[0].start_time == "09:00"

    @pytest.mark.asyncio
    async def test_booked_slots_removed(self, calendar, ledger, doctor_id):
        await book(ledger, doctor_id, DAY, "10:00", "10:30")

        slots = await calendar.compute_available_slots(doctor_id, DAY)

        assert ("10:00", "10:30") not in [s.key for s in slots]
        assert len(slots) == 15

    @pytest.mark.asyncio
    async def test_cancelled_slots_return(self, calendar, ledger, doctor_id):
        booked = await book(ledger, doctor_id, DAY, "10:00", "10:30")
        await ledger.cancel(booked.appointment.id)

        slots = await calendar.compute_available_slots(doctor_id, DAY)

        assert len(slots) == 16

    @pytest.mark.asyncio
    async def test_custom_record_replaces_grid(self, calendar, doctor_id):
        await calendar.set_availability(
            doctor_id,
            DAY,
            [
                {"start_time": "13:00", "end_time": "13:45"},
                {"start_time": "08:00", "end_time": "08:45"},
                {"start_time": "15:00", "end_time": "15:45", "available": False},
            ],
        )

        slots = await calendar.compute_available_slots(doctor_id, DAY)

        assert [s.key for s in slots] == [("13:00", "13:45"), ("08:00", "08:45")]

    @pytest.mark.asyncio
    async def test_empty_record_falls_back_to_grid(self, calendar, doctor_id):
        await calendar.set_availability(doctor_id, DAY, [])

        slots = await calendar.compute_available_slots(doctor_id, DAY)

        assert [s.key for s in slots] == [s.key for s in generate_time_slots("09:00", "17:00", 30)]
        assert len(slots) == 16
        assert slots[0].key == ("09:00", "09:30")
        assert slots[-1].key == ("16:30", "17:00")

    @pytest.mark.asyncio
    async def test_other_doctor_unaffected(self, calendar, ledger, users, doctor_id):
        await book(ledger, doctor_id, DAY, "09:00", "09:30")

        slots = await calendar.compute_available_slots(str(users["jones"].id), DAY)

        assert len(slots) == 16

    @pytest.mark.asyncio
    async def test_time_of_day_ignored(self, calendar, ledger, doctor_id):
        await book(ledger, doctor_id, DAY, "09:00", "09:30")

        slots = await calendar.compute_available_slots(doctor_id, "2030-03-14T23:10:00")

        assert len(slots) == 15

    @pytest.mark.asyncio
    async def test_invalid_date(self, calendar, doctor_id):
        with pytest.raises(InvalidInputError):
            await calendar.compute_available_slots(doctor_id, "14/03/2030")


class TestSetAvailability:
    """Test doctor-authored availability."""

    @pytest.mark.asyncio
    async def test_creates_record_lazily(self, calendar, doctor_id):
        assert await calendar.get_availability(doctor_id, DAY) == []

        result = await calendar.set_availability(
            doctor_id, DAY, [{"start_time": "9:00", "end_time": "9:30"}]
        )

        assert [s.key for s in result] == [("09:00", "09:30")]
        assert [s.key for s in await calendar.get_availability(doctor_id, DAY)] == [
            ("09:00", "09:30")
        ]

    @pytest.mark.asyncio
    async def test_replaces_unreserved_slots(self, calendar, doctor_id):
        await calendar.set_availability(
            doctor_id,
            DAY,
            [
                {"start_time": "09:00", "end_time": "09:30"},
                {"start_time": "10:00", "end_time": "10:30"},
            ],
        )

        result = await calendar.set_availability(
            doctor_id,
            DAY,
            [
                {"start_time": "11:00", "end_time": "11:30"},
                {"start_time": "09:00", "end_time": "09:30", "available": False},
            ],
        )

        assert [(s.key, s.available) for s in result] == [
            (("11:00", "11:30"), True),
            (("09:00", "09:30"), False),
        ]

    @pytest.mark.asyncio
    async def test_reserved_slot_survives_edit(self, calendar, ledger, doctor_id):
        await calendar.set_availability(
            doctor_id,
            DAY,
            [
                {"start_time": "09:00", "end_time": "09:30"},
                {"start_time": "10:00", "end_time": "10:30"},
            ],
        )
        booked = await book(ledger, doctor_id, DAY, "09:00", "09:30")

        result = await calendar.set_availability(
            doctor_id,
            DAY,
            [{"start_time": "10:00", "end_time": "10:30"}],
        )

        by_key = {s.key: s for s in result}
        assert by_key[("09:00", "09:30")].available is False
        assert by_key[("09:00", "09:30")].appointment_id == booked.appointment.id

        result = await calendar.set_availability(
            doctor_id,
            DAY,
            [
                {"start_time": "09:00", "end_time": "09:30", "available": True},
                {"start_time": "10:00", "end_time": "10:30"},
            ],
        )
        assert {s.key: s.available for s in result}[("09:00", "09:30")] is False

        slots = await calendar.compute_available_slots(doctor_id, DAY)
        assert [s.key for s in slots] == [("10:00", "10:30")]

    @pytest.mark.asyncio
    async def test_new_slot_adopts_grid_booking(self, calendar, ledger, doctor_id):
        booked = await book(ledger, doctor_id, DAY, "09:00", "09:30")

        result = await calendar.set_availability(
            doctor_id,
            DAY,
            [
                {"start_time": "09:00", "end_time": "09:30", "available": True},
                {"start_time": "10:00", "end_time": "10:30"},
            ],
        )

        by_key = {s.key: s for s in result}
        assert by_key[("09:00", "09:30")].available is False
        assert by_key[("09:00", "09:30")].appointment_id == booked.appointment.id
        assert by_key[("10:00", "10:30")].available is True

        await ledger.cancel(booked.appointment.id)

        freed = {s.key: s for s in await calendar.get_availability(doctor_id, DAY)}
        assert freed[("09:00", "09:30")].available is True
        assert freed[("09:00", "09:30")].appointment_id is None
        slots = await calendar.compute_available_slots(doctor_id, DAY)
        assert [s.key for s in slots] == [("09:00", "09:30"), ("10:00", "10:30")]

    @pytest.mark.asyncio
    async def test_rejects_duplicates(self, calendar, doctor_id):
        with pytest.raises(InvalidInputError):
            await calendar.set_availability(
                doctor_id,
                DAY,
                [
                    {"start_time": "09:00", "end_time": "09:30"},
                    {"start_time": "9:00", "end_time": "9:30"},
                ],
            )

    @pytest.mark.asyncio
    async def test_rejects_inverted_range(self, calendar, doctor_id):
        with pytest.raises(InvalidInputError):
            await calendar.set_availability(
                doctor_id, DAY, [{"start_time": "10:00", "end_time": "09:00"}]
            )

    @pytest.mark.asyncio
    async def test_inactive_doctor(self, calendar, users):
        with pytest.raises(UnavailableError):
            await calendar.set_availability(
                str(users["retired"].id), DAY, [{"start_time": "09:00", "end_time": "09:30"}]
            )

    @pytest.mark.asyncio
    async def test_not_a_doctor(self, calendar, users):
        with pytest.raises(NotFoundError):
            await calendar.set_availability(
                str(users["patient"].id), DAY, [{"start_time": "09:00", "end_time": "09:30"}]
            )


class TestFindNextAvailable:
    """Test next-available search."""

    @pytest.mark.asyncio
    async def test_skips_full_days(self, calendar, session_factory, doctor_id):
        await calendar.set_availability(
            doctor_id, DAY, [{"start_time": "09:00", "end_time": "09:30", "available": False}]
        )

        async with session_factory() as db:
            found = await calendar.find_next_available(db, uuid.UUID(doctor_id), DAY, 7)

        day, slot = found
        assert day == DAY + timedelta(days=1)
        assert slot.key == ("09:00", "09:30")

    @pytest.mark.asyncio
    async def test_nothing_in_window(self, calendar, session_factory, doctor_id):
        for offset in range(2):
            await calendar.set_availability(
                doctor_id,
                DAY + timedelta(days=offset),
                [{"start_time": "09:00", "end_time": "09:30", "available": False}],
            )

        async with session_factory() as db:
            found = await calendar.find_next_available(db, uuid.UUID(doctor_id), DAY, 2)

        assert found is None

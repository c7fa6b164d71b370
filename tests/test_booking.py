"""Tests for the booking workflow."""

from datetime import time
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from consult_scheduler.core.exceptions import (
    NotFoundException,
    SlotConflictException,
    ValidationException,
)
from consult_scheduler.models import appointments, payments
from consult_scheduler.schemas.appointments import AppointmentStatus, BookingRequest
from consult_scheduler.services.booking_service import BookingService, validate_slot_choice
from tests.conftest import NOW, SPECIALTY, TODAY, TOMORROW


@pytest.fixture
def booking(db_session, clock, notifier) -> BookingService:
    """Booking service on the test database."""
    return BookingService(db_session, notifier=notifier, clock=clock)


async def _count_appointments(db_session) -> int:
    result = await db_session.execute(select(func.count()).select_from(appointments))
    return result.scalar_one()


# ============================================================================
# Slot choice validation
# ============================================================================


@pytest.mark.parametrize(
    ("appointment_date", "appointment_time", "field"),
    [
        (None, "10:00", "appointment_date"),
        (TODAY.replace(day=9), "10:00", "appointment_date"),
        (TOMORROW, None, "appointment_time"),
        (TOMORROW, "", "appointment_time"),
        (TOMORROW, "14:00", "appointment_time"),
        (TOMORROW, "10:15", "appointment_time"),
        (TODAY, "08:30", "appointment_time"),
    ],
)
def test_validate_slot_choice_names_field(appointment_date, appointment_time, field: str) -> None:
    """Test each invalid choice names the offending field."""
    with pytest.raises(ValidationException) as exc_info:
        validate_slot_choice(appointment_date, appointment_time, NOW)

    assert exc_info.value.field == field


def test_validate_slot_choice_returns_label() -> None:
    """Test a valid choice is normalized to its label."""
    assert validate_slot_choice(TOMORROW, "9:00", NOW) == "09:00"
    assert validate_slot_choice(TODAY, "09:00", NOW) == "09:00"


# ============================================================================
# Booking
# ============================================================================


@pytest.mark.asyncio
async def test_book_creates_pending_appointment_and_payment(
    booking, db_session, patient, booking_payload
) -> None:
    """Test a complete funnel creates a Pending appointment plus its payment record."""
    result = await booking.book(patient["id"], BookingRequest(**booking_payload))

    assert result.status == AppointmentStatus.PENDING
    assert result.appointment_date == TOMORROW
    assert result.appointment_time == "10:00"
    assert result.patient_id == patient["id"]
    assert result.consent_url.endswith("/consentimientos/patient-1/consent-2026-03-11.pdf")
    assert result.pre_visit_instructions

    rows = (
        await db_session.execute(select(payments).where(payments.c.appointment_id == result.id))
    ).mappings().all()
    assert len(rows) == 1
    assert rows[0]["receipt_ref"] == booking_payload["payment_proof_ref"]


@pytest.mark.asyncio
async def test_book_trims_reason(booking, patient, booking_payload) -> None:
    """Test the stored reason is stripped."""
    booking_payload["reason"] = "   Itchy scalp  "

    result = await booking.book(patient["id"], BookingRequest(**booking_payload))

    assert result.reason == "Itchy scalp"


@pytest.mark.asyncio
async def test_book_unknown_patient(booking, booking_payload) -> None:
    """Test booking without a patient profile fails."""
    with pytest.raises(NotFoundException):
        await booking.book(uuid4(), BookingRequest(**booking_payload))


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("missing", "field"),
    [
        ("specialty", "specialty"),
        ("specialist_id", "specialist_id"),
        ("appointment_date", "appointment_date"),
        ("appointment_time", "appointment_time"),
        ("reason", "reason"),
        ("consent_document_ref", "consent_document_ref"),
        ("payment_proof_ref", "payment_proof_ref"),
    ],
)
async def test_book_reports_missing_field(
    booking, db_session, patient, booking_payload, missing: str, field: str
) -> None:
    """Test each missing precondition is reported by name and nothing is stored."""
    booking_payload[missing] = None

    with pytest.raises(ValidationException) as exc_info:
        await booking.book(patient["id"], BookingRequest(**booking_payload))

    assert exc_info.value.field == field
    assert await _count_appointments(db_session) == 0


@pytest.mark.asyncio
async def test_book_reports_first_missing_field_in_funnel_order(
    booking, patient, booking_payload
) -> None:
    """Test the earliest funnel step wins when several are missing."""
    for key in ("specialist_id", "reason", "payment_proof_ref"):
        booking_payload[key] = None

    with pytest.raises(ValidationException) as exc_info:
        await booking.book(patient["id"], BookingRequest(**booking_payload))

    assert exc_info.value.field == "specialist_id"


@pytest.mark.asyncio
async def test_book_blank_reason(booking, patient, booking_payload) -> None:
    """Test a whitespace-only reason counts as missing."""
    booking_payload["reason"] = "   "

    with pytest.raises(ValidationException) as exc_info:
        await booking.book(patient["id"], BookingRequest(**booking_payload))

    assert exc_info.value.field == "reason"


@pytest.mark.asyncio
async def test_book_specialist_outside_specialty(booking, patient, booking_payload) -> None:
    """Test the specialist must belong to the chosen specialty."""
    booking_payload["specialty"] = "Cardiology"

    with pytest.raises(ValidationException) as exc_info:
        await booking.book(patient["id"], BookingRequest(**booking_payload))

    assert exc_info.value.field == "specialist_id"


@pytest.mark.asyncio
async def test_book_specialty_match_ignores_case(booking, patient, booking_payload) -> None:
    """Test the specialty comparison is case-insensitive."""
    booking_payload["specialty"] = SPECIALTY.upper()

    result = await booking.book(patient["id"], BookingRequest(**booking_payload))

    assert result.status == AppointmentStatus.PENDING


@pytest.mark.asyncio
async def test_book_unknown_specialist(booking, patient, booking_payload) -> None:
    """Test an unknown specialist is rejected on the specialist field."""
    booking_payload["specialist_id"] = str(uuid4())

    with pytest.raises(ValidationException) as exc_info:
        await booking.book(patient["id"], BookingRequest(**booking_payload))

    assert exc_info.value.field == "specialist_id"


@pytest.mark.asyncio
async def test_book_past_date(booking, patient, booking_payload) -> None:
    """Test a date before today is rejected."""
    booking_payload["appointment_date"] = TODAY.replace(day=1).isoformat()

    with pytest.raises(ValidationException) as exc_info:
        await booking.book(patient["id"], BookingRequest(**booking_payload))

    assert exc_info.value.field == "appointment_date"


@pytest.mark.asyncio
async def test_book_elapsed_slot_today(booking, patient, booking_payload) -> None:
    """Test a slot earlier today is rejected."""
    booking_payload["appointment_date"] = TODAY.isoformat()
    booking_payload["appointment_time"] = "08:00"

    with pytest.raises(ValidationException) as exc_info:
        await booking.book(patient["id"], BookingRequest(**booking_payload))

    assert exc_info.value.field == "appointment_time"


@pytest.mark.asyncio
async def test_book_taken_slot_conflict(
    booking, db_session, specialist, other_patient, patient, booking_payload, insert_appointment
) -> None:
    """Test a slot taken before submit raises a conflict carrying the draft."""
    await insert_appointment(specialist["id"], other_patient["id"], TOMORROW, time(10, 0))

    with pytest.raises(SlotConflictException) as exc_info:
        await booking.book(patient["id"], BookingRequest(**booking_payload))

    error = exc_info.value
    assert "10:00" in error.taken_slots
    assert error.draft["reason"] == booking_payload["reason"]
    assert error.draft["payment_proof_ref"] == booking_payload["payment_proof_ref"]
    assert await _count_appointments(db_session) == 1


@pytest.mark.asyncio
async def test_book_storage_guard_rejects_double_booking(
    booking, db_session, specialist, other_patient, patient, booking_payload, insert_appointment
) -> None:
    """Test the unique slot index rejects a booking that slipped past the hard check."""
    await insert_appointment(specialist["id"], other_patient["id"], TOMORROW, time(10, 0))
    booking.availability.hard_check = AsyncMock(return_value=None)

    with pytest.raises(SlotConflictException) as exc_info:
        await booking.book(patient["id"], BookingRequest(**booking_payload))

    assert exc_info.value.taken_slots == {"10:00"}
    assert exc_info.value.draft is not None
    assert await _count_appointments(db_session) == 1
    assert (
        await db_session.execute(select(func.count()).select_from(payments))
    ).scalar_one() == 0


@pytest.mark.asyncio
async def test_book_released_slot(
    booking, specialist, other_patient, patient, booking_payload, insert_appointment
) -> None:
    """Test a cancelled appointment's slot can be booked again."""
    await insert_appointment(
        specialist["id"], other_patient["id"], TOMORROW, time(10, 0), "Cancelled"
    )

    result = await booking.book(patient["id"], BookingRequest(**booking_payload))

    assert result.appointment_time == "10:00"


@pytest.mark.asyncio
async def test_book_notification_failure_is_not_surfaced(
    booking, notifier, patient, booking_payload
) -> None:
    """Test a failing confirmation email does not affect the booking."""
    failing_send = AsyncMock(side_effect=RuntimeError("smtp unreachable"))
    with patch(
        "consult_scheduler.services.booking_service.NotificationService.send_appointment_confirmation",
        new=failing_send,
    ):
        result = await booking.book(patient["id"], BookingRequest(**booking_payload))
        await notifier.drain()

    assert result.status == AppointmentStatus.PENDING
    failing_send.assert_awaited_once()
    assert failing_send.await_args.kwargs["to_email"] == patient["email"]
    assert notifier.pending == 0

"""Booking workflow: turns a completed booking funnel into one appointment."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from consult_scheduler.core.clock import Clock, clinic_now
from consult_scheduler.core.exceptions import (
    NotFoundException,
    SlotConflictException,
    TransientStoreException,
    ValidationException,
)
from consult_scheduler.schemas.appointments import (
    AppointmentResponse,
    AppointmentStatus,
    BookingRequest,
)
from consult_scheduler.services.appointment_store import AppointmentStore
from consult_scheduler.services.availability_service import AvailabilityService
from consult_scheduler.services.directory_service import DirectoryService
from consult_scheduler.services.notification_service import (
    NotificationDispatcher,
    NotificationService,
)
from consult_scheduler.services.slot_calendar import (
    is_slot_label,
    parse_slot_label,
    to_slot_label,
)

logger = structlog.get_logger(__name__)


def validate_slot_choice(
    appointment_date: date | None,
    appointment_time: str | None,
    now: datetime,
) -> str:
    """
    Check a date/time choice against the calendar and the clinic clock.

    Returns:
        The normalized slot label

    Raises:
        ValidationException: Naming the offending field
    """
    if appointment_date is None:
        raise ValidationException("Select a date", field="appointment_date")
    if appointment_date < now.date():
        raise ValidationException(
            "Appointment date cannot be in the past", field="appointment_date"
        )

    if not appointment_time:
        raise ValidationException("Select a time slot", field="appointment_time")
    if not is_slot_label(appointment_time):
        raise ValidationException(
            "Time must be one of the available slots", field="appointment_time"
        )

    label = to_slot_label(appointment_time)
    if datetime.combine(appointment_date, parse_slot_label(label)) < now:
        raise ValidationException("This time slot has already passed", field="appointment_time")
    return label


class BookingService:
    """
    Orchestrates specialty, specialist, date, time, consent and payment proof
    into a single Pending appointment.
    """

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationDispatcher | None = None,
        directory: DirectoryService | None = None,
        clock: Clock = clinic_now,
    ):
        """Initialize service with database session and collaborators."""
        self.db = db
        self.store = AppointmentStore(db)
        self.availability = AvailabilityService(self.store, clock)
        self.directory = directory or DirectoryService()
        self.notifier = notifier
        self.clock = clock

    async def book(self, patient_id: UUID, data: BookingRequest) -> AppointmentResponse:
        """
        Create an appointment for the patient.

        Args:
            patient_id: ID of the booking patient
            data: Booking funnel submission

        Returns:
            Created appointment, status Pending

        Raises:
            NotFoundException: If the patient profile does not exist
            ValidationException: For the first unmet precondition, in funnel order
            SlotConflictException: If the slot was taken, with refreshed slots and the draft
            TransientStoreException: On database failure
        """
        patient = await self.directory.get_patient(self.db, patient_id)
        if not patient:
            raise NotFoundException("Patient profile not found")

        specialist = await self._validate_specialist(data)
        label = validate_slot_choice(data.appointment_date, data.appointment_time, self.clock())

        reason = (data.reason or "").strip()
        if not reason:
            raise ValidationException("Describe the reason for your visit", field="reason")
        if not data.consent_document_ref:
            raise ValidationException(
                "Sign the informed consent to continue", field="consent_document_ref"
            )
        if not data.payment_proof_ref:
            raise ValidationException(
                "Upload the payment proof to continue", field="payment_proof_ref"
            )

        draft = data.draft()
        await self.availability.hard_check(
            specialist["id"], data.appointment_date, label, draft=draft
        )

        values: dict[str, Any] = {
            "specialist_id": specialist["id"],
            "patient_id": patient_id,
            "appointment_date": data.appointment_date,
            "appointment_time": parse_slot_label(label),
            "appointment_type": data.appointment_type.value,
            "reason": reason,
            "consent_document_ref": data.consent_document_ref,
            "payment_proof_ref": data.payment_proof_ref,
            "status": AppointmentStatus.PENDING.value,
        }

        try:
            row = await self.store.create(values, receipt_ref=data.payment_proof_ref)
        except SlotConflictException as e:
            taken = await self._refresh_taken(specialist["id"], data.appointment_date)
            raise SlotConflictException(taken_slots=taken, draft=draft) from e

        logger.info(
            "appointment_booked",
            appointment_id=str(row["id"]),
            specialist_id=str(row["specialist_id"]),
            appointment_date=str(row["appointment_date"]),
            appointment_time=label,
        )

        if self.notifier is not None:
            self.notifier.dispatch(
                f"appointment-confirmation-{row['id']}",
                NotificationService.send_appointment_confirmation(
                    to_email=patient.get("email"),
                    patient_name=patient["full_name"],
                    appointment=row,
                    specialist_name=specialist["full_name"],
                    specialty=specialist["specialty"],
                ),
            )

        return AppointmentResponse.from_record(row)

    async def _validate_specialist(self, data: BookingRequest) -> dict:
        specialty = (data.specialty or "").strip()
        if not specialty:
            raise ValidationException("Select a specialty", field="specialty")

        if data.specialist_id is None:
            raise ValidationException("Select a specialist", field="specialist_id")

        specialist = await self.directory.get_specialist(self.db, data.specialist_id)
        if not specialist or not specialist["is_active"]:
            raise ValidationException(
                "Selected specialist is not available", field="specialist_id"
            )
        if specialist["specialty"].casefold() != specialty.casefold():
            raise ValidationException(
                "Specialist does not belong to the selected specialty", field="specialist_id"
            )
        return specialist

    async def _refresh_taken(self, specialist_id: UUID, appointment_date: date) -> set[str]:
        try:
            return await self.availability.taken_slots(specialist_id, appointment_date)
        except TransientStoreException:
            return set()

"""Appointment schemas for request/response validation."""

from collections.abc import Mapping
from datetime import date, datetime, time
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from consult_scheduler.core.storage import consent_url, receipt_url
from consult_scheduler.services.slot_calendar import to_slot_label


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    REJECTED = "Rejected"
    CANCELLED = "Cancelled"
    COMPLETED = "Completed"
    NO_SHOW = "NoShow"


TERMINAL_STATUSES = frozenset(
    {
        AppointmentStatus.REJECTED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
    }
)

# Statuses that still hold their slot
ACTIVE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED})


class AppointmentType(str, Enum):
    """Kind of consultation; only affects the patient's pre-visit instructions."""

    FIRST_VISIT = "FirstVisit"
    FOLLOW_UP = "FollowUp"
    SCREENING = "Screening"
    REVIEW = "Review"


PRE_VISIT_INSTRUCTIONS: dict[AppointmentType, str] = {
    AppointmentType.FIRST_VISIT: (
        "Arrive 10 minutes early with an ID and any previous studies or prescriptions."
    ),
    AppointmentType.FOLLOW_UP: "Bring the treatment you are currently using.",
    AppointmentType.SCREENING: "Do not apply creams or makeup on the area to be examined.",
    AppointmentType.REVIEW: "Bring the results requested at your previous consultation.",
}


class BookingRequest(BaseModel):
    """
    Booking funnel submission.

    Every field is optional at the schema level so the booking workflow can
    report the first missing precondition in funnel order.
    """

    specialty: str | None = Field(None, max_length=100)
    specialist_id: UUID | None = None
    appointment_date: date | None = None
    appointment_time: str | None = Field(None, max_length=8)
    appointment_type: AppointmentType = AppointmentType.FIRST_VISIT
    reason: str | None = Field(None, max_length=1000)
    consent_document_ref: str | None = Field(None, max_length=500)
    payment_proof_ref: str | None = Field(None, max_length=500)

    def draft(self) -> dict[str, Any]:
        """Form data the patient should not have to re-enter after a conflict."""
        return {
            "appointment_type": self.appointment_type.value,
            "reason": self.reason,
            "consent_document_ref": self.consent_document_ref,
            "payment_proof_ref": self.payment_proof_ref,
        }


class RescheduleRequest(BaseModel):
    """Schema for moving an appointment to a new date and time."""

    appointment_date: date
    appointment_time: str = Field(..., min_length=4, max_length=8)


class NoShowRequest(BaseModel):
    """Explicit confirmation for marking a patient absent."""

    confirm: bool = False


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: UUID
    specialist_id: UUID
    patient_id: UUID
    appointment_date: date
    appointment_time: str
    appointment_type: AppointmentType
    reason: str
    status: AppointmentStatus
    consent_document_ref: str
    payment_proof_ref: str
    consent_url: str | None = None
    payment_proof_url: str | None = None
    pre_visit_instructions: str | None = None
    cancelled_by: str | None = None
    created_at: datetime
    updated_at: datetime
    cancelled_at: datetime | None = None
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_validator("appointment_time", mode="before")
    @classmethod
    def normalize_time(cls, v: time | str) -> str:
        """Render stored times as slot labels."""
        return to_slot_label(v)

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "AppointmentResponse":
        """Build a response from a stored appointment row."""
        data = dict(record)
        appointment_type = AppointmentType(data["appointment_type"])
        data["consent_url"] = consent_url(data.get("consent_document_ref"))
        data["payment_proof_url"] = receipt_url(data.get("payment_proof_ref"))
        data["pre_visit_instructions"] = PRE_VISIT_INSTRUCTIONS[appointment_type]
        return cls.model_validate(data)

    @property
    def is_active(self) -> bool:
        """Whether the appointment still holds its slot."""
        return self.status in ACTIVE_STATUSES


class AppointmentListResponse(BaseModel):
    """A patient's appointments split the way the dashboard shows them."""

    upcoming: list[AppointmentResponse]
    history: list[AppointmentResponse]


class SlotAvailability(BaseModel):
    """One calendar slot and whether it can be booked."""

    time: str
    available: bool


class AvailabilityResponse(BaseModel):
    """Soft availability check rendered by the booking form."""

    specialist_id: UUID
    appointment_date: date
    slots: list[SlotAvailability]
    taken_slots: list[str]
    stale: bool = False
    warning: str | None = None

    @property
    def available_slots(self) -> list[str]:
        """Labels still offered to the patient."""
        return [slot.time for slot in self.slots if slot.available]


class CalendarEvent(BaseModel):
    """Appointment rendered as a specialist calendar event."""

    id: UUID
    title: str
    start: datetime
    end: datetime
    status: AppointmentStatus
    patient_id: UUID
    appointment_type: AppointmentType


class ReminderResponse(BaseModel):
    """Upcoming appointment reminder shown when the patient opens the dashboard."""

    appointment: AppointmentResponse | None = None
    message: str | None = None

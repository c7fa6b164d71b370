"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    String,
    Table,
    Text,
    Time,
    Uuid,
    func,
    text,
)

from consult_scheduler.models.metadata import metadata

# Statuses that release the slot for other bookings
SLOT_RELEASING_STATUSES = ("Cancelled", "Rejected")

_ACTIVE_SLOT_PREDICATE = text("status NOT IN ('Cancelled', 'Rejected')")

appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Ownership / references
    Column("specialist_id", Uuid, ForeignKey("specialists.id"), nullable=False),
    Column("patient_id", Uuid, ForeignKey("patients.id"), nullable=False, index=True),
    # Schedule (clinic-local, no timezone)
    Column("appointment_date", Date, nullable=False),
    Column("appointment_time", Time, nullable=False),
    # Appointment details
    Column("appointment_type", String(20), nullable=False, server_default="FirstVisit"),
    Column("reason", Text, nullable=False),
    Column("consent_document_ref", Text, nullable=False),
    Column("payment_proof_ref", Text, nullable=False),
    # Status management
    Column("status", String(20), nullable=False, server_default="Pending"),
    Column("cancelled_by", String(20), nullable=True),
    # Audit fields
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
    Column("cancelled_at", DateTime(timezone=True), nullable=True),
    Column("completed_at", DateTime(timezone=True), nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('Pending', 'Confirmed', 'Rejected', 'Cancelled', 'Completed', 'NoShow')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "appointment_type IN ('FirstVisit', 'FollowUp', 'Screening', 'Review')",
        name="appointments_type_check",
    ),
    CheckConstraint("length(trim(reason)) > 0", name="appointments_reason_check"),
    # At most one live appointment per specialist slot
    Index(
        "uq_appointments_active_slot",
        "specialist_id",
        "appointment_date",
        "appointment_time",
        unique=True,
        postgresql_where=_ACTIVE_SLOT_PREDICATE,
        sqlite_where=_ACTIVE_SLOT_PREDICATE,
    ),
    Index("ix_appointments_specialist_date", "specialist_id", "appointment_date"),
    Index("ix_appointments_status", "status"),
)

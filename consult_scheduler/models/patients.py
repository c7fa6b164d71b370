"""Patients table model using SQLAlchemy Core.

Patient profiles are maintained elsewhere; the scheduler reads the id, the
display name and the contact email used for confirmations.
"""

from sqlalchemy import Column, DateTime, String, Table, Text, Uuid, func

from consult_scheduler.models.metadata import metadata

patients = Table(
    "patients",
    metadata,
    Column("id", Uuid, primary_key=True),
    Column("full_name", Text, nullable=False),
    Column("email", String(255), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=func.now()),
)

"""Database models."""

from consult_scheduler.models.appointments import appointments
from consult_scheduler.models.metadata import metadata
from consult_scheduler.models.patients import patients
from consult_scheduler.models.payments import payments
from consult_scheduler.models.specialists import specialists

__all__ = [
    "appointments",
    "metadata",
    "patients",
    "payments",
    "specialists",
]

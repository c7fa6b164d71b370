"""Authenticated actor schemas."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel


class Role(str, Enum):
    """Who is driving a request."""

    PATIENT = "patient"
    SPECIALIST = "specialist"


class Actor(BaseModel):
    """Identity extracted from the bearer token."""

    id: UUID
    role: Role

    @property
    def is_patient(self) -> bool:
        """Check if the actor is a patient."""
        return self.role == Role.PATIENT

    @property
    def is_specialist(self) -> bool:
        """Check if the actor is a specialist."""
        return self.role == Role.SPECIALIST

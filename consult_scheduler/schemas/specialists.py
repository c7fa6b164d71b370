"""Specialist directory schemas."""

from uuid import UUID

from pydantic import BaseModel


class SpecialistResponse(BaseModel):
    """Specialist as offered in the booking funnel."""

    id: UUID
    full_name: str
    specialty: str

    model_config = {"from_attributes": True}


class SpecialtyListResponse(BaseModel):
    """Distinct specialties with at least one active specialist."""

    specialties: list[str]

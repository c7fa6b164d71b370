"""Specialist directory and availability endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from consult_scheduler.core.exceptions import NotFoundException
from consult_scheduler.dependencies import ClinicClock, CurrentActor, DatabaseSession, Directory
from consult_scheduler.schemas.appointments import AvailabilityResponse
from consult_scheduler.schemas.specialists import SpecialistResponse, SpecialtyListResponse
from consult_scheduler.services.appointment_store import AppointmentStore
from consult_scheduler.services.availability_service import AvailabilityService

router = APIRouter()


@router.get(
    "/specialties",
    response_model=SpecialtyListResponse,
    status_code=status.HTTP_200_OK,
    summary="List specialties",
)
async def list_specialties(
    current_actor: CurrentActor,
    db: DatabaseSession,
    directory: Directory,
) -> SpecialtyListResponse:
    """
    Specialties offered by at least one active specialist.

    Args:
        current_actor: Authenticated patient or specialist
        db: Database session
        directory: Directory service

    Returns:
        Sorted specialty names
    """
    return SpecialtyListResponse(specialties=await directory.list_specialties(db))


@router.get(
    "",
    response_model=list[SpecialistResponse],
    status_code=status.HTTP_200_OK,
    summary="List specialists of a specialty",
)
async def list_specialists(
    current_actor: CurrentActor,
    db: DatabaseSession,
    directory: Directory,
    specialty: str = Query(..., min_length=1, description="Specialty to filter by"),
) -> list[SpecialistResponse]:
    """
    Active specialists offering a specialty.

    - **specialty**: Specialty chosen in the first step of the booking form
    """
    rows = await directory.list_specialists(db, specialty)
    return [SpecialistResponse.model_validate(row) for row in rows]


@router.get(
    "/{specialist_id}/availability",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_200_OK,
    summary="Slot availability for a day",
)
async def get_availability(
    specialist_id: UUID,
    current_actor: CurrentActor,
    db: DatabaseSession,
    directory: Directory,
    clock: ClinicClock,
    appointment_date: date = Query(..., alias="date"),
    exclude_appointment_id: UUID | None = Query(
        None, description="Appointment being rescheduled, its own slot stays selectable"
    ),
) -> AvailabilityResponse:
    """
    Soft availability check used to render the time picker.

    Args:
        specialist_id: Specialist ID
        current_actor: Authenticated patient or specialist
        db: Database session
        directory: Directory service
        clock: Clinic clock
        appointment_date: Day to inspect
        exclude_appointment_id: Appointment to ignore when computing taken slots

    Returns:
        Every calendar slot with its availability; flagged stale if the
        appointment store could not be read

    Raises:
        NotFoundException: If the specialist does not exist
    """
    specialist = await directory.get_specialist(db, specialist_id)
    if not specialist:
        raise NotFoundException("Specialist not found")

    service = AvailabilityService(AppointmentStore(db), clock)
    return await service.soft_check(specialist_id, appointment_date, exclude_appointment_id)

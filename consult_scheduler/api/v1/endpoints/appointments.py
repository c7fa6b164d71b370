"""Appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from consult_scheduler.dependencies import (
    ClinicClock,
    CurrentActor,
    CurrentPatient,
    CurrentSpecialist,
    DatabaseSession,
    Directory,
    Notifier,
)
from consult_scheduler.schemas.appointments import (
    AppointmentListResponse,
    AppointmentResponse,
    BookingRequest,
    CalendarEvent,
    NoShowRequest,
    ReminderResponse,
    RescheduleRequest,
)
from consult_scheduler.services.appointment_service import AppointmentService
from consult_scheduler.services.booking_service import BookingService
from consult_scheduler.services.lifecycle_service import LifecycleService

router = APIRouter()


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    tags=["Appointments"],
    summary="Book an appointment",
)
async def create_appointment(
    data: BookingRequest,
    current_patient: CurrentPatient,
    db: DatabaseSession,
    notifier: Notifier,
    directory: Directory,
    clock: ClinicClock,
) -> AppointmentResponse:
    """
    Submit the booking funnel for the authenticated patient.

    The appointment starts as Pending. A confirmation email is sent in the
    background; its outcome never affects this response.

    Args:
        data: Booking funnel submission
        current_patient: Authenticated patient
        db: Database session
        notifier: Background notification dispatcher
        directory: Directory service
        clock: Clinic clock

    Returns:
        Created appointment

    Raises:
        ValidationException: First missing or invalid field, in funnel order
        SlotConflictException: Slot taken meanwhile, with the refreshed taken slots
    """
    service = BookingService(db, notifier=notifier, directory=directory, clock=clock)
    return await service.book(current_patient.id, data)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="List my appointments",
)
async def list_appointments(
    current_patient: CurrentPatient,
    db: DatabaseSession,
    clock: ClinicClock,
) -> AppointmentListResponse:
    """
    The patient's appointments split into upcoming and history.

    Args:
        current_patient: Authenticated patient
        db: Database session
        clock: Clinic clock

    Returns:
        Upcoming (soonest first) and history (latest first)
    """
    service = AppointmentService(db, clock=clock)
    return await service.list_for_patient(current_patient.id)


@router.get(
    "/reminder",
    response_model=ReminderResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Next appointment reminder",
)
async def get_reminder(
    current_patient: CurrentPatient,
    db: DatabaseSession,
    clock: ClinicClock,
) -> ReminderResponse:
    """Reminder for a live appointment later today or tomorrow, if any."""
    service = AppointmentService(db, clock=clock)
    return await service.next_reminder(current_patient.id)


@router.get(
    "/calendar",
    response_model=list[CalendarEvent],
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Specialist calendar",
)
async def get_calendar(
    current_specialist: CurrentSpecialist,
    db: DatabaseSession,
    directory: Directory,
    clock: ClinicClock,
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
) -> list[CalendarEvent]:
    """
    The specialist's appointments as calendar events.

    Args:
        current_specialist: Authenticated specialist
        db: Database session
        directory: Directory service
        clock: Clinic clock
        from_date: Window start (default 30 days ago)
        to_date: Window end (default 60 days ahead)

    Returns:
        Calendar events ordered by start
    """
    service = AppointmentService(db, directory=directory, clock=clock)
    return await service.calendar_for_specialist(current_specialist.id, from_date, to_date)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    current_actor: CurrentActor,
    db: DatabaseSession,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Args:
        appointment_id: Appointment ID
        current_actor: Authenticated patient or specialist
        db: Database session

    Returns:
        Appointment details

    Raises:
        NotFoundException: If appointment not found
        ForbiddenException: If it belongs to someone else
    """
    service = AppointmentService(db)
    return await service.get_appointment(current_actor, appointment_id)


@router.post(
    "/{appointment_id}/confirm",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Confirm appointment",
)
async def confirm_appointment(
    appointment_id: UUID,
    current_actor: CurrentActor,
    db: DatabaseSession,
    notifier: Notifier,
    clock: ClinicClock,
) -> AppointmentResponse:
    """Specialist accepts a Pending appointment; the patient is notified."""
    service = LifecycleService(db, notifier=notifier, clock=clock)
    return await service.confirm(current_actor, appointment_id)


@router.post(
    "/{appointment_id}/reject",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Reject appointment",
)
async def reject_appointment(
    appointment_id: UUID,
    current_actor: CurrentActor,
    db: DatabaseSession,
    notifier: Notifier,
    clock: ClinicClock,
) -> AppointmentResponse:
    """Specialist declines a Pending appointment; the slot is released."""
    service = LifecycleService(db, notifier=notifier, clock=clock)
    return await service.reject(current_actor, appointment_id)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    current_actor: CurrentActor,
    db: DatabaseSession,
    notifier: Notifier,
    clock: ClinicClock,
) -> AppointmentResponse:
    """
    Cancel a Pending or Confirmed appointment.

    Args:
        appointment_id: Appointment ID
        current_actor: Patient or specialist owning the appointment
        db: Database session
        notifier: Background notification dispatcher
        clock: Clinic clock

    Returns:
        Cancelled appointment
    """
    service = LifecycleService(db, notifier=notifier, clock=clock)
    return await service.cancel(current_actor, appointment_id)


@router.post(
    "/{appointment_id}/complete",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Complete appointment",
)
async def complete_appointment(
    appointment_id: UUID,
    current_actor: CurrentActor,
    db: DatabaseSession,
    notifier: Notifier,
    clock: ClinicClock,
) -> AppointmentResponse:
    """Specialist closes a Confirmed consult on its day, once the window has opened."""
    service = LifecycleService(db, notifier=notifier, clock=clock)
    return await service.complete(current_actor, appointment_id)


@router.post(
    "/{appointment_id}/no-show",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Mark patient absent",
)
async def mark_no_show(
    appointment_id: UUID,
    data: NoShowRequest,
    current_actor: CurrentActor,
    db: DatabaseSession,
    notifier: Notifier,
    clock: ClinicClock,
) -> AppointmentResponse:
    """
    Record that the patient did not attend.

    - **confirm**: Must be true; the change cannot be undone
    """
    service = LifecycleService(db, notifier=notifier, clock=clock)
    return await service.mark_no_show(current_actor, appointment_id, data.confirm)


@router.patch(
    "/{appointment_id}/schedule",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    tags=["Appointments"],
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: RescheduleRequest,
    current_actor: CurrentActor,
    db: DatabaseSession,
    notifier: Notifier,
    clock: ClinicClock,
) -> AppointmentResponse:
    """
    Move an appointment to another date and slot, keeping its status.

    Args:
        appointment_id: Appointment ID
        data: New date and slot label
        current_actor: Patient or specialist owning the appointment
        db: Database session
        notifier: Background notification dispatcher
        clock: Clinic clock

    Returns:
        Rescheduled appointment

    Raises:
        SlotConflictException: If the target slot is taken
    """
    service = LifecycleService(db, notifier=notifier, clock=clock)
    return await service.reschedule(
        current_actor, appointment_id, data.appointment_date, data.appointment_time
    )

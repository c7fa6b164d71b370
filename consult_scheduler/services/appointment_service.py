"""Read-side appointment queries for patient and specialist dashboards."""

from datetime import date, datetime, timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from consult_scheduler.config import settings
from consult_scheduler.core.clock import Clock, clinic_now
from consult_scheduler.core.exceptions import ForbiddenException
from consult_scheduler.schemas.appointments import (
    ACTIVE_STATUSES,
    AppointmentListResponse,
    AppointmentResponse,
    CalendarEvent,
    ReminderResponse,
)
from consult_scheduler.schemas.auth import Actor
from consult_scheduler.services.appointment_store import AppointmentStore
from consult_scheduler.services.directory_service import DirectoryService


class AppointmentService:
    """Service for reading appointments."""

    def __init__(
        self,
        db: AsyncSession,
        directory: DirectoryService | None = None,
        clock: Clock = clinic_now,
    ):
        """Initialize service with database session."""
        self.db = db
        self.store = AppointmentStore(db)
        self.directory = directory or DirectoryService()
        self.clock = clock

    async def get_appointment(self, actor: Actor, appointment_id: UUID) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If the actor is neither its patient nor its specialist
        """
        row = await self.store.get(appointment_id)
        owner = row["patient_id"] if actor.is_patient else row["specialist_id"]
        if owner != actor.id:
            raise ForbiddenException("Access denied to this appointment")
        return AppointmentResponse.from_record(row)

    async def list_for_patient(self, patient_id: UUID) -> AppointmentListResponse:
        """
        A patient's appointments split into upcoming and history.

        History holds every terminal appointment plus anything whose start time
        has already passed; upcoming is soonest first, history latest first.
        """
        rows = await self.store.list_appointments(patient_id=patient_id, descending=True)
        now = self.clock()

        upcoming: list[AppointmentResponse] = []
        history: list[AppointmentResponse] = []
        for row in rows:
            item = AppointmentResponse.from_record(row)
            starts_at = datetime.combine(row["appointment_date"], row["appointment_time"])
            if item.is_active and starts_at >= now:
                upcoming.append(item)
            else:
                history.append(item)

        upcoming.reverse()
        return AppointmentListResponse(upcoming=upcoming, history=history)

    async def next_reminder(self, patient_id: UUID) -> ReminderResponse:
        """The patient's next live appointment today or tomorrow, if any."""
        now = self.clock()
        today = now.date()
        rows = await self.store.list_appointments(
            patient_id=patient_id,
            from_date=today,
            to_date=today + timedelta(days=1),
            statuses=ACTIVE_STATUSES,
        )

        for row in rows:
            starts_at = datetime.combine(row["appointment_date"], row["appointment_time"])
            if starts_at < now:
                continue
            when = "today" if row["appointment_date"] == today else "tomorrow"
            return ReminderResponse(
                appointment=AppointmentResponse.from_record(row),
                message=f"Reminder: you have an appointment {when} at {starts_at:%H:%M}",
            )

        return ReminderResponse()

    async def calendar_for_specialist(
        self,
        specialist_id: UUID,
        from_date: date | None = None,
        to_date: date | None = None,
    ) -> list[CalendarEvent]:
        """
        Specialist appointments as calendar events.

        Defaults to the window from 30 days ago to 60 days ahead. Released
        appointments are included so the calendar can show them faded.
        """
        today = self.clock().date()
        from_date = from_date or today - timedelta(days=30)
        to_date = to_date or today + timedelta(days=60)

        rows = await self.store.list_appointments(
            specialist_id=specialist_id, from_date=from_date, to_date=to_date
        )
        names = await self.directory.get_patient_names(
            self.db, {row["patient_id"] for row in rows}
        )
        duration = timedelta(minutes=settings.calendar_event_minutes)

        events = []
        for row in rows:
            start = datetime.combine(row["appointment_date"], row["appointment_time"])
            events.append(
                CalendarEvent(
                    id=row["id"],
                    title=names.get(row["patient_id"], "Patient"),
                    start=start,
                    end=start + duration,
                    status=row["status"],
                    patient_id=row["patient_id"],
                    appointment_type=row["appointment_type"],
                )
            )
        return events

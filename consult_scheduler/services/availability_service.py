"""Slot availability checks for a specialist's day."""

from datetime import date, datetime
from typing import Any
from uuid import UUID

import structlog

from consult_scheduler.core.clock import Clock, clinic_now
from consult_scheduler.core.exceptions import SlotConflictException, TransientStoreException
from consult_scheduler.models.appointments import SLOT_RELEASING_STATUSES
from consult_scheduler.schemas.appointments import AvailabilityResponse, SlotAvailability
from consult_scheduler.services.appointment_store import AppointmentStore
from consult_scheduler.services.slot_calendar import (
    generate_slots,
    parse_slot_label,
    to_slot_label,
)

logger = structlog.get_logger(__name__)


class AvailabilityService:
    """
    Determines which calendar slots are taken for a (specialist, date) pair.

    The booking path calls it twice: ``soft_check`` to render the form, and
    ``hard_check`` right before the write. The hard check narrows the race
    window; the unique slot index in the store is what actually closes it.
    """

    def __init__(self, store: AppointmentStore, clock: Clock = clinic_now):
        """Initialize with the appointment store and the clinic clock."""
        self.store = store
        self.clock = clock

    async def taken_slots(
        self,
        specialist_id: UUID,
        appointment_date: date,
        exclude_appointment_id: UUID | None = None,
    ) -> set[str]:
        """
        Slot labels held by live appointments.

        Args:
            specialist_id: Specialist ID
            appointment_date: Day to inspect
            exclude_appointment_id: Appointment to ignore (the one being moved)

        Returns:
            Set of ``HH:MM`` labels

        Raises:
            TransientStoreException: If the store is unavailable
        """
        rows = await self.store.list_appointments(
            specialist_id=specialist_id,
            appointment_date=appointment_date,
            exclude_statuses=SLOT_RELEASING_STATUSES,
            exclude_id=exclude_appointment_id,
        )
        return {to_slot_label(row["appointment_time"]) for row in rows}

    async def soft_check(
        self,
        specialist_id: UUID,
        appointment_date: date,
        exclude_appointment_id: UUID | None = None,
    ) -> AvailabilityResponse:
        """
        Availability for the booking form.

        Store failures do not block the form: every slot is offered and a
        warning is attached, the hard check at submit time still applies.
        """
        warning = None
        stale = False
        try:
            taken = await self.taken_slots(specialist_id, appointment_date, exclude_appointment_id)
        except TransientStoreException as e:
            logger.warning(
                "soft_availability_check_failed",
                specialist_id=str(specialist_id),
                appointment_date=str(appointment_date),
                error=e.message,
            )
            taken = set()
            stale = True
            warning = "Availability could not be refreshed; it will be verified when you submit."

        now = self.clock()
        slots = []
        for label in generate_slots():
            elapsed = datetime.combine(appointment_date, parse_slot_label(label)) < now
            slots.append(
                SlotAvailability(
                    time=label,
                    available=label not in taken and not elapsed,
                )
            )

        return AvailabilityResponse(
            specialist_id=specialist_id,
            appointment_date=appointment_date,
            slots=slots,
            taken_slots=sorted(taken),
            stale=stale,
            warning=warning,
        )

    async def hard_check(
        self,
        specialist_id: UUID,
        appointment_date: date,
        label: str,
        exclude_appointment_id: UUID | None = None,
        draft: dict[str, Any] | None = None,
    ) -> None:
        """
        Re-read taken slots immediately before a write.

        Raises:
            SlotConflictException: If ``label`` is taken, carrying the refreshed set
            TransientStoreException: If the store is unavailable
        """
        taken = await self.taken_slots(specialist_id, appointment_date, exclude_appointment_id)
        if to_slot_label(label) in taken:
            logger.info(
                "slot_conflict_on_hard_check",
                specialist_id=str(specialist_id),
                appointment_date=str(appointment_date),
                appointment_time=label,
            )
            raise SlotConflictException(taken_slots=taken, draft=draft)

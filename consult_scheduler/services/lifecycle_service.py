"""Appointment state machine.

    Pending   -> Confirmed | Rejected | Cancelled
    Confirmed -> Cancelled | Completed | NoShow

Rejected, Cancelled, Completed and NoShow are terminal. Rescheduling keeps
the status and only moves date/time. Every caller goes through
``LifecycleService.apply`` so the rules live in ``TRANSITIONS`` only.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from consult_scheduler.config import settings
from consult_scheduler.core.clock import Clock, clinic_now
from consult_scheduler.core.exceptions import (
    ForbiddenException,
    InvalidTransitionException,
    SlotConflictException,
    TransientStoreException,
    ValidationException,
)
from consult_scheduler.schemas.appointments import (
    AppointmentResponse,
    AppointmentStatus,
)
from consult_scheduler.schemas.auth import Actor, Role
from consult_scheduler.services.appointment_store import AppointmentStore
from consult_scheduler.services.availability_service import AvailabilityService
from consult_scheduler.services.booking_service import validate_slot_choice
from consult_scheduler.services.notification_service import (
    NotificationDispatcher,
    NotificationService,
)
from consult_scheduler.services.slot_calendar import parse_slot_label

logger = structlog.get_logger(__name__)

PENDING = AppointmentStatus.PENDING
CONFIRMED = AppointmentStatus.CONFIRMED


@dataclass(frozen=True)
class Transition:
    """One edge (or self-loop) of the appointment state machine."""

    action: str
    sources: frozenset[AppointmentStatus]
    target: AppointmentStatus | None
    roles: frozenset[Role]
    notify_patient: bool = False


TRANSITIONS: dict[str, Transition] = {
    "confirm": Transition(
        "confirm",
        frozenset({PENDING}),
        AppointmentStatus.CONFIRMED,
        frozenset({Role.SPECIALIST}),
        notify_patient=True,
    ),
    "reject": Transition(
        "reject",
        frozenset({PENDING}),
        AppointmentStatus.REJECTED,
        frozenset({Role.SPECIALIST}),
        notify_patient=True,
    ),
    "cancel": Transition(
        "cancel",
        frozenset({PENDING, CONFIRMED}),
        AppointmentStatus.CANCELLED,
        frozenset({Role.PATIENT, Role.SPECIALIST}),
    ),
    "reschedule": Transition(
        "reschedule",
        frozenset({PENDING, CONFIRMED}),
        None,
        frozenset({Role.PATIENT, Role.SPECIALIST}),
    ),
    "complete": Transition(
        "complete",
        frozenset({CONFIRMED}),
        AppointmentStatus.COMPLETED,
        frozenset({Role.SPECIALIST}),
    ),
    "no_show": Transition(
        "no_show",
        frozenset({CONFIRMED}),
        AppointmentStatus.NO_SHOW,
        frozenset({Role.SPECIALIST}),
    ),
}


def resolve_transition(action: str, current: AppointmentStatus) -> Transition:
    """
    Look up ``action`` and check it is allowed from ``current``.

    Raises:
        ValueError: If the action is unknown
        InvalidTransitionException: If the action is not allowed from ``current``
    """
    try:
        transition = TRANSITIONS[action]
    except KeyError:
        raise ValueError(f"Unknown appointment action: {action}") from None

    if current not in transition.sources:
        raise InvalidTransitionException(current.value, action.replace("_", "-"))
    return transition


def check_completion_window(
    appointment_date: date,
    scheduled: datetime,
    now: datetime,
    grace_minutes: int,
) -> None:
    """
    A consult may be closed on its day, from ``grace_minutes`` before it starts.

    Raises:
        ValidationException: Outside that window
    """
    if appointment_date != now.date():
        raise ValidationException(
            "Appointments can only be completed on their scheduled day", field="status"
        )
    opens_at = scheduled - timedelta(minutes=grace_minutes)
    if now < opens_at:
        raise ValidationException(
            f"This appointment can be completed from {opens_at:%H:%M}", field="status"
        )


class LifecycleService:
    """Applies status transitions on behalf of patients and specialists."""

    def __init__(
        self,
        db: AsyncSession,
        notifier: NotificationDispatcher | None = None,
        clock: Clock = clinic_now,
    ):
        """Initialize service with database session, notifier and clinic clock."""
        self.store = AppointmentStore(db)
        self.availability = AvailabilityService(self.store, clock)
        self.notifier = notifier
        self.clock = clock

    async def confirm(self, actor: Actor, appointment_id: UUID) -> AppointmentResponse:
        """Specialist accepts a Pending appointment."""
        return await self.apply(actor, appointment_id, "confirm")

    async def reject(self, actor: Actor, appointment_id: UUID) -> AppointmentResponse:
        """Specialist declines a Pending appointment; the slot is released."""
        return await self.apply(actor, appointment_id, "reject")

    async def cancel(self, actor: Actor, appointment_id: UUID) -> AppointmentResponse:
        """Patient or specialist cancels; the slot is released."""
        return await self.apply(actor, appointment_id, "cancel")

    async def complete(self, actor: Actor, appointment_id: UUID) -> AppointmentResponse:
        """Specialist closes out a Confirmed consult inside its time window."""
        return await self.apply(actor, appointment_id, "complete")

    async def mark_no_show(
        self, actor: Actor, appointment_id: UUID, confirmed: bool
    ) -> AppointmentResponse:
        """Specialist records that the patient did not attend."""
        return await self.apply(actor, appointment_id, "no_show", confirmed=confirmed)

    async def reschedule(
        self,
        actor: Actor,
        appointment_id: UUID,
        new_date: date,
        new_time: str,
    ) -> AppointmentResponse:
        """Move an appointment in place; identity and status are unchanged."""
        return await self.apply(
            actor, appointment_id, "reschedule", new_date=new_date, new_time=new_time
        )

    async def apply(
        self,
        actor: Actor,
        appointment_id: UUID,
        action: str,
        *,
        confirmed: bool = False,
        new_date: date | None = None,
        new_time: str | None = None,
    ) -> AppointmentResponse:
        """
        Run one transition end to end.

        The write is conditional on the status read here, so a concurrent
        change by another actor surfaces as ``NotFoundException`` and nothing
        is overwritten.

        Args:
            actor: Authenticated patient or specialist
            appointment_id: Appointment ID
            action: Key of ``TRANSITIONS``
            confirmed: Explicit confirmation (required for ``no_show``)
            new_date: Target date (``reschedule`` only)
            new_time: Target slot label (``reschedule`` only)

        Returns:
            The appointment as stored after the transition

        Raises:
            NotFoundException: Unknown id, or moved by someone else meanwhile
            ForbiddenException: Actor's role or ownership does not allow it
            InvalidTransitionException: Not allowed from the current status
            ValidationException: A time gate or input precondition failed
            SlotConflictException: Reschedule target is taken
            TransientStoreException: On database failure
        """
        appointment = await self.store.get(appointment_id)
        transition = TRANSITIONS.get(action)
        if transition is None:
            raise ValueError(f"Unknown appointment action: {action}")
        self._authorize(actor, appointment, transition)

        current = AppointmentStatus(appointment["status"])
        resolve_transition(action, current)

        if action == "reschedule":
            patch = await self._reschedule_patch(appointment, new_date, new_time)
        else:
            patch = self._status_patch(actor, appointment, transition, confirmed)

        try:
            row = await self.store.update(appointment_id, patch, transition.sources)
        except SlotConflictException as e:
            taken = await self._refresh_taken(appointment, patch)
            raise SlotConflictException(taken_slots=taken) from e

        logger.info(
            "appointment_transition",
            appointment_id=str(appointment_id),
            action=action,
            actor_role=actor.role.value,
            old_status=current.value,
            new_status=row["status"],
        )

        if transition.notify_patient and self.notifier is not None:
            self.notifier.dispatch(
                f"appointment-status-{appointment_id}",
                NotificationService.send_status_notification(
                    patient_id=str(row["patient_id"]),
                    appointment=row,
                    old_status=current.value,
                ),
            )

        return AppointmentResponse.from_record(row)

    @staticmethod
    def _authorize(actor: Actor, appointment: dict[str, Any], transition: Transition) -> None:
        if actor.role not in transition.roles:
            raise ForbiddenException(
                f"Only {' or '.join(sorted(r.value for r in transition.roles))} "
                f"can {transition.action.replace('_', '-')} an appointment"
            )
        owner = appointment["patient_id"] if actor.is_patient else appointment["specialist_id"]
        if owner != actor.id:
            raise ForbiddenException("Access denied to this appointment")

    def _status_patch(
        self,
        actor: Actor,
        appointment: dict[str, Any],
        transition: Transition,
        confirmed: bool,
    ) -> dict[str, Any]:
        patch: dict[str, Any] = {"status": transition.target.value}
        now = self.clock()
        scheduled = datetime.combine(
            appointment["appointment_date"], appointment["appointment_time"]
        )

        if transition.action == "complete":
            check_completion_window(
                appointment["appointment_date"],
                scheduled,
                now,
                settings.completion_grace_minutes,
            )
            patch["completed_at"] = datetime.now(UTC)
        elif transition.action == "no_show":
            if not confirmed:
                raise ValidationException(
                    "Confirm that the patient did not attend", field="confirm"
                )
            if appointment["appointment_date"] != now.date():
                raise ValidationException(
                    "Absences can only be recorded on the scheduled day", field="status"
                )
        elif transition.action == "cancel":
            patch["cancelled_at"] = datetime.now(UTC)
            patch["cancelled_by"] = actor.role.value

        return patch

    async def _reschedule_patch(
        self,
        appointment: dict[str, Any],
        new_date: date | None,
        new_time: str | None,
    ) -> dict[str, Any]:
        label = validate_slot_choice(new_date, new_time, self.clock())
        await self.availability.hard_check(
            appointment["specialist_id"],
            new_date,
            label,
            exclude_appointment_id=appointment["id"],
        )
        return {"appointment_date": new_date, "appointment_time": parse_slot_label(label)}

    async def _refresh_taken(self, appointment: dict[str, Any], patch: dict[str, Any]) -> set[str]:
        target_date = patch.get("appointment_date", appointment["appointment_date"])
        try:
            return await self.availability.taken_slots(
                appointment["specialist_id"], target_date, appointment["id"]
            )
        except TransientStoreException:
            return set()

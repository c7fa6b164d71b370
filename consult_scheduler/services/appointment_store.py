"""Persistence adapter for appointment records."""

from collections.abc import Iterable
from datetime import date
from typing import Any
from uuid import UUID

import structlog
from sqlalchemy import and_, func, insert, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from consult_scheduler.core.exceptions import (
    NotFoundException,
    SlotConflictException,
    TransientStoreException,
    ValidationException,
)
from consult_scheduler.models.appointments import appointments
from consult_scheduler.models.payments import payments
from consult_scheduler.schemas.appointments import AppointmentStatus

logger = structlog.get_logger(__name__)


def _status_values(statuses: Iterable[AppointmentStatus | str]) -> list[str]:
    return [s.value if isinstance(s, AppointmentStatus) else s for s in statuses]


def _is_slot_violation(error: IntegrityError) -> bool:
    message = str(error.orig)
    return "uq_appointments_active_slot" in message or "UNIQUE constraint failed" in message


class AppointmentStore:
    """
    Single source of truth for appointment rows.

    Every write either commits and returns the stored row, or rolls back and
    raises. Uniqueness of live slots is enforced by the
    ``uq_appointments_active_slot`` index; violations surface as
    ``SlotConflictException``.
    """

    def __init__(self, db: AsyncSession):
        """Initialize store with database session."""
        self.db = db

    async def get(self, appointment_id: UUID) -> dict[str, Any]:
        """
        Fetch one appointment.

        Raises:
            NotFoundException: If no appointment has this id
            TransientStoreException: On database failure
        """
        stmt = select(appointments).where(appointments.c.id == appointment_id)
        try:
            result = await self.db.execute(stmt)
        except DBAPIError as e:
            raise self._transient("appointment_get_failed", e) from e

        row = result.mappings().first()
        if not row:
            raise NotFoundException("Appointment not found")
        return dict(row)

    async def list_appointments(
        self,
        *,
        specialist_id: UUID | None = None,
        patient_id: UUID | None = None,
        appointment_date: date | None = None,
        from_date: date | None = None,
        to_date: date | None = None,
        statuses: Iterable[AppointmentStatus | str] | None = None,
        exclude_statuses: Iterable[AppointmentStatus | str] | None = None,
        exclude_id: UUID | None = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        """
        List appointments matching every given filter, ordered by date and time.

        Raises:
            TransientStoreException: On database failure
        """
        conditions = []

        if specialist_id is not None:
            conditions.append(appointments.c.specialist_id == specialist_id)
        if patient_id is not None:
            conditions.append(appointments.c.patient_id == patient_id)
        if appointment_date is not None:
            conditions.append(appointments.c.appointment_date == appointment_date)
        if from_date is not None:
            conditions.append(appointments.c.appointment_date >= from_date)
        if to_date is not None:
            conditions.append(appointments.c.appointment_date <= to_date)
        if statuses is not None:
            conditions.append(appointments.c.status.in_(_status_values(statuses)))
        if exclude_statuses is not None:
            conditions.append(appointments.c.status.not_in(_status_values(exclude_statuses)))
        if exclude_id is not None:
            conditions.append(appointments.c.id != exclude_id)

        order = (
            [appointments.c.appointment_date.desc(), appointments.c.appointment_time.desc()]
            if descending
            else [appointments.c.appointment_date, appointments.c.appointment_time]
        )
        stmt = select(appointments).order_by(*order)
        if conditions:
            stmt = stmt.where(and_(*conditions))

        try:
            result = await self.db.execute(stmt)
        except DBAPIError as e:
            raise self._transient("appointment_list_failed", e) from e

        return [dict(row) for row in result.mappings().all()]

    async def create(self, values: dict[str, Any], receipt_ref: str) -> dict[str, Any]:
        """
        Insert an appointment and its payment record in one transaction.

        Args:
            values: Appointment column values
            receipt_ref: Payment proof reference recorded in the payments ledger

        Returns:
            The stored appointment row

        Raises:
            SlotConflictException: If the slot is already held by a live appointment
            TransientStoreException: On database failure
        """
        try:
            result = await self.db.execute(
                insert(appointments).values(**values).returning(appointments)
            )
            row = dict(result.mappings().one())
            await self.db.execute(
                insert(payments).values(
                    appointment_id=row["id"],
                    patient_id=row["patient_id"],
                    receipt_ref=receipt_ref,
                )
            )
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if not _is_slot_violation(e):
                raise ValidationException("Appointment rejected by the store") from e
            logger.info(
                "slot_conflict_on_insert",
                specialist_id=str(values.get("specialist_id")),
                appointment_date=str(values.get("appointment_date")),
                appointment_time=str(values.get("appointment_time")),
            )
            raise SlotConflictException() from e
        except DBAPIError as e:
            await self.db.rollback()
            raise self._transient("appointment_insert_failed", e) from e

        return row

    async def update(
        self,
        appointment_id: UUID,
        patch: dict[str, Any],
        expected_statuses: Iterable[AppointmentStatus | str],
    ) -> dict[str, Any]:
        """
        Apply ``patch`` only if the row is still in one of ``expected_statuses``.

        Args:
            appointment_id: Appointment ID
            patch: Column values to overwrite
            expected_statuses: Statuses the row must currently have

        Returns:
            The updated row as confirmed by the store

        Raises:
            NotFoundException: If the row is gone or another actor moved it first
            SlotConflictException: If the patch moves it onto a live slot
            TransientStoreException: On database failure
        """
        stmt = (
            update(appointments)
            .where(
                and_(
                    appointments.c.id == appointment_id,
                    appointments.c.status.in_(_status_values(expected_statuses)),
                )
            )
            .values(**patch, updated_at=func.now())
            .returning(appointments)
        )

        try:
            result = await self.db.execute(stmt)
            row = result.mappings().first()
            if row is None:
                await self.db.rollback()
                raise NotFoundException(
                    "Appointment not found or already updated, refresh and try again"
                )
            row = dict(row)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if not _is_slot_violation(e):
                raise ValidationException("Appointment change rejected by the store") from e
            raise SlotConflictException() from e
        except DBAPIError as e:
            await self.db.rollback()
            raise self._transient("appointment_update_failed", e) from e

        return row

    @staticmethod
    def _transient(event: str, error: Exception) -> TransientStoreException:
        logger.error(event, error=str(error))
        return TransientStoreException()


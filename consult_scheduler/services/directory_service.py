"""Read access to specialists and patients owned by the clinic directory."""

from typing import Any
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from consult_scheduler.core.exceptions import TransientStoreException
from consult_scheduler.core.redis_client import CacheManager
from consult_scheduler.models.patients import patients
from consult_scheduler.models.specialists import specialists


class DirectoryService:
    """Service for specialist and patient lookups."""

    # Cache TTL in seconds
    SPECIALIST_LIST_CACHE_TTL = 300  # 5 minutes for lists

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    async def _fetch_all(self, db: AsyncSession, stmt: Any) -> list[dict]:
        try:
            result = await db.execute(stmt)
        except DBAPIError as e:
            raise TransientStoreException() from e
        return [dict(row) for row in result.mappings().all()]

    async def list_specialties(self, db: AsyncSession) -> list[str]:
        """Distinct specialties offered by active specialists."""
        cache_key = "specialist:specialties"
        if self.cache:
            cached = self.cache.get_json(cache_key)
            if cached is not None:
                return cached

        stmt = (
            select(specialists.c.specialty)
            .where(specialists.c.is_active.is_(True))
            .distinct()
            .order_by(specialists.c.specialty)
        )
        rows = await self._fetch_all(db, stmt)
        specialties = [row["specialty"] for row in rows]

        if self.cache:
            self.cache.set_json(cache_key, specialties, ttl=self.SPECIALIST_LIST_CACHE_TTL)
        return specialties

    async def list_specialists(self, db: AsyncSession, specialty: str) -> list[dict]:
        """Active specialists of one specialty, by name."""
        cache_key = f"specialist:list:{specialty.lower()}"
        if self.cache:
            cached = self.cache.get_json(cache_key)
            if cached is not None:
                return cached

        stmt = (
            select(specialists.c.id, specialists.c.full_name, specialists.c.specialty)
            .where(
                and_(
                    func.lower(specialists.c.specialty) == specialty.lower(),
                    specialists.c.is_active.is_(True),
                )
            )
            .order_by(specialists.c.full_name)
        )
        rows = await self._fetch_all(db, stmt)

        if self.cache:
            self.cache.set_json(cache_key, rows, ttl=self.SPECIALIST_LIST_CACHE_TTL)
        return rows

    async def get_specialist(self, db: AsyncSession, specialist_id: UUID) -> dict | None:
        """Get specialist by ID."""
        rows = await self._fetch_all(
            db, select(specialists).where(specialists.c.id == specialist_id)
        )
        return rows[0] if rows else None

    async def get_patient(self, db: AsyncSession, patient_id: UUID) -> dict | None:
        """Get patient by ID."""
        rows = await self._fetch_all(db, select(patients).where(patients.c.id == patient_id))
        return rows[0] if rows else None

    async def get_patient_names(self, db: AsyncSession, patient_ids: set[UUID]) -> dict[UUID, str]:
        """Display names for a set of patients."""
        if not patient_ids:
            return {}
        rows = await self._fetch_all(
            db,
            select(patients.c.id, patients.c.full_name).where(patients.c.id.in_(patient_ids)),
        )
        return {row["id"]: row["full_name"] for row in rows}

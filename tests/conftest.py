import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import date, datetime, time, timedelta
from typing import Any
from uuid import UUID, uuid4

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./consult_scheduler_test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("LOG_FORMAT", "console")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from consult_scheduler.core.clock import Clock, fixed_clock
from consult_scheduler.core.security import create_access_token
from consult_scheduler.database import get_db
from consult_scheduler.dependencies import get_clock
from consult_scheduler.main import app
from consult_scheduler.models import appointments, metadata, patients, specialists
from consult_scheduler.services.notification_service import NotificationDispatcher

# Tuesday 10 March 2026, 09:00 clinic time
NOW = datetime(2026, 3, 10, 9, 0)
TODAY = NOW.date()
TOMORROW = TODAY + timedelta(days=1)

SPECIALTY = "Dermatology"


@pytest_asyncio.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh database per test (SQLite file unless TEST_DATABASE_URL is set)."""
    url = os.getenv("TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'scheduler.db'}"
    engine = create_async_engine(url, echo=False, poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> Clock:
    """Clinic clock pinned to ``NOW``."""
    return fixed_clock(NOW)


@pytest_asyncio.fixture
async def notifier() -> AsyncGenerator[NotificationDispatcher, None]:
    """Notification dispatcher drained after each test."""
    dispatcher = NotificationDispatcher()
    yield dispatcher
    await dispatcher.drain(timeout=1.0)


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    clock: Clock,
    notifier: NotificationDispatcher,
) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.state.notifier = notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def _insert_specialist(
    db_session: AsyncSession,
    full_name: str,
    specialty: str = SPECIALTY,
    is_active: bool = True,
) -> dict[str, Any]:
    data = {
        "id": uuid4(),
        "full_name": full_name,
        "specialty": specialty,
        "email": f"{full_name.split()[-1].lower()}@clinic.test",
        "is_active": is_active,
    }
    await db_session.execute(insert(specialists).values(**data))
    await db_session.commit()
    return data


async def _insert_patient(db_session: AsyncSession, full_name: str, email: str | None):
    data = {"id": uuid4(), "full_name": full_name, "email": email}
    await db_session.execute(insert(patients).values(**data))
    await db_session.commit()
    return data


@pytest.fixture
async def specialist(db_session) -> dict[str, Any]:
    """Active dermatologist."""
    return await _insert_specialist(db_session, "Ana Ruiz")


@pytest.fixture
async def other_specialist(db_session) -> dict[str, Any]:
    """Second active dermatologist."""
    return await _insert_specialist(db_session, "Luis Herrera")


@pytest.fixture
async def patient(db_session) -> dict[str, Any]:
    """Patient with a contact email."""
    return await _insert_patient(db_session, "Maria Lopez", "maria@example.com")


@pytest.fixture
async def other_patient(db_session) -> dict[str, Any]:
    """Patient without an email address."""
    return await _insert_patient(db_session, "Jorge Diaz", None)


def make_auth_headers(actor_id: UUID, role: str) -> dict[str, str]:
    """Bearer headers for a patient or specialist."""
    token = create_access_token(
        data={"sub": str(actor_id), "role": role},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def patient_headers(patient) -> dict[str, str]:
    """Create authentication headers for the patient."""
    return make_auth_headers(patient["id"], "patient")


@pytest.fixture
def other_patient_headers(other_patient) -> dict[str, str]:
    """Create authentication headers for the second patient."""
    return make_auth_headers(other_patient["id"], "patient")


@pytest.fixture
def specialist_headers(specialist) -> dict[str, str]:
    """Create authentication headers for the specialist."""
    return make_auth_headers(specialist["id"], "specialist")


@pytest.fixture
def booking_payload(specialist) -> dict[str, Any]:
    """Complete booking funnel submission for tomorrow at 10:00."""
    return {
        "specialty": SPECIALTY,
        "specialist_id": str(specialist["id"]),
        "appointment_date": TOMORROW.isoformat(),
        "appointment_time": "10:00",
        "appointment_type": "FirstVisit",
        "reason": "Rash on both forearms for two weeks",
        "consent_document_ref": "patient-1/consent-2026-03-11.pdf",
        "payment_proof_ref": "patient-1/receipt-2026-03-11.jpg",
    }


@pytest.fixture
def insert_appointment(
    db_session: AsyncSession,
) -> Callable[..., Awaitable[dict[str, Any]]]:
    """Insert an appointment row directly, bypassing the booking rules."""

    async def _insert(
        specialist_id: UUID,
        patient_id: UUID,
        appointment_date: date = TOMORROW,
        appointment_time: time = time(10, 0),
        status: str = "Pending",
    ) -> dict[str, Any]:
        result = await db_session.execute(
            insert(appointments)
            .values(
                specialist_id=specialist_id,
                patient_id=patient_id,
                appointment_date=appointment_date,
                appointment_time=appointment_time,
                appointment_type="FollowUp",
                reason="Control visit",
                consent_document_ref="consent.pdf",
                payment_proof_ref="receipt.jpg",
                status=status,
            )
            .returning(appointments)
        )
        row = dict(result.mappings().one())
        await db_session.commit()
        return row

    return _insert

"""Tests for best-effort notifications."""

import asyncio
from datetime import date, time
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest

from consult_scheduler.config import settings
from consult_scheduler.services.notification_service import (
    NotificationDispatcher,
    NotificationService,
)


@pytest.fixture
def appointment_row() -> dict:
    """Stored appointment row as returned by the store."""
    return {
        "id": uuid4(),
        "appointment_date": date(2026, 3, 11),
        "appointment_time": time(10, 0),
        "status": "Confirmed",
    }


@pytest.fixture
def smtp_settings(monkeypatch):
    """Configure outgoing mail."""
    monkeypatch.setattr(settings, "smtp_host", "smtp.clinic.test")
    monkeypatch.setattr(settings, "smtp_username", "citas")
    monkeypatch.setattr(settings, "smtp_password", "secret")


@pytest.mark.asyncio
async def test_dispatcher_runs_in_background() -> None:
    """Test dispatched coroutines run without being awaited by the caller."""
    dispatcher = NotificationDispatcher()
    done = asyncio.Event()

    async def notify() -> None:
        done.set()

    dispatcher.dispatch("notify", notify())
    assert dispatcher.pending == 1

    await dispatcher.drain()

    assert done.is_set()
    assert dispatcher.pending == 0


@pytest.mark.asyncio
async def test_dispatcher_swallows_failures() -> None:
    """Test a failing notification is logged, not raised."""
    dispatcher = NotificationDispatcher()

    async def broken() -> None:
        raise ConnectionError("fcm down")

    task = dispatcher.dispatch("broken", broken())
    await dispatcher.drain()

    assert task.done()
    assert isinstance(task.exception(), ConnectionError)
    assert dispatcher.pending == 0


@pytest.mark.asyncio
async def test_dispatcher_drain_cancels_stragglers() -> None:
    """Test draining gives up on notifications past the timeout."""
    dispatcher = NotificationDispatcher()

    task = dispatcher.dispatch("slow", asyncio.sleep(10))
    await dispatcher.drain(timeout=0.01)

    assert task.cancelled()
    assert dispatcher.pending == 0


@pytest.mark.asyncio
async def test_confirmation_skipped_without_email(smtp_settings, appointment_row) -> None:
    """Test no email is attempted for patients without an address."""
    with patch.object(NotificationService, "_send_mail") as send_mail:
        sent = await NotificationService.send_appointment_confirmation(
            to_email=None,
            patient_name="Jorge Diaz",
            appointment=appointment_row,
            specialist_name="Ana Ruiz",
            specialty="Dermatology",
        )

    assert sent is False
    send_mail.assert_not_called()


@pytest.mark.asyncio
async def test_confirmation_skipped_without_smtp(monkeypatch, appointment_row) -> None:
    """Test no email is attempted when SMTP is not configured."""
    monkeypatch.setattr(settings, "smtp_host", None)

    with patch.object(NotificationService, "_send_mail") as send_mail:
        sent = await NotificationService.send_appointment_confirmation(
            to_email="maria@example.com",
            patient_name="Maria Lopez",
            appointment=appointment_row,
            specialist_name="Ana Ruiz",
            specialty="Dermatology",
        )

    assert sent is False
    send_mail.assert_not_called()


@pytest.mark.asyncio
async def test_confirmation_email_content(smtp_settings, appointment_row) -> None:
    """Test the confirmation email names the specialist, date and slot."""
    with patch.object(NotificationService, "_send_mail") as send_mail:
        sent = await NotificationService.send_appointment_confirmation(
            to_email="maria@example.com",
            patient_name="Maria Lopez",
            appointment=appointment_row,
            specialist_name="Ana Ruiz",
            specialty="Dermatology",
        )

    assert sent is True
    to_email, subject, body = send_mail.call_args.args
    assert to_email == "maria@example.com"
    assert subject == "Appointment confirmation"
    assert "Ana Ruiz" in body
    assert "Dermatology" in body
    assert "10:00" in body


@pytest.mark.asyncio
async def test_confirmation_smtp_error_propagates_to_dispatcher(
    smtp_settings, appointment_row
) -> None:
    """Test an SMTP failure ends in the dispatcher, not the caller."""
    dispatcher = NotificationDispatcher()

    with patch.object(NotificationService, "_send_mail", side_effect=OSError("refused")):
        task = dispatcher.dispatch(
            "confirmation",
            NotificationService.send_appointment_confirmation(
                to_email="maria@example.com",
                patient_name="Maria Lopez",
                appointment=appointment_row,
                specialist_name="Ana Ruiz",
                specialty="Dermatology",
            ),
        )
        await dispatcher.drain()

    assert isinstance(task.exception(), OSError)


@pytest.mark.asyncio
async def test_status_push_skipped_without_firebase(appointment_row) -> None:
    """Test status pushes are skipped when Firebase is not initialized."""
    with (
        patch(
            "consult_scheduler.services.notification_service.is_firebase_initialized",
            return_value=False,
        ),
        patch("consult_scheduler.services.notification_service.messaging.send") as send,
    ):
        sent = await NotificationService.send_status_notification(
            patient_id="p-1", appointment=appointment_row, old_status="Pending"
        )

    assert sent is False
    send.assert_not_called()


@pytest.mark.asyncio
async def test_status_push_targets_patient_topic(appointment_row) -> None:
    """Test status pushes go to the patient's topic with old and new status."""
    with (
        patch(
            "consult_scheduler.services.notification_service.is_firebase_initialized",
            return_value=True,
        ),
        patch(
            "consult_scheduler.services.notification_service.messaging.send",
            MagicMock(return_value="projects/x/messages/1"),
        ) as send,
    ):
        sent = await NotificationService.send_status_notification(
            patient_id="p-1", appointment=appointment_row, old_status="Pending"
        )

    assert sent is True
    message = send.call_args.args[0]
    assert message.topic == "patient-p-1"
    assert message.data["old_status"] == "Pending"
    assert message.data["new_status"] == "Confirmed"

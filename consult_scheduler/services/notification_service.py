"""Best-effort appointment notifications (email confirmation and push)."""

import asyncio
import smtplib
from collections.abc import Coroutine
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

import structlog
from firebase_admin import messaging

from consult_scheduler.config import settings
from consult_scheduler.core.firebase import is_firebase_initialized

logger = structlog.get_logger(__name__)


class NotificationDispatcher:
    """
    Runs notification coroutines as background tasks.

    Tasks are never awaited by the caller. Their failures are logged here and
    go nowhere else.
    """

    def __init__(self) -> None:
        """Initialize with no tasks in flight."""
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        """
        Schedule ``coro`` without waiting for it.

        Args:
            name: Task name used in logs
            coro: Notification coroutine

        Returns:
            The scheduled task
        """
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.info("notification_cancelled", task=task.get_name())
            return
        error = task.exception()
        if error is not None:
            logger.warning("notification_failed", task=task.get_name(), error=str(error))

    @property
    def pending(self) -> int:
        """Number of notification tasks still running."""
        return len(self._tasks)

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for in-flight notifications, cancelling any that outlive ``timeout``."""
        if not self._tasks:
            return
        _, still_running = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            await asyncio.gather(*still_running, return_exceptions=True)


class NotificationService:
    """Builds and sends appointment notifications."""

    @staticmethod
    def _send_mail(to_email: str, subject: str, body: str) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = settings.mail_default_sender
        msg["To"] = to_email
        msg.attach(MIMEText(body, "plain", "utf-8"))

        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            if settings.smtp_use_tls:
                server.starttls()
            server.login(settings.smtp_username, settings.smtp_password)
            server.send_message(msg)

    @staticmethod
    async def send_appointment_confirmation(
        to_email: str | None,
        patient_name: str,
        appointment: dict[str, Any],
        specialist_name: str,
        specialty: str,
    ) -> bool:
        """
        Email the patient that their appointment request was registered.

        Args:
            to_email: Patient email address
            patient_name: Patient display name
            appointment: Stored appointment row
            specialist_name: Specialist display name
            specialty: Specialist specialty

        Returns:
            True if the email was handed to the SMTP server, False if skipped
        """
        if not to_email:
            logger.warning("confirmation_email_skipped", reason="patient has no email")
            return False
        if not settings.smtp_configured:
            logger.warning("confirmation_email_skipped", reason="smtp not configured")
            return False

        appointment_date = appointment["appointment_date"]
        appointment_time = appointment["appointment_time"]
        body = (
            f"Hello {patient_name},\n\n"
            "Your appointment request has been registered.\n\n"
            f"Specialty: {specialty}\n"
            f"Specialist: Dr. {specialist_name}\n"
            f"Date: {appointment_date:%A, %d %B %Y}\n"
            f"Time: {appointment_time:%H:%M}\n\n"
            "It will stay Pending until the specialist confirms it. Please arrive "
            "10 minutes early. You can cancel or reschedule from your appointments page.\n"
        )

        await asyncio.to_thread(
            NotificationService._send_mail,
            to_email,
            "Appointment confirmation",
            body,
        )
        logger.info(
            "confirmation_email_sent",
            appointment_id=str(appointment["id"]),
        )
        return True

    @staticmethod
    async def send_status_notification(
        patient_id: str,
        appointment: dict[str, Any],
        old_status: str,
    ) -> bool:
        """
        Push a status change to the patient's devices.

        Devices subscribe to the ``patient-<id>`` topic.

        Returns:
            True if the message was accepted by FCM, False if push is disabled
        """
        if not is_firebase_initialized():
            logger.info("status_push_skipped", reason="firebase not initialized")
            return False

        new_status = appointment["status"]
        message = messaging.Message(
            notification=messaging.Notification(
                title="Appointment update",
                body=(
                    f"Your appointment on {appointment['appointment_date']} at "
                    f"{appointment['appointment_time']:%H:%M} is now {new_status}."
                ),
            ),
            data={
                "type": "appointment_status",
                "appointment_id": str(appointment["id"]),
                "old_status": old_status,
                "new_status": new_status,
            },
            topic=f"patient-{patient_id}",
        )

        message_id = await asyncio.to_thread(messaging.send, message)
        logger.info(
            "status_push_sent",
            appointment_id=str(appointment["id"]),
            message_id=message_id,
        )
        return True

"""Clinic-local wall clock.

Appointment dates and times are stored without a timezone and interpreted in
the clinic's local time, so every "today" / "now" comparison goes through
this module. Services accept a ``Clock`` so tests can pin the time.
"""

from collections.abc import Callable
from datetime import datetime
from zoneinfo import ZoneInfo

from consult_scheduler.config import settings

Clock = Callable[[], datetime]


def clinic_now() -> datetime:
    """Current naive datetime in the clinic timezone."""
    return datetime.now(ZoneInfo(settings.clinic_timezone)).replace(tzinfo=None)


def fixed_clock(moment: datetime) -> Clock:
    """Return a clock frozen at ``moment``."""

    def _now() -> datetime:
        return moment

    return _now

"""Appointment enums, the status transition table and small scheduling helpers."""

from __future__ import annotations

import enum
from datetime import datetime, timedelta
from typing import Final, Mapping
from zoneinfo import ZoneInfo


class AppointmentStatus(str, enum.Enum):
    """Possible statuses for an appointment lifecycle."""

    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class AppointmentType(str, enum.Enum):
    """Kind of visit; drives the default duration."""

    FIRST_CONSULT = "FIRST_CONSULT"
    CHECK_UP = "CHECK_UP"
    FOLLOW_UP = "FOLLOW_UP"


ALLOWED_TRANSITIONS: Final[Mapping[AppointmentStatus, frozenset[AppointmentStatus]]] = {
    AppointmentStatus.SCHEDULED: frozenset(
        {AppointmentStatus.IN_PROGRESS, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.IN_PROGRESS: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}

INITIAL_STATUS: Final = AppointmentStatus.SCHEDULED


def _coerce_status(value: object) -> AppointmentStatus | None:
    try:
        return AppointmentStatus(value)
    except (TypeError, ValueError):
        return None


def can_transition_to(current: AppointmentStatus | str, target: AppointmentStatus | str) -> bool:
    """Return whether ``current`` may move to ``target``.

    Never raises: unknown statuses on either side simply have no transitions.
    """

    current_status = _coerce_status(current)
    target_status = _coerce_status(target)
    if current_status is None or target_status is None:
        return False
    return target_status in ALLOWED_TRANSITIONS.get(current_status, frozenset())


def is_terminal(status: AppointmentStatus | str) -> bool:
    resolved = _coerce_status(status)
    return resolved is not None and not ALLOWED_TRANSITIONS[resolved]


def is_appointment_today(start: datetime, tz: ZoneInfo, now: datetime | None = None) -> bool:
    """Return whether ``start`` falls on the current clinic-local day."""

    reference = now or datetime.now(tz)
    return start.astimezone(tz).date() == reference.astimezone(tz).date()


def _clock(value: datetime) -> str:
    return f"{value.hour % 12 or 12}:{value.minute:02d} {'AM' if value.hour < 12 else 'PM'}"


def format_time_slot(start: datetime, minutes: int, tz: ZoneInfo) -> str:
    """Render a slot like ``9:00 AM - 9:30 AM`` in clinic time."""

    local_start = start.astimezone(tz)
    local_end = local_start + timedelta(minutes=minutes)
    return f"{_clock(local_start)} - {_clock(local_end)}"


__all__ = [
    "ALLOWED_TRANSITIONS",
    "INITIAL_STATUS",
    "AppointmentStatus",
    "AppointmentType",
    "can_transition_to",
    "format_time_slot",
    "is_appointment_today",
    "is_terminal",
]

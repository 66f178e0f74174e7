from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from app.domain.appointments import (
    AppointmentStatus,
    can_transition_to,
    format_time_slot,
    is_appointment_today,
    is_terminal,
)

SGT = ZoneInfo("Asia/Singapore")


@pytest.mark.parametrize(
    "current, target",
    [
        (AppointmentStatus.SCHEDULED, AppointmentStatus.IN_PROGRESS),
        (AppointmentStatus.SCHEDULED, AppointmentStatus.CANCELLED),
        (AppointmentStatus.IN_PROGRESS, AppointmentStatus.COMPLETED),
        (AppointmentStatus.IN_PROGRESS, AppointmentStatus.CANCELLED),
    ],
)
def test_allowed_transitions(current, target):
    assert can_transition_to(current, target)


@pytest.mark.parametrize(
    "current, target",
    [
        (AppointmentStatus.SCHEDULED, AppointmentStatus.COMPLETED),
        (AppointmentStatus.SCHEDULED, AppointmentStatus.NO_SHOW),
        (AppointmentStatus.COMPLETED, AppointmentStatus.IN_PROGRESS),
        (AppointmentStatus.CANCELLED, AppointmentStatus.SCHEDULED),
        (AppointmentStatus.NO_SHOW, AppointmentStatus.SCHEDULED),
        (AppointmentStatus.SCHEDULED, AppointmentStatus.SCHEDULED),
    ],
)
def test_disallowed_transitions(current, target):
    assert not can_transition_to(current, target)


def test_unknown_statuses_never_raise():
    assert not can_transition_to("ARCHIVED", AppointmentStatus.CANCELLED)
    assert not can_transition_to("SCHEDULED", "ARCHIVED")
    assert not can_transition_to(None, None)  # type: ignore[arg-type]
    assert can_transition_to("SCHEDULED", "IN_PROGRESS")


def test_terminal_statuses():
    assert is_terminal(AppointmentStatus.COMPLETED)
    assert is_terminal("CANCELLED")
    assert is_terminal(AppointmentStatus.NO_SHOW)
    assert not is_terminal(AppointmentStatus.SCHEDULED)
    assert not is_terminal("ARCHIVED")


def test_is_appointment_today_uses_clinic_day():
    # 23:30 UTC on the 19th is already the 20th in Singapore.
    start = datetime(2026, 10, 19, 23, 30, tzinfo=timezone.utc)
    now = datetime(2026, 10, 20, 2, 0, tzinfo=timezone.utc)
    assert is_appointment_today(start, SGT, now)
    assert not is_appointment_today(start, ZoneInfo("UTC"), now)


def test_format_time_slot():
    start = datetime(2026, 10, 20, 1, 0, tzinfo=timezone.utc)
    assert format_time_slot(start, 30, SGT) == "9:00 AM - 9:30 AM"
    assert format_time_slot(start.replace(hour=4, minute=30), 90, SGT) == "12:30 PM - 2:00 PM"

"""Value objects validated and normalized at construction time."""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from functools import total_ordering
from typing import Final

from app.core.errors import (
    DurationIncrementError,
    DurationTooLongError,
    DurationTooShortError,
    FormatError,
)
from app.domain.appointments import AppointmentType

_SG_PHONE_PATTERN: Final = re.compile(r"^(?:\+65[\s-]?)?[689][0-9]{3}[\s-]?[0-9]{4}$")
_SG_COUNTRY_PREFIX: Final = re.compile(r"^\+65[\s-]?")
_SEPARATORS: Final = re.compile(r"[\s-]")
_MOBILE_LEADING_DIGITS: Final = frozenset("689")

_EMAIL_PATTERN: Final = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MIN_DURATION_MINUTES: Final[int] = 30
MAX_DURATION_MINUTES: Final[int] = 90
DURATION_INCREMENT_MINUTES: Final[int] = 15
OPENING_HOUR: Final[int] = 9
CLOSING_HOUR: Final[int] = 18


class PhoneNumber:
    """Singapore mobile number, stored as the 8-digit local number."""

    __slots__ = ("_digits",)

    def __init__(self, raw: str) -> None:
        if not isinstance(raw, str) or not _SG_PHONE_PATTERN.fullmatch(raw):
            raise FormatError(
                f'Invalid Singapore phone number: "{raw}". '
                "Expected format: +65 XXXX XXXX (mobile numbers starting with 6, 8, or 9)",
                details={"value": str(raw)},
            )
        digits = _SEPARATORS.sub("", _SG_COUNTRY_PREFIX.sub("", raw))
        if digits[:1] not in _MOBILE_LEADING_DIGITS:
            raise FormatError(
                f"Phone number {raw} is not SMS-capable. "
                "Only mobile numbers (6, 8, 9) are allowed.",
                details={"value": raw},
            )
        self._digits = digits

    @property
    def value(self) -> str:
        """Canonical storage form: the normalized local digits."""

        return self._digits

    def format_for_display(self) -> str:
        return f"+65 {self._digits[:4]} {self._digits[4:]}"

    def format_for_sms(self) -> str:
        return f"+65{self._digits}"

    def can_receive_sms(self) -> bool:
        return self._digits[:1] in _MOBILE_LEADING_DIGITS

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PhoneNumber):
            return NotImplemented
        return self._digits == other._digits

    def __hash__(self) -> int:
        return hash(("PhoneNumber", self._digits))

    def __str__(self) -> str:
        return self._digits

    def __repr__(self) -> str:
        return f"PhoneNumber({self.format_for_display()!r})"


class EmailAddress:
    """Lower-cased, trimmed email address with a permissive format check."""

    __slots__ = ("_address",)

    def __init__(self, raw: str) -> None:
        candidate = raw.strip() if isinstance(raw, str) else ""
        if not _EMAIL_PATTERN.fullmatch(candidate):
            raise FormatError(
                f'Invalid email format: "{raw}". Expected format: user@domain.com',
                details={"value": str(raw)},
            )
        self._address = candidate.lower()

    @property
    def value(self) -> str:
        return self._address

    @property
    def domain(self) -> str:
        return self._address.split("@", 1)[1]

    @property
    def username(self) -> str:
        return self._address.split("@", 1)[0]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EmailAddress):
            return NotImplemented
        return self._address == other._address

    def __hash__(self) -> int:
        return hash(("EmailAddress", self._address))

    def __str__(self) -> str:
        return self._address

    def __repr__(self) -> str:
        return f"EmailAddress({self._address!r})"


@total_ordering
class AppointmentDuration:
    """Appointment length in minutes: 30 to 90, in 15-minute increments.

    Checks run in a fixed order (too short, too long, bad increment) and only
    the first failure is raised.
    """

    __slots__ = ("_minutes",)

    def __init__(self, minutes: int) -> None:
        if isinstance(minutes, bool) or not isinstance(minutes, int):
            raise FormatError(
                f"Appointment duration must be a whole number of minutes. Got: {minutes!r}."
            )
        if minutes < MIN_DURATION_MINUTES:
            raise DurationTooShortError(
                f"Appointment duration too short: {minutes} minutes. "
                f"Minimum is {MIN_DURATION_MINUTES} minutes.",
                details={"minutes": minutes},
            )
        if minutes > MAX_DURATION_MINUTES:
            raise DurationTooLongError(
                f"Appointment duration too long: {minutes} minutes. "
                f"Maximum is {MAX_DURATION_MINUTES} minutes.",
                details={"minutes": minutes},
            )
        if minutes % DURATION_INCREMENT_MINUTES != 0:
            raise DurationIncrementError(
                f"Appointment duration must be in {DURATION_INCREMENT_MINUTES}-minute "
                f"increments. Got: {minutes} minutes.",
                details={"minutes": minutes},
            )
        self._minutes = minutes

    @classmethod
    def standard(cls) -> "AppointmentDuration":
        return cls(60)

    @classmethod
    def consultation(cls) -> "AppointmentDuration":
        return cls(90)

    @classmethod
    def checkup(cls) -> "AppointmentDuration":
        return cls(30)

    @classmethod
    def follow_up(cls) -> "AppointmentDuration":
        return cls(30)

    @classmethod
    def for_appointment_type(
        cls, appointment_type: AppointmentType | str | None
    ) -> "AppointmentDuration":
        """Default duration per appointment type; unknown types get an hour."""

        factories = {
            AppointmentType.FIRST_CONSULT: cls.consultation,
            AppointmentType.CHECK_UP: cls.checkup,
            AppointmentType.FOLLOW_UP: cls.follow_up,
        }
        try:
            key = AppointmentType(appointment_type)
        except (TypeError, ValueError):
            return cls.standard()
        return factories.get(key, cls.standard)()

    @property
    def minutes(self) -> int:
        return self._minutes

    @property
    def hours(self) -> float:
        return self._minutes / 60

    def as_timedelta(self) -> timedelta:
        return timedelta(minutes=self._minutes)

    def calculate_end_time(self, start: datetime) -> datetime:
        return start + self.as_timedelta()

    def fits_in_operating_hours(self, start: datetime) -> bool:
        """Compare start and end hours against clinic hours.

        Only the hour component is checked: a 17:45 start with 30 minutes
        (ending 18:15) is accepted, an 18:00 start with 60 minutes is not.
        ``start`` must already be in clinic-local time.
        """

        end = self.calculate_end_time(start)
        return start.hour >= OPENING_HOUR and end.hour <= CLOSING_HOUR

    def allows_buffer_time(self) -> bool:
        return self._minutes <= 105

    def is_longer_than(self, other: "AppointmentDuration") -> bool:
        return self._minutes > other._minutes

    def add_minutes(self, extra: int) -> "AppointmentDuration":
        return AppointmentDuration(self._minutes + extra)

    def format_for_display(self) -> str:
        if self._minutes < 60:
            return f"{self._minutes} minutes"
        if self._minutes == 60:
            return "1 hour"
        hours, remainder = divmod(self._minutes, 60)
        if remainder == 0:
            return f"{hours} hours"
        return f"{hours} hour{'s' if hours > 1 else ''} {remainder} minutes"

    def format_for_api(self) -> str:
        hours, remainder = divmod(self._minutes, 60)
        return f"PT{hours}H{remainder}M"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AppointmentDuration):
            return NotImplemented
        return self._minutes == other._minutes

    def __lt__(self, other: "AppointmentDuration") -> bool:
        if not isinstance(other, AppointmentDuration):
            return NotImplemented
        return self._minutes < other._minutes

    def __hash__(self) -> int:
        return hash(("AppointmentDuration", self._minutes))

    def __int__(self) -> int:
        return self._minutes

    def __str__(self) -> str:
        return str(self._minutes)

    def __repr__(self) -> str:
        return f"AppointmentDuration({self._minutes})"


__all__ = [
    "AppointmentDuration",
    "CLOSING_HOUR",
    "EmailAddress",
    "OPENING_HOUR",
    "PhoneNumber",
]

"""Time-of-day slot grid.

Labels are displayed in 12-hour form (``"08:00 AM"``) but every comparison
goes through minutes since midnight so ``"8:00 am"``, ``"08:00"`` and
``"08:00 AM"`` all refer to the same slot.
"""

import re
from datetime import time
from typing import TYPE_CHECKING, Union

from sro_appointments.scheduling.errors import ValidationError

if TYPE_CHECKING:
    from sro_appointments.scheduling.models import AppointmentSettings

TimeLike = Union[str, int, time]

MINUTES_PER_DAY = 24 * 60

_TIME_RE = re.compile(
    r"^\s*(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::\d{2})?\s*(?P<meridiem>[AaPp][Mm])?\s*$"
)


def parse_time(value: TimeLike) -> int:
    """Return minutes since midnight for a 24h, 12h or ``time`` value."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid time: {value!r}")
    if isinstance(value, int):
        if not 0 <= value < MINUTES_PER_DAY:
            raise ValidationError(f"Minute offset out of range: {value}")
        return value
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    if not isinstance(value, str):
        raise ValidationError(f"Invalid time: {value!r}")

    m = _TIME_RE.match(value)
    if not m:
        raise ValidationError(f"Invalid time: {value!r}")

    hour = int(m.group("hour"))
    minute = int(m.group("minute"))
    meridiem = m.group("meridiem")
    if minute > 59:
        raise ValidationError(f"Invalid time: {value!r}")

    if meridiem:
        if not 1 <= hour <= 12:
            raise ValidationError(f"Invalid 12-hour time: {value!r}")
        hour = hour % 12
        if meridiem.upper() == "PM":
            hour += 12
    elif hour > 23:
        raise ValidationError(f"Invalid time: {value!r}")

    return hour * 60 + minute


def format_label(minutes: int) -> str:
    """Render minutes since midnight as a display label, e.g. ``03:30 PM``."""
    hour, minute = divmod(minutes, 60)
    meridiem = "AM" if hour < 12 else "PM"
    display_hour = hour % 12 or 12
    return f"{display_hour:02d}:{minute:02d} {meridiem}"


def to_24h(minutes: int) -> str:
    """Canonical storage form, e.g. ``15:30``."""
    hour, minute = divmod(minutes, 60)
    return f"{hour:02d}:{minute:02d}"


def normalize_label(value: TimeLike) -> str:
    return format_label(parse_time(value))


def generate_slot_minutes(
    start_time: TimeLike,
    end_time: TimeLike,
    interval_minutes: int,
) -> list[int]:
    """Minute offsets of every slot that begins before *end_time*."""
    start = parse_time(start_time)
    end = parse_time(end_time)
    if start >= end:
        raise ValidationError(
            "Start time must be before end time",
            start_time=to_24h(start),
            end_time=to_24h(end),
        )
    if interval_minutes <= 0:
        raise ValidationError(
            "Interval must be a positive number of minutes",
            interval_minutes=interval_minutes,
        )
    return list(range(start, end, interval_minutes))


def generate_slots(
    start_time: TimeLike,
    end_time: TimeLike,
    interval_minutes: int,
) -> list[str]:
    """Generate the ordered time labels for a working day.

    A slot that begins at or after *end_time* is excluded even if part of it
    would fit.

    >>> generate_slots("08:00", "09:30", 30)
    ['08:00 AM', '08:30 AM', '09:00 AM']
    """
    return [format_label(m) for m in generate_slot_minutes(start_time, end_time, interval_minutes)]


def generate_slots_for(settings: "AppointmentSettings") -> list[str]:
    return generate_slots(settings.start_time, settings.end_time, settings.interval_minutes)

"""Calendar-date booking policy.

A date is bookable when it is in the future (never today), falls inside the
rolling business-day advance window, lands on an admin-allowed weekday, and is
not an admin-blocked date. Rules are checked in that order and the first one
that fails is reported.

The advance window counts business days (Monday-Friday) regardless of
``allowed_weekdays``; the allowed weekdays are applied afterwards as a second
filter, so a date can fail either check on its own.
"""

from collections.abc import Iterable
from datetime import date, timedelta
from typing import Optional

from sro_appointments.scheduling.models import AppointmentSettings, DateRejection


def sunday_based_weekday(day: date) -> int:
    """Weekday number with 0=Sunday..6=Saturday."""
    return (day.weekday() + 1) % 7


def is_business_day(day: date) -> bool:
    return day.weekday() < 5


def max_booking_date(today: date, advance_business_days: int) -> date:
    """Last date inside the advance window.

    Walks forward from *today* one day at a time, counting only weekdays,
    until *advance_business_days* business days have been counted.
    """
    current = today
    counted = 0
    while counted < advance_business_days:
        current += timedelta(days=1)
        if is_business_day(current):
            counted += 1
    return current


def date_rejection_reason(
    day: date,
    today: date,
    settings: AppointmentSettings,
    blocked_dates: Iterable[date],
) -> Optional[DateRejection]:
    """Return the first rule *day* fails, or ``None`` if it is bookable."""
    if day < today:
        return DateRejection.PAST
    if day == today:
        return DateRejection.SAME_DAY

    tomorrow = today + timedelta(days=1)
    if not tomorrow <= day <= max_booking_date(today, settings.advance_business_days):
        return DateRejection.OUTSIDE_WINDOW

    if sunday_based_weekday(day) not in settings.allowed_weekdays:
        return DateRejection.WEEKDAY_NOT_ALLOWED

    if day in set(blocked_dates):
        return DateRejection.BLOCKED_DATE

    return None


def is_date_bookable(
    day: date,
    today: date,
    settings: AppointmentSettings,
    blocked_dates: Iterable[date],
) -> bool:
    return date_rejection_reason(day, today, settings, blocked_dates) is None


def bookable_dates(
    today: date,
    settings: AppointmentSettings,
    blocked_dates: Iterable[date],
) -> list[date]:
    """Every bookable date between tomorrow and the end of the window."""
    blocked = set(blocked_dates)
    last = max_booking_date(today, settings.advance_business_days)
    days: list[date] = []
    current = today + timedelta(days=1)
    while current <= last:
        if date_rejection_reason(current, today, settings, blocked) is None:
            days.append(current)
        current += timedelta(days=1)
    return days

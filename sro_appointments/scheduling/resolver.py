"""Resolve which time slots are still bookable on a given date."""

from collections.abc import Iterable
from datetime import date
from typing import Optional

from sro_appointments.scheduling.models import (
    Appointment,
    AppointmentSettings,
    AppointmentStatus,
    BlockedSlot,
    DayAvailability,
)
from sro_appointments.scheduling.policy import date_rejection_reason
from sro_appointments.scheduling.slots import format_label, generate_slot_minutes, parse_time


def blocked_dates_of(blocked_slots: Iterable[BlockedSlot]) -> set[date]:
    return {b.block_date for b in blocked_slots if b.block_date is not None}


def blocked_minutes_of(blocked_slots: Iterable[BlockedSlot]) -> set[int]:
    return {parse_time(b.block_time) for b in blocked_slots if b.block_time is not None}


def occupied_times(
    day: date,
    appointments: Iterable[Appointment],
    exclude_id: Optional[str] = None,
) -> set[int]:
    """Minutes held on *day* by non-terminal appointments.

    An appointment waiting on a reschedule decision holds both its current
    slot and the slot it asked for.
    """
    taken: set[int] = set()
    for appt in appointments:
        if appt.is_terminal or appt.id == exclude_id:
            continue
        if appt.date == day:
            taken.add(appt.time_minutes)
        if (
            appt.status == AppointmentStatus.RESCHEDULE_PENDING
            and appt.requested_date == day
            and appt.requested_time is not None
        ):
            taken.add(parse_time(appt.requested_time))
    return taken


def count_on(day: date, appointments: Iterable[Appointment], exclude_id: Optional[str] = None) -> int:
    """Non-terminal appointments whose booked date is *day*."""
    return sum(
        1 for a in appointments
        if a.date == day and not a.is_terminal and a.id != exclude_id
    )


def available_slots(
    day: date,
    today: date,
    settings: AppointmentSettings,
    blocked_slots: Iterable[BlockedSlot],
    appointments: Iterable[Appointment],
    exclude_id: Optional[str] = None,
) -> list[str]:
    """Time labels still bookable on *day*, in chronological order.

    An empty list is a normal answer meaning the date is fully booked,
    blocked, or not bookable at all.
    """
    blocked_slots = list(blocked_slots)
    if date_rejection_reason(day, today, settings, blocked_dates_of(blocked_slots)) is not None:
        return []

    grid = generate_slot_minutes(settings.start_time, settings.end_time, settings.interval_minutes)
    unavailable = blocked_minutes_of(blocked_slots) | occupied_times(day, appointments, exclude_id)
    return [format_label(m) for m in grid if m not in unavailable]


def day_availability(
    day: date,
    today: date,
    settings: AppointmentSettings,
    blocked_slots: Iterable[BlockedSlot],
    appointments: Iterable[Appointment],
) -> DayAvailability:
    """Full picture for one date: open, booked and blocked slots plus cap state."""
    blocked_slots = list(blocked_slots)
    appointments = list(appointments)

    rejection = date_rejection_reason(day, today, settings, blocked_dates_of(blocked_slots))
    cap = settings.max_appointments_per_day
    cap_reached = cap is not None and count_on(day, appointments) >= cap

    return DayAvailability(
        date=day,
        available_slots=available_slots(day, today, settings, blocked_slots, appointments),
        booked_slots=[format_label(m) for m in sorted(occupied_times(day, appointments))],
        blocked_times=[format_label(m) for m in sorted(blocked_minutes_of(blocked_slots))],
        daily_cap_reached=cap_reached,
        rejection=rejection,
    )

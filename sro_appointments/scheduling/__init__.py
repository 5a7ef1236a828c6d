"""Appointment slot allocation and lifecycle for SRO Appointments."""

from sro_appointments.scheduling.admin import ScheduleAdmin
from sro_appointments.scheduling.booking import BookingService
from sro_appointments.scheduling.lifecycle import AppointmentLifecycle, LifecycleAction, Transition
from sro_appointments.scheduling.models import (
    Appointment,
    AppointmentDetails,
    AppointmentFilters,
    AppointmentSettings,
    AppointmentStatus,
    BlockedSlot,
    DateRejection,
    DayAvailability,
    MeetingMode,
    StatusChangeEvent,
)
from sro_appointments.scheduling.notifier import (
    LoggingNotifier,
    NotificationDispatcher,
    Notifier,
)
from sro_appointments.scheduling.policy import bookable_dates, is_date_bookable, max_booking_date
from sro_appointments.scheduling.resolver import available_slots, day_availability
from sro_appointments.scheduling.slots import generate_slots

__all__ = [
    "Appointment",
    "AppointmentDetails",
    "AppointmentFilters",
    "AppointmentLifecycle",
    "AppointmentSettings",
    "AppointmentStatus",
    "BlockedSlot",
    "BookingService",
    "DateRejection",
    "DayAvailability",
    "LifecycleAction",
    "LoggingNotifier",
    "MeetingMode",
    "NotificationDispatcher",
    "Notifier",
    "ScheduleAdmin",
    "StatusChangeEvent",
    "Transition",
    "available_slots",
    "bookable_dates",
    "day_availability",
    "generate_slots",
    "is_date_bookable",
    "max_booking_date",
]

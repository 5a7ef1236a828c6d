"""Booking orchestration: validate, persist, drive the lifecycle, notify."""

import logging
import uuid
from collections.abc import Callable
from datetime import date
from typing import Optional

from sro_appointments.scheduling import errors
from sro_appointments.scheduling.lifecycle import AppointmentLifecycle, LifecycleAction
from sro_appointments.scheduling.models import (
    Appointment,
    AppointmentDetails,
    AppointmentFilters,
    AppointmentSettings,
    AppointmentStatus,
    DayAvailability,
    StatusChangeEvent,
)
from sro_appointments.scheduling.notifier import LoggingNotifier, NotificationDispatcher
from sro_appointments.scheduling.policy import bookable_dates, date_rejection_reason
from sro_appointments.scheduling.resolver import (
    blocked_dates_of,
    blocked_minutes_of,
    count_on,
    day_availability,
    occupied_times,
)
from sro_appointments.scheduling.slots import TimeLike, format_label, generate_slot_minutes, parse_time
from sro_appointments.scheduling.stores import (
    AppointmentStore,
    BlockedSlotProvider,
    SettingsProvider,
    SlotConflictError,
)

logger = logging.getLogger(__name__)


class BookingService:
    """Single booking authority for the office calendar.

    The availability check before a write is a fast path only; the store's
    uniqueness constraint on live (date, time) pairs is what actually prevents
    double booking, and a violation comes back as ``SlotTaken``.
    """

    def __init__(
        self,
        settings_provider: SettingsProvider,
        blocked_slots: BlockedSlotProvider,
        appointments: AppointmentStore,
        dispatcher: Optional[NotificationDispatcher] = None,
        lifecycle: Optional[AppointmentLifecycle] = None,
        clock: Callable[[], date] = date.today,
    ):
        self.settings_provider = settings_provider
        self.blocked_slots = blocked_slots
        self.appointments = appointments
        self.dispatcher = dispatcher or NotificationDispatcher(LoggingNotifier())
        self.lifecycle = lifecycle or AppointmentLifecycle()
        self.clock = clock

    # ------------------------------------------------------------------
    # Availability queries
    # ------------------------------------------------------------------

    async def availability(self, day: date) -> DayAvailability:
        settings = await self.settings_provider.get_settings()
        blocked = await self.blocked_slots.list_blocked()
        appts = await self.appointments.find_non_terminal_on(day)
        return day_availability(day, self.clock(), settings, blocked, appts)

    async def bookable_dates(self) -> list[date]:
        settings = await self.settings_provider.get_settings()
        blocked_dates = await self.blocked_slots.list_blocked_dates()
        return bookable_dates(self.clock(), settings, blocked_dates)

    async def _ensure_slot_open(
        self,
        day: date,
        minutes: int,
        exclude_id: Optional[str] = None,
    ) -> AppointmentSettings:
        """Raise ``SlotUnavailable`` unless (*day*, *minutes*) is currently offered."""
        settings = await self.settings_provider.get_settings()
        blocked = await self.blocked_slots.list_blocked()
        appts = await self.appointments.find_non_terminal_on(day)
        label = format_label(minutes)

        rejection = date_rejection_reason(day, self.clock(), settings, blocked_dates_of(blocked))
        if rejection is not None:
            raise errors.SlotUnavailable(
                f"{day.isoformat()} is not open for booking",
                date=day.isoformat(),
                reason=rejection.value,
            )
        if minutes not in generate_slot_minutes(
            settings.start_time, settings.end_time, settings.interval_minutes
        ):
            raise errors.SlotUnavailable(
                f"{label} is not a consultation slot",
                date=day.isoformat(),
                time=label,
                reason="outside_hours",
            )
        if minutes in blocked_minutes_of(blocked):
            raise errors.SlotUnavailable(
                f"{label} is blocked",
                date=day.isoformat(),
                time=label,
                reason="blocked_time",
            )
        if minutes in occupied_times(day, appts, exclude_id=exclude_id):
            raise errors.SlotUnavailable(
                f"{label} on {day.isoformat()} is already booked",
                date=day.isoformat(),
                time=label,
                reason="booked",
            )
        return settings

    async def _check_write(
        self,
        day: date,
        minutes: int,
        settings: AppointmentSettings,
        exclude_id: Optional[str] = None,
    ) -> None:
        """Last check before writing: fresh conflict lookup plus the daily cap."""
        latest = await self.appointments.find_non_terminal_on(day)
        if minutes in occupied_times(day, latest, exclude_id=exclude_id):
            raise errors.SlotTaken(
                "This time slot is already booked",
                date=day.isoformat(),
                time=format_label(minutes),
            )
        cap = settings.max_appointments_per_day
        if cap is not None and count_on(day, latest, exclude_id=exclude_id) >= cap:
            raise errors.DailyCapReached(
                "Maximum number of appointments for this day has been reached",
                date=day.isoformat(),
                max_appointments_per_day=cap,
            )

    # ------------------------------------------------------------------
    # Booking
    # ------------------------------------------------------------------

    async def propose_booking(
        self,
        account_id: str,
        day: date,
        time: TimeLike,
        details: AppointmentDetails,
    ) -> Appointment:
        """Book (*day*, *time*) for *account_id* in ``scheduled`` state.

        Raises:
            ValidationError: *time* is malformed.
            SlotUnavailable: The date or time is not currently offered.
            SlotTaken: Another live appointment got the slot first.
            DailyCapReached: The day already has its maximum bookings.
        """
        minutes = parse_time(time)
        settings = await self._ensure_slot_open(day, minutes)
        await self._check_write(day, minutes, settings)

        appointment = Appointment(
            id=str(uuid.uuid4()),
            account_id=account_id,
            date=day,
            time=format_label(minutes),
            reason=details.reason,
            notes=details.notes,
            meeting_mode=details.meeting_mode,
            contact_number=details.contact_number,
            email=details.email,
            status=AppointmentStatus.SCHEDULED,
        )
        try:
            saved = await self.appointments.insert(appointment)
        except SlotConflictError as e:
            raise errors.SlotTaken(
                "This time slot is already booked",
                date=day.isoformat(),
                time=appointment.time,
            ) from e

        logger.info(f"Booked {saved.id} for account {account_id} on {day.isoformat()} {saved.time}")
        self.dispatcher.dispatch(
            StatusChangeEvent(
                appointment_id=saved.id,
                previous_status=None,
                new_status=saved.status,
                recipient_email=saved.email,
                action="book",
            )
        )
        return saved

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get_appointment(self, appointment_id: str) -> Appointment:
        appt = await self.appointments.get(appointment_id)
        if appt is None:
            raise errors.NotFound("Appointment not found", appointment_id=appointment_id)
        return appt

    async def list_appointments(self, filters: Optional[AppointmentFilters] = None) -> list[Appointment]:
        return await self.appointments.list_appointments(filters)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def _transition(
        self,
        appointment: Appointment,
        action: LifecycleAction,
        **payload,
    ) -> Appointment:
        transition = self.lifecycle.apply(appointment, action, **payload)
        try:
            updated = await self.appointments.update(appointment.id, transition.patch)
        except SlotConflictError as e:
            raise errors.SlotTaken(
                "The requested time slot was booked by someone else",
                appointment_id=appointment.id,
            ) from e
        if updated is None:
            raise errors.NotFound("Appointment not found", appointment_id=appointment.id)

        logger.info(
            f"Appointment {appointment.id}: {transition.previous_status.value} -> "
            f"{transition.new_status.value} ({action.value})"
        )
        self.dispatcher.dispatch(transition.event)
        return updated

    async def confirm(self, appointment_id: str, admin_notes: Optional[str] = None) -> Appointment:
        appt = await self.get_appointment(appointment_id)
        return await self._transition(appt, LifecycleAction.CONFIRM, admin_notes=admin_notes)

    async def reject(self, appointment_id: str, admin_notes: Optional[str] = None) -> Appointment:
        appt = await self.get_appointment(appointment_id)
        return await self._transition(appt, LifecycleAction.REJECT, admin_notes=admin_notes)

    async def complete(self, appointment_id: str, admin_notes: Optional[str] = None) -> Appointment:
        appt = await self.get_appointment(appointment_id)
        return await self._transition(appt, LifecycleAction.COMPLETE, admin_notes=admin_notes)

    async def mark_no_show(self, appointment_id: str, admin_notes: Optional[str] = None) -> Appointment:
        appt = await self.get_appointment(appointment_id)
        return await self._transition(appt, LifecycleAction.MARK_NO_SHOW, admin_notes=admin_notes)

    async def request_reschedule(
        self,
        appointment_id: str,
        new_date: date,
        new_time: TimeLike,
        reason: Optional[str] = None,
    ) -> Appointment:
        """Ask to move a confirmed appointment; the new slot is validated like a fresh booking."""
        minutes = parse_time(new_time)
        appt = await self.get_appointment(appointment_id)
        self.lifecycle.check(appt, LifecycleAction.REQUEST_RESCHEDULE)

        settings = await self._ensure_slot_open(new_date, minutes)
        await self._check_write(new_date, minutes, settings, exclude_id=appt.id)

        return await self._transition(
            appt,
            LifecycleAction.REQUEST_RESCHEDULE,
            requested_date=new_date,
            requested_time=minutes,
            reason=reason,
        )

    async def decide_reschedule(
        self,
        appointment_id: str,
        approved: bool,
        admin_notes: Optional[str] = None,
    ) -> Appointment:
        """Approve or decline a pending reschedule.

        Approval re-checks the requested slot and the daily cap for its day.
        """
        appt = await self.get_appointment(appointment_id)
        action = LifecycleAction.APPROVE_RESCHEDULE if approved else LifecycleAction.DECLINE_RESCHEDULE
        self.lifecycle.check(appt, action)
        if approved:
            settings = await self.settings_provider.get_settings()
            await self._check_write(
                appt.requested_date,
                parse_time(appt.requested_time),
                settings,
                exclude_id=appt.id,
            )
        return await self._transition(appt, action, admin_notes=admin_notes)

    async def request_cancellation(self, appointment_id: str, reason: str) -> Appointment:
        appt = await self.get_appointment(appointment_id)
        return await self._transition(appt, LifecycleAction.REQUEST_CANCELLATION, reason=reason)

    async def decide_cancellation(
        self,
        appointment_id: str,
        approved: bool,
        admin_notes: Optional[str] = None,
    ) -> Appointment:
        appt = await self.get_appointment(appointment_id)
        action = LifecycleAction.APPROVE_CANCELLATION if approved else LifecycleAction.DECLINE_CANCELLATION
        return await self._transition(appt, action, admin_notes=admin_notes)

"""BookingService tests against the SQLite-backed repositories."""

from datetime import date

import pytest

from sro_appointments.core.repository import (
    AppointmentRepository,
    BlockedSlotRepository,
    SettingsRepository,
)
from sro_appointments.scheduling import errors
from sro_appointments.scheduling.booking import BookingService
from sro_appointments.scheduling.models import (
    AppointmentFilters,
    AppointmentSettings,
    AppointmentStatus,
    BlockedSlot,
)
from sro_appointments.scheduling.notifier import NotificationDispatcher
from tests.conftest import MONDAY, TUESDAY, WEDNESDAY, RecordingNotifier

S = AppointmentStatus


class StaleAppointmentRepository(AppointmentRepository):
    """Simulates a concurrent writer: availability reads never see other bookings."""

    async def find_non_terminal_on(self, day: date):
        return []


async def _book_confirmed(service, details, day=TUESDAY, time="08:00 AM"):
    appt = await service.propose_booking("stu-1", day, time, details)
    return await service.confirm(appt.id)


# ------------------------------------------------------------- booking

class TestProposeBooking:
    async def test_office_hours_scenario(self, service, details):
        before = await service.availability(TUESDAY)
        assert len(before.available_slots) == 16
        assert before.available_slots[0] == "08:00 AM"
        assert before.available_slots[-1] == "03:30 PM"

        appt = await service.propose_booking("stu-1", TUESDAY, "08:00 AM", details)
        assert appt.status == S.SCHEDULED
        assert appt.time == "08:00 AM"

        after = await service.availability(TUESDAY)
        assert len(after.available_slots) == 15
        assert "08:00 AM" not in after.available_slots
        assert after.booked_slots == ["08:00 AM"]

    async def test_time_formats_normalized(self, service, details):
        appt = await service.propose_booking("stu-1", TUESDAY, "1:30 pm", details)
        assert appt.time == "01:30 PM"

    async def test_double_booking_never_succeeds(self, service, details):
        await _book_confirmed(service, details)
        with pytest.raises((errors.SlotUnavailable, errors.SlotTaken)):
            await service.propose_booking("stu-2", TUESDAY, "8:00", details)

    async def test_storage_constraint_surfaces_as_slot_taken(self, session, dispatcher, details):
        stale = BookingService(
            SettingsRepository(session),
            BlockedSlotRepository(session),
            StaleAppointmentRepository(session),
            dispatcher=dispatcher,
            clock=lambda: MONDAY,
        )
        await stale.propose_booking("stu-1", TUESDAY, "08:00 AM", details)
        await session.commit()

        with pytest.raises(errors.SlotTaken):
            await stale.propose_booking("stu-2", TUESDAY, "08:00 AM", details)

    @pytest.mark.parametrize(
        "day,reason",
        [
            (MONDAY, "same_day"),
            (date(2026, 3, 1), "past"),
            (date(2026, 3, 7), "weekday_not_allowed"),
            (date(2026, 4, 1), "outside_window"),
        ],
    )
    async def test_unbookable_dates(self, service, details, day, reason):
        with pytest.raises(errors.SlotUnavailable) as exc_info:
            await service.propose_booking("stu-1", day, "08:00 AM", details)
        assert exc_info.value.details["reason"] == reason

    @pytest.mark.parametrize("time", ["05:00 PM", "04:00 PM", "08:15 AM"])
    async def test_off_grid_times(self, service, details, time):
        with pytest.raises(errors.SlotUnavailable) as exc_info:
            await service.propose_booking("stu-1", TUESDAY, time, details)
        assert exc_info.value.details["reason"] == "outside_hours"

    async def test_blocked_time(self, service, session, details):
        await BlockedSlotRepository(session).add_blocked(BlockedSlot(block_time="12:00 PM", reason="Lunch"))
        with pytest.raises(errors.SlotUnavailable) as exc_info:
            await service.propose_booking("stu-1", WEDNESDAY, "12:00 PM", details)
        assert exc_info.value.details["reason"] == "blocked_time"

    async def test_blocked_date(self, service, session, details):
        await BlockedSlotRepository(session).add_blocked(BlockedSlot(block_date=TUESDAY))
        with pytest.raises(errors.SlotUnavailable) as exc_info:
            await service.propose_booking("stu-1", TUESDAY, "08:00 AM", details)
        assert exc_info.value.details["reason"] == "blocked_date"

    async def test_malformed_time(self, service, details):
        with pytest.raises(errors.ValidationError):
            await service.propose_booking("stu-1", TUESDAY, "noon", details)

    async def test_daily_cap(self, service, session, details):
        await SettingsRepository(session).save_settings(AppointmentSettings(max_appointments_per_day=1))
        first = await service.propose_booking("stu-1", TUESDAY, "08:00 AM", details)

        with pytest.raises(errors.DailyCapReached):
            await service.propose_booking("stu-2", TUESDAY, "09:00 AM", details)

        # Rejected appointments no longer count toward the cap.
        await service.reject(first.id)
        appt = await service.propose_booking("stu-2", TUESDAY, "09:00 AM", details)
        assert appt.status == S.SCHEDULED

    async def test_booking_emits_event(self, service, dispatcher, notifier, details):
        appt = await service.propose_booking("stu-1", TUESDAY, "08:00 AM", details)
        await dispatcher.drain()

        assert len(notifier.events) == 1
        event = notifier.events[0]
        assert event.appointment_id == appt.id
        assert event.previous_status is None
        assert event.new_status == S.SCHEDULED
        assert event.action == "book"

    async def test_notification_failure_does_not_fail_booking(self, session, details):
        broken = RecordingNotifier(fail_times=100, error=RuntimeError)
        dispatcher = NotificationDispatcher(broken, timeout_seconds=1.0, max_attempts=2)
        service = BookingService(
            SettingsRepository(session),
            BlockedSlotRepository(session),
            AppointmentRepository(session),
            dispatcher=dispatcher,
            clock=lambda: MONDAY,
        )
        appt = await service.propose_booking("stu-1", TUESDAY, "08:00 AM", details)
        await dispatcher.drain()

        assert appt.status == S.SCHEDULED
        assert broken.events == []
        assert (await service.get_appointment(appt.id)).status == S.SCHEDULED


# ------------------------------------------------------------- lookups

class TestLookups:
    async def test_unknown_id(self, service):
        with pytest.raises(errors.NotFound):
            await service.get_appointment("11111111-1111-1111-1111-111111111111")
        with pytest.raises(errors.NotFound):
            await service.get_appointment("not-a-uuid")

    async def test_list_filters(self, service, details):
        a = await service.propose_booking("stu-1", TUESDAY, "09:00 AM", details)
        await service.propose_booking("stu-2", TUESDAY, "08:00 AM", details)
        await service.propose_booking("stu-1", WEDNESDAY, "08:00 AM", details)
        await service.confirm(a.id)

        everything = await service.list_appointments()
        assert [(x.date, x.time) for x in everything] == [
            (TUESDAY, "08:00 AM"),
            (TUESDAY, "09:00 AM"),
            (WEDNESDAY, "08:00 AM"),
        ]
        assert len(await service.list_appointments(AppointmentFilters(account_id="stu-1"))) == 2
        assert len(await service.list_appointments(AppointmentFilters(on_date=TUESDAY))) == 2
        confirmed = await service.list_appointments(AppointmentFilters(status=S.CONFIRMED))
        assert [x.id for x in confirmed] == [a.id]


# ------------------------------------------------------------- lifecycle

class TestDecisions:
    async def test_confirm_and_notes(self, service, dispatcher, notifier, details):
        appt = await service.propose_booking("stu-1", TUESDAY, "08:00 AM", details)
        confirmed = await service.confirm(appt.id, admin_notes="Bring your school ID")
        await dispatcher.drain()

        assert confirmed.status == S.CONFIRMED
        assert confirmed.admin_notes == "Bring your school ID"
        assert [e.new_status for e in notifier.events] == [S.SCHEDULED, S.CONFIRMED]

    async def test_invalid_transition(self, service, details):
        appt = await _book_confirmed(service, details)
        with pytest.raises(errors.InvalidState):
            await service.reject(appt.id)

    async def test_complete_and_no_show(self, service, details):
        a = await service.propose_booking("stu-1", TUESDAY, "08:00 AM", details)
        b = await _book_confirmed(service, details, time="09:00 AM")
        assert (await service.complete(a.id)).status == S.COMPLETED
        assert (await service.mark_no_show(b.id)).status == S.NO_SHOW

        availability = await service.availability(TUESDAY)
        assert "08:00 AM" in availability.available_slots
        assert "09:00 AM" in availability.available_slots


class TestReschedule:
    async def test_approved_round_trip(self, service, details):
        appt = await _book_confirmed(service, details)
        pending = await service.request_reschedule(appt.id, WEDNESDAY, "10:00", reason="Exam conflict")

        assert pending.status == S.RESCHEDULE_PENDING
        assert pending.requested_date == WEDNESDAY
        assert pending.requested_time == "10:00 AM"
        assert "10:00 AM" not in (await service.availability(WEDNESDAY)).available_slots

        moved = await service.decide_reschedule(appt.id, approved=True, admin_notes="See you then")
        assert moved.status == S.CONFIRMED
        assert (moved.date, moved.time) == (WEDNESDAY, "10:00 AM")
        assert moved.requested_date is None
        assert moved.requested_time is None
        assert moved.reschedule_reason is None
        assert moved.admin_notes == "See you then"
        assert "08:00 AM" in (await service.availability(TUESDAY)).available_slots

    async def test_declined_round_trip(self, service, details):
        appt = await _book_confirmed(service, details)
        await service.request_reschedule(appt.id, WEDNESDAY, "10:00 AM")

        kept = await service.decide_reschedule(appt.id, approved=False)
        assert kept.status == S.CONFIRMED
        assert (kept.date, kept.time) == (TUESDAY, "08:00 AM")
        assert kept.requested_date is None
        assert kept.requested_time is None
        assert "10:00 AM" in (await service.availability(WEDNESDAY)).available_slots

    async def test_target_slot_validated_like_a_booking(self, service, details):
        appt = await _book_confirmed(service, details)
        await service.propose_booking("stu-2", WEDNESDAY, "10:00 AM", details)

        with pytest.raises(errors.SlotUnavailable):
            await service.request_reschedule(appt.id, WEDNESDAY, "10:00 AM")
        with pytest.raises(errors.SlotUnavailable):
            await service.request_reschedule(appt.id, MONDAY, "10:00 AM")

    async def test_requires_confirmed(self, service, details):
        appt = await service.propose_booking("stu-1", TUESDAY, "08:00 AM", details)
        with pytest.raises(errors.InvalidState):
            await service.request_reschedule(appt.id, WEDNESDAY, "10:00 AM")

    async def test_decision_without_request(self, service, details):
        appt = await _book_confirmed(service, details)
        with pytest.raises(errors.InvalidState):
            await service.decide_reschedule(appt.id, approved=True)

    async def test_approval_respects_daily_cap(self, service, session, details):
        await SettingsRepository(session).save_settings(AppointmentSettings(max_appointments_per_day=1))
        appt = await _book_confirmed(service, details)
        await service.request_reschedule(appt.id, WEDNESDAY, "10:00 AM")
        await service.propose_booking("stu-2", WEDNESDAY, "09:00 AM", details)

        with pytest.raises(errors.DailyCapReached):
            await service.decide_reschedule(appt.id, approved=True)

        still = await service.get_appointment(appt.id)
        assert still.status == S.RESCHEDULE_PENDING
        assert (still.date, still.time) == (TUESDAY, "08:00 AM")
        live = await service.list_appointments(AppointmentFilters(on_date=WEDNESDAY))
        assert len([a for a in live if not a.is_terminal]) == 1

        kept = await service.decide_reschedule(appt.id, approved=False)
        assert kept.status == S.CONFIRMED

    async def test_same_day_move_under_cap(self, service, session, details):
        await SettingsRepository(session).save_settings(AppointmentSettings(max_appointments_per_day=1))
        appt = await _book_confirmed(service, details)
        await service.request_reschedule(appt.id, TUESDAY, "02:00 PM")

        moved = await service.decide_reschedule(appt.id, approved=True)
        assert (moved.date, moved.time) == (TUESDAY, "02:00 PM")

    async def test_malformed_time_checked_before_lookup(self, service):
        with pytest.raises(errors.ValidationError):
            await service.request_reschedule("11111111-1111-1111-1111-111111111111", WEDNESDAY, "noon")


class TestCancellation:
    async def test_approved(self, service, details):
        appt = await _book_confirmed(service, details)
        pending = await service.request_cancellation(appt.id, reason="Family emergency")
        assert pending.status == S.CANCELLATION_PENDING
        assert pending.cancellation_reason == "Family emergency"

        cancelled = await service.decide_cancellation(appt.id, approved=True)
        assert cancelled.status == S.CANCELLED
        assert cancelled.cancellation_reason == "Family emergency"
        assert "08:00 AM" in (await service.availability(TUESDAY)).available_slots

    async def test_declined(self, service, details):
        appt = await _book_confirmed(service, details)
        await service.request_cancellation(appt.id, reason="Family emergency")

        kept = await service.decide_cancellation(appt.id, approved=False)
        assert kept.status == S.CONFIRMED
        assert kept.cancellation_reason is None

    async def test_reason_required(self, service, details):
        appt = await _book_confirmed(service, details)
        with pytest.raises(errors.ValidationError):
            await service.request_cancellation(appt.id, reason=" ")

    async def test_slot_rebookable_after_cancellation(self, service, details):
        appt = await _book_confirmed(service, details)
        await service.request_cancellation(appt.id, reason="Sick")
        await service.decide_cancellation(appt.id, approved=True)

        again = await service.propose_booking("stu-2", TUESDAY, "08:00 AM", details)
        assert again.status == S.SCHEDULED

"""Tests for settings and blocked-slot administration."""

import pytest

from sro_appointments.core.repository import BlockedSlotRepository, SettingsRepository
from sro_appointments.scheduling import errors
from sro_appointments.scheduling.admin import ScheduleAdmin
from sro_appointments.scheduling.models import AppointmentSettings
from tests.conftest import MONDAY, TUESDAY


@pytest.fixture
def admin(session):
    return ScheduleAdmin(SettingsRepository(session), BlockedSlotRepository(session))


async def test_defaults_until_saved(admin):
    settings = await admin.get_settings()
    assert settings == AppointmentSettings()


async def test_saved_settings_apply_to_next_resolution(admin, service):
    await admin.save_settings(AppointmentSettings(start_time="09:00", end_time="11:00", interval_minutes=60))
    availability = await service.availability(TUESDAY)
    assert availability.available_slots == ["09:00 AM", "10:00 AM"]


async def test_block_time_normalized(admin):
    slot = await admin.add_blocked(block_time="1:00 pm", reason="Staff meeting")
    assert slot.id is not None
    assert slot.block_time == "01:00 PM"
    assert slot.block_date is None


@pytest.mark.parametrize("kwargs", [{}, {"block_date": TUESDAY, "block_time": "08:00"}])
async def test_exactly_one_of_date_or_time(admin, kwargs):
    with pytest.raises(errors.ValidationError):
        await admin.add_blocked(**kwargs)


async def test_bad_block_time(admin):
    with pytest.raises(errors.ValidationError):
        await admin.add_blocked(block_time="lunch")


async def test_remove(admin):
    slot = await admin.add_blocked(block_date=TUESDAY)
    await admin.remove_blocked(slot.id)
    assert await admin.list_blocked() == []

    with pytest.raises(errors.NotFound):
        await admin.remove_blocked(slot.id)


async def test_blocked_date_removes_it_from_bookable_dates(admin, service):
    before = await service.bookable_dates()
    await admin.add_blocked(block_date=TUESDAY, reason="Foundation day")
    after = await service.bookable_dates()

    assert TUESDAY in before
    assert TUESDAY not in after
    assert len(after) == len(before) - 1
    assert MONDAY not in after

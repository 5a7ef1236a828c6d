"""Admin-side management of working hours and blocked slots."""

import logging
from datetime import date
from typing import Optional

from sro_appointments.scheduling import errors
from sro_appointments.scheduling.models import AppointmentSettings, BlockedSlot
from sro_appointments.scheduling.slots import TimeLike, normalize_label
from sro_appointments.scheduling.stores import BlockedSlotProvider, SettingsProvider

logger = logging.getLogger(__name__)


class ScheduleAdmin:
    """Settings and block management; changes apply to the next resolution."""

    def __init__(self, settings_provider: SettingsProvider, blocked_slots: BlockedSlotProvider):
        self.settings_provider = settings_provider
        self.blocked_slots = blocked_slots

    async def get_settings(self) -> AppointmentSettings:
        return await self.settings_provider.get_settings()

    async def save_settings(self, settings: AppointmentSettings) -> AppointmentSettings:
        saved = await self.settings_provider.save_settings(settings)
        logger.info(
            f"Appointment settings saved: {saved.start_time}-{saved.end_time} "
            f"every {saved.interval_minutes}min, window={saved.advance_business_days} business days"
        )
        return saved

    async def list_blocked(self) -> list[BlockedSlot]:
        return await self.blocked_slots.list_blocked()

    async def add_blocked(
        self,
        block_date: Optional[date] = None,
        block_time: Optional[TimeLike] = None,
        reason: Optional[str] = None,
    ) -> BlockedSlot:
        """Block a whole date or a time label on every date, never both."""
        if (block_date is None) == (block_time is None):
            raise errors.ValidationError("Provide exactly one of block_date or block_time")
        slot = BlockedSlot(
            block_date=block_date,
            block_time=normalize_label(block_time) if block_time is not None else None,
            reason=reason,
        )
        saved = await self.blocked_slots.add_blocked(slot)
        logger.info(f"Blocked {saved.block_date or saved.block_time} ({reason or 'no reason'})")
        return saved

    async def remove_blocked(self, slot_id: str) -> None:
        if not await self.blocked_slots.remove_blocked(slot_id):
            raise errors.NotFound("Blocked slot not found", blocked_slot_id=slot_id)
        logger.info(f"Removed blocked slot {slot_id}")

"""Storage interfaces the booking core depends on.

Each operation is a typed method; there is no generic query builder. The
SQLAlchemy repositories in :mod:`sro_appointments.core.repository` implement
these.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Optional

from sro_appointments.scheduling.models import (
    Appointment,
    AppointmentFilters,
    AppointmentSettings,
    BlockedSlot,
)


class SlotConflictError(Exception):
    """Storage uniqueness constraint on (date, time) for live appointments was violated."""

    pass


class SettingsProvider(ABC):
    @abstractmethod
    async def get_settings(self) -> AppointmentSettings:
        """Current settings, or defaults when none were saved."""

    @abstractmethod
    async def save_settings(self, settings: AppointmentSettings) -> AppointmentSettings:
        """Upsert the singleton settings record."""


class BlockedSlotProvider(ABC):
    @abstractmethod
    async def list_blocked(self) -> list[BlockedSlot]:
        """All blocked dates and blocked times."""

    @abstractmethod
    async def add_blocked(self, slot: BlockedSlot) -> BlockedSlot:
        """Persist a new block and return it with its id."""

    @abstractmethod
    async def remove_blocked(self, slot_id: str) -> bool:
        """Delete a block; False when the id is unknown."""

    async def list_blocked_dates(self) -> set[date]:
        return {b.block_date for b in await self.list_blocked() if b.block_date is not None}

    async def list_blocked_times(self) -> set[str]:
        return {b.block_time for b in await self.list_blocked() if b.block_time is not None}


class AppointmentStore(ABC):
    @abstractmethod
    async def get(self, appointment_id: str) -> Optional[Appointment]:
        """Fetch one appointment."""

    @abstractmethod
    async def find_non_terminal_on(self, day: date) -> list[Appointment]:
        """Live appointments booked on *day* or asking to move to *day*."""

    @abstractmethod
    async def insert(self, appointment: Appointment) -> Appointment:
        """Persist a new appointment.

        Raises:
            SlotConflictError: A live appointment already holds the slot.
        """

    @abstractmethod
    async def update(self, appointment_id: str, patch: dict[str, Any]) -> Optional[Appointment]:
        """Apply *patch*; None when the id is unknown.

        Raises:
            SlotConflictError: The new date/time collides with a live appointment.
        """

    @abstractmethod
    async def list_appointments(self, filters: Optional[AppointmentFilters] = None) -> list[Appointment]:
        """Appointments matching *filters*, ordered by date then time."""

"""SQLAlchemy repositories backing the booking core's storage interfaces."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from sro_appointments.core.models import AppointmentDB, AppointmentSettingsDB, BlockedSlotDB
from sro_appointments.scheduling.models import (
    NON_TERMINAL_STATUSES,
    Appointment,
    AppointmentFilters,
    AppointmentSettings,
    BlockedSlot,
)
from sro_appointments.scheduling.slots import parse_time, to_24h
from sro_appointments.scheduling.stores import (
    AppointmentStore,
    BlockedSlotProvider,
    SettingsProvider,
    SlotConflictError,
)

_SETTINGS_ROW_ID = 1

# Appointment field -> AppointmentDB attribute, where they differ
_COLUMN_FOR = {
    "date": "appointment_date",
    "time": "time_slot",
    "requested_time": "requested_time_slot",
}
_TIME_FIELDS = {"time", "requested_time"}

_LIVE_SLOT_INDEX = "uq_appointments_live_slot"
# SQLite reports the indexed columns rather than the index name
_LIVE_SLOT_SQLITE_MESSAGE = "UNIQUE constraint failed: appointments.date, appointments.time_slot"


def _is_live_slot_violation(error: IntegrityError) -> bool:
    diag = getattr(error.orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint:
        return constraint == _LIVE_SLOT_INDEX
    message = str(error.orig)
    return _LIVE_SLOT_INDEX in message or _LIVE_SLOT_SQLITE_MESSAGE in message



def _parse_uuid(value: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _storage_time(label: Optional[str]) -> Optional[str]:
    if label is None:
        return None
    return to_24h(parse_time(label))


def _appointment_from_row(row: AppointmentDB) -> Appointment:
    return Appointment(
        id=str(row.id),
        account_id=row.account_id,
        date=row.appointment_date,
        time=row.time_slot,
        reason=row.reason,
        notes=row.notes,
        meeting_mode=row.meeting_mode,
        contact_number=row.contact_number,
        email=row.email,
        status=row.status,
        requested_date=row.requested_date,
        requested_time=row.requested_time_slot,
        reschedule_reason=row.reschedule_reason,
        cancellation_reason=row.cancellation_reason,
        admin_notes=row.admin_notes,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _blocked_from_row(row: BlockedSlotDB) -> BlockedSlot:
    return BlockedSlot(
        id=str(row.id),
        block_date=row.block_date,
        block_time=row.block_time,
        reason=row.reason,
    )


class SettingsRepository(SettingsProvider):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_settings(self) -> AppointmentSettings:
        row = await self.session.get(AppointmentSettingsDB, _SETTINGS_ROW_ID)
        if row is None:
            return AppointmentSettings()
        return AppointmentSettings(
            start_time=row.start_time,
            end_time=row.end_time,
            interval_minutes=row.interval_minutes,
            allowed_weekdays=set(row.allowed_weekdays),
            advance_business_days=row.advance_business_days,
            max_appointments_per_day=row.max_appointments_per_day,
        )

    async def save_settings(self, settings: AppointmentSettings) -> AppointmentSettings:
        row = await self.session.get(AppointmentSettingsDB, _SETTINGS_ROW_ID)
        if row is None:
            row = AppointmentSettingsDB(id=_SETTINGS_ROW_ID)
            self.session.add(row)
        row.start_time = settings.start_time
        row.end_time = settings.end_time
        row.interval_minutes = settings.interval_minutes
        row.allowed_weekdays = sorted(settings.allowed_weekdays)
        row.advance_business_days = settings.advance_business_days
        row.max_appointments_per_day = settings.max_appointments_per_day
        row.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return settings


class BlockedSlotRepository(BlockedSlotProvider):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_blocked(self) -> list[BlockedSlot]:
        stmt = select(BlockedSlotDB).order_by(BlockedSlotDB.created_at)
        result = await self.session.execute(stmt)
        return [_blocked_from_row(row) for row in result.scalars().all()]

    async def add_blocked(self, slot: BlockedSlot) -> BlockedSlot:
        row = BlockedSlotDB(
            block_date=slot.block_date,
            block_time=_storage_time(slot.block_time),
            reason=slot.reason,
        )
        self.session.add(row)
        await self.session.flush()
        return _blocked_from_row(row)

    async def remove_blocked(self, slot_id: str) -> bool:
        key = _parse_uuid(slot_id)
        if key is None:
            return False
        row = await self.session.get(BlockedSlotDB, key)
        if row is None:
            return False
        await self.session.delete(row)
        await self.session.flush()
        return True


class AppointmentRepository(AppointmentStore):
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_row(self, appointment_id: str) -> Optional[AppointmentDB]:
        key = _parse_uuid(appointment_id)
        if key is None:
            return None
        return await self.session.get(AppointmentDB, key)

    async def _flush(self) -> None:
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            if not _is_live_slot_violation(e):
                raise
            raise SlotConflictError(str(e.orig)) from e

    async def get(self, appointment_id: str) -> Optional[Appointment]:
        row = await self._get_row(appointment_id)
        return _appointment_from_row(row) if row else None

    async def find_non_terminal_on(self, day: date) -> list[Appointment]:
        stmt = select(AppointmentDB).where(
            AppointmentDB.status.in_([s.value for s in NON_TERMINAL_STATUSES]),
            or_(
                AppointmentDB.appointment_date == day,
                AppointmentDB.requested_date == day,
            ),
        )
        result = await self.session.execute(stmt)
        return [_appointment_from_row(row) for row in result.scalars().all()]

    async def insert(self, appointment: Appointment) -> Appointment:
        row = AppointmentDB(
            id=uuid.UUID(appointment.id),
            account_id=appointment.account_id,
            appointment_date=appointment.date,
            time_slot=_storage_time(appointment.time),
            reason=appointment.reason,
            notes=appointment.notes,
            meeting_mode=appointment.meeting_mode.value,
            contact_number=appointment.contact_number,
            email=appointment.email,
            status=appointment.status.value,
            requested_date=appointment.requested_date,
            requested_time_slot=_storage_time(appointment.requested_time),
            reschedule_reason=appointment.reschedule_reason,
            cancellation_reason=appointment.cancellation_reason,
            admin_notes=appointment.admin_notes,
            created_at=appointment.created_at,
            updated_at=appointment.updated_at,
        )
        self.session.add(row)
        await self._flush()
        return _appointment_from_row(row)

    async def update(self, appointment_id: str, patch: dict[str, Any]) -> Optional[Appointment]:
        row = await self._get_row(appointment_id)
        if row is None:
            return None
        for field, value in patch.items():
            if field in _TIME_FIELDS:
                value = _storage_time(value)
            elif hasattr(value, "value"):
                value = value.value
            setattr(row, _COLUMN_FOR.get(field, field), value)
        await self._flush()
        return _appointment_from_row(row)

    async def list_appointments(self, filters: Optional[AppointmentFilters] = None) -> list[Appointment]:
        stmt = select(AppointmentDB)
        if filters is not None:
            if filters.on_date is not None:
                stmt = stmt.where(AppointmentDB.appointment_date == filters.on_date)
            if filters.status is not None:
                stmt = stmt.where(AppointmentDB.status == filters.status.value)
            if filters.account_id is not None:
                stmt = stmt.where(AppointmentDB.account_id == filters.account_id)
        stmt = stmt.order_by(AppointmentDB.appointment_date, AppointmentDB.time_slot)
        result = await self.session.execute(stmt)
        return [_appointment_from_row(row) for row in result.scalars().all()]

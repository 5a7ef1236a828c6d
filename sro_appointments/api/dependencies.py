"""FastAPI dependencies: caller identity and service wiring."""

from __future__ import annotations

from collections.abc import Callable
from datetime import date

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from sro_appointments.core.database import get_db
from sro_appointments.core.repository import (
    AppointmentRepository,
    BlockedSlotRepository,
    SettingsRepository,
)
from sro_appointments.scheduling.admin import ScheduleAdmin
from sro_appointments.scheduling.booking import BookingService
from sro_appointments.scheduling.notifier import NotificationDispatcher


async def get_current_account(request: Request) -> str:
    """Resolve the student account making the request.

    Authentication happens upstream; the gateway forwards the verified
    account id in ``X-Account-Id``.
    """
    account_id = request.headers.get("X-Account-Id")
    if not account_id or not account_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-Account-Id header")
    return account_id.strip()


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.dispatcher


def get_clock() -> Callable[[], date]:
    """Source of "today" for availability rules."""
    return date.today


async def get_booking_service(
    db: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    clock: Callable[[], date] = Depends(get_clock),
) -> BookingService:
    return BookingService(
        settings_provider=SettingsRepository(db),
        blocked_slots=BlockedSlotRepository(db),
        appointments=AppointmentRepository(db),
        dispatcher=dispatcher,
        clock=clock,
    )


async def get_schedule_admin(db: AsyncSession = Depends(get_db)) -> ScheduleAdmin:
    return ScheduleAdmin(SettingsRepository(db), BlockedSlotRepository(db))

"""Admin endpoints for working hours and blocked dates/times."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from sro_appointments.api.dependencies import get_schedule_admin
from sro_appointments.scheduling.admin import ScheduleAdmin
from sro_appointments.scheduling.models import AppointmentSettings, BlockedSlot

router = APIRouter(prefix="/appointments")


class BlockedSlotCreate(BaseModel):
    block_date: Optional[date] = None
    block_time: Optional[str] = None
    reason: Optional[str] = None


@router.get("/settings", response_model=AppointmentSettings)
async def get_settings(admin: ScheduleAdmin = Depends(get_schedule_admin)) -> AppointmentSettings:
    """Current working hours; defaults when nothing was saved yet."""
    return await admin.get_settings()


@router.put("/settings", response_model=AppointmentSettings)
async def save_settings(
    body: AppointmentSettings,
    admin: ScheduleAdmin = Depends(get_schedule_admin),
) -> AppointmentSettings:
    return await admin.save_settings(body)


@router.get("/blocked", response_model=list[BlockedSlot])
async def list_blocked(admin: ScheduleAdmin = Depends(get_schedule_admin)) -> list[BlockedSlot]:
    return await admin.list_blocked()


@router.post("/blocked", response_model=BlockedSlot, status_code=201)
async def add_blocked(
    body: BlockedSlotCreate,
    admin: ScheduleAdmin = Depends(get_schedule_admin),
) -> BlockedSlot:
    """Block a whole date, or one time label on every date."""
    return await admin.add_blocked(
        block_date=body.block_date,
        block_time=body.block_time,
        reason=body.reason,
    )


@router.delete("/blocked/{blocked_id}", status_code=204)
async def remove_blocked(
    blocked_id: str,
    admin: ScheduleAdmin = Depends(get_schedule_admin),
) -> Response:
    await admin.remove_blocked(blocked_id)
    return Response(status_code=204)

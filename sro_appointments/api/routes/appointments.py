"""Appointment endpoints: availability, booking and the request/decision flow."""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from sro_appointments.api.dependencies import get_booking_service, get_current_account
from sro_appointments.scheduling import errors
from sro_appointments.scheduling.booking import BookingService
from sro_appointments.scheduling.models import (
    Appointment,
    AppointmentDetails,
    AppointmentFilters,
    AppointmentStatus,
    DayAvailability,
    MeetingMode,
)

router = APIRouter(prefix="/appointments")


# ---------------------------------------------------------------------------
# Request/response schemas
# ---------------------------------------------------------------------------

class BookingCreate(BaseModel):
    date: date
    time_slot: str
    reason: str = Field(min_length=1)
    notes: Optional[str] = None
    meeting_mode: MeetingMode = MeetingMode.FACE_TO_FACE
    contact_number: str = Field(min_length=1)
    email: str = Field(min_length=3)


class AdminNotes(BaseModel):
    admin_notes: Optional[str] = None


class StatusUpdate(BaseModel):
    status: AppointmentStatus
    admin_notes: Optional[str] = None


class RescheduleRequest(BaseModel):
    new_date: date
    new_time_slot: str
    reason: Optional[str] = None


class CancellationRequest(BaseModel):
    reason: str


class Decision(BaseModel):
    approved: bool
    admin_notes: Optional[str] = None


class BookableDatesResponse(BaseModel):
    dates: list[date] = []


def _notes(body: Optional[AdminNotes]) -> Optional[str]:
    return body.admin_notes if body else None


# ---------------------------------------------------------------------------
# Availability
# ---------------------------------------------------------------------------

@router.get("/available-slots", response_model=DayAvailability)
async def get_available_slots(
    on_date: date = Query(..., alias="date"),
    service: BookingService = Depends(get_booking_service),
) -> DayAvailability:
    """Free, booked and blocked slots for one date."""
    return await service.availability(on_date)


@router.get("/bookable-dates", response_model=BookableDatesResponse)
async def get_bookable_dates(
    service: BookingService = Depends(get_booking_service),
) -> BookableDatesResponse:
    return BookableDatesResponse(dates=await service.bookable_dates())


# ---------------------------------------------------------------------------
# Book / list / get
# ---------------------------------------------------------------------------

@router.post("", response_model=Appointment, status_code=201)
async def book_appointment(
    body: BookingCreate,
    account_id: str = Depends(get_current_account),
    service: BookingService = Depends(get_booking_service),
) -> Appointment:
    """Book a slot for the calling account; starts out ``scheduled``."""
    details = AppointmentDetails(
        reason=body.reason,
        notes=body.notes,
        meeting_mode=body.meeting_mode,
        contact_number=body.contact_number,
        email=body.email,
    )
    return await service.propose_booking(account_id, body.date, body.time_slot, details)


@router.get("", response_model=list[Appointment])
async def list_appointments(
    on_date: Optional[date] = Query(None, alias="date"),
    status: Optional[AppointmentStatus] = Query(None),
    account_id: Optional[str] = Query(None),
    service: BookingService = Depends(get_booking_service),
) -> list[Appointment]:
    filters = AppointmentFilters(on_date=on_date, status=status, account_id=account_id)
    return await service.list_appointments(filters)


@router.get("/{appointment_id}", response_model=Appointment)
async def get_appointment(
    appointment_id: str,
    service: BookingService = Depends(get_booking_service),
) -> Appointment:
    return await service.get_appointment(appointment_id)


# ---------------------------------------------------------------------------
# Admin decisions on scheduled/confirmed appointments
# ---------------------------------------------------------------------------

@router.post("/{appointment_id}/confirm", response_model=Appointment)
async def confirm_appointment(
    appointment_id: str,
    body: Optional[AdminNotes] = None,
    service: BookingService = Depends(get_booking_service),
) -> Appointment:
    return await service.confirm(appointment_id, admin_notes=_notes(body))


@router.post("/{appointment_id}/reject", response_model=Appointment)
async def reject_appointment(
    appointment_id: str,
    body: Optional[AdminNotes] = None,
    service: BookingService = Depends(get_booking_service),
) -> Appointment:
    return await service.reject(appointment_id, admin_notes=_notes(body))


@router.post("/{appointment_id}/complete", response_model=Appointment)
async def complete_appointment(
    appointment_id: str,
    body: Optional[AdminNotes] = None,
    service: BookingService = Depends(get_booking_service),
) -> Appointment:
    return await service.complete(appointment_id, admin_notes=_notes(body))


@router.post("/{appointment_id}/no-show", response_model=Appointment)
async def mark_no_show(
    appointment_id: str,
    body: Optional[AdminNotes] = None,
    service: BookingService = Depends(get_booking_service),
) -> Appointment:
    return await service.mark_no_show(appointment_id, admin_notes=_notes(body))


@router.patch("/{appointment_id}/status", response_model=Appointment)
async def update_status(
    appointment_id: str,
    body: StatusUpdate,
    service: BookingService = Depends(get_booking_service),
) -> Appointment:
    """Set a decision status directly (confirmed, rejected, completed, no-show)."""
    handlers = {
        AppointmentStatus.CONFIRMED: service.confirm,
        AppointmentStatus.REJECTED: service.reject,
        AppointmentStatus.COMPLETED: service.complete,
        AppointmentStatus.NO_SHOW: service.mark_no_show,
    }
    handler = handlers.get(body.status)
    if handler is None:
        raise errors.ValidationError(
            f"Status cannot be set to {body.status.value} directly",
            status=body.status.value,
        )
    return await handler(appointment_id, admin_notes=body.admin_notes)


# ---------------------------------------------------------------------------
# Reschedule and cancellation requests
# ---------------------------------------------------------------------------

@router.post("/{appointment_id}/reschedule-request", response_model=Appointment)
async def request_reschedule(
    appointment_id: str,
    body: RescheduleRequest,
    service: BookingService = Depends(get_booking_service),
) -> Appointment:
    """Ask to move a confirmed appointment to another free slot."""
    return await service.request_reschedule(
        appointment_id,
        new_date=body.new_date,
        new_time=body.new_time_slot,
        reason=body.reason,
    )


@router.patch("/{appointment_id}/reschedule-decision", response_model=Appointment)
async def decide_reschedule(
    appointment_id: str,
    body: Decision,
    service: BookingService = Depends(get_booking_service),
) -> Appointment:
    return await service.decide_reschedule(
        appointment_id, approved=body.approved, admin_notes=body.admin_notes
    )


@router.post("/{appointment_id}/cancellation-request", response_model=Appointment)
async def request_cancellation(
    appointment_id: str,
    body: CancellationRequest,
    service: BookingService = Depends(get_booking_service),
) -> Appointment:
    return await service.request_cancellation(appointment_id, reason=body.reason)


@router.patch("/{appointment_id}/cancellation-decision", response_model=Appointment)
async def decide_cancellation(
    appointment_id: str,
    body: Decision,
    service: BookingService = Depends(get_booking_service),
) -> Appointment:
    return await service.decide_cancellation(
        appointment_id, approved=body.approved, admin_notes=body.admin_notes
    )

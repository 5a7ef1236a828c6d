"""Pydantic models for the appointment booking core."""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from sro_appointments.scheduling import errors
from sro_appointments.scheduling.slots import format_label, parse_time, to_24h


class AppointmentStatus(str, Enum):
    """Appointment lifecycle statuses (closed set, persisted as-is)."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    RESCHEDULE_PENDING = "reschedule-pending"
    CANCELLATION_PENDING = "cancellation-pending"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no-show"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {
        AppointmentStatus.CANCELLED,
        AppointmentStatus.REJECTED,
        AppointmentStatus.COMPLETED,
        AppointmentStatus.NO_SHOW,
    }
)
NON_TERMINAL_STATUSES = frozenset(set(AppointmentStatus) - TERMINAL_STATUSES)


class MeetingMode(str, Enum):
    FACE_TO_FACE = "face-to-face"
    ONLINE = "online"


class DateRejection(str, Enum):
    """Why a calendar date cannot be booked (first failing rule)."""

    PAST = "past"
    SAME_DAY = "same_day"
    OUTSIDE_WINDOW = "outside_window"
    WEEKDAY_NOT_ALLOWED = "weekday_not_allowed"
    BLOCKED_DATE = "blocked_date"


def _to_storage_time(value: object) -> str:
    try:
        return to_24h(parse_time(value))  # type: ignore[arg-type]
    except errors.ValidationError as e:
        raise ValueError(e.message) from e


def _to_label(value: object) -> str:
    try:
        return format_label(parse_time(value))  # type: ignore[arg-type]
    except errors.ValidationError as e:
        raise ValueError(e.message) from e


class AppointmentSettings(BaseModel):
    """Admin-owned working hours and booking window (singleton)."""

    start_time: str = Field(default="08:00", description="HH:MM, 24-hour")
    end_time: str = Field(default="16:00", description="HH:MM, 24-hour")
    interval_minutes: int = Field(default=30, gt=0)
    allowed_weekdays: set[int] = Field(
        default_factory=lambda: {1, 2, 3, 4, 5},
        description="0=Sunday..6=Saturday",
    )
    advance_business_days: int = Field(default=14, gt=0)
    max_appointments_per_day: Optional[int] = Field(default=None, gt=0)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def _normalize_time(cls, v: object) -> str:
        return _to_storage_time(v)

    @field_validator("allowed_weekdays")
    @classmethod
    def _check_weekdays(cls, v: set[int]) -> set[int]:
        bad = sorted(d for d in v if not 0 <= d <= 6)
        if bad:
            raise ValueError(f"Weekdays must be 0 (Sunday) to 6 (Saturday), got {bad}")
        return v

    @model_validator(mode="after")
    def _check_hours(self) -> "AppointmentSettings":
        if parse_time(self.start_time) >= parse_time(self.end_time):
            raise ValueError("start_time must be before end_time")
        return self


class BlockedSlot(BaseModel):
    """Either a whole blocked date or a time label blocked on every date."""

    id: Optional[str] = None
    block_date: Optional[date] = None
    block_time: Optional[str] = None
    reason: Optional[str] = None

    @field_validator("block_time", mode="before")
    @classmethod
    def _normalize_time(cls, v: object) -> Optional[str]:
        if v is None:
            return None
        return _to_label(v)

    @model_validator(mode="after")
    def _exactly_one(self) -> "BlockedSlot":
        if (self.block_date is None) == (self.block_time is None):
            raise ValueError("A blocked slot needs exactly one of block_date or block_time")
        return self


class AppointmentDetails(BaseModel):
    """What the student fills in on the booking form."""

    reason: str = Field(min_length=1)
    notes: Optional[str] = None
    meeting_mode: MeetingMode = MeetingMode.FACE_TO_FACE
    contact_number: str = Field(min_length=1)
    email: str = Field(min_length=3)


class Appointment(BaseModel):
    """A booked appointment."""

    id: str
    account_id: str
    date: date
    time: str
    reason: str
    notes: Optional[str] = None
    meeting_mode: MeetingMode = MeetingMode.FACE_TO_FACE
    contact_number: str
    email: str
    status: AppointmentStatus = AppointmentStatus.SCHEDULED

    # Reschedule in flight
    requested_date: Optional[date] = None
    requested_time: Optional[str] = None
    reschedule_reason: Optional[str] = None

    # Cancellation in flight
    cancellation_reason: Optional[str] = None

    admin_notes: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("time", mode="before")
    @classmethod
    def _normalize_time(cls, v: object) -> str:
        return _to_label(v)

    @field_validator("requested_time", mode="before")
    @classmethod
    def _normalize_requested_time(cls, v: object) -> Optional[str]:
        if v is None:
            return None
        return _to_label(v)

    @property
    def time_minutes(self) -> int:
        return parse_time(self.time)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


class StatusChangeEvent(BaseModel):
    """Emitted for every status change; turned into email by the notifier."""

    appointment_id: str
    previous_status: Optional[AppointmentStatus] = None
    new_status: AppointmentStatus
    recipient_email: str
    admin_notes: Optional[str] = None
    action: Optional[str] = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class DayAvailability(BaseModel):
    """Availability summary for one calendar date."""

    date: date
    available_slots: list[str] = []
    booked_slots: list[str] = []
    blocked_times: list[str] = []
    daily_cap_reached: bool = False
    rejection: Optional[DateRejection] = None


class AppointmentFilters(BaseModel):
    """Typed filters for listing appointments."""

    on_date: Optional[date] = None
    status: Optional[AppointmentStatus] = None
    account_id: Optional[str] = None

"""SQLAlchemy 2.0 async models for the appointments schema."""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import JSON

from sro_appointments.scheduling.models import NON_TERMINAL_STATUSES


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_uuid() -> uuid.UUID:
    return uuid.uuid4()


_LIVE_STATUS_SQL = "status IN ({})".format(
    ", ".join(f"'{s.value}'" for s in sorted(NON_TERMINAL_STATUSES, key=lambda s: s.value))
)


class Base(DeclarativeBase):
    pass


class AppointmentSettingsDB(Base):
    """Singleton row; always stored with id=1."""

    __tablename__ = "appointment_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    start_time: Mapped[str] = mapped_column(String(5), nullable=False)
    end_time: Mapped[str] = mapped_column(String(5), nullable=False)
    interval_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    allowed_weekdays: Mapped[list] = mapped_column(JSON, nullable=False)  # 0=Sun..6=Sat
    advance_business_days: Mapped[int] = mapped_column(Integer, nullable=False, default=14)
    max_appointments_per_day: Mapped[int | None] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class BlockedSlotDB(Base):
    __tablename__ = "blocked_slots"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    block_date: Mapped[date | None] = mapped_column(Date)
    block_time: Mapped[str | None] = mapped_column(String(5))  # HH:MM, applies to every date
    reason: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    __table_args__ = (
        CheckConstraint(
            "(block_date IS NULL) <> (block_time IS NULL)",
            name="ck_blocked_slots_date_xor_time",
        ),
        Index("ix_blocked_slots_block_date", "block_date"),
    )


class AppointmentDB(Base):
    __tablename__ = "appointments"

    id: Mapped[uuid.UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=_new_uuid)
    account_id: Mapped[str] = mapped_column(String(255), nullable=False)
    appointment_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    time_slot: Mapped[str] = mapped_column(String(5), nullable=False)  # HH:MM
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)
    meeting_mode: Mapped[str] = mapped_column(String(20), nullable=False, default="face-to-face")
    contact_number: Mapped[str] = mapped_column(String(30), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="scheduled")
    requested_date: Mapped[date | None] = mapped_column(Date)
    requested_time_slot: Mapped[str | None] = mapped_column(String(5))
    reschedule_reason: Mapped[str | None] = mapped_column(Text)
    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    admin_notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        # At most one live appointment per (date, time).
        Index(
            "uq_appointments_live_slot",
            "date",
            "time_slot",
            unique=True,
            postgresql_where=text(_LIVE_STATUS_SQL),
            sqlite_where=text(_LIVE_STATUS_SQL),
        ),
        Index("ix_appointments_account_id", "account_id"),
        Index("ix_appointments_status", "status"),
        Index("ix_appointments_requested_date", "requested_date"),
    )

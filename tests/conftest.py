"""Pytest configuration and fixtures."""

import os
import uuid
from datetime import date

import pytest

# Keep the app factory from writing an event log into the working tree.
os.environ.setdefault("EVENT_LOG_ENABLED", "false")

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from sro_appointments.core.models import Base  # noqa: E402
from sro_appointments.core.repository import (  # noqa: E402
    AppointmentRepository,
    BlockedSlotRepository,
    SettingsRepository,
)
from sro_appointments.scheduling.booking import BookingService  # noqa: E402
from sro_appointments.scheduling.models import (  # noqa: E402
    Appointment,
    AppointmentDetails,
    AppointmentStatus,
)
from sro_appointments.scheduling.notifier import (  # noqa: E402
    NotificationDispatcher,
    NotificationError,
    Notifier,
)

# 2026-03-02 is a Monday; with the default 14 business-day window the last
# bookable date is Friday 2026-03-20.
MONDAY = date(2026, 3, 2)
TUESDAY = date(2026, 3, 3)
WEDNESDAY = date(2026, 3, 4)


class RecordingNotifier(Notifier):
    """Notifier that keeps delivered events; optionally fails the first calls."""

    def __init__(self, fail_times: int = 0, error: type[Exception] = NotificationError):
        self.events = []
        self.calls = 0
        self.fail_times = fail_times
        self.error = error

    async def notify(self, event) -> None:
        self.calls += 1
        if self.calls <= self.fail_times:
            raise self.error("delivery failed")
        self.events.append(event)


def make_appt(
    day: date = TUESDAY,
    time: str = "08:00 AM",
    status: AppointmentStatus = AppointmentStatus.CONFIRMED,
    **kwargs,
) -> Appointment:
    fields = {
        "id": str(uuid.uuid4()),
        "account_id": "stu-1",
        "date": day,
        "time": time,
        "reason": "Good moral certificate",
        "contact_number": "09171234567",
        "email": "student@example.edu",
        "status": status,
    }
    fields.update(kwargs)
    return Appointment(**fields)


@pytest.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def session(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as sess:
        yield sess
        await sess.rollback()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier):
    return NotificationDispatcher(notifier, timeout_seconds=2.0, max_attempts=3)


@pytest.fixture
def service(session, dispatcher):
    return BookingService(
        settings_provider=SettingsRepository(session),
        blocked_slots=BlockedSlotRepository(session),
        appointments=AppointmentRepository(session),
        dispatcher=dispatcher,
        clock=lambda: MONDAY,
    )


@pytest.fixture
def details():
    return AppointmentDetails(
        reason="Good moral certificate",
        contact_number="09171234567",
        email="student@example.edu",
    )

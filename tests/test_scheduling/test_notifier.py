"""Tests for best-effort status-change notification."""

import asyncio
import logging

import pytest

from sro_appointments.scheduling.models import AppointmentStatus, StatusChangeEvent
from sro_appointments.scheduling.notifier import (
    CompositeNotifier,
    LoggingNotifier,
    NotificationDispatcher,
    NotificationError,
    Notifier,
)
from tests.conftest import RecordingNotifier


class SlowNotifier(Notifier):
    def __init__(self, delay: float):
        self.delay = delay
        self.finished = False

    async def notify(self, event) -> None:
        await asyncio.sleep(self.delay)
        self.finished = True


@pytest.fixture
def event():
    return StatusChangeEvent(
        appointment_id="appt-1",
        previous_status=AppointmentStatus.SCHEDULED,
        new_status=AppointmentStatus.CONFIRMED,
        recipient_email="student@example.edu",
    )


class TestDispatcher:
    async def test_delivers_in_background(self, event):
        notifier = RecordingNotifier()
        dispatcher = NotificationDispatcher(notifier)

        dispatcher.dispatch(event)
        assert dispatcher.pending == 1

        await dispatcher.drain()
        assert notifier.events == [event]
        assert dispatcher.pending == 0

    async def test_retries_transient_failures(self, event):
        notifier = RecordingNotifier(fail_times=2)
        dispatcher = NotificationDispatcher(notifier, timeout_seconds=5.0, max_attempts=3)

        dispatcher.dispatch(event)
        await dispatcher.drain()

        assert notifier.calls == 3
        assert notifier.events == [event]

    async def test_gives_up_after_max_attempts(self, event, caplog):
        notifier = RecordingNotifier(fail_times=10)
        dispatcher = NotificationDispatcher(notifier, timeout_seconds=5.0, max_attempts=2)

        with caplog.at_level(logging.ERROR):
            dispatcher.dispatch(event)
            await dispatcher.drain()

        assert notifier.calls == 2
        assert notifier.events == []
        assert "appt-1" in caplog.text

    async def test_unexpected_errors_not_retried(self, event):
        notifier = RecordingNotifier(fail_times=10, error=RuntimeError)
        dispatcher = NotificationDispatcher(notifier, max_attempts=3)

        dispatcher.dispatch(event)
        await dispatcher.drain()

        assert notifier.calls == 1

    async def test_timeout(self, event, caplog):
        notifier = SlowNotifier(delay=1.0)
        dispatcher = NotificationDispatcher(notifier, timeout_seconds=0.05)

        with caplog.at_level(logging.WARNING):
            dispatcher.dispatch(event)
            await dispatcher.drain()

        assert notifier.finished is False
        assert "timed out" in caplog.text

    async def test_none_event_ignored(self):
        dispatcher = NotificationDispatcher(RecordingNotifier())
        dispatcher.dispatch(None)
        assert dispatcher.pending == 0

    def test_without_running_loop_drops_event(self, event, caplog):
        notifier = RecordingNotifier()
        dispatcher = NotificationDispatcher(notifier)

        with caplog.at_level(logging.WARNING):
            dispatcher.dispatch(event)

        assert dispatcher.pending == 0
        assert "dropping notification" in caplog.text


class TestNotifiers:
    async def test_logging_notifier(self, event, caplog):
        with caplog.at_level(logging.INFO):
            await LoggingNotifier().notify(event)
        assert "scheduled -> confirmed" in caplog.text
        assert "student@example.edu" in caplog.text

    async def test_composite_tolerates_partial_failure(self, event):
        good = RecordingNotifier()
        bad = RecordingNotifier(fail_times=1, error=RuntimeError)
        await CompositeNotifier([bad, good]).notify(event)
        assert good.events == [event]

    async def test_composite_all_failed(self, event):
        bad = RecordingNotifier(fail_times=1, error=RuntimeError)
        with pytest.raises(NotificationError):
            await CompositeNotifier([bad]).notify(event)

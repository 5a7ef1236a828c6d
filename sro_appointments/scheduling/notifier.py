"""Status-change notification side channel.

Delivery is best-effort: :class:`NotificationDispatcher` hands each event to
the notifier on a background task, bounds it with a timeout, retries transient
failures, and logs anything that still goes wrong. Nothing raised here ever
reaches the booking caller.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sro_appointments.scheduling.models import StatusChangeEvent

logger = logging.getLogger(__name__)


class NotificationError(Exception):
    """Transient delivery failure; the dispatcher retries these."""

    pass


class Notifier(ABC):
    """Abstract base class for status-change notifiers (email, log, ...)."""

    @abstractmethod
    async def notify(self, event: StatusChangeEvent) -> None:
        """Deliver a single status-change event."""
        pass


class LoggingNotifier(Notifier):
    """Notifier that only writes the event to the application log."""

    async def notify(self, event: StatusChangeEvent) -> None:
        logger.info(
            f"Appointment {event.appointment_id}: "
            f"{event.previous_status.value if event.previous_status else 'new'} -> {event.new_status.value} "
            f"(notify {event.recipient_email})"
        )


class CompositeNotifier(Notifier):
    """Fan an event out to several notifiers; one failing does not stop the rest."""

    def __init__(self, notifiers: list[Notifier]):
        self.notifiers = notifiers

    async def notify(self, event: StatusChangeEvent) -> None:
        failures = 0
        for notifier in self.notifiers:
            try:
                await notifier.notify(event)
            except Exception as e:
                failures += 1
                logger.warning(f"{type(notifier).__name__} failed for {event.appointment_id}: {e}")
        if failures and failures == len(self.notifiers):
            raise NotificationError(f"All notifiers failed for {event.appointment_id}")


class NotificationDispatcher:
    """Fire-and-forget dispatch of status-change events."""

    def __init__(
        self,
        notifier: Notifier,
        timeout_seconds: float = 5.0,
        max_attempts: int = 3,
    ):
        """Initialize dispatcher.

        Args:
            notifier: Where events are delivered
            timeout_seconds: Time box for one event across all attempts
            max_attempts: Attempts for transient ``NotificationError`` failures
        """
        self.notifier = notifier
        self.timeout_seconds = timeout_seconds
        self.max_attempts = max_attempts
        self._pending: set[asyncio.Task] = set()

    def dispatch(self, event: Optional[StatusChangeEvent]) -> None:
        """Schedule delivery and return immediately."""
        if event is None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop; dropping notification for {event.appointment_id}")
            return
        task = loop.create_task(self._deliver(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: StatusChangeEvent) -> None:
        try:
            await asyncio.wait_for(self._deliver_with_retry(event), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(
                f"Notification for {event.appointment_id} timed out after {self.timeout_seconds}s"
            )
        except Exception as e:
            logger.error(f"Notification for {event.appointment_id} failed: {e}")

    async def _deliver_with_retry(self, event: StatusChangeEvent) -> None:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(NotificationError),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
            reraise=True,
        ):
            with attempt:
                await self.notifier.notify(event)

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for outstanding deliveries (shutdown and tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

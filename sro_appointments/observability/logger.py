"""JSON Lines event log for appointment status changes."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Callable, Optional

from sro_appointments.scheduling.models import StatusChangeEvent
from sro_appointments.scheduling.notifier import Notifier

logger = logging.getLogger(__name__)


class EventLog(Notifier):
    """Append-only log of status-change events.

    Writes one JSON object per line so the office can audit who was told what
    and when. Doubles as a notifier so it can sit behind the dispatcher next
    to the mail transport.
    """

    _instance: Optional["EventLog"] = None

    def __init__(
        self,
        log_dir: Optional[Path] = None,
        enabled: bool = True,
        filename: str = "appointment_events.jsonl",
    ):
        """Initialize event log.

        Args:
            log_dir: Directory for log files (default: data/logs)
            enabled: Whether logging is enabled
            filename: Name of the JSON Lines file inside *log_dir*
        """
        self.enabled = enabled

        if log_dir is None:
            log_dir = Path("data/logs")
        self.log_dir = log_dir
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = self.log_dir / filename

        # Event callbacks for real-time monitoring
        self._callbacks: list[Callable[[StatusChangeEvent], None]] = []

    @classmethod
    def get_instance(cls) -> "EventLog":
        """Get or create singleton instance from application settings."""
        if cls._instance is None:
            from sro_appointments.config import get_settings

            settings = get_settings()
            cls._instance = cls(log_dir=settings.event_log_dir, enabled=settings.event_log_enabled)
        return cls._instance

    def add_callback(self, callback: Callable[[StatusChangeEvent], None]) -> None:
        """Add callback for real-time event monitoring."""
        self._callbacks.append(callback)

    def write(self, event: StatusChangeEvent) -> None:
        """Append *event* to the log file and fan out to callbacks."""
        if not self.enabled:
            return

        try:
            with open(self.log_file, "a") as f:
                f.write(event.model_dump_json() + "\n")

            for callback in self._callbacks:
                try:
                    callback(event)
                except Exception as e:
                    logger.warning(f"Event log callback failed: {e}")

        except OSError as e:
            logger.warning(f"Failed to write appointment event: {e}")

    async def notify(self, event: StatusChangeEvent) -> None:
        await asyncio.to_thread(self.write, event)

    def get_recent_events(self, limit: int = 100) -> list[dict[str, Any]]:
        """Read recent events from the log file."""
        if not self.log_file.exists():
            return []

        events = []
        with open(self.log_file) as f:
            for line in f:
                try:
                    events.append(json.loads(line))
                except json.JSONDecodeError:
                    continue

        return events[-limit:]

    def get_history(self, appointment_id: str) -> list[dict[str, Any]]:
        """All logged events for one appointment, oldest first."""
        return [
            e for e in self.get_recent_events(limit=10_000)
            if e.get("appointment_id") == appointment_id
        ]

    def get_stats(self) -> dict[str, Any]:
        """Count of logged events per new status."""
        events = self.get_recent_events(limit=1000)
        if not events:
            return {"total": 0}

        by_status: dict[str, int] = {}
        for e in events:
            status = e.get("new_status", "unknown")
            by_status[status] = by_status.get(status, 0) + 1

        return {"total": len(events), "by_status": by_status}


def get_event_log() -> EventLog:
    """Get the global event log instance."""
    return EventLog.get_instance()

"""Observability for appointment status changes."""

from sro_appointments.observability.logger import EventLog, get_event_log

__all__ = [
    "EventLog",
    "get_event_log",
]

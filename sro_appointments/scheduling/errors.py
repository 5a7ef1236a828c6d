"""Business-rule errors raised by the booking core.

Every class here is an expected, user-facing outcome. Storage or connectivity
failures are not wrapped and propagate as whatever the driver raised.
"""

from typing import Any, Optional


class BookingError(Exception):
    """Base exception for booking and lifecycle errors."""

    status_code = 400
    code = "booking_error"

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.code, "detail": self.message}
        if self.details:
            body["context"] = self.details
        return body


class ValidationError(BookingError):
    """Malformed date, time or settings."""

    code = "validation_error"


class SlotUnavailable(BookingError):
    """Date or time fails the availability policy or is filtered out."""

    status_code = 409
    code = "slot_unavailable"


class SlotTaken(BookingError):
    """Another non-terminal appointment already holds the slot."""

    status_code = 409
    code = "slot_taken"


class DailyCapReached(BookingError):
    """The configured maximum appointments per day has been reached."""

    status_code = 409
    code = "daily_cap_reached"


class InvalidState(BookingError):
    """Lifecycle transition not permitted from the current status."""

    status_code = 409
    code = "invalid_state"

    def __init__(self, message: str, current_status: Optional[str] = None, **details: Any):
        if current_status is not None:
            details["current_status"] = current_status
        super().__init__(message, **details)
        self.current_status = current_status


class NotFound(BookingError):
    """Unknown appointment or blocked-slot id."""

    status_code = 404
    code = "not_found"

"""Appointment status state machine.

All status changes go through :meth:`AppointmentLifecycle.apply`, which checks
the current status against a single transition table and returns the field
patch to persist together with the event to publish. Nothing here touches
storage or the notifier.

::

    scheduled ──confirm──▶ confirmed ──request_reschedule──▶ reschedule-pending
        │                    │  ▲                               │
        ├─reject─▶ rejected  │  └──approve/decline_reschedule───┘
        │                    │
        │                    ├──request_cancellation──▶ cancellation-pending
        │                    │  ▲                               │
        │                    │  └──decline_cancellation─────────┤
        │                    │                                  └─approve─▶ cancelled
        └──────complete / mark_no_show (from scheduled or confirmed)──▶ completed | no-show
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional

from sro_appointments.scheduling import errors
from sro_appointments.scheduling.models import Appointment, AppointmentStatus, StatusChangeEvent
from sro_appointments.scheduling.slots import TimeLike, normalize_label


class LifecycleAction(str, Enum):
    CONFIRM = "confirm"
    REJECT = "reject"
    REQUEST_RESCHEDULE = "request_reschedule"
    APPROVE_RESCHEDULE = "approve_reschedule"
    DECLINE_RESCHEDULE = "decline_reschedule"
    REQUEST_CANCELLATION = "request_cancellation"
    APPROVE_CANCELLATION = "approve_cancellation"
    DECLINE_CANCELLATION = "decline_cancellation"
    COMPLETE = "complete"
    MARK_NO_SHOW = "mark_no_show"


S = AppointmentStatus

# action -> (allowed source statuses, target status)
TRANSITIONS: dict[LifecycleAction, tuple[frozenset[AppointmentStatus], AppointmentStatus]] = {
    LifecycleAction.CONFIRM: (frozenset({S.SCHEDULED}), S.CONFIRMED),
    LifecycleAction.REJECT: (frozenset({S.SCHEDULED}), S.REJECTED),
    LifecycleAction.REQUEST_RESCHEDULE: (frozenset({S.CONFIRMED}), S.RESCHEDULE_PENDING),
    LifecycleAction.APPROVE_RESCHEDULE: (frozenset({S.RESCHEDULE_PENDING}), S.CONFIRMED),
    LifecycleAction.DECLINE_RESCHEDULE: (frozenset({S.RESCHEDULE_PENDING}), S.CONFIRMED),
    LifecycleAction.REQUEST_CANCELLATION: (frozenset({S.CONFIRMED}), S.CANCELLATION_PENDING),
    LifecycleAction.APPROVE_CANCELLATION: (frozenset({S.CANCELLATION_PENDING}), S.CANCELLED),
    LifecycleAction.DECLINE_CANCELLATION: (frozenset({S.CANCELLATION_PENDING}), S.CONFIRMED),
    LifecycleAction.COMPLETE: (frozenset({S.SCHEDULED, S.CONFIRMED}), S.COMPLETED),
    LifecycleAction.MARK_NO_SHOW: (frozenset({S.SCHEDULED, S.CONFIRMED}), S.NO_SHOW),
}

_CLEAR_RESCHEDULE = {"requested_date": None, "requested_time": None, "reschedule_reason": None}


@dataclass
class Transition:
    """Result of applying an action: what to write and what to announce."""

    action: LifecycleAction
    previous_status: AppointmentStatus
    new_status: AppointmentStatus
    patch: dict[str, Any] = field(default_factory=dict)
    event: Optional[StatusChangeEvent] = None

    def applied_to(self, appointment: Appointment) -> Appointment:
        """Return *appointment* with the patch applied (no persistence)."""
        return appointment.model_copy(update=self.patch)


class AppointmentLifecycle:
    """Single authority for appointment status transitions."""

    def allowed_actions(self, status: AppointmentStatus) -> list[LifecycleAction]:
        return [action for action, (sources, _) in TRANSITIONS.items() if status in sources]

    def can_apply(self, appointment: Appointment, action: LifecycleAction) -> bool:
        sources, _ = TRANSITIONS[action]
        return appointment.status in sources

    def check(self, appointment: Appointment, action: LifecycleAction) -> None:
        """Raise ``InvalidState`` unless *action* is allowed from the current status."""
        if not self.can_apply(appointment, action):
            raise errors.InvalidState(
                f"Cannot {action.value.replace('_', ' ')} an appointment that is {appointment.status.value}",
                current_status=appointment.status.value,
                action=action.value,
            )

    def apply(
        self,
        appointment: Appointment,
        action: LifecycleAction,
        *,
        admin_notes: Optional[str] = None,
        requested_date: Optional[date] = None,
        requested_time: Optional[TimeLike] = None,
        reason: Optional[str] = None,
    ) -> Transition:
        """Check *action* against the table and build the resulting transition.

        Raises:
            InvalidState: The current status does not permit *action*.
            ValidationError: A request is missing its required payload.
        """
        self.check(appointment, action)
        _, target = TRANSITIONS[action]
        current = appointment.status

        patch: dict[str, Any] = {"status": target}

        if action == LifecycleAction.REQUEST_RESCHEDULE:
            if requested_date is None or requested_time is None:
                raise errors.ValidationError("New date and time slot are required")
            patch.update(
                requested_date=requested_date,
                requested_time=normalize_label(requested_time),
                reschedule_reason=reason,
            )
        elif action == LifecycleAction.APPROVE_RESCHEDULE:
            if appointment.requested_date is None or appointment.requested_time is None:
                raise errors.InvalidState(
                    "This appointment has no reschedule request",
                    current_status=current.value,
                )
            patch.update(_CLEAR_RESCHEDULE)
            patch.update(date=appointment.requested_date, time=appointment.requested_time)
        elif action == LifecycleAction.DECLINE_RESCHEDULE:
            patch.update(_CLEAR_RESCHEDULE)
        elif action == LifecycleAction.REQUEST_CANCELLATION:
            if not reason or not reason.strip():
                raise errors.ValidationError("Cancellation reason is required")
            patch["cancellation_reason"] = reason
        elif action == LifecycleAction.DECLINE_CANCELLATION:
            patch["cancellation_reason"] = None

        # Decisions keep earlier admin notes unless new ones are given.
        if admin_notes:
            patch["admin_notes"] = admin_notes
        patch["updated_at"] = datetime.now(timezone.utc)

        event = None
        if target != current:
            event = StatusChangeEvent(
                appointment_id=appointment.id,
                previous_status=current,
                new_status=target,
                recipient_email=appointment.email,
                admin_notes=admin_notes or appointment.admin_notes,
                action=action.value,
            )

        return Transition(
            action=action,
            previous_status=current,
            new_status=target,
            patch=patch,
            event=event,
        )

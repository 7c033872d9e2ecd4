"""Appointment status transitions.

Each operation is a synchronous in-place mutation of one appointment. The
caller persists the change.
"""

from dataclasses import dataclass
from datetime import datetime

from petsync.models.appointment import AppointmentStatus
from petsync.services.access_policy import Operation
from petsync.services.exceptions import InvalidTransition

SCHEDULED = AppointmentStatus.SCHEDULED.value
CONFIRMED = AppointmentStatus.CONFIRMED.value
IN_PROGRESS = AppointmentStatus.IN_PROGRESS.value
COMPLETED = AppointmentStatus.COMPLETED.value
CANCELLED = AppointmentStatus.CANCELLED.value
RESCHEDULED = AppointmentStatus.RESCHEDULED.value

TERMINAL_STATUSES = frozenset({COMPLETED, CANCELLED, AppointmentStatus.NO_SHOW.value})
NON_TERMINAL_STATUSES = frozenset({SCHEDULED, CONFIRMED, IN_PROGRESS, RESCHEDULED})


@dataclass(frozen=True)
class Transition:
    allowed_from: frozenset[str]
    target: str | None
    verb: str


# Check-in and start are refused once service is in progress, not just on terminal
# appointments; complete is the only transition out of in_progress besides cancel.
TRANSITIONS: dict[Operation, Transition] = {
    Operation.CHECK_IN: Transition(frozenset({SCHEDULED, CONFIRMED}), CONFIRMED, "check in"),
    Operation.START: Transition(frozenset({SCHEDULED, CONFIRMED}), IN_PROGRESS, "start"),
    Operation.COMPLETE: Transition(frozenset({SCHEDULED, CONFIRMED, IN_PROGRESS}), COMPLETED, "complete"),
    Operation.CANCEL: Transition(NON_TERMINAL_STATUSES, CANCELLED, "cancel"),
    Operation.UPDATE: Transition(NON_TERMINAL_STATUSES, None, "update"),
}


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def ensure_transition_allowed(appointment, operation: Operation) -> Transition:
    transition = TRANSITIONS[operation]
    if appointment.status not in transition.allowed_from:
        raise InvalidTransition(
            f"Cannot {transition.verb} an appointment that is {appointment.status.replace('_', ' ')}."
        )
    return transition


def check_in(appointment, now: datetime) -> None:
    transition = ensure_transition_allowed(appointment, Operation.CHECK_IN)
    appointment.status = transition.target
    appointment.checked_in_at = now


def start_service(appointment, now: datetime) -> None:
    transition = ensure_transition_allowed(appointment, Operation.START)
    appointment.status = transition.target
    appointment.service_started_at = now


def complete_service(
    appointment,
    now: datetime,
    notes: str | None = None,
    photos: list[str] | None = None,
) -> None:
    transition = ensure_transition_allowed(appointment, Operation.COMPLETE)
    appointment.status = transition.target
    appointment.service_completed_at = now
    appointment.photos = list(photos or [])
    if notes:
        appointment.notes = notes


def cancel(appointment, cancelled_by_id: int, now: datetime, reason: str | None = None) -> None:
    transition = ensure_transition_allowed(appointment, Operation.CANCEL)
    appointment.status = transition.target
    appointment.cancelled_by_id = cancelled_by_id
    appointment.cancelled_at = now
    appointment.cancellation_reason = reason

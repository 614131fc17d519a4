# clinic/modules/appointments/lifecycle.py
from __future__ import annotations

from typing import Dict, FrozenSet

from clinic.modules.appointments.errors import InvalidStatusTransition
from clinic.modules.appointments.models import AppointmentStatus as S

ACTIVE_STATUSES: FrozenSet[S] = frozenset({S.PENDING, S.CONFIRMED})
TERMINAL_STATUSES: FrozenSet[S] = frozenset({S.COMPLETED, S.CANCELLED})

# current status -> statuses it may move to.
# PENDING -> RESCHEDULED only happens through the reschedule workflows.
ALLOWED_TRANSITIONS: Dict[S, FrozenSet[S]] = {
    S.PENDING: frozenset({S.CONFIRMED, S.RESCHEDULED, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.RESCHEDULED, S.COMPLETED, S.CANCELLED}),
    S.RESCHEDULED: frozenset({S.CONFIRMED, S.CANCELLED}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
}


def is_active(status: S) -> bool:
    return status in ACTIVE_STATUSES


def is_terminal(status: S) -> bool:
    return status in TERMINAL_STATUSES


def ensure_mutable(status: S) -> None:
    """Terminal appointments never change again."""
    if is_terminal(status):
        raise InvalidStatusTransition(
            f"Appointment is {status.value.lower()} and can no longer be changed"
        )


def check_transition(current: S, requested: S) -> bool:
    """
    Validate current -> requested against the transition table.

    Returns False for an idempotent same-state request on a non-terminal
    appointment, True when the status actually changes.
    Raises InvalidStatusTransition otherwise.
    """
    ensure_mutable(current)
    if requested == current:
        return False
    if requested not in ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransition(
            f"Cannot change appointment status from {current.value} to {requested.value}"
        )
    return True

"""Appointment lifecycle: legal transitions and who may trigger them.

    pending ──approve──▶ confirmed ──complete──▶ completed
       ▲  │                 │
       └──┴──── edit ◀──────┘
       pending|confirmed ──cancel──▶ cancelled

Completed and cancelled are terminal. ``complete`` on a completed appointment
is a no-op rather than an error.
"""
from __future__ import annotations

from sqlalchemy import update

from .errors import AuthorizationError, IllegalTransitionError
from .extensions import db
from .identity import Identity
from .models import Appointment, AppointmentStatus

APPROVE = "approve"
COMPLETE = "complete"
EDIT = "edit"
CANCEL = "cancel"

PENDING = AppointmentStatus.PENDING
CONFIRMED = AppointmentStatus.CONFIRMED
COMPLETED = AppointmentStatus.COMPLETED
CANCELLED = AppointmentStatus.CANCELLED

# action -> (allowed source states, target state)
TRANSITIONS: dict[str, tuple[frozenset[AppointmentStatus], AppointmentStatus]] = {
    APPROVE: (frozenset({PENDING}), CONFIRMED),
    COMPLETE: (frozenset({CONFIRMED}), COMPLETED),
    EDIT: (frozenset({PENDING, CONFIRMED}), PENDING),
    CANCEL: (frozenset({PENDING, CONFIRMED}), CANCELLED),
}

# Repeating these on an appointment already in the target state changes nothing.
IDEMPOTENT_ACTIONS = frozenset({COMPLETE})


class AppointmentStateMachine:
    """Validates transitions for a single appointment's current status."""

    def __init__(self, status: str | AppointmentStatus) -> None:
        self.status = AppointmentStatus(status)

    def is_noop(self, action: str) -> bool:
        _, target = self._rule(action)
        return action in IDEMPOTENT_ACTIONS and self.status is target

    def target(self, action: str) -> AppointmentStatus:
        """Return the state ``action`` leads to, or raise IllegalTransitionError."""
        sources, target = self._rule(action)
        if self.status not in sources:
            raise IllegalTransitionError(
                f"Cannot {action} an appointment that is {self.status.value}"
            )
        return target

    def sources(self, action: str) -> frozenset[AppointmentStatus]:
        return self._rule(action)[0]

    @staticmethod
    def _rule(action: str) -> tuple[frozenset[AppointmentStatus], AppointmentStatus]:
        try:
            return TRANSITIONS[action]
        except KeyError:
            raise IllegalTransitionError(f"Unknown appointment action '{action}'") from None


def authorize(action: str, identity: Identity, appointment: Appointment) -> None:
    """Raise AuthorizationError unless ``identity`` may perform ``action``."""
    if identity.is_admin:
        return

    if action == APPROVE:
        if identity.is_stylist:
            return
        raise AuthorizationError("Only stylists or admins can approve appointments")

    if action == COMPLETE:
        stylist = appointment.stylist
        if identity.is_stylist and stylist is not None and stylist.user_id == identity.user_id:
            return
        raise AuthorizationError("Only the assigned stylist can complete this appointment")

    if action == EDIT:
        if appointment.customer_id == identity.user_id:
            return
        raise AuthorizationError("Only the booking customer can edit this appointment")

    if action == CANCEL:
        raise AuthorizationError("Cancelling appointments is an administrative action")

    raise IllegalTransitionError(f"Unknown appointment action '{action}'")


def apply_transition(appointment: Appointment, action: str, **values: object) -> bool:
    """Write the transition only if the stored status still allows it.

    Returns False when another request changed the status first; the caller
    decides whether that is a no-op or an error. ``values`` are extra columns
    written in the same statement (new times, service, price for an edit).
    """
    machine = AppointmentStateMachine(appointment.status)
    target = machine.target(action)
    result = db.session.execute(
        update(Appointment)
        .where(
            Appointment.appointment_id == appointment.appointment_id,
            Appointment.status.in_([status.value for status in machine.sources(action)]),
        )
        .values(status=target.value, **values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1

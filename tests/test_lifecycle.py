"""Unit tests for the appointment state machine and its permission rules."""
from __future__ import annotations

from types import SimpleNamespace

import pytest

from salonbook.errors import AuthorizationError, IllegalTransitionError
from salonbook.identity import Identity
from salonbook.lifecycle import (APPROVE, CANCEL, COMPLETE, EDIT,
                                 AppointmentStateMachine, authorize)
from salonbook.models import AppointmentStatus


@pytest.mark.parametrize(
    ("status", "action", "target"),
    [
        ("pending", APPROVE, AppointmentStatus.CONFIRMED),
        ("confirmed", COMPLETE, AppointmentStatus.COMPLETED),
        ("pending", EDIT, AppointmentStatus.PENDING),
        ("confirmed", EDIT, AppointmentStatus.PENDING),
        ("pending", CANCEL, AppointmentStatus.CANCELLED),
        ("confirmed", CANCEL, AppointmentStatus.CANCELLED),
    ],
)
def test_legal_transitions(status, action, target) -> None:
    assert AppointmentStateMachine(status).target(action) is target


@pytest.mark.parametrize(
    ("status", "action"),
    [
        ("pending", COMPLETE),
        ("confirmed", APPROVE),
        ("completed", EDIT),
        ("cancelled", EDIT),
        ("completed", CANCEL),
        ("cancelled", APPROVE),
        ("cancelled", COMPLETE),
    ],
)
def test_illegal_transitions_raise(status, action) -> None:
    with pytest.raises(IllegalTransitionError):
        AppointmentStateMachine(status).target(action)


def test_complete_on_completed_is_a_noop() -> None:
    machine = AppointmentStateMachine("completed")

    assert machine.is_noop(COMPLETE) is True
    assert AppointmentStateMachine("confirmed").is_noop(COMPLETE) is False
    assert AppointmentStateMachine("pending").is_noop(APPROVE) is False


def test_unknown_action_is_rejected() -> None:
    with pytest.raises(IllegalTransitionError):
        AppointmentStateMachine("pending").target("archive")


def _appointment(customer_id: int = 1, stylist_user_id: int = 3):
    return SimpleNamespace(customer_id=customer_id, stylist=SimpleNamespace(user_id=stylist_user_id))


def test_customers_cannot_approve() -> None:
    with pytest.raises(AuthorizationError):
        authorize(APPROVE, Identity(1, "customer"), _appointment())

    authorize(APPROVE, Identity(3, "stylist"), _appointment())
    authorize(APPROVE, Identity(4, "admin"), _appointment())


def test_only_assigned_stylist_completes() -> None:
    authorize(COMPLETE, Identity(3, "stylist"), _appointment(stylist_user_id=3))

    with pytest.raises(AuthorizationError):
        authorize(COMPLETE, Identity(9, "stylist"), _appointment(stylist_user_id=3))
    with pytest.raises(AuthorizationError):
        authorize(COMPLETE, Identity(1, "customer"), _appointment())


def test_edit_is_for_the_booking_customer() -> None:
    authorize(EDIT, Identity(1, "customer"), _appointment(customer_id=1))

    with pytest.raises(AuthorizationError):
        authorize(EDIT, Identity(2, "customer"), _appointment(customer_id=1))


def test_cancel_is_admin_only() -> None:
    authorize(CANCEL, Identity(4, "admin"), _appointment())

    with pytest.raises(AuthorizationError):
        authorize(CANCEL, Identity(1, "customer"), _appointment())
    with pytest.raises(AuthorizationError):
        authorize(CANCEL, Identity(3, "stylist"), _appointment())

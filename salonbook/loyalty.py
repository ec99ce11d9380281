"""Loyalty point ledger.

Balances change only through single conditional UPDATE statements, so two
requests racing on one customer cannot both spend the same points and an
appointment cannot be credited twice. The ledger never commits: it writes
into the caller's transaction so points and the appointment row land or roll
back together.
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import or_, select, update

from .errors import InsufficientPointsError, NotFoundError, PersistenceError, ValidationError
from .extensions import db
from .models import Appointment, AppointmentStatus, User

REDEMPTION_COST = 100
COMPLETION_AWARD = 5


@dataclass(frozen=True)
class LedgerResult:
    applied: bool
    new_balance: int
    # Set when a redemption was declined for lack of points.
    reason: InsufficientPointsError | None = None


class LoyaltyLedger:
    def __init__(self, redemption_cost: int = REDEMPTION_COST, completion_award: int = COMPLETION_AWARD) -> None:
        self.redemption_cost = redemption_cost
        self.completion_award = completion_award

    def balance(self, customer_id: int) -> int:
        balance = db.session.execute(
            select(User.point_balance).where(User.user_id == customer_id)
        ).scalar_one_or_none()
        if balance is None:
            raise NotFoundError("Customer not found")
        return balance

    def redeem(self, customer_id: int, cost: int | None = None) -> LedgerResult:
        """Deduct ``cost`` points if, and only if, the balance covers it."""
        cost = self.redemption_cost if cost is None else cost
        if cost <= 0:
            raise ValidationError("Redemption cost must be positive")

        result = db.session.execute(
            update(User)
            .where(User.user_id == customer_id, User.point_balance >= cost)
            .values(point_balance=User.point_balance - cost)
            .execution_options(synchronize_session=False)
        )
        new_balance = self.balance(customer_id)

        if result.rowcount == 1:
            current_app.logger.info("Redeemed %s points for customer %s; balance now %s", cost, customer_id, new_balance)
            return LedgerResult(applied=True, new_balance=new_balance)

        current_app.logger.warning(
            "Redemption declined for customer %s: balance %s below %s", customer_id, new_balance, cost
        )
        return LedgerResult(
            applied=False,
            new_balance=new_balance,
            reason=InsufficientPointsError(new_balance, cost),
        )

    def earn(self, appointment_id: int, amount: int | None = None) -> LedgerResult:
        """Credit the completion award once per appointment.

        The stamp on the appointment is the guard: it is written only while
        ``points_earned`` is still zero, and the customer is credited only if
        that stamp went through.
        """
        amount = self.completion_award if amount is None else amount
        if amount <= 0:
            raise ValidationError("Award amount must be positive")

        customer_id = db.session.execute(
            select(Appointment.customer_id).where(Appointment.appointment_id == appointment_id)
        ).scalar_one_or_none()
        if customer_id is None:
            raise NotFoundError("Appointment not found")

        stamped = db.session.execute(
            update(Appointment)
            .where(
                Appointment.appointment_id == appointment_id,
                Appointment.status == AppointmentStatus.COMPLETED.value,
                or_(Appointment.points_earned == 0, Appointment.points_earned.is_(None)),
            )
            .values(points_earned=amount)
            .execution_options(synchronize_session=False)
        )
        if stamped.rowcount != 1:
            return LedgerResult(applied=False, new_balance=self.balance(customer_id))

        credited = db.session.execute(
            update(User)
            .where(User.user_id == customer_id)
            .values(point_balance=User.point_balance + amount)
            .execution_options(synchronize_session=False)
        )
        if credited.rowcount != 1:
            # The caller rolls back, which also undoes the stamp above.
            raise PersistenceError("Customer balance could not be credited")

        new_balance = self.balance(customer_id)
        current_app.logger.info(
            "Awarded %s points to customer %s for appointment %s", amount, customer_id, appointment_id
        )
        return LedgerResult(applied=True, new_balance=new_balance)

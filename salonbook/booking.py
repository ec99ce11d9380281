"""Booking orchestrator: the single entry point for booking and lifecycle changes.

Each public method is one unit of work. Catalog lookups, the write-time
conflict check, ledger effects and the appointment write share a session
transaction which is committed once at the end or rolled back as a whole.
"""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Iterator, Mapping

from flask import current_app
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from .errors import (AuthorizationError, BookingError, IllegalTransitionError,
                     NotFoundError, PersistenceError, SlotConflictError,
                     ValidationError)
from .extensions import db
from .identity import Identity
from .lifecycle import (APPROVE, CANCEL, COMPLETE, EDIT,
                        AppointmentStateMachine, apply_transition, authorize)
from .loyalty import LoyaltyLedger
from .models import Appointment, AppointmentStatus, Service, Stylist, User
from .scheduling import (DEFAULT_WORKING_HOURS, SlotGrid, claim_interval,
                         compute_slots, load_day_appointments, weekday_index,
                         working_hours)

DISCOUNT_PERCENT = 20

_REQUIRED_FIELDS = ("customer_id", "stylist_id", "service_id", "date", "time")


def _parse_id(payload: Mapping[str, object], name: str) -> int:
    value = payload.get(name)
    if isinstance(value, int) and not isinstance(value, bool):
        parsed = value
    elif isinstance(value, float) and value.is_integer():
        parsed = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        parsed = int(value.strip())
    else:
        raise ValidationError(f"{name} must be an integer")
    if parsed <= 0:
        raise ValidationError(f"{name} must be a positive integer")
    return parsed


def _normalise_utc_suffix(value: str) -> str:
    value = value.strip()
    if value[-1:] in ("Z", "z"):
        return value[:-1] + "+00:00"
    return value


def _parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value in (None, ""):
        return False
    if isinstance(value, str) and value.strip().lower() in {"1", "true", "yes"}:
        return True
    if isinstance(value, str) and value.strip().lower() in {"0", "false", "no"}:
        return False
    raise ValidationError("use_points must be a boolean")


@dataclass(frozen=True)
class BookingRequest:
    customer_id: int
    stylist_id: int
    service_id: int
    day: date
    start_time: time
    use_points: bool = False
    notes: str | None = None

    @property
    def starts_at(self) -> datetime:
        return datetime.combine(self.day, self.start_time)

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> "BookingRequest":
        """Validate a JSON-style payload.

        Either ``date`` (YYYY-MM-DD) plus ``time`` (HH:MM) or a single ISO
        ``starts_at`` may be given.
        """
        payload = dict(payload)
        starts_at = payload.get("starts_at")
        if starts_at and not (payload.get("date") or payload.get("time")):
            try:
                # fromisoformat only accepts a trailing "Z" from Python 3.11
                moment = datetime.fromisoformat(_normalise_utc_suffix(str(starts_at)))
            except ValueError:
                raise ValidationError("starts_at must be a valid ISO format datetime") from None
            payload["date"] = moment.date().isoformat()
            payload["time"] = moment.time().replace(tzinfo=None).isoformat(timespec="minutes")

        missing = [name for name in _REQUIRED_FIELDS if payload.get(name) in (None, "")]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        try:
            day = date.fromisoformat(str(payload["date"]))
        except ValueError:
            raise ValidationError("date must be in YYYY-MM-DD format") from None
        try:
            start_time = time.fromisoformat(str(payload["time"]))
        except ValueError:
            raise ValidationError("time must be in HH:MM format") from None

        notes = payload.get("notes")
        if notes is not None and not isinstance(notes, str):
            raise ValidationError("notes must be a string")

        return cls(
            customer_id=_parse_id(payload, "customer_id"),
            stylist_id=_parse_id(payload, "stylist_id"),
            service_id=_parse_id(payload, "service_id"),
            day=day,
            start_time=start_time.replace(second=0, microsecond=0, tzinfo=None),
            use_points=_parse_bool(payload.get("use_points")),
            notes=(notes or "").strip() or None,
        )

    @classmethod
    def for_edit(cls, appointment: Appointment, changes: Mapping[str, object]) -> "BookingRequest":
        """Overlay ``changes`` on an existing appointment's details."""
        current: dict[str, object] = {
            "customer_id": appointment.customer_id,
            "stylist_id": appointment.stylist_id,
            "service_id": appointment.service_id,
            "date": appointment.starts_at.date().isoformat(),
            "time": appointment.starts_at.strftime("%H:%M"),
            "notes": appointment.notes,
        }
        if changes.get("starts_at") and not (changes.get("date") or changes.get("time")):
            current.pop("date")
            current.pop("time")
        current.update(changes)
        return cls.from_payload(current)


def discounted_price(price_cents: int, percent: int = DISCOUNT_PERCENT) -> int:
    """Price after a percentage discount, rounded to the nearest cent."""
    return (price_cents * (100 - percent) + 50) // 100


def _parse_clock(value: str | time) -> time:
    return value if isinstance(value, time) else time.fromisoformat(value)


class BookingOrchestrator:
    def __init__(
        self,
        ledger: LoyaltyLedger | None = None,
        granularity_minutes: int = 30,
        discount_percent: int = DISCOUNT_PERCENT,
        default_hours: tuple[time, time] = DEFAULT_WORKING_HOURS,
    ) -> None:
        self.ledger = ledger or LoyaltyLedger()
        self.granularity_minutes = granularity_minutes
        self.discount_percent = discount_percent
        self.default_hours = default_hours

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> "BookingOrchestrator":
        ledger = LoyaltyLedger(
            redemption_cost=int(config.get("LOYALTY_REDEMPTION_COST", 100)),
            completion_award=int(config.get("LOYALTY_COMPLETION_AWARD", 5)),
        )
        return cls(
            ledger=ledger,
            granularity_minutes=int(config.get("SLOT_GRANULARITY_MINUTES", 30)),
            discount_percent=int(config.get("LOYALTY_DISCOUNT_PERCENT", DISCOUNT_PERCENT)),
            default_hours=(
                _parse_clock(config.get("DEFAULT_WORK_START", DEFAULT_WORKING_HOURS[0])),
                _parse_clock(config.get("DEFAULT_WORK_END", DEFAULT_WORKING_HOURS[1])),
            ),
        )

    # ------------------------------------------------------------------
    # Unit of work
    # ------------------------------------------------------------------
    @contextmanager
    def _transaction(self, action: str, commit: bool = True) -> Iterator[None]:
        try:
            yield
            if commit:
                db.session.commit()
        except BookingError:
            db.session.rollback()
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Failed to %s", action, exc_info=exc)
            raise PersistenceError(f"Could not {action}; no changes were saved") from exc

    @staticmethod
    def _get(model, ident: int, label: str):
        record = db.session.get(model, ident)
        if record is None:
            raise NotFoundError(f"{label} not found")
        return record

    def _ensure_within_hours(self, stylist: Stylist, starts_at: datetime, ends_at: datetime) -> None:
        if weekday_index(starts_at.date()) in set(stylist.days_off or []):
            raise ValidationError("Stylist is not working on that day")
        start, end = working_hours(stylist, self.default_hours)
        day = starts_at.date()
        if starts_at < datetime.combine(day, start) or ends_at > datetime.combine(day, end):
            raise ValidationError("Appointment falls outside the stylist's working hours")

    def _resolve_booking(self, request: BookingRequest) -> tuple[Service, Stylist, datetime, datetime]:
        service = self._get(Service, request.service_id, "Service")
        stylist = self._get(Stylist, request.stylist_id, "Stylist")
        self._get(User, request.customer_id, "Customer")

        starts_at = request.starts_at
        ends_at = starts_at + timedelta(minutes=service.duration_minutes)
        self._ensure_within_hours(stylist, starts_at, ends_at)
        return service, stylist, starts_at, ends_at

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_available_slots(self, stylist_id: int, day: date) -> SlotGrid:
        with self._transaction("load available slots", commit=False):
            stylist = self._get(Stylist, stylist_id, "Stylist")
            existing = load_day_appointments(stylist_id, day)
        return compute_slots(stylist, day, existing, self.granularity_minutes, self.default_hours)

    def get_customer_loyalty_balance(self, customer_id: int) -> int:
        with self._transaction("load loyalty balance", commit=False):
            return self.ledger.balance(customer_id)

    def get_appointment(self, identity: Identity, appointment_id: int) -> Appointment:
        with self._transaction("load appointment", commit=False):
            appointment = self._get(Appointment, appointment_id, "Appointment")
            stylist_user = appointment.stylist.user_id if appointment.stylist else None
            if not (identity.is_admin or identity.user_id in (appointment.customer_id, stylist_user)):
                raise AuthorizationError("You cannot view this appointment")
            return appointment

    @staticmethod
    def _paginate(query, page: int, limit: int) -> tuple[list[Appointment], int]:
        total_count = db.session.scalar(select(func.count()).select_from(query.subquery()))
        rows = db.session.scalars(
            query.order_by(Appointment.starts_at.desc(), Appointment.appointment_id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(rows), int(total_count or 0)

    def list_stylist_appointments(
        self, identity: Identity, stylist_id: int, day: date | None = None, page: int = 1, limit: int = 20
    ) -> tuple[list[Appointment], int]:
        """One page of the stylist's appointments, newest first, and the total count."""
        with self._transaction("list stylist appointments", commit=False):
            stylist = self._get(Stylist, stylist_id, "Stylist")
            if not (identity.is_admin or stylist.user_id == identity.user_id):
                raise AuthorizationError("Only the stylist or an admin can view this schedule")
            query = select(Appointment).where(Appointment.stylist_id == stylist_id)
            if day is not None:
                day_start = datetime.combine(day, time.min)
                query = query.where(
                    Appointment.starts_at >= day_start,
                    Appointment.starts_at < day_start + timedelta(days=1),
                )
            return self._paginate(query, page, limit)

    def list_customer_appointments(
        self, customer_id: int, page: int = 1, limit: int = 20
    ) -> tuple[list[Appointment], int]:
        with self._transaction("list customer appointments", commit=False):
            self._get(User, customer_id, "Customer")
            return self._paginate(select(Appointment).where(Appointment.customer_id == customer_id), page, limit)

    def customer_stats(self, customer_id: int) -> dict[str, int]:
        """Count and total spend of the customer's confirmed or completed visits."""
        with self._transaction("load customer stats", commit=False):
            self._get(User, customer_id, "Customer")
            count, spend = db.session.execute(
                select(func.count(Appointment.appointment_id), func.coalesce(func.sum(Appointment.total_price_cents), 0))
                .where(
                    Appointment.customer_id == customer_id,
                    Appointment.status.in_([AppointmentStatus.CONFIRMED.value, AppointmentStatus.COMPLETED.value]),
                )
            ).one()
            return {"appointments": int(count), "total_spend_cents": int(spend)}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def book(self, identity: Identity, request: BookingRequest) -> Appointment:
        """Create a pending appointment, redeeming points if asked and affordable."""
        if not identity.is_admin and request.customer_id != identity.user_id:
            raise AuthorizationError("Customers can only book for themselves")

        with self._transaction("book appointment"):
            service, _, starts_at, ends_at = self._resolve_booking(request)

            if not claim_interval(request.stylist_id, starts_at, ends_at):
                current_app.logger.warning(
                    "Booking refused: stylist %s is taken between %s and %s", request.stylist_id, starts_at, ends_at
                )
                raise SlotConflictError("That time is no longer available; refresh the slots and try again")

            is_redeemed = False
            if request.use_points:
                is_redeemed = self.ledger.redeem(request.customer_id).applied

            appointment = Appointment(
                customer_id=request.customer_id,
                stylist_id=request.stylist_id,
                service_id=request.service_id,
                starts_at=starts_at,
                ends_at=ends_at,
                status=AppointmentStatus.PENDING.value,
                total_price_cents=self._price(service, is_redeemed),
                is_redeemed=is_redeemed,
                points_earned=0,
                notes=request.notes,
            )
            db.session.add(appointment)
            db.session.flush()

        current_app.logger.info(
            "Booked appointment %s for customer %s with stylist %s at %s",
            appointment.appointment_id, request.customer_id, request.stylist_id, starts_at,
        )
        return appointment

    def rebook(self, identity: Identity, appointment_id: int, request: BookingRequest) -> Appointment:
        """Move or change an appointment; the result always waits for re-approval.

        Points already spent on the appointment stay spent and keep its
        discount. An unredeemed appointment may redeem during the edit.
        """
        with self._transaction("rebook appointment"):
            appointment = self._get(Appointment, appointment_id, "Appointment")
            authorize(EDIT, identity, appointment)
            AppointmentStateMachine(appointment.status).target(EDIT)
            if request.customer_id != appointment.customer_id:
                raise ValidationError("The customer of an appointment cannot be changed")

            service, _, starts_at, ends_at = self._resolve_booking(request)

            if not claim_interval(request.stylist_id, starts_at, ends_at, exclude_appointment_id=appointment_id):
                raise SlotConflictError("That time is no longer available; refresh the slots and try again")

            is_redeemed = bool(appointment.is_redeemed)
            if not is_redeemed and request.use_points:
                is_redeemed = self.ledger.redeem(request.customer_id).applied

            written = apply_transition(
                appointment,
                EDIT,
                stylist_id=request.stylist_id,
                service_id=request.service_id,
                starts_at=starts_at,
                ends_at=ends_at,
                total_price_cents=self._price(service, is_redeemed),
                is_redeemed=is_redeemed,
                notes=request.notes,
            )
            if not written:
                raise IllegalTransitionError("Appointment changed while it was being edited")

        current_app.logger.info("Rebooked appointment %s to %s; awaiting approval", appointment_id, starts_at)
        return appointment

    def approve(self, identity: Identity, appointment_id: int) -> Appointment:
        return self._transition(identity, appointment_id, APPROVE)

    def cancel(self, identity: Identity, appointment_id: int) -> Appointment:
        return self._transition(identity, appointment_id, CANCEL)

    def complete(self, identity: Identity, appointment_id: int) -> Appointment:
        """Mark an appointment completed and award points exactly once."""
        with self._transaction("complete appointment"):
            appointment = self._get(Appointment, appointment_id, "Appointment")
            authorize(COMPLETE, identity, appointment)
            machine = AppointmentStateMachine(appointment.status)
            if machine.is_noop(COMPLETE):
                current_app.logger.info("Appointment %s already completed; nothing to do", appointment_id)
                return appointment

            machine.target(COMPLETE)
            if not apply_transition(appointment, COMPLETE):
                current_status = db.session.execute(
                    select(Appointment.status).where(Appointment.appointment_id == appointment_id)
                ).scalar_one()
                if current_status == AppointmentStatus.COMPLETED.value:
                    return appointment
                raise IllegalTransitionError(f"Cannot complete an appointment that is {current_status}")

            self.ledger.earn(appointment_id)

        current_app.logger.info("Completed appointment %s", appointment_id)
        return appointment

    def _transition(self, identity: Identity, appointment_id: int, action: str) -> Appointment:
        with self._transaction(f"{action} appointment"):
            appointment = self._get(Appointment, appointment_id, "Appointment")
            authorize(action, identity, appointment)
            AppointmentStateMachine(appointment.status).target(action)
            if not apply_transition(appointment, action):
                raise IllegalTransitionError("Appointment changed while it was being updated")

        current_app.logger.info("Appointment %s: %s by user %s", appointment_id, action, identity.user_id)
        return appointment

    def _price(self, service: Service, is_redeemed: bool) -> int:
        if is_redeemed:
            return discounted_price(service.price_cents, self.discount_percent)
        return service.price_cents

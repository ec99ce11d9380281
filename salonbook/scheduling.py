"""Slot grid computation and appointment conflict detection.

The calculator is pure: it takes a stylist, a day and the appointments already
on that stylist's book and yields a grid of fixed-length slots. The detector
has two halves. ``overlaps``/``is_slot_occupied`` are pure interval checks.
``load_day_appointments`` and ``claim_interval`` touch the database and fail
closed, so a failed fetch never reads as "free".
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Iterable, Iterator, Protocol

from flask import current_app
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from .errors import NotFoundError, PersistenceError, ValidationError
from .extensions import db
from .models import BLOCKING_STATUSES, Appointment, AppointmentStatus, Stylist

DEFAULT_WORKING_HOURS = (time(9, 0), time(18, 0))

MORNING = "morning"
AFTERNOON = "afternoon"
EVENING = "evening"
PERIODS = (MORNING, AFTERNOON, EVENING)


class Interval(Protocol):
    starts_at: datetime
    ends_at: datetime


def weekday_index(day: date) -> int:
    """Weekday with 0=Sunday, matching how days off are stored."""
    return (day.weekday() + 1) % 7


def period_for(moment: datetime) -> str:
    if moment.hour < 12:
        return MORNING
    if moment.hour < 17:
        return AFTERNOON
    return EVENING


def intervals_overlap(
    first_start: datetime, first_end: datetime, second_start: datetime, second_end: datetime
) -> bool:
    """Half-open overlap: touching endpoints do not collide."""
    return first_start < second_end and first_end > second_start


def overlaps(candidate_start: datetime, candidate_end: datetime, existing: Iterable[Interval]) -> bool:
    if candidate_end <= candidate_start:
        raise ValidationError("Candidate interval must end after it starts")
    return any(
        intervals_overlap(appt.starts_at, appt.ends_at, candidate_start, candidate_end)
        for appt in existing
    )


def is_slot_occupied(slot_start: datetime, slot_end: datetime, existing: Iterable[Interval]) -> bool:
    return overlaps(slot_start, slot_end, existing)


@dataclass(frozen=True)
class Slot:
    starts_at: datetime
    ends_at: datetime
    is_occupied: bool

    @property
    def period(self) -> str:
        return period_for(self.starts_at)

    def to_dict(self) -> dict[str, object]:
        return {
            "starts_at": self.starts_at.isoformat(),
            "ends_at": self.ends_at.isoformat(),
            "time": self.starts_at.strftime("%H:%M"),
            "period": self.period,
            "is_occupied": self.is_occupied,
        }


@dataclass(frozen=True)
class SlotGrid:
    """Re-iterable slot sequence for one stylist and day.

    Slots are generated on each iteration; nothing is cached or written.
    An empty grid (``window is None``) means the stylist is off that day.
    """

    day: date
    window: tuple[datetime, datetime] | None
    granularity: timedelta
    existing: tuple[Interval, ...] = field(default=())

    def __iter__(self) -> Iterator[Slot]:
        if self.window is None:
            return
        current, end = self.window
        while current + self.granularity <= end:
            slot_end = current + self.granularity
            # Occupancy is judged on the grid window, not on a service's duration.
            yield Slot(current, slot_end, is_slot_occupied(current, slot_end, self.existing))
            current = slot_end

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def by_period(self) -> dict[str, list[Slot]]:
        grouped: dict[str, list[Slot]] = {period: [] for period in PERIODS}
        for slot in self:
            grouped[slot.period].append(slot)
        return grouped


def working_hours(stylist, default: tuple[time, time] = DEFAULT_WORKING_HOURS) -> tuple[time, time]:
    start = stylist.work_start or default[0]
    end = stylist.work_end or default[1]
    return start, end


def compute_slots(
    stylist,
    day: date,
    existing: Iterable[Interval] = (),
    granularity_minutes: int = 30,
    default_hours: tuple[time, time] = DEFAULT_WORKING_HOURS,
) -> SlotGrid:
    """Build the candidate grid for ``stylist`` on ``day``."""
    if granularity_minutes <= 0:
        raise ValidationError("granularity_minutes must be a positive integer")

    granularity = timedelta(minutes=granularity_minutes)
    if weekday_index(day) in set(stylist.days_off or []):
        return SlotGrid(day=day, window=None, granularity=granularity)

    start, end = working_hours(stylist, default_hours)
    window = (datetime.combine(day, start), datetime.combine(day, end))
    return SlotGrid(day=day, window=window, granularity=granularity, existing=tuple(existing))


def load_day_appointments(stylist_id: int, day: date) -> list[Appointment]:
    """Appointments on the stylist's book that touch ``day``, cancelled ones excluded.

    Raises PersistenceError when the set cannot be read; callers must not treat
    that as an empty book.
    """
    day_start = datetime.combine(day, time.min)
    next_day = day_start + timedelta(days=1)
    try:
        return list(
            db.session.scalars(
                select(Appointment)
                .where(
                    Appointment.stylist_id == stylist_id,
                    Appointment.status != AppointmentStatus.CANCELLED.value,
                    Appointment.starts_at < next_day,
                    Appointment.ends_at > day_start,
                )
                .order_by(Appointment.starts_at)
            )
        )
    except SQLAlchemyError as exc:
        current_app.logger.exception("Failed to load appointments for stylist %s on %s", stylist_id, day, exc_info=exc)
        raise PersistenceError("Could not determine existing appointments") from exc


def claim_interval(
    stylist_id: int,
    starts_at: datetime,
    ends_at: datetime,
    exclude_appointment_id: int | None = None,
) -> bool:
    """Take the stylist's write claim and report whether the interval is free.

    The claim is a conditional bump of ``booking_version``; it holds the
    stylist's row (or SQLite's write lock) until the surrounding transaction
    ends, so the overlap query below and the caller's insert run without
    another booking for this stylist slipping in between. Must be called
    inside the transaction that will write the appointment.
    """
    claimed = db.session.execute(
        update(Stylist)
        .where(Stylist.stylist_id == stylist_id)
        .values(booking_version=Stylist.booking_version + 1)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount != 1:
        raise NotFoundError("Stylist not found")

    conflict = select(Appointment.appointment_id).where(
        Appointment.stylist_id == stylist_id,
        Appointment.status.in_(BLOCKING_STATUSES),
        Appointment.starts_at < ends_at,
        Appointment.ends_at > starts_at,
    )
    if exclude_appointment_id is not None:
        conflict = conflict.where(Appointment.appointment_id != exclude_appointment_id)

    return db.session.execute(conflict.limit(1)).first() is None

"""Unit tests for the slot grid calculator."""
from __future__ import annotations

from datetime import date, datetime, time
from types import SimpleNamespace

import pytest

from salonbook.errors import ValidationError
from salonbook.scheduling import (AFTERNOON, EVENING, MORNING, compute_slots,
                                  weekday_index)

MONDAY = date(2030, 1, 7)


def make_stylist(start=time(9, 0), end=time(18, 0), days_off=()):
    return SimpleNamespace(work_start=start, work_end=end, days_off=list(days_off))


def booked(start: str, end: str):
    return SimpleNamespace(
        starts_at=datetime.combine(MONDAY, time.fromisoformat(start)),
        ends_at=datetime.combine(MONDAY, time.fromisoformat(end)),
    )


def test_full_free_day_has_eighteen_half_hour_slots() -> None:
    slots = list(compute_slots(make_stylist(), MONDAY))

    assert len(slots) == 18
    assert slots[0].starts_at == datetime(2030, 1, 7, 9, 0)
    assert slots[-1].starts_at == datetime(2030, 1, 7, 17, 30)
    assert slots[-1].ends_at == datetime(2030, 1, 7, 18, 0)
    assert all(not slot.is_occupied for slot in slots)
    assert all((b.starts_at - a.starts_at).seconds == 1800 for a, b in zip(slots, slots[1:]))


def test_existing_appointment_marks_overlapping_slots() -> None:
    grid = compute_slots(make_stylist(), MONDAY, [booked("10:00", "10:45")])
    by_time = {slot.starts_at.strftime("%H:%M"): slot.is_occupied for slot in grid}

    assert by_time["10:00"] is True
    assert by_time["10:30"] is True
    assert by_time["09:30"] is False
    assert by_time["11:00"] is False


def test_slot_free_even_if_service_would_run_into_next_appointment() -> None:
    # Occupancy looks only at the 30 minute grid window.
    grid = compute_slots(make_stylist(), MONDAY, [booked("11:00", "12:00")])
    by_time = {slot.starts_at.strftime("%H:%M"): slot.is_occupied for slot in grid}

    assert by_time["10:30"] is False
    assert by_time["11:00"] is True


def test_day_off_returns_empty_grid() -> None:
    stylist = make_stylist(days_off=[weekday_index(MONDAY)])

    grid = compute_slots(stylist, MONDAY)

    assert list(grid) == []
    assert grid.by_period() == {MORNING: [], AFTERNOON: [], EVENING: []}


def test_weekday_index_counts_from_sunday() -> None:
    assert weekday_index(date(2030, 1, 6)) == 0
    assert weekday_index(MONDAY) == 1
    assert weekday_index(date(2030, 1, 12)) == 6


def test_last_slot_never_runs_past_closing() -> None:
    slots = list(compute_slots(make_stylist(end=time(17, 45)), MONDAY))

    assert slots[-1].starts_at == datetime(2030, 1, 7, 17, 0)
    assert slots[-1].ends_at <= datetime(2030, 1, 7, 17, 45)


def test_periods_group_morning_afternoon_evening() -> None:
    grouped = compute_slots(make_stylist(), MONDAY).by_period()

    assert grouped[MORNING][0].starts_at.time() == time(9, 0)
    assert grouped[MORNING][-1].starts_at.time() == time(11, 30)
    assert grouped[AFTERNOON][0].starts_at.time() == time(12, 0)
    assert grouped[AFTERNOON][-1].starts_at.time() == time(16, 30)
    assert [slot.starts_at.time() for slot in grouped[EVENING]] == [time(17, 0), time(17, 30)]


def test_grid_can_be_iterated_more_than_once() -> None:
    grid = compute_slots(make_stylist(), MONDAY, [booked("13:00", "14:00")])

    assert list(grid) == list(grid)
    assert len(grid) == 18


def test_missing_working_hours_fall_back_to_defaults() -> None:
    slots = list(compute_slots(make_stylist(start=None, end=None), MONDAY))

    assert slots[0].starts_at.time() == time(9, 0)
    assert slots[-1].ends_at.time() == time(18, 0)


def test_custom_granularity() -> None:
    slots = list(compute_slots(make_stylist(start=time(9, 0), end=time(10, 0)), MONDAY, granularity_minutes=15))

    assert [slot.starts_at.minute for slot in slots] == [0, 15, 30, 45]


def test_non_positive_granularity_is_rejected() -> None:
    with pytest.raises(ValidationError):
        compute_slots(make_stylist(), MONDAY, granularity_minutes=0)

# Imports for testing tools
import pytest

# Import the functions to test and the models
from tourbook.core import ValidationError
from tourbook.models import Activity, Capacity
from tourbook.services.capacity_service import (
    CapacityService, date_span, normalize_time, resolve_slots, schedule_times
)

from conftest import add_activity


# --- Helpers to build in-memory rows ---
def make_activity(id=1, name="City Tour", **overrides) -> Activity:
    data = dict(
        id=id, slug=f"activity-{id}", name=name, active=True,
        default_times=[], default_capacity=10, default_weekdays=[],
    )
    data.update(overrides)
    return Activity(**data)


def make_row(id, activity_id, date, time="", total=10, booked=0) -> Capacity:
    return Capacity(id=id, activity_id=activity_id, date=date, time=time, total_slots=total, booked_slots=booked)


# --- Pure merge ---

def test_virtual_slot_for_unbooked_day():
    """An activity with a default schedule yields one virtual all-day slot."""
    slots = resolve_slots([], [make_activity()], ["2024-06-01"])

    assert len(slots) == 1
    slot = slots[0]
    assert slot.id is None
    assert slot.is_virtual is True
    assert slot.time is None
    assert slot.total_seats == 10
    assert slot.remaining_seats == 10


def test_persisted_row_wins_over_default():
    activity = make_activity()
    row = make_row(7, activity.id, "2024-06-01", total=12, booked=5)

    slots = resolve_slots([row], [activity], ["2024-06-01"])

    assert len(slots) == 1
    assert slots[0].id == 7
    assert slots[0].is_virtual is False
    assert slots[0].remaining_seats == 7


def test_timed_schedule_and_ordering():
    """Slots are ordered by date, time, then activity name."""
    boat = make_activity(id=2, name="Boat Trip", default_times=["14:00", "09:30"])
    walk = make_activity(id=1, name="Walking Tour", default_times=["09:30"])

    slots = resolve_slots([], [walk, boat], ["2024-06-02", "2024-06-01"])

    keys = [(s.date, s.time, s.activity_name) for s in slots]
    assert keys == [
        ("2024-06-01", "09:30", "Boat Trip"),
        ("2024-06-01", "09:30", "Walking Tour"),
        ("2024-06-01", "14:00", "Boat Trip"),
        ("2024-06-02", "09:30", "Boat Trip"),
        ("2024-06-02", "09:30", "Walking Tour"),
        ("2024-06-02", "14:00", "Boat Trip"),
    ]


def test_persisted_row_outside_schedule_is_kept():
    activity = make_activity(default_times=["10:00"])
    extra = make_row(3, activity.id, "2024-06-01", time="18:00", total=4)

    slots = resolve_slots([extra], [activity], ["2024-06-01"])

    assert [(s.time, s.is_virtual) for s in slots] == [("10:00", True), ("18:00", False)]


def test_weekday_filter():
    # 2024-06-01 is a Saturday (5), 2024-06-03 a Monday (0)
    activity = make_activity(default_weekdays=[0])
    assert schedule_times(activity, "2024-06-01") == []
    assert schedule_times(activity, "2024-06-03") == [""]


def test_no_synthesis_for_inactive_or_zero_capacity():
    assert schedule_times(make_activity(active=False), "2024-06-01") == []
    assert schedule_times(make_activity(default_capacity=0), "2024-06-01") == []


def test_full_row_reports_zero_remaining():
    activity = make_activity()
    row = make_row(1, activity.id, "2024-06-01", total=3, booked=3)
    assert resolve_slots([row], [activity], ["2024-06-01"])[0].remaining_seats == 0


# --- Input parsing ---

def test_date_span_inclusive():
    assert date_span("2024-06-01", "2024-06-03", 62) == ["2024-06-01", "2024-06-02", "2024-06-03"]


@pytest.mark.parametrize("start,end", [("2024-06-03", "2024-06-01"), ("2024-01-01", "2024-12-31")])
def test_date_span_rejects_bad_ranges(start, end):
    with pytest.raises(ValidationError):
        date_span(start, end, 62)


def test_normalize_time():
    assert normalize_time(None) == ""
    assert normalize_time("09:05") == "09:05"
    with pytest.raises(ValidationError) as exc:
        normalize_time("25:00")
    assert exc.value.details["field"] == "time"


# --- Service against the database ---

async def test_resolve_by_slug_and_range(session):
    await add_activity(session)
    await add_activity(session, slug="boat-trip", name="Boat Trip", default_times=["10:00"])

    service = CapacityService(session)
    slots = await service.resolve(activity_id="city-tour", start_date="2024-06-01", end_date="2024-06-02")

    assert [(s.activity_name, s.date) for s in slots] == [("City Tour", "2024-06-01"), ("City Tour", "2024-06-02")]


async def test_resolve_unknown_activity_is_empty(session):
    await add_activity(session)
    assert await CapacityService(session).resolve(date="2024-06-01", activity_id="nope") == []


async def test_resolve_rejects_date_with_range(session):
    with pytest.raises(ValidationError):
        await CapacityService(session).resolve(date="2024-06-01", start_date="2024-06-01")


async def test_resolve_without_dates_lists_rows_only(session):
    await add_activity(session)
    assert await CapacityService(session).resolve() == []

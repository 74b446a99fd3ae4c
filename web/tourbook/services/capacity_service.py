"""Capacity resolution: persisted slot rows merged with activity default schedules."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..core import BaseService, ConflictError, NotFoundError, ValidationError, get_settings
from ..infrastructure.events import publish_capacity_invalidated
from ..infrastructure.repositories import ActivityRepository, CapacityRepository
from ..models import Activity, Capacity, Reservation

logger = logging.getLogger(__name__)

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

SlotKey = Tuple[int, str, str]


@dataclass
class CapacitySlot:
    """One bookable (activity, date, time) unit as seen by clients.

    ``id`` is ``None`` for virtual slots; ``time`` is ``None`` for all-day slots.
    """
    id: Optional[int]
    activity_id: int
    activity_name: str
    date: str
    time: Optional[str]
    total_seats: int
    reserved_seats: int
    is_virtual: bool

    @property
    def remaining_seats(self) -> int:
        return max(self.total_seats - self.reserved_seats, 0)

    @property
    def key(self) -> SlotKey:
        return (self.activity_id, self.date, self.time or "")


def parse_date(value: str, field: str = "date") -> date:
    """Parse a ``YYYY-MM-DD`` calendar date or raise ValidationError"""
    if not isinstance(value, str) or not re.fullmatch(r"\d{4}-\d{2}-\d{2}", value):
        raise ValidationError("Date must be formatted as YYYY-MM-DD", field=field)
    try:
        return datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"{value} is not a calendar date", field=field)


def normalize_time(value: Optional[str], field: str = "time") -> str:
    """Return ``HH:MM`` or ``""`` for an all-day slot"""
    if value is None or value == "":
        return ""
    if not isinstance(value, str) or not _TIME_RE.match(value):
        raise ValidationError("Time must be formatted as HH:MM", field=field)
    return value


def date_span(start: str, end: str, max_days: int) -> List[str]:
    """Inclusive list of ISO dates between *start* and *end*"""
    first = parse_date(start, "startDate")
    last = parse_date(end, "endDate")
    if last < first:
        raise ValidationError("endDate must not be before startDate", field="endDate")
    days = (last - first).days + 1
    if days > max_days:
        raise ValidationError(f"Date range is limited to {max_days} days", field="endDate")
    return [(first + timedelta(days=i)).isoformat() for i in range(days)]


def schedule_times(activity: Activity, day: str) -> List[str]:
    """Start times the activity's default schedule produces on *day*"""
    if not activity.active or (activity.default_capacity or 0) <= 0:
        return []
    weekdays = activity.default_weekdays or []
    if weekdays and date.fromisoformat(day).weekday() not in weekdays:
        return []
    times = sorted({t for t in (activity.default_times or []) if t})
    return times or [""]


def resolve_slots(
    rows: Iterable[Capacity],
    activities: Iterable[Activity],
    dates: Sequence[str],
) -> List[CapacitySlot]:
    """Merge persisted rows with virtual slots synthesised for *dates*.

    Persisted rows win over the schedule for the same key. The result is
    ordered by date, time, activity name and activity id.
    """
    activities = list(activities)
    names: Dict[int, str] = {a.id: a.name for a in activities}

    slots: Dict[SlotKey, CapacitySlot] = {}
    for row in rows:
        slot = CapacitySlot(
            id=row.id,
            activity_id=row.activity_id,
            activity_name=names.get(row.activity_id) or row.activity.name,
            date=row.date,
            time=row.time or None,
            total_seats=row.total_slots,
            reserved_seats=row.booked_slots,
            is_virtual=False,
        )
        slots[slot.key] = slot

    for activity in activities:
        for day in dates:
            for start in schedule_times(activity, day):
                key = (activity.id, day, start)
                if key in slots:
                    continue
                slots[key] = CapacitySlot(
                    id=None,
                    activity_id=activity.id,
                    activity_name=activity.name,
                    date=day,
                    time=start or None,
                    total_seats=activity.default_capacity,
                    reserved_seats=0,
                    is_virtual=True,
                )

    return sorted(
        slots.values(),
        key=lambda s: (s.date, s.time or "", s.activity_name, s.activity_id),
    )


class CapacityService(BaseService):
    """Read-side capacity resolution and operator slot maintenance"""

    def __init__(self, session: AsyncSession):
        super().__init__(session)
        self.capacity_repo = CapacityRepository(session)
        self.activity_repo = ActivityRepository(session)
        self.settings = get_settings()

    async def resolve(
        self,
        *,
        date: Optional[str] = None,
        activity_id: Optional[str | int] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> List[CapacitySlot]:
        """Effective slots for a date (or range) and optional activity.

        Without any date only persisted rows are returned. An unknown
        activity yields an empty list.
        """
        if date is not None and (start_date is not None or end_date is not None):
            raise ValidationError("Use either date or startDate/endDate", field="date")

        if date is not None:
            dates = [parse_date(date).isoformat()]
        elif start_date is not None or end_date is not None:
            dates = date_span(start_date or end_date, end_date or start_date, self.settings.MAX_RANGE_DAYS)
        else:
            dates = []

        scoped_id: Optional[int] = None
        if activity_id is not None and activity_id != "":
            activity = await self.activity_repo.get_by_ref(activity_id)
            if activity is None:
                return []
            scoped_id = activity.id

        rows = await self.capacity_repo.list_rows(
            date_from=dates[0] if dates else None,
            date_to=dates[-1] if dates else None,
            activity_id=scoped_id,
        )
        activities = await self.activity_repo.list_in_scope(scoped_id) if dates else []
        return resolve_slots(rows, activities, dates)

    async def resolve_for_booking(self, activity: Activity, day: str, time: Optional[str]) -> List[CapacitySlot]:
        """Candidate slots of one activity on one day, optionally narrowed to *time*"""
        rows = await self.capacity_repo.list_rows(date_from=day, date_to=day, activity_id=activity.id)
        slots = resolve_slots(rows, [activity], [day])
        if time is not None:
            slots = [s for s in slots if (s.time or "") == time]
        return slots

    async def create_slot(self, *, activity_id: int, date: str, time: Optional[str], total_seats: int) -> Capacity:
        """Create an explicit slot row (operator tooling)"""
        day = parse_date(date).isoformat()
        start = normalize_time(time)
        if total_seats < 0:
            raise ValidationError("totalSeats must not be negative", field="totalSeats")

        activity = await self.activity_repo.get(activity_id)
        if activity is None:
            raise NotFoundError("Activity", activity_id)

        if await self.capacity_repo.get_slot(activity.id, day, start) is not None:
            raise ValidationError(
                f"Capacity for {activity.slug} on {day} {start or '(all day)'} already exists",
                field="time",
            )

        slot = await self.capacity_repo.create(obj_in={
            "activity": activity,
            "date": day,
            "time": start,
            "total_slots": total_seats,
            "booked_slots": 0,
        })
        logger.info("capacity slot %s created for activity %s on %s %s", slot.id, activity.id, day, start)
        return slot

    async def update_total(self, slot_id: int, total_seats: int) -> Capacity:
        """Change a slot's seat total; never below the seats already booked"""
        if total_seats < 0:
            raise ValidationError("totalSeats must not be negative", field="totalSeats")

        slot = await self.capacity_repo.get(slot_id)
        if slot is None:
            raise NotFoundError("Capacity", slot_id)

        if not await self.capacity_repo.set_total(slot_id, total_seats):
            await self.capacity_repo.refresh_counts(slot)
            raise ConflictError(
                f"Cannot set capacity to {total_seats}, {slot.booked_slots} seats already booked"
            )

        await self.session.commit()
        await self.capacity_repo.refresh_counts(slot)
        await publish_capacity_invalidated(slot.activity_id, slot.date, slot.time, slot.id)
        return slot

    async def delete_slot(self, slot_id: int) -> None:
        slot = await self.capacity_repo.get(slot_id)
        if slot is None:
            raise NotFoundError("Capacity", slot_id)

        referenced = await self.session.scalar(
            select(func.count()).select_from(Reservation).where(Reservation.capacity_id == slot_id)
        )
        if referenced:
            raise ConflictError("Cannot delete a slot that has reservations")

        result = await self.session.execute(
            delete(Capacity)
            .where(Capacity.id == slot_id, Capacity.booked_slots == 0)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ConflictError("Cannot delete a slot that has booked seats")

        self.session.expunge(slot)
        await self.session.commit()
        await publish_capacity_invalidated(slot.activity_id, slot.date, slot.time, slot_id)


def slot_from_row(row: Capacity) -> CapacitySlot:
    """Client view of a single persisted row"""
    return resolve_slots([row], [], [])[0]

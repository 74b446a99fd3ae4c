from typing import Optional, List
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.core import BaseRepository
from tourbook.models import Activity, Capacity


class CapacityRepository(BaseRepository[Capacity]):
    """Persisted slot rows and the guarded seat counters on them.

    All counter changes are single conditional UPDATE statements so that the
    seat invariant holds without a prior read.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(Capacity, session)

    async def list_rows(
        self,
        *,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        activity_id: Optional[int] = None,
    ) -> List[Capacity]:
        query = select(Capacity)
        if date_from is not None:
            query = query.where(Capacity.date >= date_from)
        if date_to is not None:
            query = query.where(Capacity.date <= date_to)
        if activity_id is not None:
            query = query.where(Capacity.activity_id == activity_id)
        # Seat counters change through core UPDATEs; always reload them
        result = await self.session.execute(query.execution_options(populate_existing=True))
        return list(result.scalars().all())

    async def get_slot(self, activity_id: int, date: str, time: str) -> Optional[Capacity]:
        stmt = select(Capacity).where(
            Capacity.activity_id == activity_id,
            Capacity.date == date,
            Capacity.time == time,
        )
        return await self.session.scalar(stmt)

    async def refresh_counts(self, slot: Capacity) -> Capacity:
        await self.session.refresh(slot, ["total_slots", "booked_slots"])
        return slot

    async def materialize(self, activity: Activity, date: str, time: str, total_slots: int) -> Capacity:
        """Insert a slot row, or return the one a concurrent writer inserted first"""
        try:
            async with self.session.begin_nested():
                slot = Capacity(
                    activity=activity,
                    date=date,
                    time=time,
                    total_slots=total_slots,
                    booked_slots=0,
                )
                self.session.add(slot)
            return slot
        except IntegrityError:
            existing = await self.get_slot(activity.id, date, time)
            if existing is None:
                raise
            return existing

    async def try_reserve(self, slot_id: int, quantity: int) -> bool:
        """Atomically add *quantity* booked seats if they fit"""
        stmt = (
            update(Capacity)
            .where(
                Capacity.id == slot_id,
                Capacity.booked_slots + quantity <= Capacity.total_slots,
            )
            .values(booked_slots=Capacity.booked_slots + quantity)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def release(self, slot_id: int, quantity: int) -> bool:
        stmt = (
            update(Capacity)
            .where(Capacity.id == slot_id, Capacity.booked_slots >= quantity)
            .values(booked_slots=Capacity.booked_slots - quantity)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def set_total(self, slot_id: int, total_slots: int) -> bool:
        """Change the seat total unless it would drop below booked seats"""
        stmt = (
            update(Capacity)
            .where(Capacity.id == slot_id, Capacity.booked_slots <= total_slots)
            .values(total_slots=total_slots)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

from typing import Optional, List
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.core import BaseRepository
from tourbook.models import Activity, Reservation


class ActivityRepository(BaseRepository[Activity]):
    """Activity repository implementation"""

    def __init__(self, session: AsyncSession):
        super().__init__(Activity, session)

    async def get_by_slug(self, slug: str) -> Optional[Activity]:
        return await self.session.scalar(select(Activity).where(Activity.slug == slug))

    async def get_by_ref(self, ref: "int | str") -> Optional[Activity]:
        """Look an activity up by numeric id or by slug.

        All-digit refs are tried as an id first, then as a slug.
        """
        if isinstance(ref, int):
            return await self.get(ref)
        if str(ref).isdigit():
            activity = await self.get(int(ref))
            if activity is not None:
                return activity
        return await self.get_by_slug(str(ref))

    async def list_activities(
        self,
        *,
        active: Optional[bool] = None,
        featured: Optional[bool] = None,
        search: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Activity]:
        query = select(Activity)
        if active is not None:
            query = query.where(Activity.active == active)
        if featured is not None:
            query = query.where(Activity.featured == featured)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.where(or_(
                func.lower(Activity.name).like(pattern),
                func.lower(Activity.slug).like(pattern),
            ))
        query = query.order_by(Activity.featured.desc(), Activity.name, Activity.id)
        result = await self.session.execute(query.offset(skip).limit(limit))
        return list(result.scalars().all())

    async def list_in_scope(self, activity_id: Optional[int] = None) -> List[Activity]:
        """Activities considered by the capacity resolver"""
        query = select(Activity)
        if activity_id is not None:
            query = query.where(Activity.id == activity_id)
        result = await self.session.execute(query.order_by(Activity.id))
        return list(result.scalars().all())

    async def slug_taken(self, slug: str, *, exclude_id: Optional[int] = None) -> bool:
        query = select(func.count()).select_from(Activity).where(Activity.slug == slug)
        if exclude_id is not None:
            query = query.where(Activity.id != exclude_id)
        return bool(await self.session.scalar(query))

    async def has_reservations(self, activity_id: int) -> bool:
        stmt = select(func.count()).select_from(Reservation).where(Reservation.activity_id == activity_id)
        return bool(await self.session.scalar(stmt))

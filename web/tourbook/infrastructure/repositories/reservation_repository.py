from typing import Optional, List, Dict, Any
from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.core import BaseRepository
from tourbook.models import Reservation, Activity, utcnow


class ReservationRepository(BaseRepository[Reservation]):
    """Reservation repository implementation"""

    def __init__(self, session: AsyncSession):
        super().__init__(Reservation, session)

    async def get_by_external(self, source: str, external_id: str) -> List[Reservation]:
        """All reservations produced by one external order/message"""
        stmt = (
            select(Reservation)
            .where(Reservation.source == source, Reservation.external_id == external_id)
            .order_by(Reservation.id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def list_reservations(
        self,
        *,
        status: Optional[str] = None,
        activity_id: Optional[int] = None,
        date: Optional[str] = None,
        source: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[Reservation]:
        query = self._apply_filters(select(Reservation), {
            "status": status,
            "activity_id": activity_id,
            "date": date,
            "source": source,
        })
        query = query.order_by(Reservation.created_at.desc(), Reservation.id.desc())
        result = await self.session.execute(query.offset(skip).limit(limit))
        return list(result.scalars().all())

    async def mark_cancelled(self, reservation_id: int) -> bool:
        """Flip status to cancelled; ``False`` when it already was"""
        stmt = (
            update(Reservation)
            .where(Reservation.id == reservation_id, Reservation.status != "cancelled")
            .values(status="cancelled", cancelled_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def mark_confirmed(self, reservation_id: int) -> bool:
        stmt = (
            update(Reservation)
            .where(Reservation.id == reservation_id, Reservation.status == "pending")
            .values(status="confirmed")
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def find_for_contact(
        self,
        *,
        phone_suffix: Optional[str] = None,
        order_number: Optional[str] = None,
    ) -> Optional[Reservation]:
        """Most recent reservation matching an order number or phone tail"""
        conditions = []
        if order_number:
            conditions.append(Reservation.external_id == order_number)
            if order_number.isdigit():
                conditions.append(Reservation.id == int(order_number))
        if phone_suffix:
            conditions.append(Reservation.customer_phone.like(f"%{phone_suffix}"))
        if not conditions:
            return None

        stmt = (
            select(Reservation)
            .where(or_(*conditions))
            .order_by(Reservation.created_at.desc(), Reservation.id.desc())
            .limit(1)
        )
        return await self.session.scalar(stmt)

    async def get_stats(self, *, top: int = 5) -> Dict[str, Any]:
        """Aggregate figures over non-cancelled reservations"""
        active = Reservation.status != "cancelled"

        total = await self.session.scalar(
            select(func.count()).select_from(Reservation).where(active)
        )

        revenue_rows = await self.session.execute(
            select(Reservation.currency, func.coalesce(func.sum(Reservation.total_price), 0))
            .where(active)
            .group_by(Reservation.currency)
            .order_by(Reservation.currency)
        )

        seats = func.sum(Reservation.quantity).label("seats")
        popular_rows = await self.session.execute(
            select(Activity.id, Activity.name, seats, func.count(Reservation.id))
            .join(Activity, Activity.id == Reservation.activity_id)
            .where(active)
            .group_by(Activity.id, Activity.name)
            .order_by(seats.desc(), Activity.id)
            .limit(top)
        )

        return {
            "total_reservations": total or 0,
            "total_revenue": {currency: amount for currency, amount in revenue_rows.all()},
            "popular_activities": [
                {"activity_id": aid, "name": name, "seats": int(s or 0), "reservations": n}
                for aid, name, s, n in popular_rows.all()
            ],
        }

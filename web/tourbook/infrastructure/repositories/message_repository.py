from typing import Iterable, List, Optional, Set
from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.core import BaseRepository
from tourbook.models import Message


class MessageRepository(BaseRepository[Message]):
    """Stored WhatsApp exchanges"""

    def __init__(self, session: AsyncSession):
        super().__init__(Message, session)

    async def external_id_seen(self, external_id: str) -> bool:
        stmt = select(func.count()).select_from(Message).where(Message.external_id == external_id)
        return bool(await self.session.scalar(stmt))

    async def recent(self, phone: str, *, limit: int = 5) -> List[Message]:
        """Last *limit* messages for a phone, oldest first"""
        stmt = (
            select(Message)
            .where(Message.phone == phone)
            .order_by(Message.timestamp.desc(), Message.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(reversed(result.scalars().all()))

    async def thread(self, phone: str, *, skip: int = 0, limit: int = 200) -> List[Message]:
        stmt = (
            select(Message)
            .where(Message.phone == phone)
            .order_by(Message.timestamp, Message.id)
            .offset(skip)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def latest_per_phone(self, *, limit: Optional[int] = 50) -> List[Message]:
        """Newest message of each phone, newest thread first; no limit when *limit* is None"""
        last_ids = (
            select(func.max(Message.id).label("id"))
            .group_by(Message.phone)
            .subquery()
        )
        stmt = (
            select(Message)
            .join(last_ids, Message.id == last_ids.c.id)
            .order_by(Message.id.desc())
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def flagged_phones(self, phones: Iterable[str]) -> Set[str]:
        phones = list(phones)
        if not phones:
            return set()
        stmt = (
            select(Message.phone)
            .where(Message.phone.in_(phones), Message.requires_human_intervention.is_(True))
            .distinct()
        )
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def flag_for_human(self, message_id: int) -> None:
        await self.session.execute(
            update(Message)
            .where(Message.id == message_id)
            .values(requires_human_intervention=True)
            .execution_options(synchronize_session=False)
        )

from typing import Dict, Iterable, Optional, List
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.core import BaseRepository
from tourbook.models import SupportRequest


class SupportRequestRepository(BaseRepository[SupportRequest]):

    def __init__(self, session: AsyncSession):
        super().__init__(SupportRequest, session)

    async def get_open(self, phone: str) -> Optional[SupportRequest]:
        stmt = (
            select(SupportRequest)
            .where(SupportRequest.phone == phone, SupportRequest.status == "open")
            .order_by(SupportRequest.id.desc())
            .limit(1)
        )
        return await self.session.scalar(stmt)

    async def open_for_phones(self, phones: Iterable[str]) -> Dict[str, SupportRequest]:
        """Newest open request per phone"""
        phones = list(phones)
        if not phones:
            return {}
        stmt = (
            select(SupportRequest)
            .where(SupportRequest.phone.in_(phones), SupportRequest.status == "open")
            .order_by(SupportRequest.id)
        )
        result = await self.session.execute(stmt)
        return {request.phone: request for request in result.scalars().all()}

    async def list_requests(self, *, status: Optional[str] = None, skip: int = 0, limit: int = 100) -> List[SupportRequest]:
        return await self.get_multi(
            skip=skip,
            limit=limit,
            filters={"status": status},
            order_by=SupportRequest.id.desc(),
        )

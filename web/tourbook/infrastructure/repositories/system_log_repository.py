from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.core import BaseRepository
from tourbook.models import SystemLog


class SystemLogRepository(BaseRepository[SystemLog]):

    def __init__(self, session: AsyncSession):
        super().__init__(SystemLog, session)

    async def list_logs(
        self,
        *,
        level: Optional[str] = None,
        source: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> List[SystemLog]:
        return await self.get_multi(
            skip=skip,
            limit=limit,
            filters={"level": level, "source": source},
            order_by=SystemLog.id.desc(),
        )

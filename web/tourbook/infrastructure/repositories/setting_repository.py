from typing import Any, Dict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.core import BaseRepository
from tourbook.models import Setting


class SettingRepository(BaseRepository[Setting]):
    """Key/JSON settings editable at runtime"""

    def __init__(self, session: AsyncSession):
        super().__init__(Setting, session)

    async def get_value(self, key: str, default: Any = None) -> Any:
        row = await self.get(key)
        return default if row is None else row.value

    async def set_value(self, key: str, value: Any) -> Setting:
        row = await self.get(key)
        if row is None:
            row = Setting(key=key, value=value)
            self.session.add(row)
        else:
            row.value = value
        await self.session.flush()
        return row

    async def all_values(self) -> Dict[str, Any]:
        result = await self.session.execute(select(Setting).order_by(Setting.key))
        return {row.key: row.value for row in result.scalars().all()}

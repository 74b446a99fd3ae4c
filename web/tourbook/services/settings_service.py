from __future__ import annotations

from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from ..core import BaseService, NotFoundError, ValidationError
from ..infrastructure.repositories import SettingRepository

DEFAULT_SETTINGS: Dict[str, Any] = {
    "bot_enabled": True,
    "bot_handoff_keywords": ["yetkili", "müdahale", "iletiyorum"],
}


def _check_value(key: str, value: Any) -> Any:
    if key == "bot_enabled":
        if not isinstance(value, bool):
            raise ValidationError("bot_enabled must be a boolean", field="value")
    elif key == "bot_handoff_keywords":
        if not isinstance(value, list) or not all(isinstance(v, str) and v.strip() for v in value):
            raise ValidationError("bot_handoff_keywords must be a list of words", field="value")
        value = [v.strip().lower() for v in value]
    return value


class SettingsService(BaseService):
    """Runtime settings stored in the ``settings`` table"""

    def __init__(self, session: AsyncSession):
        super().__init__(session)
        self.repo = SettingRepository(session)

    async def get(self, key: str) -> Any:
        if key not in DEFAULT_SETTINGS:
            raise NotFoundError("Setting", key)
        return await self.repo.get_value(key, DEFAULT_SETTINGS[key])

    async def all(self) -> Dict[str, Any]:
        stored = await self.repo.all_values()
        return {key: stored.get(key, default) for key, default in DEFAULT_SETTINGS.items()}

    async def set(self, key: str, value: Any) -> Any:
        if key not in DEFAULT_SETTINGS:
            raise NotFoundError("Setting", key)
        row = await self.repo.set_value(key, _check_value(key, value))
        return row.value

    async def seed_defaults(self) -> None:
        """Insert defaults for settings that were never stored"""
        for key, value in DEFAULT_SETTINGS.items():
            if await self.repo.get(key) is None:
                await self.repo.set_value(key, value)

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from tourbook.infrastructure.repositories import (
    ActivityRepository,
    CapacityRepository,
    ReservationRepository,
    MessageRepository,
    SupportRequestRepository,
    SystemLogRepository,
    SettingRepository,
)


class UnitOfWork:
    """Repositories sharing one session and one transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.activities = ActivityRepository(session)
        self.capacity = CapacityRepository(session)
        self.reservations = ReservationRepository(session)
        self.messages = MessageRepository(session)
        self.support_requests = SupportRequestRepository(session)
        self.system_logs = SystemLogRepository(session)
        self.settings = SettingRepository(session)

    async def __aenter__(self) -> UnitOfWork:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            await self.rollback()

    async def commit(self):
        await self.session.commit()

    async def rollback(self):
        await self.session.rollback()

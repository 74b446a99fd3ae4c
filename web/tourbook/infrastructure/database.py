from typing import AsyncGenerator
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker

from tourbook.core import get_settings


settings = get_settings()


def build_engine(dsn: str, *, echo: bool = False, pool_size: int = 5) -> AsyncEngine:
    """Create an async engine for *dsn*.

    SQLite connections are switched to explicit ``BEGIN IMMEDIATE``
    transactions so that concurrent writers queue on the database lock and
    SAVEPOINTs behave.
    """
    if dsn.startswith("sqlite"):
        engine = create_async_engine(dsn, echo=echo, connect_args={"timeout": 30})

        @event.listens_for(engine.sync_engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    return create_async_engine(
        dsn,
        echo=echo,
        pool_size=pool_size,
        pool_pre_ping=True  # Enable connection health checks
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine = build_engine(settings.DB_DSN, echo=settings.DB_ECHO, pool_size=settings.DB_POOL_SIZE)
AsyncSessionFactory = build_session_factory(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session"""
    async with AsyncSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

from .database import engine, AsyncSessionFactory, get_session, build_engine, build_session_factory
from .redis_client import get_redis, set_redis, close_redis

__all__ = [
    "engine",
    "AsyncSessionFactory",
    "get_session",
    "build_engine",
    "build_session_factory",
    "get_redis",
    "set_redis",
    "close_redis",
]

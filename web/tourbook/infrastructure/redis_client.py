"""Shared Redis connection used for locks and capacity invalidation events."""

from typing import Optional

from redis.asyncio import Redis

from tourbook.core import get_settings

_client: Optional[Redis] = None


def get_redis() -> Redis:
    """Return the process-wide pooled client, creating it on first use."""
    global _client
    if _client is None:
        _client = Redis.from_url(get_settings().REDIS_DSN, encoding="utf-8", decode_responses=True)
    return _client


def set_redis(client: Optional[Redis]) -> None:
    """Replace the shared client (``None`` forces a reconnect on next use)."""
    global _client
    _client = client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None

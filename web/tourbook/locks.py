import asyncio
import time
import uuid

from tourbook.core import ConflictError
from tourbook.infrastructure.redis_client import get_redis

# ---------------------------------------------------------------------------
#  Per-key mutex on Redis
# ---------------------------------------------------------------------------


class KeyLock:
    """Async context-manager holding a short-lived Redis lock on one key.

    Usage::
        async with KeyLock("woocommerce:order:1234"):
            # only one worker handles this delivery at a time

    Locks expire after *ttl* seconds so a crashed worker cannot block the key
    forever.
    """

    def __init__(self, name: str, ttl: int = 30, retry_delay: float = 0.1, timeout: float = 5.0):
        self.key = f"lock:{name}"
        self.ttl = ttl
        self._retry_delay = retry_delay
        self._timeout = timeout
        self._token = uuid.uuid4().hex  # unique owner id
        self._held = False

    async def acquire(self) -> None:
        redis = get_redis()
        start = time.monotonic()
        # SET NX EX implements a simple mutex
        while True:
            if await redis.set(self.key, self._token, ex=self.ttl, nx=True):
                self._held = True
                return
            if time.monotonic() - start > self._timeout:
                raise ConflictError(f"{self.key} is held by another worker, retry later")
            await asyncio.sleep(self._retry_delay)

    async def release(self) -> None:
        if not self._held:
            return
        self._held = False
        redis = get_redis()
        # Delete the lock only if we still own it
        if (await redis.get(self.key)) == self._token:
            await redis.delete(self.key)

    async def __aenter__(self):
        await self.acquire()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.release()

"""
Per-key locks that serialize mutations of a single ride (or customer).

Two backends share the ``lock(key)`` async-context-manager interface:

* ``RedisLockManager`` -- ``DistributedLock`` built on SET NX EX for acquire
  and a Lua script for atomic check-and-delete on release.  Use it when
  several API processes share one database.
* ``LocalLockManager`` -- one ``asyncio.Lock`` per key, for a single
  process (development, tests).

Both wait at most ``wait_timeout`` seconds and then raise ``LockTimeout``.
Writes under the lock are still compare-and-set, so a Redis lock whose TTL
lapses mid-operation cannot produce a double assignment.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator

import redis.asyncio as aioredis

from ridehail.domain.errors import LockTimeout

logger = logging.getLogger(__name__)


class DistributedLock:
    def __init__(
        self,
        client: aioredis.Redis,
        key: str,
        ttl_seconds: int = 10,
        wait_timeout: float = 0.0,
        retry_interval: float = 0.05,
    ):
        self.redis = client
        self.key = f"lock:{key}"
        self.ttl = ttl_seconds
        self.wait_timeout = wait_timeout
        self.retry_interval = retry_interval
        self.token = str(uuid.uuid4())

    async def acquire(self, timeout: float = 0.0) -> bool:
        """Try to acquire, polling for up to *timeout* seconds."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            if await self.redis.set(self.key, self.token, nx=True, ex=self.ttl):
                return True
            if loop.time() >= deadline:
                return False
            await asyncio.sleep(self.retry_interval)

    async def release(self) -> None:
        """Release only if we still own the lock (atomic via Lua)."""
        lua = """
        if redis.call("get", KEYS[1]) == ARGV[1] then
            return redis.call("del", KEYS[1])
        else
            return 0
        end
        """
        released = await self.redis.eval(lua, 1, self.key, self.token)
        if not released:
            logger.warning("Lock %s expired before release", self.key)

    # context-manager support
    async def __aenter__(self):
        acquired = await self.acquire(self.wait_timeout)
        if not acquired:
            raise LockTimeout(f"Could not acquire lock: {self.key}")
        return self

    async def __aexit__(self, *args):
        await self.release()


class RedisLockManager:
    def __init__(
        self,
        client: aioredis.Redis,
        ttl_seconds: int = 10,
        wait_timeout: float = 5.0,
    ):
        self.client = client
        self.ttl = ttl_seconds
        self.wait_timeout = wait_timeout

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        async with DistributedLock(
            self.client, key, ttl_seconds=self.ttl, wait_timeout=self.wait_timeout
        ):
            yield


class LocalLockManager:
    def __init__(self, wait_timeout: float = 5.0):
        self.wait_timeout = wait_timeout
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            try:
                await asyncio.wait_for(lock.acquire(), timeout=self.wait_timeout)
            except asyncio.TimeoutError:
                raise LockTimeout(f"Could not acquire lock: lock:{key}") from None
            try:
                yield
            finally:
                lock.release()
        finally:
            self._holders[key] -= 1
            if not self._holders[key]:
                del self._holders[key]
                del self._locks[key]

"""Per-owner mutual exclusion.

`KeyedAsyncLock` serializes operations of one owner inside a single process.
`RedisOwnerLock` does the same across processes sharing one Session Store.
"""

import asyncio
import os
import random
import socket
import time
import uuid
from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import AsyncIterator, Optional

from loguru import logger

from streamctl.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


def default_owner_id() -> str:
    """Generate a default lock holder id (host:pid:uuid8)."""
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


# Atomically release: only delete if value==holder
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""


class OwnerLock(ABC):
    """Keyed mutex: at most one critical section per owner at a time."""

    @abstractmethod
    def hold(self, owner_id: str) -> AbstractAsyncContextManager[None]:
        """Async context manager held for the duration of an owner's critical section."""


class KeyedAsyncLock(OwnerLock):
    """In-process keyed mutex. Idle keys are dropped once no task waits on them."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, owner_id: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(owner_id, asyncio.Lock())
        self._waiters[owner_id] = self._waiters.get(owner_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[owner_id] -= 1
            if self._waiters[owner_id] == 0:
                del self._waiters[owner_id]
                self._locks.pop(owner_id, None)

    def __len__(self) -> int:
        return len(self._locks)


class LockManager:
    """
    Single-key Redis lock (SET NX EX) with holder-checked release.

    Args:
        redis_client: async Redis client
        lock_prefix: key namespace, keys look like `<prefix>:<part>:<part>`
        default_ttl: seconds before an abandoned lock expires
        owner: holder id written as the key value (defaults to host:pid:uuid8)
    """

    def __init__(
        self,
        redis_client,
        lock_prefix: str = "lock",
        default_ttl: int = 300,
        owner: Optional[str] = None,
    ):
        self.redis_client = redis_client
        self.lock_prefix = lock_prefix
        self.default_ttl = int(default_ttl)
        self.owner = owner or default_owner_id()

        self.lock_key: Optional[str] = None
        self.acquired: bool = False
        self._ttl: int = self.default_ttl

    def _make_lock_key(self, *parts) -> str:
        return ":".join([self.lock_prefix, *(str(part) for part in parts)])

    async def _try_set(self) -> bool:
        return bool(await self.redis_client.set(self.lock_key, self.owner, nx=True, ex=self._ttl))

    async def acquire(
        self,
        *key_parts,
        ttl: Optional[int] = None,
        blocking: bool = True,
        blocking_timeout: Optional[float] = None,
        retry_interval: float = 0.2,
        jitter: float = 0.1,
    ) -> bool:
        """
        Acquire the lock for `key_parts`.

        Non-blocking (or `blocking_timeout <= 0`) tries once. Otherwise retries
        every `retry_interval` plus up to `jitter` seconds until acquired or
        `blocking_timeout` elapses (`None` waits forever).
        """
        self.lock_key = self._make_lock_key(*key_parts)
        self._ttl = int(ttl or self.default_ttl)

        if not blocking or (blocking_timeout is not None and blocking_timeout <= 0):
            self.acquired = await self._try_set()
        else:
            deadline = None if blocking_timeout is None else time.monotonic() + blocking_timeout
            while not (acquired := await self._try_set()):
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    break
                pause = retry_interval + random.uniform(0, max(jitter, 0))
                await asyncio.sleep(pause if remaining is None else min(pause, remaining))
            self.acquired = acquired

        if self.acquired:
            logger.debug("Acquired lock: key={} owner={} ttl={}", self.lock_key, self.owner, self._ttl)
        else:
            logger.warning("Failed to acquire lock: key={} owner={}", self.lock_key, self.owner)
        return self.acquired

    async def _eval(self, script: str, *args) -> int:
        return await self.redis_client.eval(script, 1, self.lock_key, self.owner, *args)

    async def release(self) -> bool:
        """Delete the key only if it still holds our owner id."""
        if not self.lock_key or not self.acquired:
            return False

        try:
            released = await self._eval(_RELEASE_LUA) == 1
        except Exception as e:
            # The TTL frees the key eventually
            logger.error("Error releasing lock: key={} owner={} error={}", self.lock_key, self.owner, e)
            return False
        finally:
            self.acquired = False

        if released:
            logger.debug("Released lock: key={} owner={}", self.lock_key, self.owner)
        else:
            logger.warning("Cannot release lock, not owned: key={} owner={}", self.lock_key, self.owner)
        return released

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.acquired:
            await self.release()


class RedisOwnerLock(OwnerLock):
    """Keyed mutex shared by every orchestrator instance pointing at the same Redis."""

    def __init__(self, redis_client, ttl: int = 120, wait_seconds: float = 30, lock_prefix: str = "owner_lock"):
        self.redis_client = redis_client
        self.ttl = ttl
        self.wait_seconds = wait_seconds
        self.lock_prefix = lock_prefix

    @asynccontextmanager
    async def hold(self, owner_id: str) -> AsyncIterator[None]:
        lock = LockManager(self.redis_client, lock_prefix=self.lock_prefix, default_ttl=self.ttl)
        if not await lock.acquire(owner_id, blocking_timeout=self.wait_seconds):
            raise AppError(
                errcode=AppErrorCode.E_OWNER_BUSY,
                errmesg="Another operation is in progress for this owner, try again",
                status_code=HttpStatusCode.CONFLICT,
            )
        async with lock:
            yield


def build_owner_lock() -> OwnerLock:
    """Owner lock selected by `OWNER_LOCK_BACKEND` (`local` or `redis`)."""
    from streamctl.app_config import get_app_environ_config

    app_config = get_app_environ_config()
    if app_config.OWNER_LOCK_BACKEND == "redis":
        from streamctl.shared.storage.redis import get_cache_client

        return RedisOwnerLock(
            get_cache_client(),
            ttl=app_config.OWNER_LOCK_TTL_SECONDS,
            wait_seconds=app_config.OWNER_LOCK_WAIT_SECONDS,
        )
    return KeyedAsyncLock()


__all__ = [
    "KeyedAsyncLock",
    "LockManager",
    "OwnerLock",
    "RedisOwnerLock",
    "build_owner_lock",
]

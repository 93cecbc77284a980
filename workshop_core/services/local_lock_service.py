"""
In-process lock service with the same interface as RedisLockService.

One asyncio.Lock per resource key. Used with the in-memory repository
(single process) and in tests.
"""
import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from workshop_core.config import config
from workshop_core.exceptions import BusyError

logger = logging.getLogger(__name__)


class LocalLockService:

    def __init__(self, acquire_timeout: Optional[float] = None):
        self.acquire_timeout = acquire_timeout or config.LOCK_ACQUIRE_TIMEOUT_SECONDS
        self._locks: dict[str, asyncio.Lock] = {}
        self._owners: dict[str, str] = {}

    def _lock_for(self, resource: str) -> asyncio.Lock:
        lock = self._locks.get(resource)
        if lock is None:
            lock = self._locks[resource] = asyncio.Lock()
        return lock

    async def acquire(self, resource: str, timeout: Optional[float] = None) -> str:
        """
        Raises:
            BusyError: Lock not acquired within timeout
        """
        wait = self.acquire_timeout if timeout is None else timeout
        lock = self._lock_for(resource)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=wait)
        except asyncio.TimeoutError:
            logger.warning(f"Lock busy: {resource} (waited {wait}s)")
            raise BusyError(resource, wait)

        token = str(uuid.uuid4())
        self._owners[resource] = token
        logger.debug(f"Lock acquired: {resource}")
        return token

    async def release(self, resource: str, token: str) -> bool:
        if self._owners.get(resource) != token:
            logger.warning(f"Lock not released: {resource} - not owned by token")
            return False

        del self._owners[resource]
        self._locks[resource].release()
        logger.debug(f"Lock released: {resource}")
        return True

    @asynccontextmanager
    async def hold(self, resource: str, timeout: Optional[float] = None) -> AsyncIterator[str]:
        token = await self.acquire(resource, timeout=timeout)
        try:
            yield token
        finally:
            await self.release(resource, token)

    async def is_locked(self, resource: str) -> bool:
        lock = self._locks.get(resource)
        return lock is not None and lock.locked()

"""
Redis lock service for per-job and per-company serialization.

Implements the distributed locking pattern with SET NX PX so that every
mutation of a job (and every capacity admission of a company) runs alone
across all API processes.

Key patterns:
- SET NX PX: Atomic lock acquisition with automatic expiration
- Lua script: Safe lock release with ownership verification
- Lock tokens: UUID-based tokens prevent accidental release
- Bounded wait: polling stops after the acquire timeout with BusyError
"""
import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from redis import asyncio as aioredis
from redis.exceptions import RedisError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)

from workshop_core.config import config
from workshop_core.exceptions import BusyError, StorageError

logger = logging.getLogger(__name__)

# Lua script for safe lock release with ownership verification
RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class RedisLockService:
    """
    Distributed mutual exclusion keyed by resource name.

    Resource keys used by the services:
    - "job:{job_id}": per-job lock for transitions and claims
    - "admission:{company_id}": tenant admission lock for capacity checks

    Attributes:
        redis: Async Redis client instance
        ttl_seconds: Lock expiry, bounds how long a crashed holder blocks others
        acquire_timeout: Seconds to wait for a held lock before BusyError
        poll_interval: Seconds between acquisition attempts
    """

    def __init__(
        self,
        redis_client: aioredis.Redis,
        ttl_seconds: Optional[int] = None,
        acquire_timeout: Optional[float] = None,
        poll_interval: Optional[float] = None
    ):
        """
        Initialize lock service with Redis client.

        Args:
            redis_client: Connected async Redis client (from RedisRepository.get_client())
            ttl_seconds: Lock TTL (defaults to config.LOCK_TTL_SECONDS)
            acquire_timeout: Bounded wait (defaults to config.LOCK_ACQUIRE_TIMEOUT_SECONDS)
            poll_interval: Retry spacing (defaults to config.LOCK_POLL_INTERVAL_SECONDS)
        """
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds or config.LOCK_TTL_SECONDS
        self.acquire_timeout = acquire_timeout or config.LOCK_ACQUIRE_TIMEOUT_SECONDS
        self.poll_interval = poll_interval or config.LOCK_POLL_INTERVAL_SECONDS

    def _lock_key(self, resource: str) -> str:
        """
        Generate Redis key for a resource lock.

        Format: "workshop_lock:{resource}"
        """
        return f"workshop_lock:{resource}"

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        retry=retry_if_exception_type(RedisError),
        reraise=True
    )
    async def _try_set(self, lock_key: str, token: str) -> bool:
        acquired = await self.redis.set(
            lock_key,
            token,
            nx=True,  # Only set if key doesn't exist
            px=self.ttl_seconds * 1000
        )
        return bool(acquired)

    async def acquire(self, resource: str, timeout: Optional[float] = None) -> str:
        """
        Acquire the lock on resource, waiting at most timeout seconds.

        Args:
            resource: Resource name (e.g. "job:J-1")
            timeout: Override of the configured acquire timeout

        Returns:
            Lock token for release()

        Raises:
            BusyError: Lock still held by someone else when the wait ran out
            StorageError: Redis failed after retries
        """
        lock_key = self._lock_key(resource)
        token = str(uuid.uuid4())
        wait = self.acquire_timeout if timeout is None else timeout
        deadline = time.monotonic() + wait

        try:
            while True:
                if await self._try_set(lock_key, token):
                    logger.debug(f"Lock acquired: {resource} (token: {token[:8]}...)")
                    return token

                if time.monotonic() >= deadline:
                    logger.warning(f"Lock busy: {resource} (waited {wait}s)")
                    raise BusyError(resource, wait)

                await asyncio.sleep(self.poll_interval)
        except RedisError as e:
            logger.error(f"Redis error acquiring lock for {resource}: {e}")
            raise StorageError("Lock acquisition failed", details=str(e)) from e

    async def release(self, resource: str, token: str) -> bool:
        """
        Release lock safely using Lua script with ownership verification.

        Returns:
            True if released, False if the lock expired or belongs to another holder
        """
        lock_key = self._lock_key(resource)

        try:
            # KEYS[1] = lock_key, ARGV[1] = expected token
            result = await self.redis.eval(RELEASE_SCRIPT, 1, lock_key, token)
        except RedisError as e:
            logger.error(f"Redis error releasing lock for {resource}: {e}")
            raise StorageError("Lock release failed", details=str(e)) from e

        released = result == 1
        if released:
            logger.debug(f"Lock released: {resource} (token: {token[:8]}...)")
        else:
            logger.warning(
                f"Lock not released: {resource} - expired or not owned "
                f"(token: {token[:8]}...)"
            )
        return released

    @asynccontextmanager
    async def hold(self, resource: str, timeout: Optional[float] = None) -> AsyncIterator[str]:
        """
        Hold the lock on resource for the duration of the block.

        Usage:
            async with lock_service.hold(f"job:{job_id}"):
                ...
        """
        token = await self.acquire(resource, timeout=timeout)
        try:
            yield token
        finally:
            await self.release(resource, token)

    async def is_locked(self, resource: str) -> bool:
        try:
            return bool(await self.redis.exists(self._lock_key(resource)))
        except RedisError as e:
            raise StorageError("Lock query failed", details=str(e)) from e

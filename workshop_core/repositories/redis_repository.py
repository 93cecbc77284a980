"""
Redis connection owner for the workshop engine.

One process-wide async client backs the Redis workshop store, the
distributed job locks and the workshop:updates publisher. The FastAPI
startup event connects it; shutdown closes it.

Usage:
    redis_repo = RedisRepository()
    await redis_repo.connect()
    client = redis_repo.get_client()
    await redis_repo.disconnect()
"""
import logging
from typing import Optional
from redis import asyncio as aioredis
from redis.exceptions import RedisError, ConnectionError as RedisConnectionError
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)

from workshop_core.config import config

logger = logging.getLogger(__name__)


def _build_pool() -> aioredis.ConnectionPool:
    return aioredis.ConnectionPool.from_url(
        config.REDIS_URL,
        max_connections=config.REDIS_POOL_MAX_CONNECTIONS,
        decode_responses=True,
        encoding='utf-8',
        socket_connect_timeout=config.REDIS_SOCKET_CONNECT_TIMEOUT,
        socket_timeout=config.REDIS_SOCKET_TIMEOUT,
        socket_keepalive=True,
        retry_on_timeout=True,
        health_check_interval=config.REDIS_HEALTH_CHECK_INTERVAL
    )


class RedisRepository:
    """
    Singleton holding the shared client and its pool.

    Attributes:
        client: Async Redis client (decode_responses=True), None until connected
    """

    _instance: Optional['RedisRepository'] = None
    _initialized: bool = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not RedisRepository._initialized:
            self.client: Optional[aioredis.Redis] = None
            self._pool: Optional[aioredis.ConnectionPool] = None
            RedisRepository._initialized = True

    @property
    def is_connected(self) -> bool:
        return self.client is not None

    def get_client(self) -> aioredis.Redis:
        """
        Client for the Redis-backed workshop services.

        Raises:
            RedisConnectionError: startup has not connected the client yet
        """
        if self.client is None:
            raise RedisConnectionError(
                "Redis client requested before connect(); "
                "STORAGE_BACKEND=redis needs the startup event to run first"
            )
        return self.client

    async def connect(self) -> None:
        """
        Open the pool and PING until Redis answers.

        Raises:
            RedisConnectionError: Redis unreachable after the retries
        """
        if self.is_connected:
            logger.debug("Redis already connected")
            return

        logger.info(
            f"Connecting to Redis at {config.REDIS_URL} "
            f"(pool: {config.REDIS_POOL_MAX_CONNECTIONS} connections)"
        )
        self._pool = _build_pool()
        self.client = aioredis.Redis(connection_pool=self._pool)

        try:
            await self._ping()
        except RedisError as e:
            logger.error(f"Failed to connect to Redis: {e}")
            await self.disconnect()
            raise RedisConnectionError(f"Redis connection failed: {e}") from e

        logger.info("Redis connection established")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=5),
        retry=retry_if_exception_type(RedisConnectionError),
        reraise=True
    )
    async def _ping(self) -> None:
        if not await self.client.ping():
            raise RedisConnectionError("PING returned False")

    async def disconnect(self) -> None:
        """Close the client and its pool. Safe to call twice."""
        try:
            if self.client is not None:
                await self.client.aclose()
            if self._pool is not None:
                await self._pool.disconnect()
            logger.info("Redis disconnected")
        except RedisError as e:
            logger.error(f"Error disconnecting from Redis: {e}")
        finally:
            self.client = None
            self._pool = None

    def get_connection_stats(self) -> dict:
        """Pool figures reported by GET /api/health."""
        if self._pool is None:
            return {"status": "pool_not_initialized", "max_connections": 0}
        return {"status": "ok", "max_connections": self._pool.max_connections}

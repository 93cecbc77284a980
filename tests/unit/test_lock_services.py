"""
Unit tests for the lock services.

RedisLockService runs against fakeredis (Lua release needs the lua extra)
and against a mocked client for error paths; LocalLockService uses
asyncio locks.
"""
import asyncio
from unittest.mock import AsyncMock

import fakeredis.aioredis
import pytest
from redis.exceptions import RedisError

from workshop_core.exceptions import BusyError, StorageError
from workshop_core.services.local_lock_service import LocalLockService
from workshop_core.services.redis_lock_service import RedisLockService


@pytest.fixture
def fake_redis():
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


@pytest.fixture
def redis_locks(fake_redis):
    return RedisLockService(fake_redis, ttl_seconds=5, acquire_timeout=0.2, poll_interval=0.01)


@pytest.fixture
def local_locks():
    return LocalLockService(acquire_timeout=0.2)


@pytest.fixture(params=["redis", "local"])
def locks(request, redis_locks, local_locks):
    return redis_locks if request.param == "redis" else local_locks


@pytest.mark.asyncio
async def test_acquire_and_release(locks):
    token = await locks.acquire("job:J-1")

    assert await locks.is_locked("job:J-1")
    assert await locks.release("job:J-1", token) is True
    assert not await locks.is_locked("job:J-1")


@pytest.mark.asyncio
async def test_second_acquire_times_out_with_busy(locks):
    await locks.acquire("job:J-1")

    with pytest.raises(BusyError) as exc_info:
        await locks.acquire("job:J-1", timeout=0.05)

    assert exc_info.value.error_code == "BUSY"
    assert exc_info.value.data["resource"] == "job:J-1"


@pytest.mark.asyncio
async def test_release_with_wrong_token_is_refused(locks):
    await locks.acquire("job:J-1")

    assert await locks.release("job:J-1", "not-the-token") is False
    assert await locks.is_locked("job:J-1")


@pytest.mark.asyncio
async def test_hold_releases_on_error(locks):
    with pytest.raises(ValueError):
        async with locks.hold("job:J-1"):
            raise ValueError("boom")

    assert not await locks.is_locked("job:J-1")


@pytest.mark.asyncio
async def test_waiter_gets_lock_after_release(locks):
    token = await locks.acquire("job:J-1")

    async def release_soon():
        await asyncio.sleep(0.02)
        await locks.release("job:J-1", token)

    releaser = asyncio.create_task(release_soon())
    second = await locks.acquire("job:J-1", timeout=1.0)
    await releaser

    assert second != token


@pytest.mark.asyncio
async def test_different_keys_do_not_block(locks):
    await locks.acquire("job:J-1")
    token = await locks.acquire("job:J-2", timeout=0.05)

    assert token


@pytest.mark.asyncio
async def test_redis_lock_uses_set_nx_px(fake_redis, redis_locks):
    token = await redis_locks.acquire("admission:C-1")

    assert await fake_redis.get("workshop_lock:admission:C-1") == token
    ttl_ms = await fake_redis.pttl("workshop_lock:admission:C-1")
    assert 0 < ttl_ms <= 5000


@pytest.mark.asyncio
async def test_redis_lock_storage_error_after_retries():
    """Persistent Redis failures surface as StorageError, not BusyError."""
    redis_mock = AsyncMock()
    redis_mock.set.side_effect = RedisError("connection reset")
    service = RedisLockService(redis_mock, acquire_timeout=0.1, poll_interval=0.01)

    with pytest.raises(StorageError):
        await service.acquire("job:J-1")

    assert redis_mock.set.call_count == 3

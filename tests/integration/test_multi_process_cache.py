"""
Integration tests for two API processes sharing one Redis store.

Each process has its own client, its own SimpleCache and its own services;
only the fakeredis server is shared. Writes made by one process must be
visible to the other's reads and admission checks straight away.
"""
from datetime import datetime

import fakeredis
import fakeredis.aioredis
import pytest
import pytz

from workshop_core.exceptions import CapacityExceededError
from workshop_core.models.enums import EquipmentRepairStatus as S
from workshop_core.models.job import Job
from workshop_core.models.workshop_settings import WorkshopSettingsUpdate
from workshop_core.repositories.redis_workshop_repository import RedisWorkshopRepository
from workshop_core.services.capacity_service import CapacityService
from workshop_core.services.redis_lock_service import RedisLockService
from workshop_core.services.settings_service import SettingsService
from workshop_core.services.status_service import StatusService
from workshop_core.utils.cache import SimpleCache

NOW = pytz.utc.localize(datetime(2026, 3, 2, 9, 0))


class ApiProcess:
    """Service graph of one API process."""

    def __init__(self, server: fakeredis.FakeServer):
        client = fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)
        cache = SimpleCache()
        self.repository = RedisWorkshopRepository(client)
        self.settings_service = SettingsService(self.repository, cache=cache, clock=lambda: NOW)
        self.capacity_service = CapacityService(self.repository, self.settings_service)
        self.status_service = StatusService(
            repository=self.repository,
            lock_service=RedisLockService(client, ttl_seconds=10, acquire_timeout=1.0, poll_interval=0.005),
            capacity_service=self.capacity_service,
            settings_service=self.settings_service,
            cache=cache,
            clock=lambda: NOW
        )


@pytest.fixture
def server():
    return fakeredis.FakeServer()


@pytest.fixture
def first(server):
    return ApiProcess(server)


@pytest.fixture
def second(server):
    return ApiProcess(server)


@pytest.mark.asyncio
async def test_history_written_elsewhere_is_visible(first, second):
    await first.repository.save_job(Job(id="J-1", company_id="C-1"))
    await first.status_service.create_intake_status("J-1", S.RECEIVED, actor_id="U-1")

    # warm the second process's cache
    assert len(await second.status_service.get_history("J-1")) == 1

    await first.status_service.record_transition("J-1", S.IN_REPAIR, actor_id="T-1")

    history = await second.status_service.get_history("J-1")
    assert [h.to_status for h in history] == [S.RECEIVED, S.IN_REPAIR]
    assert history[-1].changed_by == "T-1"


@pytest.mark.asyncio
async def test_lowered_ceiling_applies_in_other_process(first, second):
    for job_id in ("J-1", "J-2"):
        await first.repository.save_job(Job(id=job_id, company_id="C-1"))
    await first.status_service.create_intake_status("J-1", S.RECEIVED)
    await first.status_service.create_intake_status("J-2", S.PENDING_INTAKE)

    # the second process caches the default ceiling
    assert (await second.settings_service.get_settings("C-1")).max_concurrent_jobs > 1

    await first.settings_service.update_settings("C-1", WorkshopSettingsUpdate(max_concurrent_jobs=1))
    await second.status_service.record_transition("J-2", S.IN_TRANSIT, actor_id="D-1")

    with pytest.raises(CapacityExceededError):
        await second.status_service.record_transition("J-2", S.RECEIVED, actor_id="U-1")

    assert (await second.repository.get_status("J-2")).current_status == S.IN_TRANSIT


@pytest.mark.asyncio
async def test_fresh_settings_read_refreshes_cache(first, second):
    await second.settings_service.get_settings("C-1")

    await first.settings_service.update_settings("C-1", WorkshopSettingsUpdate(default_pickup_delivery_fee=30.0))

    assert (await second.settings_service.get_settings("C-1", fresh=True)).default_pickup_delivery_fee == 30.0
    assert (await second.settings_service.get_settings("C-1")).default_pickup_delivery_fee == 30.0

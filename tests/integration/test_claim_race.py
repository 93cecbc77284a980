"""
Integration tests for concurrent claims and admissions.

Validates that the per-job and admission locks keep concurrent writers
honest:
- N technicians claiming one job: exactly one winner, N-1 AlreadyClaimed
- concurrent claims by one technician never pass the technician ceiling
- concurrent admissions never pass the workshop ceiling
- two identical transitions on one job: one applies, the other is rejected

Each scenario runs over the in-memory store with asyncio locks and over
RedisWorkshopRepository + RedisLockService on fakeredis.
"""
import asyncio

import fakeredis.aioredis
import pytest

from workshop_core.exceptions import AlreadyClaimedError, CapacityExceededError, InvalidTransitionError
from workshop_core.models.enums import EquipmentRepairStatus as S
from workshop_core.models.equipment_status import EquipmentStatus
from workshop_core.models.job import Job
from workshop_core.repositories.memory_repository import InMemoryWorkshopRepository
from workshop_core.repositories.redis_workshop_repository import RedisWorkshopRepository
from workshop_core.services.local_lock_service import LocalLockService
from workshop_core.services.redis_lock_service import RedisLockService


@pytest.fixture(params=["memory", "redis"])
def backend(request):
    return request.param


@pytest.fixture
def fake_redis():
    return fakeredis.aioredis.FakeRedis(decode_responses=True)


@pytest.fixture
def repository(backend, fake_redis):
    if backend == "memory":
        return InMemoryWorkshopRepository()
    return RedisWorkshopRepository(fake_redis)


@pytest.fixture
def lock_service(backend, fake_redis):
    if backend == "memory":
        return LocalLockService(acquire_timeout=2.0)
    return RedisLockService(fake_redis, ttl_seconds=10, acquire_timeout=2.0, poll_interval=0.005)


def _split(results):
    winners = [r for r in results if isinstance(r, Job)]
    errors = [r for r in results if isinstance(r, Exception)]
    return winners, errors


@pytest.mark.asyncio
async def test_ten_technicians_one_job_single_winner(claim_service, status_service, repository, make_job, make_technician):
    await make_job("J-1")
    await status_service.create_intake_status("J-1", S.RECEIVED)
    for i in range(10):
        await make_technician(f"T-{i}")

    results = await asyncio.gather(
        *(claim_service.claim_job("C-1", "J-1", f"T-{i}") for i in range(10)),
        return_exceptions=True
    )

    winners, errors = _split(results)
    assert len(winners) == 1, f"Expected 1 winner, got {results}"
    assert len(errors) == 9
    assert all(isinstance(e, AlreadyClaimedError) for e in errors), errors

    stored = await repository.get_job("J-1")
    assert stored.technician_id == winners[0].technician_id
    assert all(e.data["owner_id"] == stored.technician_id for e in errors)

    # exactly one claim transition in the audit trail
    history = await status_service.get_history("J-1")
    assert [(h.from_status, h.to_status) for h in history] == [
        (None, S.RECEIVED),
        (S.RECEIVED, S.IN_REPAIR),
    ]
    assert (await status_service.get_status("J-1")).version == 2


@pytest.mark.asyncio
async def test_concurrent_claims_respect_technician_ceiling(claim_service, status_service, capacity_service, make_job, make_technician, set_limits):
    await set_limits(max_concurrent_jobs=20, max_jobs_per_technician=2)
    await make_technician("T-1")
    job_ids = [f"J-{i}" for i in range(6)]
    for job_id in job_ids:
        await make_job(job_id)
        await status_service.create_intake_status(job_id, S.RECEIVED)

    results = await asyncio.gather(
        *(claim_service.claim_job("C-1", job_id, "T-1") for job_id in job_ids),
        return_exceptions=True
    )

    winners, errors = _split(results)
    assert len(winners) == 2, results
    assert all(isinstance(e, CapacityExceededError) for e in errors), errors
    assert all(e.data["scope"] == "technician" for e in errors)

    loads = await capacity_service.technician_loads("C-1")
    assert [(technician_id, count) for technician_id, _, count in loads] == [("T-1", 2)]


@pytest.mark.asyncio
async def test_concurrent_admissions_respect_workshop_ceiling(status_service, capacity_service, make_job, set_limits):
    await set_limits(max_concurrent_jobs=2)
    job_ids = [f"J-{i}" for i in range(5)]
    for job_id in job_ids:
        await make_job(job_id)
        await status_service.create_intake_status(job_id, S.PENDING_INTAKE)

    results = await asyncio.gather(
        *(status_service.record_transition(job_id, S.RECEIVED, actor_id="U-1") for job_id in job_ids),
        return_exceptions=True
    )

    admitted = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, Exception)]
    assert len(admitted) == 2, results
    assert all(isinstance(e, CapacityExceededError) for e in rejected), rejected
    assert await capacity_service.count_active_jobs("C-1") == 2

    # rejected attempts leave no trace
    for job_id in job_ids:
        status = await status_service.get_status(job_id)
        history = await status_service.get_history(job_id)
        if status.current_status == S.PENDING_INTAKE:
            assert len(history) == 1
            assert status.version == 1


@pytest.mark.asyncio
async def test_concurrent_intakes_respect_workshop_ceiling(status_service, capacity_service, make_job, set_limits):
    await set_limits(max_concurrent_jobs=3)
    job_ids = [f"J-{i}" for i in range(6)]
    for job_id in job_ids:
        await make_job(job_id)

    results = await asyncio.gather(
        *(status_service.create_intake_status(job_id, S.RECEIVED) for job_id in job_ids),
        return_exceptions=True
    )

    rejected = [r for r in results if isinstance(r, Exception)]
    assert len(rejected) == 3, results
    assert all(isinstance(e, CapacityExceededError) for e in rejected)
    assert await capacity_service.count_active_jobs("C-1") == 3


@pytest.mark.asyncio
async def test_same_transition_twice_applies_once(status_service, make_job):
    await make_job("J-1")
    await status_service.create_intake_status("J-1", S.RECEIVED)

    results = await asyncio.gather(
        status_service.record_transition("J-1", S.IN_REPAIR, actor_id="T-1"),
        status_service.record_transition("J-1", S.IN_REPAIR, actor_id="T-2"),
        return_exceptions=True
    )

    applied = [r for r in results if isinstance(r, EquipmentStatus)]
    rejected = [r for r in results if isinstance(r, Exception)]
    assert len(applied) == 1, results
    assert len(rejected) == 1
    assert isinstance(rejected[0], InvalidTransitionError)
    assert rejected[0].current_status == S.IN_REPAIR.value

    history = await status_service.get_history("J-1")
    assert [(h.from_status, h.to_status) for h in history] == [
        (None, S.RECEIVED),
        (S.RECEIVED, S.IN_REPAIR),
    ]
    assert (await status_service.get_status("J-1")).version == 2

"""
Contract tests for the workshop repositories.

Every test runs against InMemoryWorkshopRepository and against
RedisWorkshopRepository backed by fakeredis.
"""
from datetime import datetime

import fakeredis.aioredis
import pytest
import pytz

from workshop_core.exceptions import (
    AlreadyClaimedError,
    AlreadyExistsError,
    NotFoundError,
    VersionConflictError
)
from workshop_core.models.enums import EquipmentRepairStatus, JobStatus
from workshop_core.models.equipment_status import EquipmentStatus, EquipmentStatusHistory
from workshop_core.models.job import Job, Technician
from workshop_core.models.workshop_settings import WorkshopSettings
from workshop_core.repositories.memory_repository import InMemoryWorkshopRepository
from workshop_core.repositories.redis_workshop_repository import RedisWorkshopRepository

NOW = pytz.utc.localize(datetime(2026, 3, 2, 9, 0))


@pytest.fixture(params=["memory", "redis"])
def repo(request):
    if request.param == "memory":
        return InMemoryWorkshopRepository()
    return RedisWorkshopRepository(fakeredis.aioredis.FakeRedis(decode_responses=True))


def _status(job_id: str = "J-1", version: int = 1, current=EquipmentRepairStatus.RECEIVED) -> EquipmentStatus:
    return EquipmentStatus(
        id=f"ES-{job_id}",
        job_id=job_id,
        company_id="C-1",
        current_status=current,
        received_at=NOW,
        created_at=NOW,
        updated_at=NOW,
        version=version
    )


def _history(job_id: str = "J-1", from_status=None, to_status=EquipmentRepairStatus.RECEIVED) -> EquipmentStatusHistory:
    return EquipmentStatusHistory(
        equipment_status_id=f"ES-{job_id}",
        job_id=job_id,
        company_id="C-1",
        from_status=from_status,
        to_status=to_status,
        changed_at=NOW
    )


@pytest.mark.asyncio
async def test_save_and_list_jobs_by_company(repo):
    await repo.save_job(Job(id="J-1", company_id="C-1"))
    await repo.save_job(Job(id="J-2", company_id="C-2"))

    jobs = await repo.list_jobs("C-1")

    assert [job.id for job in jobs] == ["J-1"]
    assert await repo.get_job("missing") is None


@pytest.mark.asyncio
async def test_returned_job_is_a_copy(repo):
    """Mutating a returned record does not change the store."""
    await repo.save_job(Job(id="J-1", company_id="C-1"))

    job = await repo.get_job("J-1")
    job.technician_id = "T-1"

    assert (await repo.get_job("J-1")).technician_id is None


@pytest.mark.asyncio
async def test_assign_technician_only_once(repo):
    await repo.save_job(Job(id="J-1", company_id="C-1"))

    job = await repo.assign_technician("J-1", "T-1", started_at=NOW)
    assert job.technician_id == "T-1"
    assert job.status == JobStatus.ASSIGNED
    assert job.started_at == NOW

    with pytest.raises(AlreadyClaimedError) as exc_info:
        await repo.assign_technician("J-1", "T-2", started_at=NOW)

    assert exc_info.value.data["owner_id"] == "T-1"
    assert (await repo.get_job("J-1")).technician_id == "T-1"


@pytest.mark.asyncio
async def test_assign_technician_unknown_job(repo):
    with pytest.raises(NotFoundError):
        await repo.assign_technician("missing", "T-1", started_at=NOW)


@pytest.mark.asyncio
async def test_technicians(repo):
    await repo.save_technician(Technician(id="T-1", company_id="C-1", full_name="Ana Rojas"))

    assert (await repo.get_technician("T-1")).full_name == "Ana Rojas"
    assert await repo.get_technician("T-9") is None


@pytest.mark.asyncio
async def test_insert_status_rejects_duplicates(repo):
    await repo.insert_status(_status(), _history())

    with pytest.raises(AlreadyExistsError):
        await repo.insert_status(_status(), _history())

    assert len(await repo.list_history("J-1")) == 1


@pytest.mark.asyncio
async def test_update_status_compare_and_set(repo):
    await repo.insert_status(_status(), _history())

    updated = _status(version=2, current=EquipmentRepairStatus.IN_REPAIR)
    await repo.update_status(
        updated,
        _history(from_status=EquipmentRepairStatus.RECEIVED, to_status=EquipmentRepairStatus.IN_REPAIR),
        expected_version=1
    )

    stale = _status(version=2, current=EquipmentRepairStatus.REPAIR_COMPLETED)
    with pytest.raises(VersionConflictError):
        await repo.update_status(
            stale,
            _history(from_status=EquipmentRepairStatus.RECEIVED, to_status=EquipmentRepairStatus.REPAIR_COMPLETED),
            expected_version=1
        )

    stored = await repo.get_status("J-1")
    assert stored.current_status == EquipmentRepairStatus.IN_REPAIR
    assert stored.version == 2
    assert [h.to_status for h in await repo.list_history("J-1")] == [
        EquipmentRepairStatus.RECEIVED,
        EquipmentRepairStatus.IN_REPAIR
    ]


@pytest.mark.asyncio
async def test_update_status_unknown_job(repo):
    with pytest.raises(NotFoundError):
        await repo.update_status(_status(version=2), _history(), expected_version=1)


@pytest.mark.asyncio
async def test_company_scoped_status_and_history(repo):
    await repo.insert_status(_status("J-1"), _history("J-1"))
    await repo.insert_status(_status("J-2"), _history("J-2"))

    assert {s.job_id for s in await repo.list_statuses("C-1")} == {"J-1", "J-2"}
    assert len(await repo.list_company_history("C-1")) == 2
    assert await repo.list_statuses("C-2") == []


@pytest.mark.asyncio
async def test_timestamps_survive_round_trip(repo):
    await repo.insert_status(_status(), _history())

    stored = await repo.get_status("J-1")

    assert stored.received_at == NOW
    assert stored.in_repair_at is None


@pytest.mark.asyncio
async def test_settings(repo):
    assert await repo.get_settings("C-1") is None

    await repo.save_settings(WorkshopSettings(company_id="C-1", max_concurrent_jobs=3))

    assert (await repo.get_settings("C-1")).max_concurrent_jobs == 3


@pytest.mark.asyncio
async def test_health_check(repo):
    assert (await repo.health_check())["status"] == "healthy"

"""
Unit tests for CapacityService.
"""
import pytest

from workshop_core.exceptions import CapacityExceededError
from workshop_core.models.enums import EquipmentRepairStatus as S


@pytest.mark.asyncio
async def test_candidate_job_excluded_from_count(capacity_service, status_service, make_job, set_limits):
    await set_limits(max_concurrent_jobs=1)
    await make_job("J-1")
    await status_service.create_intake_status("J-1", S.RECEIVED)

    await capacity_service.check_admission("C-1", exclude_job_id="J-1")

    with pytest.raises(CapacityExceededError):
        await capacity_service.check_admission("C-1", exclude_job_id="J-2")


@pytest.mark.asyncio
async def test_inactive_statuses_do_not_count(capacity_service, status_service, make_job, set_limits):
    await set_limits(max_concurrent_jobs=1)
    await make_job("J-1")
    await make_job("J-2")
    await status_service.create_intake_status("J-1", S.PENDING_INTAKE)
    await status_service.create_intake_status("J-2", S.RECEIVED)
    await status_service.record_transition("J-2", S.IN_REPAIR, actor_id="T-1")
    await status_service.record_transition("J-2", S.REPAIR_COMPLETED, actor_id="T-1")
    await status_service.record_transition("J-2", S.READY_FOR_PICKUP, actor_id="T-1")
    await status_service.record_transition("J-2", S.RETURNED, actor_id="T-1")

    assert await capacity_service.count_active_jobs("C-1") == 0
    await capacity_service.check_admission("C-1", exclude_job_id="J-3")


@pytest.mark.asyncio
async def test_capacity_utilization(capacity_service, status_service, claim_service, make_job, make_technician, set_limits):
    await set_limits(max_concurrent_jobs=4, max_jobs_per_technician=2)
    await make_technician("T-1", "Ana Rojas")
    await make_technician("T-2", "Bruno Diaz")
    for job_id in ("J-1", "J-2", "J-3"):
        await make_job(job_id)
        await status_service.create_intake_status(job_id, S.RECEIVED)
    await claim_service.claim_job("C-1", "J-1", "T-2")
    await claim_service.claim_job("C-1", "J-2", "T-1")
    await claim_service.claim_job("C-1", "J-3", "T-2")

    utilization = await capacity_service.get_capacity_utilization("C-1")

    assert utilization.workshop.current_jobs == 3
    assert utilization.workshop.utilization_percentage == 75.0
    assert utilization.workshop.available_capacity == 1
    assert [(t.technician_name, t.current_jobs, t.available_capacity) for t in utilization.technicians] == [
        ("Bruno Diaz", 2, 0),
        ("Ana Rojas", 1, 1),
    ]
    assert utilization.technicians[0].utilization_percentage == 100.0

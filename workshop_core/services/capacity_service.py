"""
Capacity guard for workshop admissions.

Two ceilings, both must hold for an admission (intake at received, claim,
or a transition into the active set):
- workshop: active jobs excluding the candidate < max_concurrent_jobs
- technician: active jobs of the technician excluding the candidate
  < max_jobs_per_technician

check_admission() reads a fresh snapshot and must run while the caller
holds the company admission lock (see admission_lock_key).
"""
import logging
from collections import Counter
from typing import Optional

from workshop_core.domain.state_machines.equipment_machine import ACTIVE_STATUSES
from workshop_core.exceptions import CapacityExceededError
from workshop_core.models.equipment_status import EquipmentStatus
from workshop_core.models.job import Job
from workshop_core.models.metrics import (
    CapacityUtilization,
    TechnicianCapacity,
    WorkshopCapacity
)
from workshop_core.repositories.base import WorkshopRepository
from workshop_core.services.settings_service import SettingsService

logger = logging.getLogger(__name__)

UNKNOWN_TECHNICIAN = "Unknown technician"


def admission_lock_key(company_id: str) -> str:
    return f"admission:{company_id}"


def job_lock_key(job_id: str) -> str:
    return f"job:{job_id}"


def _percentage(current: int, maximum: int) -> float:
    if maximum <= 0:
        return 0.0
    return round(current / maximum * 100, 2)


class CapacityService:

    def __init__(self, repository: WorkshopRepository, settings_service: SettingsService):
        self.repository = repository
        self.settings_service = settings_service

    async def _active_snapshot(self, company_id: str) -> tuple[list[EquipmentStatus], dict[str, Job]]:
        statuses = [
            status
            for status in await self.repository.list_statuses(company_id)
            if status.current_status in ACTIVE_STATUSES
        ]
        jobs = {job.id: job for job in await self.repository.list_jobs(company_id)}
        return statuses, jobs

    @staticmethod
    def _technician_counts(
        statuses: list[EquipmentStatus],
        jobs: dict[str, Job],
        exclude_job_id: Optional[str] = None
    ) -> Counter:
        counts = Counter()
        for status in statuses:
            if status.job_id == exclude_job_id:
                continue
            job = jobs.get(status.job_id)
            if job is not None and job.technician_id:
                counts[job.technician_id] += 1
        return counts

    async def check_admission(
        self,
        company_id: str,
        technician_id: Optional[str] = None,
        exclude_job_id: Optional[str] = None
    ) -> None:
        """
        Verify both ceilings for admitting one more active job.

        Args:
            company_id: Tenant whose ceilings apply
            technician_id: Technician the job is (or will be) assigned to
            exclude_job_id: Candidate job, left out of both counts

        Raises:
            CapacityExceededError: scope "workshop" or "technician"
        """
        settings = await self.settings_service.get_settings(company_id, fresh=True)
        statuses, jobs = await self._active_snapshot(company_id)

        workshop_count = sum(1 for status in statuses if status.job_id != exclude_job_id)
        if workshop_count >= settings.max_concurrent_jobs:
            logger.info(
                f"Admission rejected for company {company_id}: workshop at "
                f"{workshop_count}/{settings.max_concurrent_jobs}"
            )
            raise CapacityExceededError("workshop", workshop_count, settings.max_concurrent_jobs)

        if technician_id:
            technician_count = self._technician_counts(statuses, jobs, exclude_job_id)[technician_id]
            if technician_count >= settings.max_jobs_per_technician:
                logger.info(
                    f"Admission rejected for technician {technician_id}: at "
                    f"{technician_count}/{settings.max_jobs_per_technician}"
                )
                raise CapacityExceededError(
                    "technician",
                    technician_count,
                    settings.max_jobs_per_technician,
                    technician_id=technician_id
                )

    async def count_active_jobs(self, company_id: str) -> int:
        statuses, _ = await self._active_snapshot(company_id)
        return len(statuses)

    async def technician_loads(self, company_id: str) -> list[tuple[str, str, int]]:
        """
        Active job count per technician as (technician_id, name, count),
        sorted by count descending then name.
        """
        statuses, jobs = await self._active_snapshot(company_id)
        counts = self._technician_counts(statuses, jobs)

        loads = []
        for technician_id, count in counts.items():
            technician = await self.repository.get_technician(technician_id)
            name = technician.full_name if technician else UNKNOWN_TECHNICIAN
            loads.append((technician_id, name, count))

        loads.sort(key=lambda load: (-load[2], load[1]))
        return loads

    async def get_capacity_utilization(self, company_id: str) -> CapacityUtilization:
        """Current workshop-wide and per-technician capacity usage."""
        settings = await self.settings_service.get_settings(company_id, fresh=True)
        current = await self.count_active_jobs(company_id)

        technicians = [
            TechnicianCapacity(
                technician_id=technician_id,
                technician_name=name,
                current_jobs=count,
                max_jobs=settings.max_jobs_per_technician,
                utilization_percentage=_percentage(count, settings.max_jobs_per_technician),
                available_capacity=max(0, settings.max_jobs_per_technician - count)
            )
            for technician_id, name, count in await self.technician_loads(company_id)
        ]

        return CapacityUtilization(
            workshop=WorkshopCapacity(
                current_jobs=current,
                max_concurrent_jobs=settings.max_concurrent_jobs,
                utilization_percentage=_percentage(current, settings.max_concurrent_jobs),
                available_capacity=max(0, settings.max_concurrent_jobs - current)
            ),
            technicians=technicians
        )

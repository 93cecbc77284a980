"""
In-memory repository for single-process deployments and tests.

Every compound write runs without an await between its check and its
mutation, so it is atomic under the asyncio event loop. Records are
copied on the way in and out; callers never share mutable state with
the store.
"""
import logging
from collections import defaultdict
from datetime import datetime
from typing import Optional

from workshop_core.exceptions import (
    AlreadyClaimedError,
    AlreadyExistsError,
    NotFoundError,
    VersionConflictError
)
from workshop_core.models.enums import JobStatus
from workshop_core.models.equipment_status import EquipmentStatus, EquipmentStatusHistory
from workshop_core.models.job import Job, Technician
from workshop_core.models.workshop_settings import WorkshopSettings
from workshop_core.repositories.base import WorkshopRepository

logger = logging.getLogger(__name__)


class InMemoryWorkshopRepository(WorkshopRepository):

    def __init__(self):
        self._jobs: dict[str, Job] = {}
        self._technicians: dict[str, Technician] = {}
        self._statuses: dict[str, EquipmentStatus] = {}
        self._history: dict[str, list[EquipmentStatusHistory]] = defaultdict(list)
        self._settings: dict[str, WorkshopSettings] = {}

    # ==================== JOBS ====================

    async def get_job(self, job_id: str) -> Optional[Job]:
        job = self._jobs.get(job_id)
        return job.model_copy(deep=True) if job else None

    async def list_jobs(self, company_id: str) -> list[Job]:
        return [
            job.model_copy(deep=True)
            for job in self._jobs.values()
            if job.company_id == company_id
        ]

    async def save_job(self, job: Job) -> Job:
        self._jobs[job.id] = job.model_copy(deep=True)
        return job

    async def assign_technician(
        self,
        job_id: str,
        technician_id: str,
        started_at: datetime
    ) -> Job:
        job = self._jobs.get(job_id)
        if job is None:
            raise NotFoundError("Job", job_id)
        if job.technician_id is not None:
            raise AlreadyClaimedError(job_id, owner_id=job.technician_id)

        job.technician_id = technician_id
        job.started_at = job.started_at or started_at
        job.updated_at = started_at
        if job.status == JobStatus.PENDING:
            job.status = JobStatus.ASSIGNED
        logger.debug(f"Job {job_id} assigned to technician {technician_id}")
        return job.model_copy(deep=True)

    # ==================== TECHNICIANS ====================

    async def get_technician(self, technician_id: str) -> Optional[Technician]:
        technician = self._technicians.get(technician_id)
        return technician.model_copy() if technician else None

    async def save_technician(self, technician: Technician) -> Technician:
        self._technicians[technician.id] = technician.model_copy()
        return technician

    # ==================== EQUIPMENT STATUS ====================

    async def get_status(self, job_id: str) -> Optional[EquipmentStatus]:
        status = self._statuses.get(job_id)
        return status.model_copy() if status else None

    async def list_statuses(self, company_id: str) -> list[EquipmentStatus]:
        return [
            status.model_copy()
            for status in self._statuses.values()
            if status.company_id == company_id
        ]

    async def insert_status(
        self,
        status: EquipmentStatus,
        history: EquipmentStatusHistory
    ) -> EquipmentStatus:
        if status.job_id in self._statuses:
            raise AlreadyExistsError(status.job_id)

        self._statuses[status.job_id] = status.model_copy()
        self._history[status.job_id].append(history)
        return status

    async def update_status(
        self,
        status: EquipmentStatus,
        history: EquipmentStatusHistory,
        expected_version: int
    ) -> EquipmentStatus:
        stored = self._statuses.get(status.job_id)
        if stored is None:
            raise NotFoundError("EquipmentStatus", status.job_id)
        if stored.version != expected_version:
            raise VersionConflictError(status.job_id, expected_version, stored.version)

        self._statuses[status.job_id] = status.model_copy()
        self._history[status.job_id].append(history)
        return status

    # ==================== HISTORY ====================

    async def list_history(self, job_id: str) -> list[EquipmentStatusHistory]:
        return list(self._history.get(job_id, []))

    async def list_company_history(self, company_id: str) -> list[EquipmentStatusHistory]:
        return [
            entry
            for entries in self._history.values()
            for entry in entries
            if entry.company_id == company_id
        ]

    # ==================== SETTINGS ====================

    async def get_settings(self, company_id: str) -> Optional[WorkshopSettings]:
        settings = self._settings.get(company_id)
        return settings.model_copy(deep=True) if settings else None

    async def save_settings(self, settings: WorkshopSettings) -> WorkshopSettings:
        self._settings[settings.company_id] = settings.model_copy(deep=True)
        return settings

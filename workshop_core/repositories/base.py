"""
Persistence contract consumed by the workshop services.

Both adapters (in-memory and Redis) implement this async interface. The
conditional writes (insert_status, update_status, assign_technician) are
the only places that decide races; services never read-modify-write a
record without going through them.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from workshop_core.models.equipment_status import EquipmentStatus, EquipmentStatusHistory
from workshop_core.models.job import Job, Technician
from workshop_core.models.workshop_settings import WorkshopSettings


class WorkshopRepository(ABC):
    """Async repository for jobs, technicians, statuses, history and settings."""

    # ==================== JOBS ====================

    @abstractmethod
    async def get_job(self, job_id: str) -> Optional[Job]:
        ...

    @abstractmethod
    async def list_jobs(self, company_id: str) -> list[Job]:
        ...

    @abstractmethod
    async def save_job(self, job: Job) -> Job:
        ...

    @abstractmethod
    async def assign_technician(
        self,
        job_id: str,
        technician_id: str,
        started_at: datetime
    ) -> Job:
        """
        Assign technician_id only if the job is still unassigned.

        Raises:
            NotFoundError: unknown job
            AlreadyClaimedError: job already has a technician
        """

    # ==================== TECHNICIANS ====================

    @abstractmethod
    async def get_technician(self, technician_id: str) -> Optional[Technician]:
        ...

    @abstractmethod
    async def save_technician(self, technician: Technician) -> Technician:
        ...

    # ==================== EQUIPMENT STATUS ====================

    @abstractmethod
    async def get_status(self, job_id: str) -> Optional[EquipmentStatus]:
        ...

    @abstractmethod
    async def list_statuses(self, company_id: str) -> list[EquipmentStatus]:
        ...

    @abstractmethod
    async def insert_status(
        self,
        status: EquipmentStatus,
        history: EquipmentStatusHistory
    ) -> EquipmentStatus:
        """
        Create the status record and its first history row atomically.

        Raises:
            AlreadyExistsError: a record for status.job_id already exists
        """

    @abstractmethod
    async def update_status(
        self,
        status: EquipmentStatus,
        history: EquipmentStatusHistory,
        expected_version: int
    ) -> EquipmentStatus:
        """
        Replace the status record and append history atomically.

        Raises:
            NotFoundError: no record for status.job_id
            VersionConflictError: stored version != expected_version
        """

    # ==================== HISTORY ====================

    @abstractmethod
    async def list_history(self, job_id: str) -> list[EquipmentStatusHistory]:
        """History of one job, oldest first."""

    @abstractmethod
    async def list_company_history(self, company_id: str) -> list[EquipmentStatusHistory]:
        ...

    # ==================== SETTINGS ====================

    @abstractmethod
    async def get_settings(self, company_id: str) -> Optional[WorkshopSettings]:
        ...

    @abstractmethod
    async def save_settings(self, settings: WorkshopSettings) -> WorkshopSettings:
        ...

    async def health_check(self) -> dict:
        return {"status": "healthy"}

"""
Claim coordinator for the workshop queue.

A claim is one atomic unit under the per-job lock and then the company
admission lock:
1. reload the job and its status (the queue the technician saw may be stale)
2. check ownership, claimability and the capacity ceilings
3. conditionally assign the technician in the repository
4. advance received equipment to in_repair

Concurrent claims on one job serialize on the job lock; the loser sees the
winner's assignment and gets AlreadyClaimedError. Concurrent claims on
different jobs of one company serialize on the admission lock, so the
capacity check always sees the other admissions.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from workshop_core.domain.state_machines.equipment_machine import (
    PRE_WORK_STATUSES,
    allowed_transitions
)
from workshop_core.exceptions import (
    AlreadyClaimedError,
    BusyError,
    InvalidTransitionError,
    NotFoundError,
    VersionConflictError
)
from workshop_core.models.enums import EquipmentRepairStatus
from workshop_core.models.equipment_status import EquipmentStatus
from workshop_core.models.job import Job, Technician
from workshop_core.repositories.base import WorkshopRepository
from workshop_core.services.capacity_service import (
    CapacityService,
    admission_lock_key,
    job_lock_key
)
from workshop_core.services.notification_service import NotificationService
from workshop_core.services.status_service import StatusService, busy_retrying
from workshop_core.utils.date_formatter import now_utc

logger = logging.getLogger(__name__)

CLAIM_NOTE = "Job claimed by technician from workshop queue"


class ClaimService:
    """
    Assigns queued jobs to technicians under the capacity ceilings.
    """

    def __init__(
        self,
        repository: WorkshopRepository,
        lock_service,
        capacity_service: CapacityService,
        status_service: StatusService,
        notification_service: Optional[NotificationService] = None,
        clock: Callable[[], datetime] = now_utc
    ):
        self.repository = repository
        self.lock_service = lock_service
        self.capacity_service = capacity_service
        self.status_service = status_service
        self.notification_service = notification_service
        self.clock = clock

    async def claim_job(
        self,
        company_id: str,
        job_id: str,
        technician_id: str,
        actor_id: Optional[str] = None
    ) -> Job:
        """
        Claim job_id for technician_id.

        Args:
            company_id: Tenant of the caller
            job_id: Job picked from the queue
            technician_id: Technician taking the job
            actor_id: User performing the claim (defaults to technician_id)

        Returns:
            The job as stored after the claim

        Raises:
            NotFoundError: unknown job or technician (or other tenant's)
            AlreadyClaimedError: another technician holds the job
            InvalidTransitionError: no status record, or work already started
            CapacityExceededError: workshop or technician ceiling reached
            BusyError: locks still busy after the bounded retries
        """
        actor_id = actor_id or technician_id

        async for attempt in busy_retrying():
            with attempt:
                job, technician, before, after = await self._claim_locked(
                    company_id, job_id, technician_id, actor_id
                )

        logger.info(f"Job {job_id} claimed by technician {technician_id} (actor {actor_id})")

        if self.notification_service:
            try:
                await self.notification_service.notify_claim(job, technician, after, actor_id=actor_id)
                if before.current_status != after.current_status:
                    await self.notification_service.notify_status_change(
                        job, after, before.current_status, actor_id=actor_id, notes=CLAIM_NOTE
                    )
            except Exception as e:
                # Best effort: the claim is already committed
                logger.warning(f"Claim notification for job {job_id} failed (non-critical): {e}")
        return job

    async def _claim_locked(
        self,
        company_id: str,
        job_id: str,
        technician_id: str,
        actor_id: str
    ) -> tuple[Job, Technician, EquipmentStatus, EquipmentStatus]:
        async with self.lock_service.hold(job_lock_key(job_id)):
            async with self.lock_service.hold(admission_lock_key(company_id)):
                job = await self.repository.get_job(job_id)
                if job is None or job.company_id != company_id:
                    raise NotFoundError("Job", job_id)

                if job.is_claimed:
                    logger.info(f"Claim on job {job_id} lost: owned by {job.technician_id}")
                    raise AlreadyClaimedError(job_id, owner_id=job.technician_id)

                status = await self.repository.get_status(job_id)
                self._ensure_claimable(job_id, status)

                technician = await self.repository.get_technician(technician_id)
                if technician is None or technician.company_id != company_id:
                    raise NotFoundError("Technician", technician_id)

                await self.capacity_service.check_admission(
                    company_id,
                    technician_id=technician_id,
                    exclude_job_id=job_id
                )

                try:
                    job = await self.repository.assign_technician(
                        job_id, technician_id, started_at=self.clock()
                    )
                except VersionConflictError as e:
                    raise BusyError(job_lock_key(job_id), 0) from e

                after = status
                if status.current_status == EquipmentRepairStatus.RECEIVED:
                    after, job = await self.status_service.apply_transition(
                        status,
                        EquipmentRepairStatus.IN_REPAIR,
                        actor_id,
                        CLAIM_NOTE,
                        job
                    )

                return job, technician, status, after

    @staticmethod
    def _ensure_claimable(job_id: str, status: Optional[EquipmentStatus]) -> None:
        """
        Raises:
            InvalidTransitionError: no status record or status past pre-work
        """
        if status is None:
            raise InvalidTransitionError(
                job_id=job_id,
                current_status=None,
                requested_status=EquipmentRepairStatus.IN_REPAIR.value,
                message=f"Job '{job_id}' has no equipment status; record intake before claiming"
            )

        if status.current_status not in PRE_WORK_STATUSES:
            raise InvalidTransitionError(
                job_id=job_id,
                current_status=status.current_status.value,
                requested_status=EquipmentRepairStatus.IN_REPAIR.value,
                allowed=allowed_transitions(status.current_status),
                message=(
                    f"Job '{job_id}' cannot be claimed in status "
                    f"'{status.current_status.value}'"
                )
            )

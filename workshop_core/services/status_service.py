"""
Status store for equipment repair status and its history.

Owns every write to EquipmentStatus:
- create_intake_status(): opens the lifecycle with the first history row
- record_transition(): validates, appends history, stamps first-entry
  timestamps, bumps the optimistic version and syncs the job-level status

Every mutation runs under the per-job lock; admissions (intake at received,
inactive → active transitions) additionally hold the company admission
lock while the capacity guard checks the ceilings. Lock order is always
job lock first, admission lock second.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type
)

from workshop_core.config import config
from workshop_core.domain.state_machines.equipment_machine import (
    ACTIVE_STATUSES,
    EQUIPMENT_TO_JOB_STATUS,
    validate_intake_status,
    validate_transition
)
from workshop_core.exceptions import BusyError, NotFoundError, VersionConflictError
from workshop_core.models.enums import EquipmentRepairStatus, JobStatus
from workshop_core.models.equipment_status import (
    EquipmentStatus,
    EquipmentStatusHistory,
    IntakeRequest
)
from workshop_core.models.job import EquipmentIntake, Job
from workshop_core.repositories.base import WorkshopRepository
from workshop_core.services.capacity_service import (
    CapacityService,
    admission_lock_key,
    job_lock_key
)
from workshop_core.services.notification_service import NotificationService
from workshop_core.services.settings_service import SettingsService
from workshop_core.utils.cache import SimpleCache, get_cache
from workshop_core.utils.date_formatter import now_utc

logger = logging.getLogger(__name__)


def busy_retrying(attempts: Optional[int] = None) -> AsyncRetrying:
    """Retry policy for lock contention: only BusyError is retried."""
    return AsyncRetrying(
        stop=stop_after_attempt(attempts or config.BUSY_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=0.05, min=0.05, max=1),
        retry=retry_if_exception_type(BusyError),
        reraise=True
    )


class StatusService:
    """
    Service for equipment status lifecycle writes and reads.

    Dependencies are injected; the lock service may be the Redis or the
    in-process implementation.
    """

    def __init__(
        self,
        repository: WorkshopRepository,
        lock_service,
        capacity_service: CapacityService,
        settings_service: SettingsService,
        notification_service: Optional[NotificationService] = None,
        cache: Optional[SimpleCache] = None,
        clock: Callable[[], datetime] = now_utc
    ):
        self.repository = repository
        self.lock_service = lock_service
        self.capacity_service = capacity_service
        self.settings_service = settings_service
        self.notification_service = notification_service
        self.cache = cache or get_cache()
        self.clock = clock

    @staticmethod
    def _history_cache_key(job_id: str) -> str:
        return f"history:{job_id}"

    # ==================== READS ====================

    async def get_status(self, job_id: str) -> EquipmentStatus:
        """
        Raises:
            NotFoundError: job has no status record
        """
        status = await self.repository.get_status(job_id)
        if status is None:
            raise NotFoundError("EquipmentStatus", job_id)
        return status

    async def ensure_company_job(self, company_id: str, job_id: str) -> Job:
        """
        Load a job and check it belongs to company_id.

        Raises:
            NotFoundError: unknown job or job of another tenant
        """
        job = await self.repository.get_job(job_id)
        if job is None or job.company_id != company_id:
            raise NotFoundError("Job", job_id)
        return job

    async def get_history(self, job_id: str) -> list[EquipmentStatusHistory]:
        """
        Full history of a job, oldest first.

        The cached copy is keyed on the status version, so a write made by
        another process (shared Redis store) is picked up on the next read.

        Raises:
            NotFoundError: job has no status record
        """
        status = await self.get_status(job_id)
        cache_key = self._history_cache_key(job_id)
        cached = self.cache.get(cache_key)
        if cached is not None:
            version, history = cached
            if version == status.version:
                return list(history)

        history = await self.repository.list_history(job_id)
        self.cache.set(cache_key, (status.version, tuple(history)), ttl_seconds=config.CACHE_TTL_SECONDS)
        return list(history)

    # ==================== INTAKE ====================

    async def create_intake_status(
        self,
        job_id: str,
        initial_status: EquipmentRepairStatus = EquipmentRepairStatus.RECEIVED,
        actor_id: Optional[str] = None,
        notes: Optional[str] = None,
        intake: Optional[IntakeRequest] = None
    ) -> EquipmentStatus:
        """
        Create the status record of a job and its first history entry.

        Args:
            job_id: Job being taken in
            initial_status: pending_intake or received
            actor_id: User registering the intake
            notes: Free text stored on the history entry
            intake: Intake details stored on the job

        Returns:
            The new EquipmentStatus (version 1)

        Raises:
            InvalidTransitionError: initial_status not an intake status
            NotFoundError: unknown job
            AlreadyExistsError: job already has a status record
            CapacityExceededError: intake at received over a ceiling
            BusyError: job or admission lock still busy after retries
        """
        validate_intake_status(initial_status, job_id)

        async for attempt in busy_retrying():
            with attempt:
                job, status = await self._create_intake_locked(
                    job_id, initial_status, actor_id, notes, intake
                )

        self.cache.invalidate(self._history_cache_key(job_id))
        logger.info(f"Intake recorded for job {job_id} at {initial_status.value} by {actor_id}")

        if self.notification_service:
            try:
                await self.notification_service.notify_intake(job, status, actor_id=actor_id)
            except Exception as e:
                # Best effort: the intake is already committed
                logger.warning(f"Intake notification for job {job_id} failed (non-critical): {e}")
        return status

    async def _create_intake_locked(
        self,
        job_id: str,
        initial_status: EquipmentRepairStatus,
        actor_id: Optional[str],
        notes: Optional[str],
        intake: Optional[IntakeRequest]
    ) -> tuple[Job, EquipmentStatus]:
        async with self.lock_service.hold(job_lock_key(job_id)):
            job = await self.repository.get_job(job_id)
            if job is None:
                raise NotFoundError("Job", job_id)

            if initial_status in ACTIVE_STATUSES:
                async with self.lock_service.hold(admission_lock_key(job.company_id)):
                    await self.capacity_service.check_admission(
                        job.company_id,
                        technician_id=job.technician_id,
                        exclude_job_id=job_id
                    )
                    status = await self._insert_intake(job, initial_status, actor_id, notes)
            else:
                status = await self._insert_intake(job, initial_status, actor_id, notes)

            job = await self._annotate_intake(job, status, actor_id, intake)
            return job, status

    async def _insert_intake(
        self,
        job: Job,
        initial_status: EquipmentRepairStatus,
        actor_id: Optional[str],
        notes: Optional[str]
    ) -> EquipmentStatus:
        now = self.clock()
        status = EquipmentStatus(
            job_id=job.id,
            company_id=job.company_id,
            current_status=initial_status,
            created_at=now,
            updated_at=now
        )
        status.mark_reached(initial_status, now)

        history = EquipmentStatusHistory(
            equipment_status_id=status.id,
            job_id=job.id,
            company_id=job.company_id,
            from_status=None,
            to_status=initial_status,
            changed_at=now,
            changed_by=actor_id,
            notes=notes
        )
        return await self.repository.insert_status(status, history)

    async def _annotate_intake(
        self,
        job: Job,
        status: EquipmentStatus,
        actor_id: Optional[str],
        intake: Optional[IntakeRequest]
    ) -> Job:
        """Store intake details and the estimated completion date on the job."""
        settings = await self.settings_service.get_settings(job.company_id, fresh=True)
        intake_at = status.created_at

        if intake is not None:
            job.equipment_intake = EquipmentIntake(
                intake_date=intake_at,
                reported_issue=intake.reported_issue,
                received_by=intake.received_by or actor_id,
                visual_condition=intake.visual_condition,
                physical_damage_notes=intake.physical_damage_notes,
                accessories_included=intake.accessories_included,
                customer_notes=intake.customer_notes,
                internal_notes=intake.internal_notes,
                estimated_repair_hours=intake.estimated_repair_hours
            )

        hours = None
        if intake is not None and intake.estimated_repair_hours is not None:
            hours = intake.estimated_repair_hours
        if hours is None:
            hours = settings.default_estimated_repair_hours
        job.estimated_completion_date = intake_at + timedelta(hours=hours)

        self._sync_job_status(job, status.current_status)
        job.updated_at = intake_at
        return await self.repository.save_job(job)

    # ==================== TRANSITIONS ====================

    async def record_transition(
        self,
        job_id: str,
        to_status: EquipmentRepairStatus,
        actor_id: Optional[str],
        notes: Optional[str] = None,
        prepare_job: Optional[Callable[[Job], None]] = None
    ) -> EquipmentStatus:
        """
        Move a job to to_status.

        Rejected attempts (invalid pair, capacity, busy) write nothing.

        Args:
            job_id: Job to move
            to_status: Requested status
            actor_id: User making the change
            notes: Free text stored on the history entry
            prepare_job: Mutates the job record inside the same lock, after
                validation (delivery details, return signature)

        Raises:
            NotFoundError: job has no status record
            InvalidTransitionError: to_status not allowed from the current status
            CapacityExceededError: inactive → active move over a ceiling
            BusyError: job lock still busy after retries
        """
        async for attempt in busy_retrying():
            with attempt:
                job, updated, from_status = await self._record_transition_locked(
                    job_id, to_status, actor_id, notes, prepare_job
                )

        logger.info(
            f"Job {job_id}: {from_status.value} → {to_status.value} by {actor_id}"
        )

        if self.notification_service and job is not None:
            try:
                await self.notification_service.notify_status_change(
                    job, updated, from_status, actor_id=actor_id, notes=notes
                )
            except Exception as e:
                # Best effort: the transition is already committed
                logger.warning(f"Status notification for job {job_id} failed (non-critical): {e}")
        return updated

    async def _record_transition_locked(
        self,
        job_id: str,
        to_status: EquipmentRepairStatus,
        actor_id: Optional[str],
        notes: Optional[str],
        prepare_job: Optional[Callable[[Job], None]]
    ) -> tuple[Optional[Job], EquipmentStatus, EquipmentRepairStatus]:
        async with self.lock_service.hold(job_lock_key(job_id)):
            current = await self.get_status(job_id)
            validate_transition(current.current_status, to_status, job_id)
            job = await self.repository.get_job(job_id)

            admitting = (
                current.current_status not in ACTIVE_STATUSES
                and to_status in ACTIVE_STATUSES
            )
            if admitting:
                async with self.lock_service.hold(admission_lock_key(current.company_id)):
                    await self.capacity_service.check_admission(
                        current.company_id,
                        technician_id=job.technician_id if job else None,
                        exclude_job_id=job_id
                    )
                    updated, job = await self.apply_transition(
                        current, to_status, actor_id, notes, job, prepare_job
                    )
            else:
                updated, job = await self.apply_transition(
                    current, to_status, actor_id, notes, job, prepare_job
                )

            return job, updated, current.current_status

    async def apply_transition(
        self,
        current: EquipmentStatus,
        to_status: EquipmentRepairStatus,
        actor_id: Optional[str],
        notes: Optional[str],
        job: Optional[Job] = None,
        prepare_job: Optional[Callable[[Job], None]] = None
    ) -> tuple[EquipmentStatus, Optional[Job]]:
        """
        Validate and persist one transition of an already-loaded status.

        The caller must hold the job lock (and the admission lock when the
        move admits the job). Used directly by the claim coordinator.

        prepare_job runs before anything is written; an exception from it
        aborts the transition.

        Raises:
            InvalidTransitionError: to_status not allowed from current
            NotFoundError: prepare_job given but the job record is missing
            BusyError: the record changed since it was read
        """
        validate_transition(current.current_status, to_status, current.job_id)
        if prepare_job is not None:
            if job is None:
                raise NotFoundError("Job", current.job_id)
            prepare_job(job)

        now = self.clock()
        updated = current.model_copy()
        updated.current_status = to_status
        updated.mark_reached(to_status, now)
        updated.updated_at = now
        updated.version = current.version + 1

        history = EquipmentStatusHistory(
            equipment_status_id=current.id,
            job_id=current.job_id,
            company_id=current.company_id,
            from_status=current.current_status,
            to_status=to_status,
            changed_at=now,
            changed_by=actor_id,
            notes=notes
        )

        try:
            await self.repository.update_status(updated, history, expected_version=current.version)
        except VersionConflictError as e:
            logger.warning(f"Concurrent write on job {current.job_id}: {e.message}")
            raise BusyError(job_lock_key(current.job_id), 0) from e
        finally:
            self.cache.invalidate(self._history_cache_key(current.job_id))

        if job is not None and (self._sync_job_status(job, to_status) or prepare_job is not None):
            job.updated_at = now
            job = await self.repository.save_job(job)

        return updated, job

    @staticmethod
    def _sync_job_status(job: Job, equipment_status: EquipmentRepairStatus) -> bool:
        """Mirror the equipment status onto the job; cancelled jobs are left alone."""
        if job.status == JobStatus.CANCELLED:
            return False
        target = EQUIPMENT_TO_JOB_STATUS[equipment_status]
        if target == JobStatus.PENDING and job.technician_id:
            target = JobStatus.ASSIGNED
        if job.status == target:
            return False
        job.status = target
        return True

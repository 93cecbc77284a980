"""
Redis-backed workshop repository.

Records are stored as JSON documents (pydantic model_dump_json). Conditional
writes use WATCH/MULTI so a concurrent writer in another process aborts the
transaction instead of being overwritten.

Key layout:
    workshop:job:{job_id}                  job document
    workshop:company:{company_id}:jobs     set of job ids
    workshop:technician:{technician_id}    technician document
    workshop:status:{job_id}               equipment status document
    workshop:company:{company_id}:statuses set of job ids with a status
    workshop:history:{job_id}              list of history documents (RPUSH)
    workshop:settings:{company_id}         settings document
"""
import logging
from datetime import datetime
from typing import Optional

from pydantic import ValidationError
from redis import asyncio as aioredis
from redis.exceptions import RedisError, WatchError

from workshop_core.exceptions import (
    AlreadyClaimedError,
    AlreadyExistsError,
    NotFoundError,
    StorageError,
    VersionConflictError
)
from workshop_core.models.enums import JobStatus
from workshop_core.models.equipment_status import EquipmentStatus, EquipmentStatusHistory
from workshop_core.models.job import Job, Technician
from workshop_core.models.workshop_settings import WorkshopSettings
from workshop_core.repositories.base import WorkshopRepository

logger = logging.getLogger(__name__)

KEY_PREFIX = "workshop"


class RedisWorkshopRepository(WorkshopRepository):
    """
    Workshop repository over a shared Redis client.

    The client must be created with decode_responses=True (RedisRepository
    does this).
    """

    def __init__(self, redis_client: aioredis.Redis):
        self.redis = redis_client

    # ==================== KEYS ====================

    @staticmethod
    def _job_key(job_id: str) -> str:
        return f"{KEY_PREFIX}:job:{job_id}"

    @staticmethod
    def _company_jobs_key(company_id: str) -> str:
        return f"{KEY_PREFIX}:company:{company_id}:jobs"

    @staticmethod
    def _technician_key(technician_id: str) -> str:
        return f"{KEY_PREFIX}:technician:{technician_id}"

    @staticmethod
    def _status_key(job_id: str) -> str:
        return f"{KEY_PREFIX}:status:{job_id}"

    @staticmethod
    def _company_statuses_key(company_id: str) -> str:
        return f"{KEY_PREFIX}:company:{company_id}:statuses"

    @staticmethod
    def _history_key(job_id: str) -> str:
        return f"{KEY_PREFIX}:history:{job_id}"

    @staticmethod
    def _settings_key(company_id: str) -> str:
        return f"{KEY_PREFIX}:settings:{company_id}"

    # ==================== HELPERS ====================

    @staticmethod
    def _load(model, raw):
        if raw is None:
            return None
        try:
            return model.model_validate_json(raw)
        except ValidationError as e:
            raise StorageError(f"Corrupt {model.__name__} document", details=str(e)) from e

    async def _load_many(self, model, keys: list[str]) -> list:
        if not keys:
            return []
        raws = await self.redis.mget(keys)
        return [self._load(model, raw) for raw in raws if raw is not None]

    # ==================== JOBS ====================

    async def get_job(self, job_id: str) -> Optional[Job]:
        try:
            return self._load(Job, await self.redis.get(self._job_key(job_id)))
        except RedisError as e:
            raise StorageError("Failed to read job", details=str(e)) from e

    async def list_jobs(self, company_id: str) -> list[Job]:
        try:
            job_ids = await self.redis.smembers(self._company_jobs_key(company_id))
            return await self._load_many(Job, [self._job_key(job_id) for job_id in sorted(job_ids)])
        except RedisError as e:
            raise StorageError("Failed to list jobs", details=str(e)) from e

    async def save_job(self, job: Job) -> Job:
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.set(self._job_key(job.id), job.model_dump_json())
                pipe.sadd(self._company_jobs_key(job.company_id), job.id)
                await pipe.execute()
            return job
        except RedisError as e:
            raise StorageError("Failed to save job", details=str(e)) from e

    async def assign_technician(
        self,
        job_id: str,
        technician_id: str,
        started_at: datetime
    ) -> Job:
        key = self._job_key(job_id)
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                job = self._load(Job, await pipe.get(key))
                if job is None:
                    raise NotFoundError("Job", job_id)
                if job.technician_id is not None:
                    raise AlreadyClaimedError(job_id, owner_id=job.technician_id)

                job.technician_id = technician_id
                job.started_at = job.started_at or started_at
                job.updated_at = started_at
                if job.status == JobStatus.PENDING:
                    job.status = JobStatus.ASSIGNED

                pipe.multi()
                pipe.set(key, job.model_dump_json())
                await pipe.execute()
                return job
        except WatchError:
            # Another process wrote the job between WATCH and EXEC
            current = await self.get_job(job_id)
            if current is not None and current.technician_id is not None:
                raise AlreadyClaimedError(job_id, owner_id=current.technician_id)
            raise VersionConflictError(job_id, expected=0, actual=None)
        except RedisError as e:
            raise StorageError("Failed to assign technician", details=str(e)) from e

    # ==================== TECHNICIANS ====================

    async def get_technician(self, technician_id: str) -> Optional[Technician]:
        try:
            return self._load(Technician, await self.redis.get(self._technician_key(technician_id)))
        except RedisError as e:
            raise StorageError("Failed to read technician", details=str(e)) from e

    async def save_technician(self, technician: Technician) -> Technician:
        try:
            await self.redis.set(self._technician_key(technician.id), technician.model_dump_json())
            return technician
        except RedisError as e:
            raise StorageError("Failed to save technician", details=str(e)) from e

    # ==================== EQUIPMENT STATUS ====================

    async def get_status(self, job_id: str) -> Optional[EquipmentStatus]:
        try:
            return self._load(EquipmentStatus, await self.redis.get(self._status_key(job_id)))
        except RedisError as e:
            raise StorageError("Failed to read equipment status", details=str(e)) from e

    async def list_statuses(self, company_id: str) -> list[EquipmentStatus]:
        try:
            job_ids = await self.redis.smembers(self._company_statuses_key(company_id))
            return await self._load_many(
                EquipmentStatus,
                [self._status_key(job_id) for job_id in sorted(job_ids)]
            )
        except RedisError as e:
            raise StorageError("Failed to list equipment statuses", details=str(e)) from e

    async def insert_status(
        self,
        status: EquipmentStatus,
        history: EquipmentStatusHistory
    ) -> EquipmentStatus:
        key = self._status_key(status.job_id)
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                if await pipe.exists(key):
                    raise AlreadyExistsError(status.job_id)

                pipe.multi()
                pipe.set(key, status.model_dump_json())
                pipe.sadd(self._company_statuses_key(status.company_id), status.job_id)
                pipe.rpush(self._history_key(status.job_id), history.model_dump_json())
                await pipe.execute()
                return status
        except WatchError:
            raise AlreadyExistsError(status.job_id)
        except RedisError as e:
            raise StorageError("Failed to create equipment status", details=str(e)) from e

    async def update_status(
        self,
        status: EquipmentStatus,
        history: EquipmentStatusHistory,
        expected_version: int
    ) -> EquipmentStatus:
        key = self._status_key(status.job_id)
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                await pipe.watch(key)
                stored = self._load(EquipmentStatus, await pipe.get(key))
                if stored is None:
                    raise NotFoundError("EquipmentStatus", status.job_id)
                if stored.version != expected_version:
                    raise VersionConflictError(status.job_id, expected_version, stored.version)

                pipe.multi()
                pipe.set(key, status.model_dump_json())
                pipe.rpush(self._history_key(status.job_id), history.model_dump_json())
                await pipe.execute()
                return status
        except WatchError:
            raise VersionConflictError(status.job_id, expected_version, None)
        except RedisError as e:
            raise StorageError("Failed to update equipment status", details=str(e)) from e

    # ==================== HISTORY ====================

    async def list_history(self, job_id: str) -> list[EquipmentStatusHistory]:
        try:
            raws = await self.redis.lrange(self._history_key(job_id), 0, -1)
            return [self._load(EquipmentStatusHistory, raw) for raw in raws]
        except RedisError as e:
            raise StorageError("Failed to read status history", details=str(e)) from e

    async def list_company_history(self, company_id: str) -> list[EquipmentStatusHistory]:
        try:
            job_ids = await self.redis.smembers(self._company_statuses_key(company_id))
        except RedisError as e:
            raise StorageError("Failed to list status history", details=str(e)) from e

        entries = []
        for job_id in sorted(job_ids):
            entries.extend(await self.list_history(job_id))
        return entries

    # ==================== SETTINGS ====================

    async def get_settings(self, company_id: str) -> Optional[WorkshopSettings]:
        try:
            return self._load(WorkshopSettings, await self.redis.get(self._settings_key(company_id)))
        except RedisError as e:
            raise StorageError("Failed to read workshop settings", details=str(e)) from e

    async def save_settings(self, settings: WorkshopSettings) -> WorkshopSettings:
        try:
            await self.redis.set(self._settings_key(settings.company_id), settings.model_dump_json())
            return settings
        except RedisError as e:
            raise StorageError("Failed to save workshop settings", details=str(e)) from e

    async def health_check(self) -> dict:
        try:
            await self.redis.ping()
            return {"status": "healthy"}
        except RedisError as e:
            logger.warning(f"Redis repository health check failed: {e}")
            return {"status": "unhealthy", "error": str(e)}

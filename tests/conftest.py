"""
Shared fixtures for workshop engine tests.

Services are wired over a fresh InMemoryWorkshopRepository, a private
SimpleCache and a LocalLockService; the clock is a FakeClock so waiting
times and metrics windows are deterministic.
"""
from datetime import datetime, timedelta
from unittest.mock import AsyncMock

import pytest
import pytz

from workshop_core.models.enums import JobPriority
from workshop_core.models.job import Job, Technician
from workshop_core.models.workshop_settings import WorkshopSettings
from workshop_core.repositories.memory_repository import InMemoryWorkshopRepository
from workshop_core.services.capacity_service import CapacityService
from workshop_core.services.claim_service import ClaimService
from workshop_core.services.delivery_service import DeliveryService
from workshop_core.services.local_lock_service import LocalLockService
from workshop_core.services.metrics_service import MetricsService
from workshop_core.services.notification_service import NotificationService
from workshop_core.services.queue_service import QueueService
from workshop_core.services.settings_service import SettingsService
from workshop_core.services.status_service import StatusService
from workshop_core.utils.cache import SimpleCache

COMPANY_ID = "C-1"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock(pytz.utc.localize(datetime(2026, 3, 2, 9, 0)))


@pytest.fixture
def repository():
    return InMemoryWorkshopRepository()


@pytest.fixture
def cache():
    return SimpleCache()


@pytest.fixture
def lock_service():
    return LocalLockService(acquire_timeout=1.0)


@pytest.fixture
def event_service():
    """Mock RedisEventService (publish always succeeds)."""
    service = AsyncMock()
    service.publish_workshop_update.return_value = True
    return service


@pytest.fixture
def settings_service(repository, cache, clock):
    return SettingsService(repository, cache=cache, clock=clock)


@pytest.fixture
def notification_service(settings_service, event_service):
    return NotificationService(settings_service, event_service=event_service)


@pytest.fixture
def capacity_service(repository, settings_service):
    return CapacityService(repository, settings_service)


@pytest.fixture
def status_service(repository, lock_service, capacity_service, settings_service, notification_service, cache, clock):
    return StatusService(
        repository=repository,
        lock_service=lock_service,
        capacity_service=capacity_service,
        settings_service=settings_service,
        notification_service=notification_service,
        cache=cache,
        clock=clock
    )


@pytest.fixture
def queue_service(repository, clock):
    return QueueService(repository, clock=clock)


@pytest.fixture
def claim_service(repository, lock_service, capacity_service, status_service, notification_service, clock):
    return ClaimService(
        repository=repository,
        lock_service=lock_service,
        capacity_service=capacity_service,
        status_service=status_service,
        notification_service=notification_service,
        clock=clock
    )


@pytest.fixture
def delivery_service(repository, status_service, settings_service):
    return DeliveryService(repository, status_service, settings_service)


@pytest.fixture
def metrics_service(repository, settings_service, capacity_service):
    return MetricsService(repository, settings_service, capacity_service)


@pytest.fixture
def make_job(repository):
    """Async factory: store and return a workshop job."""

    async def _make_job(job_id: str, priority: JobPriority = JobPriority.MEDIUM, **fields) -> Job:
        fields.setdefault("company_id", COMPANY_ID)
        fields.setdefault("job_number", job_id.replace("J-", ""))
        fields.setdefault("title", "Refrigeration unit")
        job = Job(id=job_id, priority=priority, **fields)
        await repository.save_job(job)
        return job

    return _make_job


@pytest.fixture
def make_technician(repository):
    """Async factory: store and return a technician."""

    async def _make_technician(technician_id: str, full_name: str = "", company_id: str = COMPANY_ID) -> Technician:
        technician = Technician(
            id=technician_id,
            company_id=company_id,
            full_name=full_name or f"Technician {technician_id}"
        )
        await repository.save_technician(technician)
        return technician

    return _make_technician


@pytest.fixture
def set_limits(repository):
    """Async helper: store workshop ceilings for COMPANY_ID."""

    async def _set_limits(max_concurrent_jobs: int = 20, max_jobs_per_technician: int = 5, **fields):
        await repository.save_settings(WorkshopSettings(
            company_id=COMPANY_ID,
            max_concurrent_jobs=max_concurrent_jobs,
            max_jobs_per_technician=max_jobs_per_technician,
            **fields
        ))

    return _set_limits

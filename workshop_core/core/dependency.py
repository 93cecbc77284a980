"""
Dependency Injection for FastAPI.

Centralizes creation of repositories and services using FastAPI's
Depends() pattern.

Strategy:
- Singletons: workshop repository, lock service, event publisher
  - Shared state (in-memory store, per-key asyncio locks, Redis client)
  - Lazy initialization on first use
- New instances per request: all domain services
  - Receive their dependencies from the factories below

Testability:
- Override any factory with app.dependency_overrides
- reset_singletons() forces recreation with a different configuration

Usage in routers:
    from workshop_core.core.dependency import get_claim_service
    from fastapi import Depends

    @router.post("/workshop/queue/{job_id}/claim")
    async def claim_job(
        job_id: str,
        claim_service: ClaimService = Depends(get_claim_service)
    ):
        ...
"""

from typing import Optional, Union
from fastapi import Depends, Header

from workshop_core.config import config
from workshop_core.repositories.base import WorkshopRepository
from workshop_core.repositories.memory_repository import InMemoryWorkshopRepository
from workshop_core.repositories.redis_repository import RedisRepository
from workshop_core.repositories.redis_workshop_repository import RedisWorkshopRepository
from workshop_core.services.capacity_service import CapacityService
from workshop_core.services.claim_service import ClaimService
from workshop_core.services.delivery_service import DeliveryService
from workshop_core.services.local_lock_service import LocalLockService
from workshop_core.services.metrics_service import MetricsService
from workshop_core.services.notification_service import NotificationService
from workshop_core.services.queue_service import QueueService
from workshop_core.services.redis_event_service import RedisEventService
from workshop_core.services.redis_lock_service import RedisLockService
from workshop_core.services.settings_service import SettingsService
from workshop_core.services.status_service import StatusService


LockService = Union[LocalLockService, RedisLockService]


# ============================================================================
# SINGLETONS - Shared across the application
# ============================================================================

_repository_singleton: Optional[WorkshopRepository] = None
_lock_service_singleton: Optional[LockService] = None
_event_service_singleton: Optional[RedisEventService] = None


def _use_redis() -> bool:
    return config.STORAGE_BACKEND == "redis"


# ============================================================================
# FACTORY FUNCTIONS - Singletons
# ============================================================================


def get_redis_repository() -> RedisRepository:
    """RedisRepository is itself a singleton; connected in the startup event."""
    return RedisRepository()


def get_workshop_repository() -> WorkshopRepository:
    """
    Factory for the workshop repository (singleton).

    STORAGE_BACKEND=memory: InMemoryWorkshopRepository (single process)
    STORAGE_BACKEND=redis: RedisWorkshopRepository over the shared client
    """
    global _repository_singleton

    if _repository_singleton is None:
        if _use_redis():
            _repository_singleton = RedisWorkshopRepository(get_redis_repository().get_client())
        else:
            _repository_singleton = InMemoryWorkshopRepository()

    return _repository_singleton


def get_lock_service() -> LockService:
    """
    Factory for the per-key lock service (singleton).

    Redis locks when several API processes share the store, asyncio locks
    otherwise.
    """
    global _lock_service_singleton

    if _lock_service_singleton is None:
        if _use_redis():
            _lock_service_singleton = RedisLockService(get_redis_repository().get_client())
        else:
            _lock_service_singleton = LocalLockService()

    return _lock_service_singleton


def get_event_service() -> Optional[RedisEventService]:
    """
    Factory for the event publisher (singleton).

    Returns None with the memory backend: events are then only logged.
    """
    global _event_service_singleton

    if _event_service_singleton is None and _use_redis():
        _event_service_singleton = RedisEventService(get_redis_repository().get_client())

    return _event_service_singleton


# ============================================================================
# REQUEST CONTEXT
# ============================================================================


def get_company_id(
    x_company_id: str = Header(..., min_length=1, description="Tenant (company) id")
) -> str:
    """Tenant of the request, from the X-Company-ID header."""
    return x_company_id


# ============================================================================
# FACTORY FUNCTIONS - New instances with injected dependencies
# ============================================================================


def get_settings_service(
    repository: WorkshopRepository = Depends(get_workshop_repository)
) -> SettingsService:
    return SettingsService(repository=repository)


def get_notification_service(
    settings_service: SettingsService = Depends(get_settings_service),
    event_service: Optional[RedisEventService] = Depends(get_event_service)
) -> NotificationService:
    return NotificationService(settings_service=settings_service, event_service=event_service)


def get_capacity_service(
    repository: WorkshopRepository = Depends(get_workshop_repository),
    settings_service: SettingsService = Depends(get_settings_service)
) -> CapacityService:
    return CapacityService(repository=repository, settings_service=settings_service)


def get_status_service(
    repository: WorkshopRepository = Depends(get_workshop_repository),
    lock_service: LockService = Depends(get_lock_service),
    capacity_service: CapacityService = Depends(get_capacity_service),
    settings_service: SettingsService = Depends(get_settings_service),
    notification_service: NotificationService = Depends(get_notification_service)
) -> StatusService:
    """
    Factory for StatusService (new instance per request).

    StatusService owns every equipment status write: intake and
    transitions, each under the per-job lock.
    """
    return StatusService(
        repository=repository,
        lock_service=lock_service,
        capacity_service=capacity_service,
        settings_service=settings_service,
        notification_service=notification_service
    )


def get_queue_service(
    repository: WorkshopRepository = Depends(get_workshop_repository)
) -> QueueService:
    return QueueService(repository=repository)


def get_claim_service(
    repository: WorkshopRepository = Depends(get_workshop_repository),
    lock_service: LockService = Depends(get_lock_service),
    capacity_service: CapacityService = Depends(get_capacity_service),
    status_service: StatusService = Depends(get_status_service),
    notification_service: NotificationService = Depends(get_notification_service)
) -> ClaimService:
    """
    Factory for ClaimService (new instance per request).

    Shares the lock service singleton with StatusService so claims and
    transitions serialize on the same per-job locks.
    """
    return ClaimService(
        repository=repository,
        lock_service=lock_service,
        capacity_service=capacity_service,
        status_service=status_service,
        notification_service=notification_service
    )


def get_delivery_service(
    repository: WorkshopRepository = Depends(get_workshop_repository),
    status_service: StatusService = Depends(get_status_service),
    settings_service: SettingsService = Depends(get_settings_service)
) -> DeliveryService:
    return DeliveryService(
        repository=repository,
        status_service=status_service,
        settings_service=settings_service
    )


def get_metrics_service(
    repository: WorkshopRepository = Depends(get_workshop_repository),
    settings_service: SettingsService = Depends(get_settings_service),
    capacity_service: CapacityService = Depends(get_capacity_service)
) -> MetricsService:
    return MetricsService(
        repository=repository,
        settings_service=settings_service,
        capacity_service=capacity_service
    )


# ============================================================================
# UTILITY FUNCTIONS - For testing
# ============================================================================


def reset_singletons() -> None:
    """
    Reset all singletons to None.

    WARNING: tests only.

    Usage in tests:
        from workshop_core.core.dependency import reset_singletons

        def test_something():
            reset_singletons()
    """
    global _repository_singleton, _lock_service_singleton, _event_service_singleton

    _repository_singleton = None
    _lock_service_singleton = None
    _event_service_singleton = None

"""
Health Check Router - System status monitoring.

Endpoints:
- GET /api/health - Health check with storage backend connectivity
"""

from fastapi import APIRouter, Depends, status
import logging

from workshop_core import __version__
from workshop_core.config import config
from workshop_core.core.dependency import get_redis_repository, get_workshop_repository
from workshop_core.repositories.base import WorkshopRepository
from workshop_core.utils.date_formatter import now_utc

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(
    repository: WorkshopRepository = Depends(get_workshop_repository)
):
    """
    Health check endpoint.

    Returns "degraded" instead of an error status when the storage backend
    does not answer, so monitors can tell a slow store from a dead API.

    Example response (healthy):
        ```json
        {
            "status": "healthy",
            "timestamp": "2026-01-21T14:30:00+00:00",
            "environment": "development",
            "storage_backend": "memory",
            "storage": {"status": "healthy"},
            "version": "1.0.0"
        }
        ```
    """
    storage = await repository.health_check()
    if config.STORAGE_BACKEND == "redis":
        storage["connection_pool"] = get_redis_repository().get_connection_stats()

    overall = "healthy" if storage.get("status") == "healthy" else "degraded"
    if overall != "healthy":
        logger.warning(f"Health check degraded: {storage}")

    return {
        "status": overall,
        "timestamp": now_utc().isoformat(),
        "environment": config.ENVIRONMENT,
        "storage_backend": config.STORAGE_BACKEND,
        "storage": storage,
        "version": __version__
    }

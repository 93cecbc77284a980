"""
Workshop settings service.

Reads per-company settings (cached) with configuration defaults for
companies that never saved any, and applies validated partial updates.
"""
import logging
from typing import Callable, Optional
from datetime import datetime

from workshop_core.config import config
from workshop_core.exceptions import InvalidSettingsError
from workshop_core.models.workshop_settings import WorkshopSettings, WorkshopSettingsUpdate
from workshop_core.repositories.base import WorkshopRepository
from workshop_core.utils.cache import SimpleCache, get_cache
from workshop_core.utils.date_formatter import now_utc

logger = logging.getLogger(__name__)

# Optional fields a client may reset to null
_CLEARABLE_FIELDS = frozenset({
    "workshop_address",
    "workshop_phone",
    "workshop_hours",
    "intake_confirmation_template",
    "ready_notification_template",
    "status_update_template",
})


def default_settings(company_id: str) -> WorkshopSettings:
    """Settings used when a company has no stored row."""
    return WorkshopSettings(
        company_id=company_id,
        max_concurrent_jobs=config.DEFAULT_MAX_CONCURRENT_JOBS,
        max_jobs_per_technician=config.DEFAULT_MAX_JOBS_PER_TECHNICIAN,
        default_estimated_repair_hours=config.DEFAULT_ESTIMATED_REPAIR_HOURS
    )


class SettingsService:

    def __init__(
        self,
        repository: WorkshopRepository,
        cache: Optional[SimpleCache] = None,
        clock: Callable[[], datetime] = now_utc
    ):
        self.repository = repository
        self.cache = cache or get_cache()
        self.clock = clock

    @staticmethod
    def _cache_key(company_id: str) -> str:
        return f"settings:{company_id}"

    async def get_settings(self, company_id: str, fresh: bool = False) -> WorkshopSettings:
        """
        Settings for company_id, falling back to configured defaults.

        Cached for CACHE_TTL_SECONDS and invalidated by update_settings().
        The cache is per process: callers that enforce ceilings pass
        fresh=True so an update made by another API process applies at once.
        """
        cache_key = self._cache_key(company_id)
        cached = None if fresh else self.cache.get(cache_key)
        if cached is not None:
            return cached.model_copy(deep=True)

        settings = await self.repository.get_settings(company_id)
        if settings is None:
            logger.debug(f"No workshop settings for company {company_id}, using defaults")
            settings = default_settings(company_id)

        self.cache.set(cache_key, settings, ttl_seconds=config.CACHE_TTL_SECONDS)
        return settings.model_copy(deep=True)

    @staticmethod
    def validate_update(update: WorkshopSettingsUpdate) -> None:
        """
        Raises:
            InvalidSettingsError: on the first out-of-range field
        """
        if update.max_concurrent_jobs is not None and update.max_concurrent_jobs < 1:
            raise InvalidSettingsError("max_concurrent_jobs", "Max concurrent jobs must be at least 1")
        if update.max_jobs_per_technician is not None and update.max_jobs_per_technician < 1:
            raise InvalidSettingsError("max_jobs_per_technician", "Max jobs per technician must be at least 1")
        if update.default_estimated_repair_hours is not None and update.default_estimated_repair_hours < 1:
            raise InvalidSettingsError(
                "default_estimated_repair_hours",
                "Default estimated repair hours must be at least 1"
            )
        if update.default_pickup_delivery_fee is not None and update.default_pickup_delivery_fee < 0:
            raise InvalidSettingsError("default_pickup_delivery_fee", "Pickup/delivery fee cannot be negative")

    async def update_settings(self, company_id: str, update: WorkshopSettingsUpdate) -> WorkshopSettings:
        """
        Apply the fields set in update and persist.

        Creates the row from defaults on first update.
        """
        self.validate_update(update)

        current = await self.repository.get_settings(company_id)
        now = self.clock()
        if current is None:
            current = default_settings(company_id)
            current.created_at = now

        changes = {
            field: value
            for field, value in update.model_dump(exclude_unset=True).items()
            if value is not None or field in _CLEARABLE_FIELDS
        }
        updated = WorkshopSettings.model_validate({**current.model_dump(), **changes, "updated_at": now})

        await self.repository.save_settings(updated)
        self.cache.invalidate(self._cache_key(company_id))

        logger.info(f"Workshop settings updated for company {company_id}: {sorted(changes)}")
        return updated

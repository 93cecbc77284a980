"""
Workshop settings models (one row per company).
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class WorkshopSettings(BaseModel):
    """
    Capacity ceilings, defaults and notification preferences of a workshop.

    Read by the capacity guard and the metrics aggregator; mutated only
    through SettingsService.update_settings().
    """
    company_id: str
    max_concurrent_jobs: int = Field(20, ge=1)
    max_jobs_per_technician: int = Field(5, ge=1)
    default_estimated_repair_hours: float = Field(24, ge=1)
    default_pickup_delivery_fee: float = Field(0, ge=0)

    workshop_address: Optional[str] = None
    workshop_phone: Optional[str] = None
    workshop_hours: Optional[dict[str, Any]] = None

    send_intake_confirmation: bool = True
    send_ready_notification: bool = True
    send_status_updates: bool = True
    intake_confirmation_template: Optional[str] = None
    ready_notification_template: Optional[str] = None
    status_update_template: Optional[str] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WorkshopSettingsUpdate(BaseModel):
    """
    Partial settings update. Only fields that are set are applied.

    Range checks live in SettingsService so the API returns the engine's
    INVALID_SETTINGS error instead of a generic validation error.
    """
    max_concurrent_jobs: Optional[int] = None
    max_jobs_per_technician: Optional[int] = None
    default_estimated_repair_hours: Optional[float] = None
    default_pickup_delivery_fee: Optional[float] = None
    workshop_address: Optional[str] = None
    workshop_phone: Optional[str] = None
    workshop_hours: Optional[dict[str, Any]] = None
    send_intake_confirmation: Optional[bool] = None
    send_ready_notification: Optional[bool] = None
    send_status_updates: Optional[bool] = None
    intake_confirmation_template: Optional[str] = None
    ready_notification_template: Optional[str] = None
    status_update_template: Optional[str] = None

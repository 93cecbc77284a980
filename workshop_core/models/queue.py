"""
Models for the workshop queue (read-time projection of unclaimed jobs).
"""
from typing import Optional

from pydantic import BaseModel, Field

from .enums import EquipmentRepairStatus, JobPriority
from .equipment_status import EquipmentStatus
from .job import Job


class QueueFilters(BaseModel):
    """Optional filters for GET /api/workshop/queue."""
    priority: Optional[JobPriority] = None
    customer_id: Optional[str] = None
    equipment_type: Optional[str] = None
    status: Optional[EquipmentRepairStatus] = None
    limit: Optional[int] = Field(None, ge=1, le=500)


class QueueItem(BaseModel):
    """One unclaimed job with its computed ranking inputs."""
    job: Job
    equipment_status: EquipmentStatus
    days_waiting: int = Field(..., ge=0)
    is_overdue: bool = False


class ClaimRequest(BaseModel):
    """
    Request body for claiming a job from the queue.

    Used by POST /api/workshop/queue/{job_id}/claim.
    """
    technician_id: str = Field(..., min_length=1)
    claimed_by: Optional[str] = Field(None, description="Actor id, defaults to the technician")

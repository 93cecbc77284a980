"""
Models for records owned by external collaborators (jobs, technicians).

The engine treats a Job as an opaque record that it annotates with the
intake details and reads for priority, assignment and due dates.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from .enums import JobPriority, JobStatus, LocationType


class EquipmentIntake(BaseModel):
    """Details captured when equipment is registered at the workshop."""
    intake_date: datetime
    reported_issue: str = Field(..., min_length=1)
    received_by: Optional[str] = None
    visual_condition: Optional[str] = None
    physical_damage_notes: Optional[str] = None
    accessories_included: Optional[str] = None
    customer_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    estimated_repair_hours: Optional[float] = Field(None, ge=0)
    customer_signature: Optional[str] = Field(None, description="Captured when the equipment is handed back")


class Job(BaseModel):
    """Work order as seen by the workshop engine."""
    id: str = Field(..., min_length=1)
    company_id: str = Field(..., min_length=1)
    job_number: str = ""
    title: str = ""
    equipment_type: Optional[str] = None
    customer_id: Optional[str] = None
    customer_name: Optional[str] = None
    priority: JobPriority = JobPriority.MEDIUM
    status: JobStatus = JobStatus.PENDING
    location_type: LocationType = LocationType.WORKSHOP
    technician_id: Optional[str] = None
    estimated_completion_date: Optional[datetime] = None
    started_at: Optional[datetime] = None
    delivery_scheduled_date: Optional[datetime] = None
    delivery_technician_id: Optional[str] = None
    pickup_delivery_fee: Optional[float] = Field(None, ge=0)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    equipment_intake: Optional[EquipmentIntake] = None

    @property
    def is_claimed(self) -> bool:
        return self.technician_id is not None


class Technician(BaseModel):
    """Technician identity resolved through the repository."""
    id: str
    company_id: str
    full_name: str
    is_available: bool = True

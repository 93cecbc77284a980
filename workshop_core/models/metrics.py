"""
Models for workshop KPIs and capacity utilization.
"""
from typing import Dict, List

from pydantic import BaseModel, Field


class TechnicianLoad(BaseModel):
    """Active job count for one technician."""
    technician_id: str
    technician_name: str
    active_jobs: int = Field(..., ge=0)


class WorkshopMetrics(BaseModel):
    """KPIs for a reporting window."""
    total_jobs: int = 0
    jobs_by_status: Dict[str, int] = Field(default_factory=dict)
    average_repair_time_hours: float = 0.0
    on_time_completion_rate: float = 0.0
    current_capacity_utilization: float = 0.0
    jobs_per_technician: List[TechnicianLoad] = Field(default_factory=list)


class WorkshopCapacity(BaseModel):
    current_jobs: int
    max_concurrent_jobs: int
    utilization_percentage: float
    available_capacity: int


class TechnicianCapacity(BaseModel):
    technician_id: str
    technician_name: str
    current_jobs: int
    max_jobs: int
    utilization_percentage: float
    available_capacity: int


class CapacityUtilization(BaseModel):
    """Current workshop-wide and per-technician capacity usage."""
    workshop: WorkshopCapacity
    technicians: List[TechnicianCapacity] = Field(default_factory=list)

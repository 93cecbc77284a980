"""
Pydantic models for equipment status and its append-only history.
"""
import uuid
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import EquipmentRepairStatus


def _new_id() -> str:
    return str(uuid.uuid4())


class EquipmentStatus(BaseModel):
    """
    Current repair status of one job plus its reached-state timestamps.

    Each <state>_at is stamped the first time the job enters that state and
    is never cleared afterwards, even when the job moves backward.
    """
    id: str = Field(default_factory=_new_id)
    job_id: str = Field(..., min_length=1)
    company_id: str = Field(..., min_length=1)
    current_status: EquipmentRepairStatus

    pending_intake_at: Optional[datetime] = None
    in_transit_at: Optional[datetime] = None
    received_at: Optional[datetime] = None
    in_repair_at: Optional[datetime] = None
    repair_completed_at: Optional[datetime] = None
    ready_for_pickup_at: Optional[datetime] = None
    out_for_delivery_at: Optional[datetime] = None
    returned_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime
    version: int = Field(
        1,
        ge=1,
        description="Optimistic concurrency counter, incremented on every accepted write"
    )

    def reached_at(self, status: EquipmentRepairStatus) -> Optional[datetime]:
        """Timestamp of the first entry into status, or None."""
        return getattr(self, status.timestamp_field)

    def mark_reached(self, status: EquipmentRepairStatus, when: datetime) -> bool:
        """
        Stamp status as reached if it never was.

        Returns:
            True if the timestamp was set now, False if it was already set
        """
        if self.reached_at(status) is not None:
            return False
        setattr(self, status.timestamp_field, when)
        return True


class EquipmentStatusHistory(BaseModel):
    """
    One accepted status change. Immutable once written.

    from_status is None only for the intake entry.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    equipment_status_id: str
    job_id: str
    company_id: str
    from_status: Optional[EquipmentRepairStatus] = None
    to_status: EquipmentRepairStatus
    changed_at: datetime
    changed_by: Optional[str] = Field(None, description="Actor (user) id that made the change")
    notes: Optional[str] = None


class IntakeRequest(BaseModel):
    """
    Request body for equipment intake.

    Used by POST /api/intake/{job_id}.
    """
    initial_status: EquipmentRepairStatus = Field(
        EquipmentRepairStatus.RECEIVED,
        description="pending_intake (arriving via transit) or received (handed over in person)"
    )
    reported_issue: str = Field(..., min_length=1, examples=["Compressor does not start"])
    received_by: Optional[str] = None
    visual_condition: Optional[str] = None
    physical_damage_notes: Optional[str] = None
    accessories_included: Optional[str] = None
    customer_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    estimated_repair_hours: Optional[float] = Field(None, ge=0)
    notes: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "initial_status": "received",
                    "reported_issue": "Compressor does not start",
                    "received_by": "U-12",
                    "accessories_included": "Power cable",
                    "estimated_repair_hours": 8
                }
            ]
        }
    )


class TransitionRequest(BaseModel):
    """
    Request body for a status transition.

    Used by POST /api/status/{job_id}/transition.
    """
    to_status: EquipmentRepairStatus
    changed_by: str = Field(..., min_length=1, description="Actor id making the change")
    notes: Optional[str] = None


class StatusHistoryResponse(BaseModel):
    """Full status history of a job, oldest first."""
    job_id: str
    current_status: EquipmentRepairStatus
    history: List[EquipmentStatusHistory] = Field(default_factory=list)

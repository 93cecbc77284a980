"""
Request/response models for return logistics.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .equipment_status import EquipmentStatus
from .job import Job


class DeliveryRequest(BaseModel):
    """
    Request body for scheduling the delivery of repaired equipment.

    Used by POST /api/workshop/jobs/{job_id}/schedule-delivery.
    """
    delivery_date: datetime
    delivery_technician_id: str = Field(..., min_length=1)
    delivery_fee: Optional[float] = Field(
        None, ge=0, description="Defaults to the workshop's default_pickup_delivery_fee"
    )
    scheduled_by: Optional[str] = None

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "delivery_date": "2026-03-10T14:00:00Z",
                    "delivery_technician_id": "T-3",
                    "delivery_fee": 25.0,
                    "scheduled_by": "U-12"
                }
            ]
        }
    )


class ReturnRequest(BaseModel):
    """
    Request body for handing equipment back to the customer.

    Used by POST /api/workshop/jobs/{job_id}/mark-returned.
    """
    customer_signature: str = Field(..., min_length=1)
    return_notes: Optional[str] = None
    returned_by: Optional[str] = None


class DeliveryResponse(BaseModel):
    """Job and equipment status after a logistics step."""
    job: Job
    status: EquipmentStatus

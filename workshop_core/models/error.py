"""
Pydantic model for API error responses.
"""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Any


class ErrorResponse(BaseModel):
    """
    Standard error body returned by the exception handlers.
    """
    success: bool = Field(
        False,
        description="Always False for errors"
    )
    error: str = Field(
        ...,
        description="Error code (e.g. INVALID_TRANSITION, ALREADY_CLAIMED)",
        examples=["INVALID_TRANSITION", "ALREADY_CLAIMED", "CAPACITY_EXCEEDED"]
    )
    message: str = Field(
        ...,
        description="Human readable error message"
    )
    data: Optional[dict[str, Any]] = Field(
        None,
        description="Additional context about the error"
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "success": False,
                    "error": "INVALID_TRANSITION",
                    "message": (
                        "Cannot transition job 'J-100' from 'received' to 'ready_for_pickup'. "
                        "Allowed transitions: in_repair"
                    ),
                    "data": {
                        "job_id": "J-100",
                        "current_status": "received",
                        "requested_status": "ready_for_pickup",
                        "allowed_transitions": ["in_repair"]
                    }
                },
                {
                    "success": False,
                    "error": "ALREADY_CLAIMED",
                    "message": "Job 'J-100' is already assigned to a technician (T-7)",
                    "data": {"job_id": "J-100", "owner_id": "T-7"}
                }
            ]
        }
    )

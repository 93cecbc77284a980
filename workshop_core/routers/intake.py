"""
Intake Router - Equipment intake registration.

Endpoints:
- POST /api/intake/{job_id} - Create the equipment status of a job
"""

from fastapi import APIRouter, Depends, status
import logging

from workshop_core.core.dependency import get_company_id, get_status_service
from workshop_core.models.equipment_status import EquipmentStatus, IntakeRequest
from workshop_core.services.status_service import StatusService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "/intake/{job_id}",
    response_model=EquipmentStatus,
    status_code=status.HTTP_201_CREATED
)
async def create_intake(
    job_id: str,
    request: IntakeRequest,
    company_id: str = Depends(get_company_id),
    service: StatusService = Depends(get_status_service)
):
    """
    Register equipment intake for a job.

    initial_status "received" admits the job into the workshop and is
    checked against the capacity ceilings; "pending_intake" is used when
    the equipment is still on its way.

    Raises (via global handler):
        404 NOT_FOUND: unknown job
        409 ALREADY_EXISTS: intake already recorded
        409 CAPACITY_EXCEEDED: workshop full
        400 INVALID_TRANSITION: initial_status not an intake status
    """
    await service.ensure_company_job(company_id, job_id)
    return await service.create_intake_status(
        job_id,
        initial_status=request.initial_status,
        actor_id=request.received_by,
        notes=request.notes,
        intake=request
    )

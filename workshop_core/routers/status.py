"""
Status Router - Equipment status reads and transitions.

Endpoints:
- GET  /api/status/transitions           - Allowed transition table (UI hints)
- GET  /api/status/{job_id}              - Current equipment status
- GET  /api/status/{job_id}/history      - Full status history, oldest first
- POST /api/status/{job_id}/transition   - Move equipment to a new status

Engine exceptions are mapped to HTTP responses by the global handler in
main.py (INVALID_TRANSITION → 400, NOT_FOUND → 404, CAPACITY_EXCEEDED → 409,
BUSY → 503).
"""

from fastapi import APIRouter, Depends, status
import logging

from workshop_core.core.dependency import get_company_id, get_status_service
from workshop_core.domain.state_machines.equipment_machine import transition_table
from workshop_core.exceptions import NotFoundError
from workshop_core.models.equipment_status import (
    EquipmentStatus,
    StatusHistoryResponse,
    TransitionRequest
)
from workshop_core.services.status_service import StatusService

logger = logging.getLogger(__name__)
router = APIRouter()


async def _company_status(service: StatusService, company_id: str, job_id: str) -> EquipmentStatus:
    current = await service.get_status(job_id)
    if current.company_id != company_id:
        raise NotFoundError("EquipmentStatus", job_id)
    return current


@router.get("/status/transitions")
async def get_transitions():
    """
    Allowed next statuses for every status.

    Example response:
        ```json
        {"received": ["in_repair"], "returned": [], ...}
        ```
    """
    return transition_table()


@router.get("/status/{job_id}", response_model=EquipmentStatus)
async def get_status(
    job_id: str,
    company_id: str = Depends(get_company_id),
    service: StatusService = Depends(get_status_service)
):
    return await _company_status(service, company_id, job_id)


@router.get("/status/{job_id}/history", response_model=StatusHistoryResponse)
async def get_history(
    job_id: str,
    company_id: str = Depends(get_company_id),
    service: StatusService = Depends(get_status_service)
):
    current = await _company_status(service, company_id, job_id)
    history = await service.get_history(job_id)
    return StatusHistoryResponse(
        job_id=job_id,
        current_status=current.current_status,
        history=history
    )


@router.post(
    "/status/{job_id}/transition",
    response_model=EquipmentStatus,
    status_code=status.HTTP_200_OK
)
async def transition_status(
    job_id: str,
    request: TransitionRequest,
    company_id: str = Depends(get_company_id),
    service: StatusService = Depends(get_status_service)
):
    """
    Move equipment to request.to_status.

    Example request:
        ```json
        {"to_status": "repair_completed", "changed_by": "T-7", "notes": "Replaced relay"}
        ```
    """
    await _company_status(service, company_id, job_id)
    return await service.record_transition(
        job_id,
        request.to_status,
        actor_id=request.changed_by,
        notes=request.notes
    )

"""
Workshop Router - Queue, claims, capacity, metrics and settings.

Endpoints:
- GET  /api/workshop/queue                 - Ranked queue of unclaimed jobs
- POST /api/workshop/queue/{job_id}/claim  - Claim a job for a technician
- POST /api/workshop/jobs/{job_id}/schedule-delivery - Send repaired equipment back
- POST /api/workshop/jobs/{job_id}/mark-returned     - Customer signed for the equipment
- GET  /api/workshop/capacity              - Current capacity utilization
- GET  /api/workshop/metrics               - KPIs for a date window
- GET  /api/workshop/settings              - Workshop settings
- PUT  /api/workshop/settings              - Partial settings update

Claim races surface as 409 ALREADY_CLAIMED, ceilings as 409
CAPACITY_EXCEEDED and lock contention as 503 BUSY (safe to retry).
"""

from datetime import date, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
import logging

from workshop_core.core.dependency import (
    get_capacity_service,
    get_claim_service,
    get_company_id,
    get_delivery_service,
    get_metrics_service,
    get_queue_service,
    get_settings_service
)
from workshop_core.models.enums import EquipmentRepairStatus, JobPriority
from workshop_core.models.delivery import DeliveryRequest, DeliveryResponse, ReturnRequest
from workshop_core.models.job import Job
from workshop_core.models.metrics import CapacityUtilization, WorkshopMetrics
from workshop_core.models.queue import ClaimRequest, QueueFilters, QueueItem
from workshop_core.models.workshop_settings import WorkshopSettings, WorkshopSettingsUpdate
from workshop_core.services.capacity_service import CapacityService
from workshop_core.services.claim_service import ClaimService
from workshop_core.services.delivery_service import DeliveryService
from workshop_core.services.metrics_service import MetricsService
from workshop_core.services.queue_service import QueueService
from workshop_core.services.settings_service import SettingsService
from workshop_core.utils.date_formatter import now_utc, to_workshop_time

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/workshop/queue", response_model=list[QueueItem])
async def get_queue(
    priority: Optional[JobPriority] = None,
    customer_id: Optional[str] = None,
    equipment_type: Optional[str] = None,
    equipment_status: Optional[EquipmentRepairStatus] = Query(None, alias="status"),
    limit: Optional[int] = Query(None, ge=1, le=500),
    company_id: str = Depends(get_company_id),
    service: QueueService = Depends(get_queue_service)
):
    """
    Unclaimed workshop jobs, most urgent first.

    Order: priority tier, then days waiting (descending), then intake time.
    """
    filters = QueueFilters(
        priority=priority,
        customer_id=customer_id,
        equipment_type=equipment_type,
        status=equipment_status,
        limit=limit
    )
    return await service.list_queue(company_id, filters)


@router.post("/workshop/queue/{job_id}/claim", response_model=Job)
async def claim_job(
    job_id: str,
    request: ClaimRequest,
    company_id: str = Depends(get_company_id),
    service: ClaimService = Depends(get_claim_service)
):
    """
    Claim a queued job for a technician.

    Example request:
        ```json
        {"technician_id": "T-7"}
        ```
    """
    return await service.claim_job(
        company_id,
        job_id,
        request.technician_id,
        actor_id=request.claimed_by
    )


@router.post("/workshop/jobs/{job_id}/schedule-delivery", response_model=DeliveryResponse)
async def schedule_delivery(
    job_id: str,
    request: DeliveryRequest,
    company_id: str = Depends(get_company_id),
    service: DeliveryService = Depends(get_delivery_service)
):
    """
    Schedule delivery of a repaired job and move it to out_for_delivery.

    Example request:
        ```json
        {"delivery_date": "2026-03-10T14:00:00Z", "delivery_technician_id": "T-3"}
        ```
    """
    job, equipment_status = await service.schedule_delivery(
        company_id,
        job_id,
        request.delivery_date,
        request.delivery_technician_id,
        delivery_fee=request.delivery_fee,
        actor_id=request.scheduled_by
    )
    return DeliveryResponse(job=job, status=equipment_status)


@router.post("/workshop/jobs/{job_id}/mark-returned", response_model=DeliveryResponse)
async def mark_returned(
    job_id: str,
    request: ReturnRequest,
    company_id: str = Depends(get_company_id),
    service: DeliveryService = Depends(get_delivery_service)
):
    job, equipment_status = await service.mark_returned(
        company_id,
        job_id,
        request.customer_signature,
        return_notes=request.return_notes,
        actor_id=request.returned_by
    )
    return DeliveryResponse(job=job, status=equipment_status)


@router.get("/workshop/capacity", response_model=CapacityUtilization)
async def get_capacity(
    company_id: str = Depends(get_company_id),
    service: CapacityService = Depends(get_capacity_service)
):
    return await service.get_capacity_utilization(company_id)


@router.get("/workshop/metrics", response_model=WorkshopMetrics)
async def get_metrics(
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    company_id: str = Depends(get_company_id),
    service: MetricsService = Depends(get_metrics_service)
):
    """
    Workshop KPIs between date_from and date_to (inclusive, workshop timezone).

    Defaults to the last 30 days.
    """
    today = to_workshop_time(now_utc()).date()
    date_to = date_to or today
    date_from = date_from or date_to - timedelta(days=30)

    try:
        return await service.get_metrics(company_id, date_from, date_to)
    except ValueError as e:
        logger.info(f"Invalid metrics window: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/workshop/settings", response_model=WorkshopSettings)
async def get_settings(
    company_id: str = Depends(get_company_id),
    service: SettingsService = Depends(get_settings_service)
):
    return await service.get_settings(company_id)


@router.put("/workshop/settings", response_model=WorkshopSettings)
async def update_settings(
    update: WorkshopSettingsUpdate,
    company_id: str = Depends(get_company_id),
    service: SettingsService = Depends(get_settings_service)
):
    """
    Update only the fields present in the body.

    Raises (via global handler):
        400 INVALID_SETTINGS: ceiling < 1, default hours < 1 or negative fee
    """
    return await service.update_settings(company_id, update)

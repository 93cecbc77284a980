"""
Workshop queue ranker.

The queue is a read-time projection: unclaimed workshop jobs whose
equipment has not been worked on yet, ranked by
1. priority tier (urgent > high > medium > low)
2. days waiting since intake, descending (whole days, rounded up)
3. intake timestamp, ascending (FIFO tie-break)

Nothing about the ranking is persisted. Reads take no locks.
"""
import heapq
import logging
from datetime import datetime
from typing import AsyncIterator, Callable, Optional

from workshop_core.domain.state_machines.equipment_machine import PRE_WORK_STATUSES
from workshop_core.models.enums import JobStatus, LocationType
from workshop_core.models.equipment_status import EquipmentStatus
from workshop_core.models.job import Job
from workshop_core.models.queue import QueueFilters, QueueItem
from workshop_core.repositories.base import WorkshopRepository
from workshop_core.utils.date_formatter import days_waiting, ensure_aware, now_utc

logger = logging.getLogger(__name__)


def is_queue_eligible(job: Job, status: EquipmentStatus) -> bool:
    """Unassigned, not cancelled, workshop job still before repair work."""
    return (
        not job.is_claimed
        and job.status != JobStatus.CANCELLED
        and job.location_type == LocationType.WORKSHOP
        and status.current_status in PRE_WORK_STATUSES
    )


def _matches(item: QueueItem, filters: QueueFilters) -> bool:
    if filters.priority is not None and item.job.priority != filters.priority:
        return False
    if filters.customer_id is not None and item.job.customer_id != filters.customer_id:
        return False
    if filters.equipment_type is not None and (item.job.equipment_type or "").lower() != filters.equipment_type.lower():
        return False
    if filters.status is not None and item.equipment_status.current_status != filters.status:
        return False
    return True


class QueueService:

    def __init__(
        self,
        repository: WorkshopRepository,
        clock: Callable[[], datetime] = now_utc
    ):
        self.repository = repository
        self.clock = clock

    async def iter_queue(
        self,
        company_id: str,
        filters: Optional[QueueFilters] = None
    ) -> AsyncIterator[QueueItem]:
        """
        Yield queue items in rank order, one heap pop at a time.

        Stops early once filters.limit items were yielded.
        """
        filters = filters or QueueFilters()
        now = self.clock()

        statuses = {status.job_id: status for status in await self.repository.list_statuses(company_id)}
        jobs = await self.repository.list_jobs(company_id)

        heap = []
        for job in jobs:
            status = statuses.get(job.id)
            if status is None or not is_queue_eligible(job, status):
                continue

            intake_at = ensure_aware(status.created_at)
            item = QueueItem(
                job=job,
                equipment_status=status,
                days_waiting=days_waiting(intake_at, now),
                is_overdue=(
                    job.estimated_completion_date is not None
                    and ensure_aware(job.estimated_completion_date) < now
                )
            )
            if not _matches(item, filters):
                continue

            rank = (job.priority.rank, -item.days_waiting, intake_at, job.id)
            heap.append((rank, item))

        heapq.heapify(heap)
        logger.debug(f"Queue for company {company_id}: {len(heap)} eligible jobs")

        yielded = 0
        while heap and (filters.limit is None or yielded < filters.limit):
            _, item = heapq.heappop(heap)
            yielded += 1
            yield item

    async def list_queue(
        self,
        company_id: str,
        filters: Optional[QueueFilters] = None
    ) -> list[QueueItem]:
        """Materialized iter_queue()."""
        return [item async for item in self.iter_queue(company_id, filters)]

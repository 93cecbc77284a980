"""
Workshop metrics aggregator.

Computes KPIs for an inclusive calendar-date window (workshop timezone)
in one snapshot pass over statuses, history and jobs. No locks, no retries.
"""
import logging
from collections import Counter
from datetime import date
from typing import Optional

from workshop_core.domain.state_machines.equipment_machine import ACTIVE_STATUSES
from workshop_core.models.enums import EquipmentRepairStatus
from workshop_core.models.equipment_status import EquipmentStatus
from workshop_core.models.job import Job
from workshop_core.models.metrics import TechnicianLoad, WorkshopMetrics
from workshop_core.repositories.base import WorkshopRepository
from workshop_core.services.capacity_service import CapacityService
from workshop_core.services.settings_service import SettingsService
from workshop_core.utils.date_formatter import ensure_aware, hours_between, window_bounds

logger = logging.getLogger(__name__)


class MetricsService:

    def __init__(
        self,
        repository: WorkshopRepository,
        settings_service: SettingsService,
        capacity_service: CapacityService
    ):
        self.repository = repository
        self.settings_service = settings_service
        self.capacity_service = capacity_service

    async def get_metrics(self, company_id: str, date_from: date, date_to: date) -> WorkshopMetrics:
        """
        KPIs for jobs of company_id between date_from and date_to (inclusive).

        - total_jobs: distinct jobs with a history event in the window
        - jobs_by_status: current status distribution, all states present
        - average_repair_time_hours: mean received → repair_completed time
          of jobs completed in the window
        - on_time_completion_rate: % of those completions not later than
          the job's estimated completion date
        - current_capacity_utilization: active jobs / max_concurrent_jobs
        - jobs_per_technician: active jobs per technician

        Raises:
            ValueError: date_from is after date_to
        """
        if date_from > date_to:
            raise ValueError(f"date_from ({date_from}) must not be after date_to ({date_to})")

        start, end = window_bounds(date_from, date_to)

        def in_window(value) -> bool:
            return value is not None and start <= ensure_aware(value) < end

        history = await self.repository.list_company_history(company_id)
        statuses = await self.repository.list_statuses(company_id)
        jobs = {job.id: job for job in await self.repository.list_jobs(company_id)}
        settings = await self.settings_service.get_settings(company_id, fresh=True)

        total_jobs = len({entry.job_id for entry in history if in_window(entry.changed_at)})

        distribution = Counter(status.current_status for status in statuses)
        jobs_by_status = {state.value: distribution.get(state, 0) for state in EquipmentRepairStatus}

        completed = [status for status in statuses if in_window(status.repair_completed_at)]

        active_count = sum(1 for status in statuses if status.current_status in ACTIVE_STATUSES)
        utilization = active_count / settings.max_concurrent_jobs * 100

        loads = await self.capacity_service.technician_loads(company_id)

        metrics = WorkshopMetrics(
            total_jobs=total_jobs,
            jobs_by_status=jobs_by_status,
            average_repair_time_hours=round(self._average_repair_hours(completed), 2),
            on_time_completion_rate=round(self._on_time_rate(completed, jobs), 2),
            current_capacity_utilization=round(utilization, 2),
            jobs_per_technician=[
                TechnicianLoad(technician_id=technician_id, technician_name=name, active_jobs=count)
                for technician_id, name, count in loads
            ]
        )

        logger.debug(
            f"Metrics for company {company_id} ({date_from} → {date_to}): "
            f"{total_jobs} jobs, {len(completed)} completed"
        )
        return metrics

    @staticmethod
    def _average_repair_hours(completed: list[EquipmentStatus]) -> float:
        durations = [
            hours_between(status.received_at, status.repair_completed_at)
            for status in completed
            if status.received_at is not None
        ]
        if not durations:
            return 0.0
        return sum(durations) / len(durations)

    @staticmethod
    def _on_time_rate(completed: list[EquipmentStatus], jobs: dict[str, Job]) -> float:
        on_time = 0
        considered = 0
        for status in completed:
            job: Optional[Job] = jobs.get(status.job_id)
            if job is None or job.estimated_completion_date is None:
                continue
            considered += 1
            if ensure_aware(status.repair_completed_at) <= ensure_aware(job.estimated_completion_date):
                on_time += 1

        if considered == 0:
            return 0.0
        return on_time / considered * 100

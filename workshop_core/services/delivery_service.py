"""
Return logistics for repaired equipment.

- schedule_delivery(): records delivery date, driver and fee on the job and
  moves the equipment to out_for_delivery (customers are told through the
  DELIVERY event)
- mark_returned(): captures the customer signature on the intake record and
  closes the lifecycle at returned

Both go through StatusService.record_transition, so the job changes and the
status change are written under the same per-job lock.
"""
import logging
from datetime import datetime
from typing import Optional

from workshop_core.exceptions import InvalidTransitionError, NotFoundError
from workshop_core.models.enums import EquipmentRepairStatus, LocationType
from workshop_core.models.equipment_status import EquipmentStatus
from workshop_core.models.job import Job
from workshop_core.repositories.base import WorkshopRepository
from workshop_core.services.settings_service import SettingsService
from workshop_core.services.status_service import StatusService
from workshop_core.utils.date_formatter import format_date

logger = logging.getLogger(__name__)

DEFAULT_RETURN_NOTE = "Equipment returned to customer"


class DeliveryService:

    def __init__(
        self,
        repository: WorkshopRepository,
        status_service: StatusService,
        settings_service: SettingsService
    ):
        self.repository = repository
        self.status_service = status_service
        self.settings_service = settings_service

    async def _workshop_job(self, company_id: str, job_id: str, requested: EquipmentRepairStatus) -> Job:
        job = await self.status_service.ensure_company_job(company_id, job_id)
        if job.location_type != LocationType.WORKSHOP:
            raise InvalidTransitionError(
                job_id=job_id,
                current_status=None,
                requested_status=requested.value,
                message=f"Job '{job_id}' is not a workshop job"
            )
        return job

    async def schedule_delivery(
        self,
        company_id: str,
        job_id: str,
        delivery_date: datetime,
        delivery_technician_id: str,
        delivery_fee: Optional[float] = None,
        actor_id: Optional[str] = None
    ) -> tuple[Job, EquipmentStatus]:
        """
        Schedule the trip back to the customer.

        Args:
            company_id: Tenant of the caller
            job_id: Repaired job
            delivery_date: When the equipment will be delivered
            delivery_technician_id: Technician driving it back
            delivery_fee: Fee charged; defaults to the workshop's
                default_pickup_delivery_fee
            actor_id: User scheduling the delivery

        Returns:
            (job, equipment status) after the move to out_for_delivery

        Raises:
            NotFoundError: unknown job or technician (or other tenant's)
            InvalidTransitionError: not a workshop job, or not repair_completed
        """
        target = EquipmentRepairStatus.OUT_FOR_DELIVERY
        await self._workshop_job(company_id, job_id, target)

        technician = await self.repository.get_technician(delivery_technician_id)
        if technician is None or technician.company_id != company_id:
            raise NotFoundError("Technician", delivery_technician_id)

        if delivery_fee is None:
            settings = await self.settings_service.get_settings(company_id, fresh=True)
            delivery_fee = settings.default_pickup_delivery_fee

        def set_delivery(job: Job) -> None:
            job.delivery_scheduled_date = delivery_date
            job.delivery_technician_id = delivery_technician_id
            job.pickup_delivery_fee = delivery_fee

        status = await self.status_service.record_transition(
            job_id,
            target,
            actor_id=actor_id,
            notes=f"Delivery scheduled for {format_date(delivery_date)}",
            prepare_job=set_delivery
        )

        logger.info(
            f"Delivery of job {job_id} scheduled for {delivery_date.isoformat()} "
            f"with technician {delivery_technician_id} (fee {delivery_fee})"
        )
        return await self.repository.get_job(job_id), status

    async def mark_returned(
        self,
        company_id: str,
        job_id: str,
        customer_signature: str,
        return_notes: Optional[str] = None,
        actor_id: Optional[str] = None
    ) -> tuple[Job, EquipmentStatus]:
        """
        Close the lifecycle once the customer has the equipment back.

        The signature is stored on the intake record; return notes are
        appended to its internal notes.

        Raises:
            NotFoundError: unknown job (or other tenant's)
            InvalidTransitionError: no signature, no intake record, not a
                workshop job, or status not ready_for_pickup/out_for_delivery
        """
        target = EquipmentRepairStatus.RETURNED
        await self._workshop_job(company_id, job_id, target)

        if not customer_signature or not customer_signature.strip():
            raise InvalidTransitionError(
                job_id=job_id,
                current_status=None,
                requested_status=target.value,
                message="Customer signature is required to return equipment"
            )

        note = return_notes or DEFAULT_RETURN_NOTE

        def capture_signature(job: Job) -> None:
            intake = job.equipment_intake
            if intake is None:
                raise InvalidTransitionError(
                    job_id=job_id,
                    current_status=None,
                    requested_status=target.value,
                    message=f"No intake record found for job '{job_id}'"
                )
            intake.customer_signature = customer_signature
            if intake.internal_notes:
                intake.internal_notes = f"{intake.internal_notes}\n\nReturn Notes: {note}"
            else:
                intake.internal_notes = note

        status = await self.status_service.record_transition(
            job_id,
            target,
            actor_id=actor_id,
            notes=note,
            prepare_job=capture_signature
        )

        logger.info(f"Job {job_id} returned to customer (actor {actor_id})")
        return await self.repository.get_job(job_id), status

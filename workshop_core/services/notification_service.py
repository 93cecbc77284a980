"""
Customer notification preparation for workshop events.

Decides whether a customer-facing message is due (settings toggles),
renders it from the company template or a built-in default, and hands the
event to the publisher. Delivery (email, push) happens outside the engine,
on the consumers of the event channel.
"""
import logging
import re
from typing import Optional

from workshop_core.models.enums import EquipmentRepairStatus, WorkshopEventType
from workshop_core.models.equipment_status import EquipmentStatus
from workshop_core.models.job import Job, Technician
from workshop_core.models.workshop_settings import WorkshopSettings
from workshop_core.services.redis_event_service import RedisEventService
from workshop_core.services.settings_service import SettingsService
from workshop_core.utils.date_formatter import format_date

logger = logging.getLogger(__name__)

DEFAULT_INTAKE_TEMPLATE = (
    "Hello {customer_name}, we have received your {equipment_type} "
    "(job #{job_number}). Estimated completion: {estimated_completion_date}."
)
DEFAULT_READY_TEMPLATE = (
    "Hello {customer_name}, your {equipment_type} (job #{job_number}) is ready "
    "for pickup at {workshop_address}. Questions? Call {workshop_phone}."
)
DEFAULT_STATUS_UPDATE_TEMPLATE = (
    "Hello {customer_name}, the status of your {equipment_type} "
    "(job #{job_number}) is now: {status}."
)
DEFAULT_DELIVERY_TEMPLATE = (
    "Hello {customer_name}, your {equipment_type} (job #{job_number}) is on its "
    "way back to you. Scheduled delivery: {delivery_date}. Questions? Call {workshop_phone}."
)

# Only {word} placeholders are substituted; any other brace text is literal
_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def render_template(template: str, job: Job, settings: WorkshopSettings, status: Optional[str] = None) -> str:
    """
    Fill a notification template with job and workshop values.

    Placeholders: {customer_name}, {job_number}, {equipment_type},
    {estimated_completion_date}, {delivery_date}, {workshop_address},
    {workshop_phone}, {status}. Missing values fall back to neutral wording;
    unknown placeholders and stray braces are left as written.
    """
    values = {
        "customer_name": job.customer_name or "Customer",
        "job_number": job.job_number or "N/A",
        "equipment_type": job.equipment_type or job.title or "Equipment",
        "estimated_completion_date": format_date(job.estimated_completion_date),
        "delivery_date": format_date(job.delivery_scheduled_date),
        "workshop_address": settings.workshop_address or "Our workshop",
        "workshop_phone": settings.workshop_phone or "Contact us",
        "status": (status or "").replace("_", " "),
    }
    return _PLACEHOLDER.sub(lambda match: values.get(match.group(1), match.group(0)), template)


class NotificationService:
    """
    Emits workshop events after accepted writes.

    Never raises on publish problems: the write that triggered the event is
    already committed.
    """

    def __init__(
        self,
        settings_service: SettingsService,
        event_service: Optional[RedisEventService] = None
    ):
        self.settings_service = settings_service
        self.event_service = event_service

    async def _publish(
        self,
        event_type: WorkshopEventType,
        job: Job,
        status: Optional[str],
        actor_id: Optional[str],
        additional_data: dict
    ) -> bool:
        if self.event_service is None:
            logger.debug(f"No event publisher configured, {event_type.value} for {job.id} not published")
            return False

        return await self.event_service.publish_workshop_update(
            event_type=event_type.value,
            job_id=job.id,
            company_id=job.company_id,
            status=status,
            actor_id=actor_id,
            additional_data=additional_data
        )

    async def notify_intake(self, job: Job, status: EquipmentStatus, actor_id: Optional[str] = None) -> bool:
        settings = await self.settings_service.get_settings(job.company_id)
        data = {"job_number": job.job_number}

        if settings.send_intake_confirmation:
            template = settings.intake_confirmation_template or DEFAULT_INTAKE_TEMPLATE
            data["customer_message"] = render_template(template, job, settings, status.current_status.value)

        return await self._publish(
            WorkshopEventType.INTAKE, job, status.current_status.value, actor_id, data
        )

    async def notify_status_change(
        self,
        job: Job,
        status: EquipmentStatus,
        from_status: EquipmentRepairStatus,
        actor_id: Optional[str] = None,
        notes: Optional[str] = None
    ) -> bool:
        """
        Publish STATUS_CHANGE, plus READY when the job became ready for
        pickup or DELIVERY when it went out for delivery.
        """
        settings = await self.settings_service.get_settings(job.company_id)
        to_status = status.current_status
        data = {"from_status": from_status.value, "to_status": to_status.value, "notes": notes}

        if settings.send_status_updates:
            template = settings.status_update_template or DEFAULT_STATUS_UPDATE_TEMPLATE
            data["customer_message"] = render_template(template, job, settings, to_status.value)

        published = await self._publish(
            WorkshopEventType.STATUS_CHANGE, job, to_status.value, actor_id, data
        )

        if to_status == EquipmentRepairStatus.READY_FOR_PICKUP and settings.send_ready_notification:
            template = settings.ready_notification_template or DEFAULT_READY_TEMPLATE
            await self._publish(
                WorkshopEventType.READY,
                job,
                to_status.value,
                actor_id,
                {"customer_message": render_template(template, job, settings, to_status.value)}
            )

        if to_status == EquipmentRepairStatus.OUT_FOR_DELIVERY:
            delivery = {
                "delivery_scheduled_date": job.delivery_scheduled_date,
                "delivery_technician_id": job.delivery_technician_id,
                "pickup_delivery_fee": job.pickup_delivery_fee
            }
            # no company template for delivery; the status-update toggle governs it
            if settings.send_status_updates:
                delivery["customer_message"] = render_template(
                    DEFAULT_DELIVERY_TEMPLATE, job, settings, to_status.value
                )
            await self._publish(WorkshopEventType.DELIVERY, job, to_status.value, actor_id, delivery)

        return published

    async def notify_claim(
        self,
        job: Job,
        technician: Technician,
        status: Optional[EquipmentStatus],
        actor_id: Optional[str] = None
    ) -> bool:
        return await self._publish(
            WorkshopEventType.CLAIM,
            job,
            status.current_status.value if status else None,
            actor_id,
            {"technician_id": technician.id, "technician_name": technician.full_name}
        )

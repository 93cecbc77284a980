"""
Unit tests for NotificationService (toggles, templates, event types).
"""
from datetime import datetime

import pytest
import pytz

from workshop_core.models.enums import EquipmentRepairStatus
from workshop_core.models.equipment_status import EquipmentStatus
from workshop_core.models.job import Job, Technician
from workshop_core.models.workshop_settings import WorkshopSettings
from workshop_core.services.notification_service import NotificationService, render_template

NOW = pytz.utc.localize(datetime(2026, 3, 2, 9, 0))


def _job(**fields) -> Job:
    fields.setdefault("customer_name", "Acme Foods")
    return Job(
        id="J-1",
        company_id="C-1",
        job_number="1042",
        title="Walk-in freezer compressor",
        estimated_completion_date=pytz.utc.localize(datetime(2026, 3, 5, 12, 0)),
        **fields
    )


def _status(current: EquipmentRepairStatus) -> EquipmentStatus:
    return EquipmentStatus(
        job_id="J-1",
        company_id="C-1",
        current_status=current,
        created_at=NOW,
        updated_at=NOW
    )


def _published(event_service) -> list[dict]:
    return [call.kwargs for call in event_service.publish_workshop_update.call_args_list]


def test_render_template_fills_placeholders():
    settings = WorkshopSettings(company_id="C-1", workshop_address="12 Dock St", workshop_phone="555-0100")

    text = render_template(
        "{customer_name}/{job_number}/{equipment_type}/{estimated_completion_date}/"
        "{workshop_address}/{workshop_phone}/{status}",
        _job(),
        settings,
        "ready_for_pickup"
    )

    assert text == "Acme Foods/1042/Walk-in freezer compressor/05-03-2026/12 Dock St/555-0100/ready for pickup"


def test_render_template_fallbacks_and_unknown_placeholders():
    settings = WorkshopSettings(company_id="C-1")
    job = Job(id="J-1", company_id="C-1")

    text = render_template("{customer_name} {job_number} {workshop_address} {unknown}", job, settings)

    assert text == "Customer N/A Our workshop {unknown}"


@pytest.mark.asyncio
async def test_intake_event_with_custom_template(repository, settings_service, event_service):
    await repository.save_settings(WorkshopSettings(
        company_id="C-1",
        intake_confirmation_template="Got job #{job_number}"
    ))
    service = NotificationService(settings_service, event_service=event_service)

    await service.notify_intake(_job(), _status(EquipmentRepairStatus.RECEIVED), actor_id="U-1")

    (event,) = _published(event_service)
    assert event["event_type"] == "INTAKE"
    assert event["additional_data"]["customer_message"] == "Got job #1042"


@pytest.mark.asyncio
async def test_intake_confirmation_disabled(repository, settings_service, event_service):
    await repository.save_settings(WorkshopSettings(company_id="C-1", send_intake_confirmation=False))
    service = NotificationService(settings_service, event_service=event_service)

    await service.notify_intake(_job(), _status(EquipmentRepairStatus.RECEIVED))

    (event,) = _published(event_service)
    assert "customer_message" not in event["additional_data"]


@pytest.mark.asyncio
async def test_ready_for_pickup_publishes_ready_event(settings_service, event_service):
    service = NotificationService(settings_service, event_service=event_service)

    await service.notify_status_change(
        _job(),
        _status(EquipmentRepairStatus.READY_FOR_PICKUP),
        EquipmentRepairStatus.REPAIR_COMPLETED
    )

    events = _published(event_service)
    assert [e["event_type"] for e in events] == ["STATUS_CHANGE", "READY"]
    assert "ready for pickup" in events[1]["additional_data"]["customer_message"]


@pytest.mark.asyncio
async def test_ready_notification_disabled(repository, settings_service, event_service):
    await repository.save_settings(WorkshopSettings(company_id="C-1", send_ready_notification=False))
    service = NotificationService(settings_service, event_service=event_service)

    await service.notify_status_change(
        _job(),
        _status(EquipmentRepairStatus.READY_FOR_PICKUP),
        EquipmentRepairStatus.REPAIR_COMPLETED
    )

    assert [e["event_type"] for e in _published(event_service)] == ["STATUS_CHANGE"]


@pytest.mark.asyncio
async def test_claim_event(settings_service, event_service):
    service = NotificationService(settings_service, event_service=event_service)
    technician = Technician(id="T-7", company_id="C-1", full_name="Ana Rojas")

    await service.notify_claim(_job(), technician, _status(EquipmentRepairStatus.IN_REPAIR), actor_id="T-7")

    (event,) = _published(event_service)
    assert event["event_type"] == "CLAIM"
    assert event["status"] == "in_repair"
    assert event["additional_data"]["technician_name"] == "Ana Rojas"


@pytest.mark.asyncio
async def test_without_publisher_nothing_is_sent(settings_service):
    service = NotificationService(settings_service, event_service=None)

    result = await service.notify_intake(_job(), _status(EquipmentRepairStatus.RECEIVED))

    assert result is False


def test_render_template_leaves_stray_braces_literal():
    settings = WorkshopSettings(company_id="C-1")

    text = render_template("Job {0} {} {job_number} {status", _job(), settings, "in_repair")

    assert text == "Job {0} {} 1042 {status"


def test_render_template_prefers_equipment_type_and_delivery_date():
    settings = WorkshopSettings(company_id="C-1")
    job = _job(
        equipment_type="Ice machine",
        delivery_scheduled_date=pytz.utc.localize(datetime(2026, 3, 10, 15, 0))
    )

    assert render_template("{equipment_type} on {delivery_date}", job, settings) == "Ice machine on 10-03-2026"


@pytest.mark.asyncio
async def test_out_for_delivery_publishes_delivery_event(settings_service, event_service):
    service = NotificationService(settings_service, event_service=event_service)
    job = _job(
        delivery_scheduled_date=pytz.utc.localize(datetime(2026, 3, 10, 15, 0)),
        delivery_technician_id="T-3",
        pickup_delivery_fee=25.0
    )

    await service.notify_status_change(
        job,
        _status(EquipmentRepairStatus.OUT_FOR_DELIVERY),
        EquipmentRepairStatus.REPAIR_COMPLETED,
        actor_id="U-1"
    )

    events = _published(event_service)
    assert [e["event_type"] for e in events] == ["STATUS_CHANGE", "DELIVERY"]
    delivery = events[1]["additional_data"]
    assert delivery["delivery_technician_id"] == "T-3"
    assert delivery["pickup_delivery_fee"] == 25.0
    assert "10-03-2026" in delivery["customer_message"]


@pytest.mark.asyncio
async def test_delivery_message_follows_status_update_toggle(repository, settings_service, event_service):
    await repository.save_settings(WorkshopSettings(company_id="C-1", send_status_updates=False))
    service = NotificationService(settings_service, event_service=event_service)

    await service.notify_status_change(
        _job(),
        _status(EquipmentRepairStatus.OUT_FOR_DELIVERY),
        EquipmentRepairStatus.REPAIR_COMPLETED
    )

    events = _published(event_service)
    assert events[1]["event_type"] == "DELIVERY"
    assert "customer_message" not in events[1]["additional_data"]

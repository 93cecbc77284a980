"""
Enumerations for the workshop repair engine.

Defines equipment repair statuses, job priorities and job-level statuses.
"""
from enum import Enum


class EquipmentRepairStatus(str, Enum):
    """
    Repair lifecycle of an equipment unit, in lifecycle order.

    PENDING_INTAKE: Job registered, equipment not yet handed over
    IN_TRANSIT: Equipment travelling to the workshop
    RECEIVED: Equipment at the workshop, waiting for a technician
    IN_REPAIR: Technician working on it
    REPAIR_COMPLETED: Repair done, awaiting return logistics
    READY_FOR_PICKUP: Customer may collect it
    OUT_FOR_DELIVERY: Being delivered back to the customer
    RETURNED: Back with the customer (terminal)
    """
    PENDING_INTAKE = "pending_intake"
    IN_TRANSIT = "in_transit"
    RECEIVED = "received"
    IN_REPAIR = "in_repair"
    REPAIR_COMPLETED = "repair_completed"
    READY_FOR_PICKUP = "ready_for_pickup"
    OUT_FOR_DELIVERY = "out_for_delivery"
    RETURNED = "returned"

    @property
    def timestamp_field(self) -> str:
        """Name of the reached-state timestamp on EquipmentStatus."""
        return f"{self.value}_at"


class JobPriority(str, Enum):
    """Job priority tiers, highest first."""
    URGENT = "urgent"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort rank: 0 for urgent, 3 for low."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    JobPriority.URGENT: 0,
    JobPriority.HIGH: 1,
    JobPriority.MEDIUM: 2,
    JobPriority.LOW: 3,
}


class JobStatus(str, Enum):
    """Job-level status kept in sync with the equipment status."""
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class LocationType(str, Enum):
    """Where the job is performed."""
    ON_SITE = "on_site"
    WORKSHOP = "workshop"


class WorkshopEventType(str, Enum):
    """
    Events published on the workshop updates channel.

    INTAKE: Equipment status record created
    STATUS_CHANGE: Accepted status transition
    CLAIM: Technician claimed a job from the queue
    READY: Equipment ready for pickup
    DELIVERY: Equipment sent out for delivery
    """
    INTAKE = "INTAKE"
    STATUS_CHANGE = "STATUS_CHANGE"
    CLAIM = "CLAIM"
    READY = "READY"
    DELIVERY = "DELIVERY"

"""
Equipment repair lifecycle state machine.

Declares the fixed repair lifecycle once:
- pending_intake → in_transit | received
- in_transit → received
- received → in_repair
- in_repair → repair_completed | received (rework loop)
- repair_completed → ready_for_pickup | out_for_delivery
- ready_for_pickup | out_for_delivery → returned

returned is terminal (final=True). The STATUS_TRANSITIONS lookup table is
derived from the machine so the services and the API read the same graph.
"""
from typing import Iterable, Optional

from statemachine import State, StateMachine

from workshop_core.exceptions import InvalidTransitionError
from workshop_core.models.enums import EquipmentRepairStatus, JobStatus


class EquipmentRepairStateMachine(StateMachine):
    """
    Repair lifecycle of one equipment unit.

    States mirror EquipmentRepairStatus values. Events are named after the
    workshop action that causes the move.
    """

    pending_intake = State("pending_intake", initial=True)
    in_transit = State("in_transit")
    received = State("received")
    in_repair = State("in_repair")
    repair_completed = State("repair_completed")
    ready_for_pickup = State("ready_for_pickup")
    out_for_delivery = State("out_for_delivery")
    returned = State("returned", final=True)

    ship = pending_intake.to(in_transit)
    receive = pending_intake.to(received) | in_transit.to(received)
    start_repair = received.to(in_repair)
    rework = in_repair.to(received)
    complete_repair = in_repair.to(repair_completed)
    mark_ready = repair_completed.to(ready_for_pickup)
    dispatch = repair_completed.to(out_for_delivery)
    hand_back = ready_for_pickup.to(returned) | out_for_delivery.to(returned)


def _build_transition_table() -> dict[EquipmentRepairStatus, frozenset[EquipmentRepairStatus]]:
    table = {}
    for status in EquipmentRepairStatus:
        state = getattr(EquipmentRepairStateMachine, status.value)
        table[status] = frozenset(
            EquipmentRepairStatus(transition.target.id)
            for transition in state.transitions
            if transition.source.id == status.value
        )
    return table


STATUS_TRANSITIONS: dict[EquipmentRepairStatus, frozenset[EquipmentRepairStatus]] = _build_transition_table()

# Statuses that occupy workshop capacity
ACTIVE_STATUSES: frozenset[EquipmentRepairStatus] = frozenset({
    EquipmentRepairStatus.RECEIVED,
    EquipmentRepairStatus.IN_REPAIR,
    EquipmentRepairStatus.REPAIR_COMPLETED,
    EquipmentRepairStatus.READY_FOR_PICKUP,
    EquipmentRepairStatus.OUT_FOR_DELIVERY,
})

# Statuses a technician may still claim from the queue
PRE_WORK_STATUSES: frozenset[EquipmentRepairStatus] = frozenset({
    EquipmentRepairStatus.PENDING_INTAKE,
    EquipmentRepairStatus.IN_TRANSIT,
    EquipmentRepairStatus.RECEIVED,
})

INTAKE_STATUSES: frozenset[EquipmentRepairStatus] = frozenset({
    EquipmentRepairStatus.PENDING_INTAKE,
    EquipmentRepairStatus.RECEIVED,
})

EQUIPMENT_TO_JOB_STATUS: dict[EquipmentRepairStatus, JobStatus] = {
    EquipmentRepairStatus.PENDING_INTAKE: JobStatus.PENDING,
    EquipmentRepairStatus.IN_TRANSIT: JobStatus.PENDING,
    EquipmentRepairStatus.RECEIVED: JobStatus.ASSIGNED,
    EquipmentRepairStatus.IN_REPAIR: JobStatus.IN_PROGRESS,
    EquipmentRepairStatus.REPAIR_COMPLETED: JobStatus.COMPLETED,
    EquipmentRepairStatus.READY_FOR_PICKUP: JobStatus.COMPLETED,
    EquipmentRepairStatus.OUT_FOR_DELIVERY: JobStatus.COMPLETED,
    EquipmentRepairStatus.RETURNED: JobStatus.COMPLETED,
}


def _ordered(statuses: Iterable[EquipmentRepairStatus]) -> list[str]:
    order = list(EquipmentRepairStatus)
    return [s.value for s in sorted(statuses, key=order.index)]


def allowed_transitions(current: EquipmentRepairStatus) -> list[str]:
    """Allowed next statuses in lifecycle order."""
    return _ordered(STATUS_TRANSITIONS[current])


def is_terminal(status: EquipmentRepairStatus) -> bool:
    return not STATUS_TRANSITIONS[status]


def validate_transition(
    current: EquipmentRepairStatus,
    requested: EquipmentRepairStatus,
    job_id: Optional[str] = None
) -> None:
    """
    Check that requested is reachable from current in one step.

    Raises:
        InvalidTransitionError: naming current, requested and the allowed set
    """
    if requested not in STATUS_TRANSITIONS[current]:
        raise InvalidTransitionError(
            job_id=job_id or "",
            current_status=current.value,
            requested_status=requested.value,
            allowed=allowed_transitions(current)
        )


def validate_intake_status(initial_status: EquipmentRepairStatus, job_id: str) -> None:
    """
    Intake may only open the lifecycle at pending_intake or received.

    Raises:
        InvalidTransitionError: with current_status None
    """
    if initial_status not in INTAKE_STATUSES:
        raise InvalidTransitionError(
            job_id=job_id,
            current_status=None,
            requested_status=initial_status.value,
            allowed=_ordered(INTAKE_STATUSES)
        )


def transition_table() -> dict[str, list[str]]:
    """Serializable copy of the transition table (client-side UI hints)."""
    return {status.value: allowed_transitions(status) for status in EquipmentRepairStatus}

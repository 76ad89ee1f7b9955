"""Domain enums for work orders."""

from enum import Enum


class WorkOrderStatus(str, Enum):
    """Work order lifecycle status."""

    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    PLANNED = "planned"
    READY_TO_SCHEDULE = "ready_to_schedule"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    VERIFIED = "verified"
    CLOSED = "closed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """Check if status is terminal (cannot transition further)."""
        return not STATUS_TRANSITIONS[self]

    @property
    def is_schedulable(self) -> bool:
        """Check if scheduling fields may be (re)assigned in this status."""
        return self in SCHEDULABLE_STATUSES

    @property
    def occupies_calendar(self) -> bool:
        """Check if an order in this status blocks its technician's time."""
        return self in CALENDAR_STATUSES

    def allowed_transitions(self) -> frozenset["WorkOrderStatus"]:
        return STATUS_TRANSITIONS[self]

    def can_transition_to(self, target_status: "WorkOrderStatus") -> bool:
        """Check if work order can transition from current status to target status."""
        return target_status in STATUS_TRANSITIONS[self]


STATUS_TRANSITIONS: dict[WorkOrderStatus, frozenset[WorkOrderStatus]] = {
    WorkOrderStatus.REQUESTED: frozenset(
        {WorkOrderStatus.APPROVED, WorkOrderStatus.REJECTED, WorkOrderStatus.CANCELLED}
    ),
    WorkOrderStatus.APPROVED: frozenset(
        {WorkOrderStatus.PLANNED, WorkOrderStatus.ON_HOLD, WorkOrderStatus.CANCELLED}
    ),
    WorkOrderStatus.PLANNED: frozenset(
        {WorkOrderStatus.READY_TO_SCHEDULE, WorkOrderStatus.ON_HOLD}
    ),
    WorkOrderStatus.READY_TO_SCHEDULE: frozenset(
        {WorkOrderStatus.SCHEDULED, WorkOrderStatus.ON_HOLD}
    ),
    WorkOrderStatus.SCHEDULED: frozenset(
        {WorkOrderStatus.IN_PROGRESS, WorkOrderStatus.ON_HOLD}
    ),
    WorkOrderStatus.IN_PROGRESS: frozenset(
        {WorkOrderStatus.COMPLETED, WorkOrderStatus.ON_HOLD}
    ),
    WorkOrderStatus.ON_HOLD: frozenset(
        {
            WorkOrderStatus.APPROVED,
            WorkOrderStatus.PLANNED,
            WorkOrderStatus.READY_TO_SCHEDULE,
            WorkOrderStatus.SCHEDULED,
            WorkOrderStatus.IN_PROGRESS,
        }
    ),
    WorkOrderStatus.COMPLETED: frozenset(
        {WorkOrderStatus.VERIFIED, WorkOrderStatus.IN_PROGRESS}
    ),
    WorkOrderStatus.VERIFIED: frozenset(
        {WorkOrderStatus.CLOSED, WorkOrderStatus.COMPLETED}
    ),
    WorkOrderStatus.REJECTED: frozenset(),  # Terminal state
    WorkOrderStatus.CLOSED: frozenset(),  # Terminal state
    WorkOrderStatus.CANCELLED: frozenset(),  # Terminal state
}

SCHEDULABLE_STATUSES = frozenset(
    {
        WorkOrderStatus.APPROVED,
        WorkOrderStatus.PLANNED,
        WorkOrderStatus.READY_TO_SCHEDULE,
    }
)

CALENDAR_STATUSES = frozenset({WorkOrderStatus.SCHEDULED, WorkOrderStatus.IN_PROGRESS})

# Statuses whose scheduled hours no longer count against a technician's workload
WORKLOAD_EXCLUDED_STATUSES = frozenset(
    {WorkOrderStatus.CLOSED, WorkOrderStatus.CANCELLED, WorkOrderStatus.REJECTED}
)

STARTABLE_STATUSES = frozenset({WorkOrderStatus.SCHEDULED})


class WorkOrderCategory(str, Enum):
    PREVENTIVE = "preventive"
    CORRECTIVE = "corrective"
    INSPECTION = "inspection"
    PROJECT = "project"


class PriorityLevel(str, Enum):
    """Priority label; the numeric weight feeds the priority score."""

    EMERGENCY = "emergency"
    URGENT = "urgent"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def score_weight(self) -> int:
        return PRIORITY_WEIGHTS[self]


PRIORITY_WEIGHTS: dict[PriorityLevel, int] = {
    PriorityLevel.EMERGENCY: 40,
    PriorityLevel.URGENT: 30,
    PriorityLevel.HIGH: 20,
    PriorityLevel.NORMAL: 0,
    PriorityLevel.LOW: -20,
}


class RelationshipType(str, Enum):
    FOLLOW_UP = "follow_up"
    PREREQUISITE = "prerequisite"
    RELATED = "related"


class ExecutionStatus(str, Enum):
    """Execution timer status. `not_started` is the absence of an execution row."""

    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"


class PartReservationStatus(str, Enum):
    PLANNED = "planned"
    RESERVED = "reserved"
    ISSUED = "issued"
    USED = "used"
    RETURNED = "returned"

    def can_transition_to(self, target_status: "PartReservationStatus") -> bool:
        return target_status in PART_TRANSITIONS[self]


PART_TRANSITIONS: dict[PartReservationStatus, frozenset[PartReservationStatus]] = {
    PartReservationStatus.PLANNED: frozenset({PartReservationStatus.RESERVED}),
    PartReservationStatus.RESERVED: frozenset(
        {PartReservationStatus.ISSUED, PartReservationStatus.RETURNED}
    ),
    PartReservationStatus.ISSUED: frozenset(
        {PartReservationStatus.USED, PartReservationStatus.RETURNED}
    ),
    PartReservationStatus.USED: frozenset({PartReservationStatus.RETURNED}),
    PartReservationStatus.RETURNED: frozenset(),
}

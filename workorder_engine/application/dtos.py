"""
Request and response models for the work order use cases.
"""

from collections import defaultdict
from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from workorder_engine.domain.work_orders.services import PlannedLine
from workorder_engine.domain.work_orders.services.assignment_optimizer import (
    PlannedAssignment,
    UnassignedOrder,
)
from workorder_engine.domain.work_orders.value_objects.enums import (
    ExecutionStatus,
    PartReservationStatus,
    PriorityLevel,
    RelationshipType,
    WorkOrderCategory,
    WorkOrderStatus,
)
from workorder_engine.domain.work_orders.value_objects.source import WorkOrderSourceRef


class WorkOrderCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str | None = None
    work_order_type_id: UUID | None = None
    category: WorkOrderCategory | None = None
    priority: PriorityLevel | None = None
    asset_id: UUID | None = None
    form_version_id: UUID | None = None
    custom_tasks: list[dict] | None = None
    requested_due_date: datetime | None = None
    estimated_hours: float | None = Field(default=None, ge=0)
    estimated_parts_cost: float = Field(default=0.0, ge=0)
    estimated_labor_cost: float = Field(default=0.0, ge=0)
    required_skills: list[str] | None = None
    downtime_required: bool = False
    source: WorkOrderSourceRef | None = None
    related_work_order_id: UUID | None = None
    relationship_type: RelationshipType | None = None


class PlanningRequest(BaseModel):
    estimated_hours: float | None = Field(default=None, ge=0)
    labor_rate: float | None = Field(default=None, ge=0)
    estimated_labor_cost: float | None = Field(default=None, ge=0)
    parts: list[PlannedLine] | None = None
    required_skills: list[str] | None = None
    downtime_required: bool | None = None


class CompletionRequest(BaseModel):
    work_performed: str | None = None
    observations: str | None = None
    recommendations: str | None = None
    safety_checks_completed: bool = False
    quality_checks_completed: bool = False
    tools_returned: bool = False
    area_cleaned: bool = False
    follow_up_required: bool = False
    follow_up_description: str | None = None
    actual_hours_override: float | None = Field(default=None, ge=0)
    actual_cost: float | None = Field(default=None, ge=0)


class ScheduleAssignment(BaseModel):
    work_order_id: UUID
    start: datetime
    end: datetime
    technician_id: UUID | None = None
    team_id: UUID | None = None


class WorkOrderPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    work_order_number: str
    title: str
    description: str | None = None
    work_order_type_id: UUID | None = None
    category: WorkOrderCategory
    priority: PriorityLevel
    priority_score: int
    status: WorkOrderStatus
    asset_id: UUID | None = None
    estimated_hours: float | None = None
    estimated_parts_cost: float
    estimated_labor_cost: float
    estimated_total_cost: float
    requested_due_date: datetime | None = None
    scheduled_start: datetime | None = None
    scheduled_end: datetime | None = None
    assigned_technician_id: UUID | None = None
    assigned_team_id: UUID | None = None
    actual_start: datetime | None = None
    actual_end: datetime | None = None
    actual_hours: float | None = None
    actual_cost: float | None = None
    source_type: str
    source_id: UUID | None = None
    related_work_order_id: UUID | None = None
    relationship_type: RelationshipType | None = None
    requested_by: UUID
    requested_at: datetime
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    planned_by: UUID | None = None
    planned_at: datetime | None = None
    verified_by: UUID | None = None
    verified_at: datetime | None = None
    closed_by: UUID | None = None
    closed_at: datetime | None = None
    version: int
    created_at: datetime


class StatusHistoryPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    work_order_id: UUID
    from_status: WorkOrderStatus | None = None
    to_status: WorkOrderStatus
    changed_by: UUID
    reason: str | None = None
    created_at: datetime


class ExecutionPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    work_order_id: UUID
    executed_by: UUID
    status: ExecutionStatus
    started_at: datetime
    paused_at: datetime | None = None
    resumed_at: datetime | None = None
    completed_at: datetime | None = None
    total_pause_duration: int
    safety_checks_completed: bool
    quality_checks_completed: bool
    tools_returned: bool
    area_cleaned: bool
    work_performed: str | None = None
    observations: str | None = None
    recommendations: str | None = None
    follow_up_required: bool


class PartReservationPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    work_order_id: UUID
    part_id: UUID | None = None
    part_number: str | None = None
    part_name: str
    status: PartReservationStatus
    estimated_quantity: float
    reserved_quantity: float | None = None
    issued_quantity: float | None = None
    used_quantity: float | None = None
    returned_quantity: float | None = None
    unit_cost: float
    total_cost: float


class PlannedLinesResult(BaseModel):
    created: list[UUID] = []
    updated: list[UUID] = []
    deleted: list[UUID] = []
    skipped: list[UUID] = []
    estimated_parts_cost: float


class ExecutionStats(BaseModel):
    total_tasks: int
    completed_tasks: int
    required_tasks: int
    completed_required_tasks: int
    completion_percentage: int
    actual_duration_hours: float
    status: ExecutionStatus


class WorkOrderStatistics(BaseModel):
    status: WorkOrderStatus
    age_days: int
    overdue: bool
    days_overdue: int
    estimated_hours: float | None = None
    actual_hours: float | None = None
    hours_variance_percentage: float | None = None
    estimated_cost: float
    actual_cost: float | None = None
    cost_variance_percentage: float | None = None
    completion_percentage: int
    priority_score: int


class AvailabilityResult(BaseModel):
    technician_id: UUID
    start: datetime
    end: datetime
    available: bool
    conflicting_work_order_ids: list[UUID] = []
    workload_hours: float = 0.0


class BatchItemResult(BaseModel):
    index: int
    work_order_id: UUID
    success: bool
    work_order_number: str | None = None
    error_type: str | None = None
    message: str | None = None


class BatchResult(BaseModel):
    succeeded: list[BatchItemResult] = []
    failed: list[BatchItemResult] = []


class CalendarEntry(BaseModel):
    work_order_id: UUID
    work_order_number: str
    title: str
    status: WorkOrderStatus
    priority: PriorityLevel
    start: datetime
    end: datetime
    technician_id: UUID | None = None
    team_id: UUID | None = None
    asset_id: UUID | None = None


class CalendarGroup(BaseModel):
    key: str
    technician_id: UUID | None = None
    team_id: UUID | None = None
    entries: list[CalendarEntry] = []


class CalendarView(BaseModel):
    start: datetime
    end: datetime
    groups: list[CalendarGroup] = []

    def by_day(self) -> dict[date, list[CalendarEntry]]:
        """Regroup entries by their scheduled start date."""
        days: dict[date, list[CalendarEntry]] = defaultdict(list)
        for group in self.groups:
            for entry in group.entries:
                days[entry.start.date()].append(entry)
        return {
            day: sorted(entries, key=lambda e: (e.start, e.work_order_number))
            for day, entries in sorted(days.items())
        }


class UtilizationReport(BaseModel):
    technician_id: UUID
    start: datetime
    end: datetime
    total_work_orders: int
    scheduled_hours: float
    capacity_hours: float
    utilization: float
    working_days: int
    hours_per_day: float
    work_orders_by_priority: dict[str, int] = {}


class OptimizationPlan(BaseModel):
    start: datetime
    end: datetime
    assigned: list[PlannedAssignment] = []
    unassigned: list[UnassignedOrder] = []
    technician_utilization: dict[UUID, float] = {}

    def to_assignments(self) -> list[ScheduleAssignment]:
        """Feed the plan into schedule_batch."""
        return [
            ScheduleAssignment(
                work_order_id=a.work_order_id,
                start=a.start,
                end=a.end,
                technician_id=a.technician_id,
            )
            for a in self.assigned
        ]


class TransitionRequest(BaseModel):
    target_status: WorkOrderStatus
    reason: str | None = None


class ReasonRequest(BaseModel):
    reason: str | None = None


class ScheduleRequest(BaseModel):
    start: datetime
    end: datetime
    technician_id: UUID | None = None
    team_id: UUID | None = None


class BatchScheduleRequest(BaseModel):
    assignments: list[ScheduleAssignment]


class OptimizeRequest(BaseModel):
    work_order_ids: list[UUID]
    technician_ids: list[UUID]
    start: datetime
    end: datetime


class QuantityRequest(BaseModel):
    quantity: float


class TaskAnswer(BaseModel):
    task_id: str = Field(min_length=1, max_length=100)
    response: str | None = None


class TaskResponsePublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    execution_id: UUID
    task_id: str
    response: str | None = None
    responded_by: UUID

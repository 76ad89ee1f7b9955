"""
SQLModel table definitions for the work order engine.

These models serve both as SQLAlchemy ORM tables and as the records the
domain services operate on.
"""

from datetime import datetime, timezone
from uuid import UUID, uuid4

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from workorder_engine.domain.work_orders.value_objects.enums import (
    ExecutionStatus,
    PartReservationStatus,
    PriorityLevel,
    RelationshipType,
    WorkOrderCategory,
    WorkOrderStatus,
)
from workorder_engine.domain.work_orders.value_objects.source import (
    WorkOrderSourceRef,
    source_from_columns,
)
from workorder_engine.domain.work_orders.value_objects.time_window import TimeWindow


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Base classes for shared fields
class TimestampedModel(SQLModel):
    """Base model with timestamp fields."""

    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = None


class IdentifiedModel(TimestampedModel):
    """Base model with UUID primary key and timestamps."""

    id: UUID = Field(default_factory=uuid4, primary_key=True)


class WorkOrderType(IdentifiedModel, table=True):
    """Type record carrying default priority, approval requirement and SLA."""

    __tablename__ = "work_order_types"

    code: str = Field(max_length=50, unique=True, index=True)
    name: str = Field(max_length=100)
    category: WorkOrderCategory = Field(default=WorkOrderCategory.CORRECTIVE)
    default_priority: PriorityLevel = Field(default=PriorityLevel.NORMAL)
    requires_approval: bool = Field(default=True)
    auto_approve_from_routine: bool = Field(default=False)
    sla_hours: int | None = Field(default=None, ge=0)
    is_active: bool = Field(default=True)


class WorkOrder(IdentifiedModel, table=True):
    """Work order table definition."""

    __tablename__ = "work_orders"

    work_order_number: str = Field(max_length=30, unique=True, index=True)
    title: str = Field(max_length=255)
    description: str | None = None
    work_order_type_id: UUID | None = Field(
        default=None, foreign_key="work_order_types.id", index=True
    )
    category: WorkOrderCategory = Field(default=WorkOrderCategory.CORRECTIVE)
    priority: PriorityLevel = Field(default=PriorityLevel.NORMAL)
    priority_score: int = Field(default=50, ge=0, le=100)
    status: WorkOrderStatus = Field(default=WorkOrderStatus.REQUESTED, index=True)

    asset_id: UUID | None = Field(default=None, index=True)
    form_version_id: UUID | None = None
    custom_tasks: list[dict] | None = Field(default=None, sa_column=Column(JSON))

    # Planning / estimation
    estimated_hours: float | None = Field(default=None, ge=0)
    estimated_parts_cost: float = Field(default=0.0, ge=0)
    estimated_labor_cost: float = Field(default=0.0, ge=0)
    estimated_total_cost: float = Field(default=0.0, ge=0)
    downtime_required: bool = Field(default=False)
    required_skills: list[str] | None = Field(default=None, sa_column=Column(JSON))

    # Scheduling
    requested_due_date: datetime | None = Field(default=None, index=True)
    scheduled_start: datetime | None = Field(default=None, index=True)
    scheduled_end: datetime | None = None
    assigned_technician_id: UUID | None = Field(default=None, index=True)
    assigned_team_id: UUID | None = Field(default=None, index=True)

    # Actuals
    actual_start: datetime | None = None
    actual_end: datetime | None = None
    actual_hours: float | None = Field(default=None, ge=0)
    actual_cost: float | None = Field(default=None, ge=0)

    # Provenance
    source_type: str = Field(default="manual", max_length=50)
    source_id: UUID | None = None
    related_work_order_id: UUID | None = Field(default=None, foreign_key="work_orders.id")
    relationship_type: RelationshipType | None = None

    # Actor stamps
    requested_by: UUID
    requested_at: datetime = Field(default_factory=utcnow)
    approved_by: UUID | None = None
    approved_at: datetime | None = None
    planned_by: UUID | None = None
    planned_at: datetime | None = None
    verified_by: UUID | None = None
    verified_at: datetime | None = None
    closed_by: UUID | None = None
    closed_at: datetime | None = None

    # Optimistic concurrency token
    version: int = Field(default=1, ge=1)

    @property
    def source(self) -> WorkOrderSourceRef:
        return source_from_columns(self.source_type, self.source_id)

    def set_source(self, source: WorkOrderSourceRef) -> None:
        self.source_type = source.kind
        self.source_id = source.reference_id

    @property
    def scheduled_window(self) -> TimeWindow | None:
        if self.scheduled_start is None or self.scheduled_end is None:
            return None
        return TimeWindow(start=self.scheduled_start, end=self.scheduled_end)

    @property
    def scheduled_hours(self) -> float:
        window = self.scheduled_window
        return window.duration_hours if window else 0.0

    def set_estimates(
        self, parts_cost: float | None = None, labor_cost: float | None = None
    ) -> None:
        """Update either cost component and recompute the total."""
        if parts_cost is not None:
            self.estimated_parts_cost = parts_cost
        if labor_cost is not None:
            self.estimated_labor_cost = labor_cost
        self.estimated_total_cost = (self.estimated_parts_cost or 0.0) + (
            self.estimated_labor_cost or 0.0
        )


class StatusHistoryEntry(IdentifiedModel, table=True):
    """Append-only audit trail of status changes."""

    __tablename__ = "work_order_status_history"
    __table_args__ = (UniqueConstraint("work_order_id", "sequence"),)

    work_order_id: UUID = Field(foreign_key="work_orders.id", index=True)
    sequence: int = Field(default=1, ge=1)
    from_status: WorkOrderStatus | None = None
    to_status: WorkOrderStatus
    changed_by: UUID
    reason: str | None = None


class WorkOrderExecution(IdentifiedModel, table=True):
    """Timing record for the physical execution of one work order."""

    __tablename__ = "work_order_executions"

    work_order_id: UUID = Field(foreign_key="work_orders.id", unique=True, index=True)
    executed_by: UUID
    status: ExecutionStatus = Field(default=ExecutionStatus.IN_PROGRESS)
    started_at: datetime
    paused_at: datetime | None = None
    resumed_at: datetime | None = None
    completed_at: datetime | None = None
    total_pause_duration: int = Field(default=0, ge=0)  # minutes

    # Completion checklist
    safety_checks_completed: bool = Field(default=False)
    quality_checks_completed: bool = Field(default=False)
    tools_returned: bool = Field(default=False)
    area_cleaned: bool = Field(default=False)

    work_performed: str | None = None
    observations: str | None = None
    recommendations: str | None = None
    follow_up_required: bool = Field(default=False)


class TaskResponse(IdentifiedModel, table=True):
    """Answer to one checklist item during execution."""

    __tablename__ = "work_order_task_responses"
    __table_args__ = (UniqueConstraint("execution_id", "task_id"),)

    execution_id: UUID = Field(foreign_key="work_order_executions.id", index=True)
    task_id: str = Field(max_length=100)
    response: str | None = None
    responded_by: UUID


class PartReservation(IdentifiedModel, table=True):
    """One material line on a work order."""

    __tablename__ = "work_order_parts"

    work_order_id: UUID = Field(foreign_key="work_orders.id", index=True)
    part_id: UUID | None = None
    part_number: str | None = Field(default=None, max_length=100)
    part_name: str = Field(max_length=255)
    status: PartReservationStatus = Field(default=PartReservationStatus.PLANNED)

    estimated_quantity: float = Field(default=0.0, ge=0)
    reserved_quantity: float | None = Field(default=None, ge=0)
    issued_quantity: float | None = Field(default=None, ge=0)
    used_quantity: float | None = Field(default=None, ge=0)
    returned_quantity: float | None = Field(default=None, ge=0)
    unit_cost: float = Field(default=0.0, ge=0)
    total_cost: float = Field(default=0.0, ge=0)

    reserved_by: UUID | None = None
    reserved_at: datetime | None = None
    issued_by: UUID | None = None
    issued_at: datetime | None = None
    used_by: UUID | None = None
    used_at: datetime | None = None
    returned_by: UUID | None = None
    returned_at: datetime | None = None

    def recompute_total(self) -> None:
        if self.status == PartReservationStatus.USED:
            self.total_cost = (self.used_quantity or 0.0) * self.unit_cost
        else:
            self.total_cost = self.estimated_quantity * self.unit_cost


class TechnicianCalendar(SQLModel, table=True):
    """Per-technician version row serialising concurrent scheduling writes."""

    __tablename__ = "technician_calendars"

    technician_id: UUID = Field(primary_key=True)
    version: int = Field(default=0, ge=0)

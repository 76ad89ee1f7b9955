"""
Scheduling application service.

Availability checks, single and batch assignment, and the greedy optimizer.
Per-item conflicts in a batch are reported in the result and never abort
the sibling assignments.
"""

import logging
from datetime import datetime
from uuid import UUID

from workorder_engine.core.rbac import WorkOrderAction, authorize
from workorder_engine.domain.shared.exceptions import (
    ConflictingAssignmentError,
    DomainError,
    ErrorType,
    InvalidStateError,
    ValidationError,
)
from workorder_engine.domain.work_orders.ports import Actor, ResourceDirectory
from workorder_engine.domain.work_orders.services import (
    AssignmentOptimizer,
    OptimizationCandidate,
    UnassignedOrder,
    calculate_priority_score,
    utilization_ratio,
)
from workorder_engine.domain.work_orders.value_objects.enums import WorkOrderStatus
from workorder_engine.domain.work_orders.value_objects.time_window import TimeWindow
from workorder_engine.infrastructure.database.models import WorkOrder
from workorder_engine.infrastructure.database.unit_of_work import SqlModelUnitOfWork

from ..dtos import (
    AvailabilityResult,
    BatchItemResult,
    BatchResult,
    CalendarView,
    OptimizationPlan,
    ScheduleAssignment,
    UtilizationReport,
)
from ..queries.calendar import CalendarQuery
from ..queries.workload import WorkloadQuery
from .base_service import ApplicationServiceBase

logger = logging.getLogger(__name__)


class SchedulingService(ApplicationServiceBase):
    """
    Application service for technician and team scheduling.

    Each accepted assignment claims the technician's calendar version in the
    same transaction as the order update, so two writers that both passed the
    overlap check cannot both commit.
    """

    def __init__(
        self,
        directory: ResourceDirectory,
        uow_factory=None,
        clock=None,
        settings=None,
    ):
        super().__init__(uow_factory, clock, settings)
        self._directory = directory
        self._workload = WorkloadQuery(directory, self._uow_factory, self._settings)
        self._calendar = CalendarQuery(self._uow_factory)
        self._optimizer = AssignmentOptimizer()

    # -- reads ------------------------------------------------------------

    def check_availability(
        self,
        technician_id: UUID,
        start: datetime,
        end: datetime,
        exclude_ids: set[UUID] | None = None,
    ) -> AvailabilityResult:
        """
        Whether the technician's calendar is free over [start, end).

        Raises:
            ValidationError: If the window is inverted or the technician is unknown
        """
        window = TimeWindow.of(start, end)
        self._workload.ensure_technician(technician_id)
        with self._uow_factory() as uow:
            conflicts = uow.work_orders.find_calendar_conflicts(
                technician_id, window, exclude_ids
            )
            orders = self._workload.orders_in_window(uow, technician_id, window)
        return AvailabilityResult(
            technician_id=technician_id,
            start=window.start,
            end=window.end,
            available=not conflicts,
            conflicting_work_order_ids=[o.id for o in conflicts],
            workload_hours=round(sum(o.scheduled_hours for o in orders), 2),
        )

    def calendar(
        self,
        start: datetime,
        end: datetime,
        technician_id: UUID | None = None,
        team_id: UUID | None = None,
        asset_id: UUID | None = None,
    ) -> CalendarView:
        return self._calendar.calendar(start, end, technician_id, team_id, asset_id)

    def workload(self, technician_id: UUID, start: datetime, end: datetime) -> UtilizationReport:
        return self._workload.workload(technician_id, start, end)

    # -- writes -----------------------------------------------------------

    def schedule_one(
        self,
        work_order_id: UUID,
        start: datetime,
        end: datetime,
        actor: Actor,
        technician_id: UUID | None = None,
        team_id: UUID | None = None,
    ) -> WorkOrder:
        """
        Set the scheduling fields of one order.

        A `ready_to_schedule` order moves to `scheduled`; `approved` and
        `planned` orders only receive the tentative window and assignee.

        Raises:
            ValidationError: If the window is inverted or the assignee is invalid
            InvalidStateError: If the order is past scheduling
            ConflictingAssignmentError: If the technician is booked in the window
            ConcurrentModificationError: If the order or calendar changed concurrently
        """
        authorize(actor, WorkOrderAction.SCHEDULE)
        assignment = ScheduleAssignment(
            work_order_id=work_order_id,
            start=start,
            end=end,
            technician_id=technician_id,
            team_id=team_id,
        )
        window = self._validate(assignment)
        now = self.now()
        with self._uow_factory() as uow:
            order = self._apply(uow, assignment, window, actor, now)
        return order

    def schedule_batch(
        self, assignments: list[ScheduleAssignment], actor: Actor
    ) -> BatchResult:
        """
        Apply each assignment in its own transaction and report per-item outcomes.

        Assignments are checked against persisted orders and against the
        assignments accepted earlier in the same batch; the earlier one wins.

        Raises:
            PermissionDeniedError: If the actor may not schedule
            ValidationError: If the batch exceeds the configured size
        """
        authorize(actor, WorkOrderAction.SCHEDULE)
        if len(assignments) > self._settings.MAX_BATCH_SIZE:
            raise ValidationError(
                "assignments",
                len(assignments),
                f"at most {self._settings.MAX_BATCH_SIZE} assignments per batch",
            )

        result = BatchResult()
        seen: set[UUID] = set()
        accepted: dict[UUID, list[tuple[TimeWindow, UUID]]] = {}

        for index, assignment in enumerate(assignments):
            if assignment.work_order_id in seen:
                result.failed.append(
                    self._failure(
                        index,
                        assignment,
                        ErrorType.VALIDATION,
                        "work order appears more than once in the batch",
                    )
                )
                continue
            seen.add(assignment.work_order_id)

            try:
                window = self._validate(assignment)
                tech_id = assignment.technician_id
                if tech_id is not None:
                    clashing = [
                        order_id
                        for booked, order_id in accepted.get(tech_id, [])
                        if booked.overlaps(window)
                    ]
                    if clashing:
                        raise ConflictingAssignmentError(tech_id, clashing)
                with self._uow_factory() as uow:
                    order = self._apply(uow, assignment, window, actor, self.now())
            except DomainError as e:
                result.failed.append(
                    self._failure(index, assignment, e.error_type, e.message)
                )
                continue

            if tech_id is not None:
                accepted.setdefault(tech_id, []).append((window, order.id))
            result.succeeded.append(
                BatchItemResult(
                    index=index,
                    work_order_id=order.id,
                    success=True,
                    work_order_number=order.work_order_number,
                )
            )

        logger.info(
            "Batch scheduled",
            extra={
                "actor_id": str(actor.id),
                "succeeded": len(result.succeeded),
                "failed": len(result.failed),
            },
        )
        return result

    def optimize(
        self,
        work_order_ids: list[UUID],
        technician_ids: list[UUID],
        start: datetime,
        end: datetime,
        actor: Actor,
    ) -> OptimizationPlan:
        """
        Propose technician assignments; nothing is written.

        Feed `plan.to_assignments()` to `schedule_batch` to apply the plan.

        Raises:
            ValidationError: If the window is inverted or a technician is unknown
        """
        authorize(actor, WorkOrderAction.SCHEDULE)
        window = TimeWindow.of(start, end)
        technician_ids = list(dict.fromkeys(technician_ids))
        work_order_ids = list(dict.fromkeys(work_order_ids))
        for technician_id in technician_ids:
            self._workload.ensure_technician(technician_id, "technician_ids")
        now = self.now()

        unassigned: list[UnassignedOrder] = []
        candidates: list[OptimizationCandidate] = []
        with self._uow_factory() as uow:
            orders = {o.id: o for o in uow.work_orders.list_by_ids(work_order_ids)}
            for order_id in work_order_ids:
                order = orders.get(order_id)
                if order is None:
                    unassigned.append(
                        UnassignedOrder(work_order_id=order_id, reason="work order not found")
                    )
                    continue
                status = WorkOrderStatus(order.status)
                if not status.is_schedulable:
                    unassigned.append(
                        UnassignedOrder(
                            work_order_id=order.id,
                            work_order_number=order.work_order_number,
                            reason=f"status {status.value} is not schedulable",
                        )
                    )
                    continue
                candidates.append(
                    OptimizationCandidate(
                        work_order_id=order.id,
                        work_order_number=order.work_order_number,
                        priority_score=calculate_priority_score(
                            order.priority, order.created_at, now, order.requested_due_date
                        ),
                        due_date=order.requested_due_date,
                        estimated_hours=(
                            order.estimated_hours
                            if order.estimated_hours
                            else self._settings.DEFAULT_ESTIMATED_HOURS
                        ),
                    )
                )

            candidate_ids = {c.work_order_id for c in candidates}
            loads = [
                self._workload.technician_load(uow, technician_id, window, candidate_ids)
                for technician_id in technician_ids
            ]

        assigned, not_placed, final_loads = self._optimizer.optimize(candidates, loads, window)
        plan = OptimizationPlan(
            start=window.start,
            end=window.end,
            assigned=assigned,
            unassigned=unassigned + not_placed,
            technician_utilization={
                load.technician_id: utilization_ratio(load.committed_hours, load.capacity_hours)
                for load in final_loads
            },
        )
        logger.info(
            "Optimization plan built",
            extra={
                "actor_id": str(actor.id),
                "assigned": len(plan.assigned),
                "unassigned": len(plan.unassigned),
            },
        )
        return plan

    # -- helpers ----------------------------------------------------------

    def _validate(self, assignment: ScheduleAssignment) -> TimeWindow:
        window = TimeWindow.of(assignment.start, assignment.end)
        if assignment.technician_id is not None and assignment.team_id is not None:
            raise ValidationError(
                "team_id", assignment.team_id, "assign either a technician or a team, not both"
            )
        if assignment.technician_id is not None:
            self._workload.ensure_technician(assignment.technician_id)
        if assignment.team_id is not None and not self._directory.team_exists(
            assignment.team_id
        ):
            raise ValidationError("team_id", assignment.team_id, "unknown team")
        return window

    def _apply(
        self,
        uow: SqlModelUnitOfWork,
        assignment: ScheduleAssignment,
        window: TimeWindow,
        actor: Actor,
        now: datetime,
    ) -> WorkOrder:
        order = uow.work_orders.get_by_id_required(assignment.work_order_id)
        status = WorkOrderStatus(order.status)
        if not status.is_schedulable:
            raise InvalidStateError(
                f"Work order {order.work_order_number} cannot be scheduled",
                current_state=status.value,
                details={"work_order_id": str(order.id)},
            )

        self.claim_calendar(uow, order, assignment.technician_id, window)
        order.scheduled_start = window.start
        order.scheduled_end = window.end
        order.assigned_technician_id = assignment.technician_id
        order.assigned_team_id = assignment.team_id

        if status == WorkOrderStatus.READY_TO_SCHEDULE:
            self.move(
                uow, order, WorkOrderStatus.SCHEDULED, actor.id, now, check_calendar=False
            )
        else:
            uow.work_orders.save(order, now)
            logger.info(
                "Tentative schedule recorded",
                extra={
                    "work_order_id": str(order.id),
                    "work_order_number": order.work_order_number,
                    "actor_id": str(actor.id),
                    "status": status.value,
                },
            )
        return order

    @staticmethod
    def _failure(
        index: int, assignment: ScheduleAssignment, error_type: ErrorType, message: str
    ) -> BatchItemResult:
        return BatchItemResult(
            index=index,
            work_order_id=assignment.work_order_id,
            success=False,
            error_type=error_type.value,
            message=message,
        )

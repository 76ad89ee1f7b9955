"""
Work order application service for coordinating lifecycle use cases.

This service orchestrates creation, status transitions, planning and the
read-side statistics of single work orders.
"""

import logging
from datetime import datetime, timedelta
from uuid import UUID

from workorder_engine.core.rbac import WorkOrderAction, authorize
from workorder_engine.domain.shared.exceptions import (
    InvalidStateError,
    NotFoundError,
    RepositoryError,
    ValidationError,
)
from workorder_engine.domain.work_orders.ports import Actor, ChecklistLookup, CustomTaskChecklist
from workorder_engine.domain.work_orders.services import (
    ExecutionTimer,
    PartLedger,
    StatusChange,
    calculate_priority_score,
)
from workorder_engine.domain.work_orders.services.priority_scorer import whole_days_between
from workorder_engine.domain.work_orders.value_objects.enums import (
    PriorityLevel,
    WorkOrderCategory,
    WorkOrderStatus,
)
from workorder_engine.domain.work_orders.value_objects.source import (
    RoutineSource,
    WorkOrderSourceRef,
    parse_source,
)
from workorder_engine.domain.work_orders.value_objects.time_window import as_naive_utc
from workorder_engine.infrastructure.database.models import (
    StatusHistoryEntry,
    WorkOrder,
    WorkOrderType,
)
from workorder_engine.infrastructure.database.repositories import (
    DuplicateWorkOrderNumberError,
)
from workorder_engine.infrastructure.database.unit_of_work import SqlModelUnitOfWork

from ..dtos import PlanningRequest, WorkOrderCreate, WorkOrderStatistics
from .base_service import ApplicationServiceBase
from .part_ledger_service import apply_planned_lines

logger = logging.getLogger(__name__)

# Orders no longer counted as overdue
_SETTLED_STATUSES = frozenset(
    {
        WorkOrderStatus.COMPLETED,
        WorkOrderStatus.VERIFIED,
        WorkOrderStatus.CLOSED,
        WorkOrderStatus.CANCELLED,
        WorkOrderStatus.REJECTED,
    }
)


def format_number(prefix: str, when: datetime, sequence: int) -> str:
    return f"{prefix}-{when.year:04d}-{when.month:02d}-{sequence:05d}"


def next_sequence(existing_numbers: list[str], month_prefix: str) -> int:
    """Max numeric suffix among numbers of the month, plus one."""
    highest = 0
    for number in existing_numbers:
        suffix = number[len(month_prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest + 1


def percentage_variance(estimated: float | None, actual: float | None) -> float | None:
    if estimated is None or actual is None or not estimated:
        return None
    return round((actual - estimated) / estimated * 100, 2)


class WorkOrderService(ApplicationServiceBase):
    """
    Application service for work order lifecycle operations.

    Every mutation runs in its own unit of work: the order row and the
    history entries it produces are committed together or not at all.
    """

    def __init__(
        self,
        uow_factory=None,
        clock=None,
        settings=None,
        checklist: ChecklistLookup | None = None,
    ):
        super().__init__(uow_factory, clock, settings)
        self._checklist = checklist or CustomTaskChecklist()
        self._ledger = PartLedger()
        self._timer = ExecutionTimer()

    # -- creation ---------------------------------------------------------

    def create(self, request: WorkOrderCreate, requester: Actor) -> WorkOrder:
        """
        Create a work order in `requested` status with a fresh number.

        Number generation races are resolved by the unique constraint: the
        whole creation is retried in a new transaction when the number is taken.

        Raises:
            PermissionDeniedError: If the requester may not create orders
            ValidationError: If the type is inactive or the source is malformed
            NotFoundError: If the type or related order does not exist
            RepositoryError: If no free number was found after the configured retries
        """
        authorize(requester, WorkOrderAction.CREATE)
        source = parse_source(request.source)
        attempts = max(1, self._settings.WORK_ORDER_NUMBER_RETRIES)

        for attempt in range(1, attempts + 1):
            try:
                with self._uow_factory() as uow:
                    order = self._create_in(uow, request, source, requester)
            except DuplicateWorkOrderNumberError as e:
                logger.info(
                    "Work order number taken, retrying",
                    extra={"number": e.number, "attempt": attempt},
                )
                continue
            logger.info(
                "Work order created",
                extra={
                    "work_order_id": str(order.id),
                    "work_order_number": order.work_order_number,
                    "actor_id": str(requester.id),
                    "status": WorkOrderStatus(order.status).value,
                },
            )
            return order

        logger.error("Work order number generation exhausted", extra={"attempts": attempts})
        raise RepositoryError(
            f"Could not allocate a work order number after {attempts} attempts"
        )

    def _create_in(
        self,
        uow: SqlModelUnitOfWork,
        request: WorkOrderCreate,
        source: WorkOrderSourceRef,
        requester: Actor,
    ) -> WorkOrder:
        now = self.now()
        work_order_type = self._resolve_type(uow, request.work_order_type_id)
        if request.related_work_order_id is not None:
            uow.work_orders.get_by_id_required(request.related_work_order_id)

        priority = request.priority or (
            work_order_type.default_priority if work_order_type else PriorityLevel.NORMAL
        )
        category = request.category or (
            work_order_type.category if work_order_type else WorkOrderCategory.CORRECTIVE
        )
        due_date = request.requested_due_date
        if due_date is not None:
            due_date = as_naive_utc(due_date)
        if due_date is None and work_order_type and work_order_type.sla_hours:
            due_date = now + timedelta(hours=work_order_type.sla_hours)

        order = WorkOrder(
            work_order_number=self._generate_number(uow, now),
            title=request.title,
            description=request.description,
            work_order_type_id=work_order_type.id if work_order_type else None,
            category=category,
            priority=priority,
            asset_id=request.asset_id,
            form_version_id=request.form_version_id,
            custom_tasks=request.custom_tasks,
            estimated_hours=request.estimated_hours,
            estimated_parts_cost=request.estimated_parts_cost,
            estimated_labor_cost=request.estimated_labor_cost,
            required_skills=request.required_skills,
            downtime_required=request.downtime_required,
            requested_due_date=due_date,
            related_work_order_id=request.related_work_order_id,
            relationship_type=request.relationship_type,
            requested_by=requester.id,
            requested_at=now,
            created_at=now,
        )
        order.set_source(source)
        order.set_estimates()
        order.priority_score = calculate_priority_score(priority, now, now, due_date)
        uow.work_orders.insert(order)
        self.record_change(
            uow,
            StatusChange(
                work_order_id=order.id,
                from_status=None,
                to_status=WorkOrderStatus.REQUESTED,
                changed_by=requester.id,
                reason="Work order created",
                changed_at=now,
            ),
        )

        if (
            isinstance(source, RoutineSource)
            and work_order_type is not None
            and work_order_type.auto_approve_from_routine
        ):
            self.move(
                uow,
                order,
                WorkOrderStatus.APPROVED,
                requester.id,
                now,
                "Auto-approved from routine",
            )
        return order

    def _resolve_type(
        self, uow: SqlModelUnitOfWork, type_id: UUID | None
    ) -> WorkOrderType | None:
        if type_id is None:
            return None
        work_order_type = uow.work_orders.get_type(type_id)
        if work_order_type is None:
            raise NotFoundError("WorkOrderType", type_id)
        if not work_order_type.is_active:
            raise ValidationError("work_order_type_id", type_id, "work order type is inactive")
        return work_order_type

    def _generate_number(self, uow: SqlModelUnitOfWork, now: datetime) -> str:
        prefix = self._settings.WORK_ORDER_NUMBER_PREFIX
        month_prefix = format_number(prefix, now, 0)[:-5]
        existing = uow.work_orders.numbers_with_prefix(month_prefix)
        return format_number(prefix, now, next_sequence(existing, month_prefix))

    def create_type(self, work_order_type: WorkOrderType, actor: Actor) -> WorkOrderType:
        authorize(actor, WorkOrderAction.PLAN)
        with self._uow_factory() as uow:
            if uow.work_orders.get_type_by_code(work_order_type.code) is not None:
                raise ValidationError(
                    "code", work_order_type.code, "work order type code already exists"
                )
            return uow.work_orders.add_type(work_order_type)

    # -- reads ------------------------------------------------------------

    def get(self, work_order_id: UUID, actor: Actor) -> WorkOrder:
        authorize(actor, WorkOrderAction.VIEW)
        with self._uow_factory() as uow:
            return uow.work_orders.get_by_id_required(work_order_id)

    def history(self, work_order_id: UUID, actor: Actor) -> list[StatusHistoryEntry]:
        authorize(actor, WorkOrderAction.VIEW)
        with self._uow_factory() as uow:
            uow.work_orders.get_by_id_required(work_order_id)
            return uow.history.for_work_order(work_order_id)

    def time_in_status(self, work_order_id: UUID, actor: Actor) -> dict[str, float]:
        """Hours spent in each status; the current status counts until now."""
        authorize(actor, WorkOrderAction.VIEW)
        now = self.now()
        with self._uow_factory() as uow:
            uow.work_orders.get_by_id_required(work_order_id)
            entries = uow.history.for_work_order(work_order_id)

        totals: dict[str, float] = {}
        for entry, following in zip(entries, entries[1:] + [None]):
            until = following.created_at if following is not None else now
            seconds = max(0.0, (until - entry.created_at).total_seconds())
            status = WorkOrderStatus(entry.to_status).value
            totals[status] = totals.get(status, 0.0) + seconds / 3600
        return {status: round(hours, 2) for status, hours in totals.items()}

    def statistics(self, work_order_id: UUID, actor: Actor) -> WorkOrderStatistics:
        authorize(actor, WorkOrderAction.VIEW)
        now = self.now()
        with self._uow_factory() as uow:
            order = uow.work_orders.get_by_id_required(work_order_id)
            execution = uow.executions.for_work_order(work_order_id)
            answered = (
                {r.task_id for r in uow.executions.responses(execution.id)}
                if execution
                else set()
            )

        status = WorkOrderStatus(order.status)
        due = order.requested_due_date
        overdue = due is not None and due < now and status not in _SETTLED_STATUSES
        completion = 0
        if execution is not None:
            completion = self._timer.completion_percentage(
                execution.status, self._checklist.items_for(order), answered
            )
        return WorkOrderStatistics(
            status=status,
            age_days=whole_days_between(order.created_at, now),
            overdue=overdue,
            days_overdue=whole_days_between(due, now) if overdue else 0,
            estimated_hours=order.estimated_hours,
            actual_hours=order.actual_hours,
            hours_variance_percentage=percentage_variance(
                order.estimated_hours, order.actual_hours
            ),
            estimated_cost=order.estimated_total_cost,
            actual_cost=order.actual_cost,
            cost_variance_percentage=percentage_variance(
                order.estimated_total_cost, order.actual_cost
            ),
            completion_percentage=completion,
            priority_score=calculate_priority_score(
                order.priority, order.created_at, now, due
            ),
        )

    def refresh_priority_score(self, work_order_id: UUID, actor: Actor) -> WorkOrder:
        """Store the current score on the order for list sorting."""
        authorize(actor, WorkOrderAction.PLAN)
        now = self.now()
        with self._uow_factory() as uow:
            order = uow.work_orders.get_by_id_required(work_order_id)
            score = calculate_priority_score(
                order.priority, order.created_at, now, order.requested_due_date
            )
            if score != order.priority_score:
                order.priority_score = score
                uow.work_orders.save(order, now)
            return order

    # -- transitions ------------------------------------------------------

    def transition(
        self,
        work_order_id: UUID,
        target_status: WorkOrderStatus,
        actor: Actor,
        reason: str | None = None,
    ) -> WorkOrder:
        """
        Move an order to `target_status` and log the change.

        Raises:
            NotFoundError: If the order does not exist
            PermissionDeniedError: If the actor may not perform the matching action
            InvalidTransitionError: If the target is not allowed from the current status
            ConcurrentModificationError: If another writer changed the order first
        """
        target_status = WorkOrderStatus(target_status)
        now = self.now()
        with self._uow_factory() as uow:
            order = uow.work_orders.get_by_id_required(work_order_id)
            self.authorize_transition(actor, target_status, order)
            source = WorkOrderStatus(order.status)
            self.move(uow, order, target_status, actor.id, now, reason)
            self._sync_execution(uow, order.id, source, target_status, now)
            return order

    def approve(self, work_order_id: UUID, actor: Actor, reason: str | None = None) -> WorkOrder:
        return self.transition(work_order_id, WorkOrderStatus.APPROVED, actor, reason)

    def reject(self, work_order_id: UUID, actor: Actor, reason: str) -> WorkOrder:
        reason = self.require_reason(reason)
        return self.transition(work_order_id, WorkOrderStatus.REJECTED, actor, reason)

    def hold(self, work_order_id: UUID, actor: Actor, reason: str) -> WorkOrder:
        reason = self.require_reason(reason)
        return self.transition(work_order_id, WorkOrderStatus.ON_HOLD, actor, reason)

    def cancel(self, work_order_id: UUID, actor: Actor, reason: str) -> WorkOrder:
        reason = self.require_reason(reason)
        return self.transition(work_order_id, WorkOrderStatus.CANCELLED, actor, reason)

    def verify(self, work_order_id: UUID, actor: Actor, reason: str | None = None) -> WorkOrder:
        return self.transition(work_order_id, WorkOrderStatus.VERIFIED, actor, reason)

    def close(self, work_order_id: UUID, actor: Actor, reason: str | None = None) -> WorkOrder:
        return self.transition(work_order_id, WorkOrderStatus.CLOSED, actor, reason)

    def resume_from_hold(
        self,
        work_order_id: UUID,
        target_status: WorkOrderStatus,
        actor: Actor,
        reason: str | None = None,
    ) -> WorkOrder:
        """
        Raises:
            InvalidStateError: If the order is not on hold
        """
        target_status = WorkOrderStatus(target_status)
        now = self.now()
        with self._uow_factory() as uow:
            order = uow.work_orders.get_by_id_required(work_order_id)
            self.authorize_transition(actor, target_status, order)
            if WorkOrderStatus(order.status) != WorkOrderStatus.ON_HOLD:
                raise InvalidStateError(
                    f"Work order {order.work_order_number} is not on hold",
                    current_state=WorkOrderStatus(order.status).value,
                )
            self.move(uow, order, target_status, actor.id, now, reason)
            self._sync_execution(uow, order.id, WorkOrderStatus.ON_HOLD, target_status, now)
            return order

    def _sync_execution(
        self,
        uow: SqlModelUnitOfWork,
        work_order_id: UUID,
        source: WorkOrderStatus,
        target: WorkOrderStatus,
        now: datetime,
    ) -> None:
        """Hold pauses a running execution; resuming into `in_progress` restarts it."""
        if source == WorkOrderStatus.IN_PROGRESS and target == WorkOrderStatus.ON_HOLD:
            step = self._timer.pause
        elif source == WorkOrderStatus.ON_HOLD and target == WorkOrderStatus.IN_PROGRESS:
            step = self._timer.resume
        else:
            return
        execution = uow.executions.for_work_order(work_order_id)
        if execution is not None and step(execution, now):
            execution.updated_at = now
            uow.executions.save(execution)
            logger.info(
                "Execution timer follows hold",
                extra={"work_order_id": str(work_order_id), "to_status": target.value},
            )

    # -- planning ---------------------------------------------------------

    def plan(self, work_order_id: UUID, request: PlanningRequest, actor: Actor) -> WorkOrder:
        """
        Record estimates and planned material, moving `approved` orders to `planned`.

        Raises:
            InvalidStateError: If the order is past planning
            ValidationError: If a part line carries a negative quantity or cost
        """
        authorize(actor, WorkOrderAction.PLAN)
        now = self.now()
        with self._uow_factory() as uow:
            order = uow.work_orders.get_by_id_required(work_order_id)
            status = WorkOrderStatus(order.status)
            if not status.is_schedulable:
                raise InvalidStateError(
                    f"Work order {order.work_order_number} cannot be planned",
                    current_state=status.value,
                )

            if request.estimated_hours is not None:
                order.estimated_hours = request.estimated_hours
            labor_cost = request.estimated_labor_cost
            if request.labor_rate is not None:
                if order.estimated_hours is None:
                    raise ValidationError(
                        "estimated_hours", None, "required to derive labor cost from a rate"
                    )
                labor_cost = round(order.estimated_hours * request.labor_rate, 2)
            order.set_estimates(labor_cost=labor_cost)
            if request.parts is not None:
                apply_planned_lines(uow, self._ledger, order, request.parts, now)
            if request.required_skills is not None:
                order.required_skills = request.required_skills
            if request.downtime_required is not None:
                order.downtime_required = request.downtime_required

            if status == WorkOrderStatus.APPROVED:
                self.move(uow, order, WorkOrderStatus.PLANNED, actor.id, now)
            else:
                uow.work_orders.save(order, now)
            return order

    def complete_planning(
        self, work_order_id: UUID, actor: Actor, reason: str | None = None
    ) -> WorkOrder:
        """
        Hand a planned order over to scheduling.

        Raises:
            ValidationError: If estimate, window or assignee is missing
            InvalidTransitionError: If the order is not `planned`
        """
        now = self.now()
        with self._uow_factory() as uow:
            order = uow.work_orders.get_by_id_required(work_order_id)
            self.authorize_transition(actor, WorkOrderStatus.READY_TO_SCHEDULE, order)
            self._state_machine.ensure_allowed(order, WorkOrderStatus.READY_TO_SCHEDULE)
            if order.estimated_hours is None:
                raise ValidationError("estimated_hours", None, "required before scheduling")
            if order.scheduled_window is None:
                raise ValidationError("scheduled_start", None, "a planned window is required")
            if order.assigned_technician_id is None and order.assigned_team_id is None:
                raise ValidationError(
                    "assigned_technician_id", None, "a technician or team is required"
                )
            self.move(uow, order, WorkOrderStatus.READY_TO_SCHEDULE, actor.id, now, reason)
            return order

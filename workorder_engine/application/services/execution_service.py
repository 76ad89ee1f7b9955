"""
Execution use cases.

Starting, completing and cancelling an execution each update the execution
row and the work order in one transaction.
"""

import logging
from uuid import UUID

from workorder_engine.core.rbac import WorkOrderAction, authorize
from workorder_engine.domain.shared.exceptions import (
    IncompleteRequiredTasksError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from workorder_engine.domain.work_orders.ports import Actor, ChecklistLookup, CustomTaskChecklist
from workorder_engine.domain.work_orders.services import ExecutionTimer
from workorder_engine.domain.work_orders.value_objects.enums import (
    STARTABLE_STATUSES,
    ExecutionStatus,
    RelationshipType,
    WorkOrderCategory,
    WorkOrderStatus,
)
from workorder_engine.domain.work_orders.value_objects.source import WorkOrderSource
from workorder_engine.infrastructure.database.models import (
    TaskResponse,
    WorkOrder,
    WorkOrderExecution,
)
from workorder_engine.infrastructure.database.unit_of_work import SqlModelUnitOfWork

from ..dtos import CompletionRequest, ExecutionStats, WorkOrderCreate
from .base_service import ApplicationServiceBase
from .work_order_service import WorkOrderService

logger = logging.getLogger(__name__)


class ExecutionService(ApplicationServiceBase):
    """Application service for the execution timer of a work order."""

    def __init__(
        self,
        uow_factory=None,
        clock=None,
        settings=None,
        checklist: ChecklistLookup | None = None,
        work_orders: WorkOrderService | None = None,
    ):
        super().__init__(uow_factory, clock, settings)
        self._checklist = checklist or CustomTaskChecklist()
        self._timer = ExecutionTimer()
        self._work_orders = work_orders or WorkOrderService(
            self._uow_factory, self._clock, self._settings, self._checklist
        )

    def get(self, work_order_id: UUID, actor: Actor) -> WorkOrderExecution:
        authorize(actor, WorkOrderAction.VIEW)
        with self._uow_factory() as uow:
            return self._load(uow, work_order_id)

    def start(self, work_order_id: UUID, actor: Actor) -> WorkOrderExecution:
        """
        Open the execution and move the order to `in_progress`.

        An existing execution is reused: a completed one is reopened for
        rework and a paused one is resumed. An order already `in_progress`
        without a running execution (rework, or resumed from hold before it
        was started) gets its timer started without a status change.

        Raises:
            InvalidStateError: If the order is not scheduled or in progress, or
                its execution is already running
        """
        authorize(actor, WorkOrderAction.EXECUTE)
        now = self.now()
        with self._uow_factory() as uow:
            order = uow.work_orders.get_by_id_required(work_order_id)
            status = WorkOrderStatus(order.status)
            if status not in STARTABLE_STATUSES and status != WorkOrderStatus.IN_PROGRESS:
                raise InvalidStateError(
                    f"Work order {order.work_order_number} cannot be started",
                    current_state=status.value,
                    details={"work_order_id": str(order.id)},
                )

            execution = uow.executions.for_work_order(order.id)
            if execution is None:
                execution = WorkOrderExecution(
                    work_order_id=order.id,
                    executed_by=actor.id,
                    status=ExecutionStatus.IN_PROGRESS,
                    started_at=now,
                    created_at=now,
                )
            elif not (self._timer.reopen(execution, now) or self._timer.resume(execution, now)):
                if status == WorkOrderStatus.IN_PROGRESS:
                    raise InvalidStateError(
                        f"Work order {order.work_order_number} already has a running execution",
                        current_state=status.value,
                        details={"work_order_id": str(order.id)},
                    )
            execution.updated_at = now
            uow.executions.save(execution)

            if order.actual_start is None:
                order.actual_start = now
            if status == WorkOrderStatus.IN_PROGRESS:
                uow.work_orders.save(order, now)
            else:
                self.move(
                    uow, order, WorkOrderStatus.IN_PROGRESS, actor.id, now, "Execution started"
                )

        logger.info(
            "Execution started",
            extra={"work_order_id": str(work_order_id), "actor_id": str(actor.id)},
        )
        return execution

    def pause(self, work_order_id: UUID, actor: Actor) -> WorkOrderExecution:
        """No-op unless the execution is running."""
        authorize(actor, WorkOrderAction.EXECUTE)
        now = self.now()
        with self._uow_factory() as uow:
            execution = self._load(uow, work_order_id)
            if self._timer.pause(execution, now):
                execution.updated_at = now
                uow.executions.save(execution)
                logger.info("Execution paused", extra={"work_order_id": str(work_order_id)})
            return execution

    def resume(self, work_order_id: UUID, actor: Actor) -> WorkOrderExecution:
        """No-op unless the execution is paused."""
        authorize(actor, WorkOrderAction.EXECUTE)
        now = self.now()
        with self._uow_factory() as uow:
            execution = self._load(uow, work_order_id)
            if self._timer.resume(execution, now):
                execution.updated_at = now
                uow.executions.save(execution)
                logger.info(
                    "Execution resumed",
                    extra={
                        "work_order_id": str(work_order_id),
                        "total_pause_minutes": execution.total_pause_duration,
                    },
                )
            return execution

    def submit_task_response(
        self, work_order_id: UUID, task_id: str, response: str | None, actor: Actor
    ) -> TaskResponse:
        """
        Record or overwrite the answer to one checklist item.

        Raises:
            ValidationError: If the task is not part of the order's checklist
            InvalidStateError: If the execution is already completed
        """
        authorize(actor, WorkOrderAction.EXECUTE)
        with self._uow_factory() as uow:
            order = uow.work_orders.get_by_id_required(work_order_id)
            execution = self._load(uow, work_order_id)
            if ExecutionStatus(execution.status) == ExecutionStatus.COMPLETED:
                raise InvalidStateError(
                    "Execution is already completed",
                    current_state=ExecutionStatus.COMPLETED.value,
                )
            known = {item.id for item in self._checklist.items_for(order)}
            if task_id not in known:
                raise ValidationError("task_id", task_id, "not part of this work order's checklist")
            return uow.executions.upsert_response(execution.id, task_id, response, actor.id)

    def complete(
        self,
        work_order_id: UUID,
        actor: Actor,
        request: CompletionRequest | None = None,
    ) -> WorkOrderExecution:
        """
        Close the execution and move the order to `completed` in one transaction.

        Actual hours come from the timer unless `actual_hours_override` is given.
        A follow-up order is created afterwards when requested.

        Raises:
            IncompleteRequiredTasksError: If required checklist items are unanswered
            InvalidStateError: If the execution is already completed
            InvalidTransitionError: If the order is not in progress
        """
        authorize(actor, WorkOrderAction.EXECUTE)
        request = request or CompletionRequest()
        if request.follow_up_required and not (request.follow_up_description or "").strip():
            raise ValidationError(
                "follow_up_description", None, "required when a follow-up is requested"
            )
        now = self.now()
        with self._uow_factory() as uow:
            order = uow.work_orders.get_by_id_required(work_order_id)
            execution = self._load(uow, work_order_id)
            if ExecutionStatus(execution.status) == ExecutionStatus.COMPLETED:
                raise InvalidStateError(
                    "Execution is already completed",
                    current_state=ExecutionStatus.COMPLETED.value,
                )
            answered = {r.task_id for r in uow.executions.responses(execution.id)}
            missing = self._timer.missing_required(self._checklist.items_for(order), answered)
            if missing:
                raise IncompleteRequiredTasksError(order.id, missing)
            self._state_machine.ensure_allowed(order, WorkOrderStatus.COMPLETED)

            actual_hours = self._timer.complete(execution, now)
            execution.safety_checks_completed = request.safety_checks_completed
            execution.quality_checks_completed = request.quality_checks_completed
            execution.tools_returned = request.tools_returned
            execution.area_cleaned = request.area_cleaned
            execution.work_performed = request.work_performed
            execution.observations = request.observations
            execution.recommendations = request.recommendations
            execution.follow_up_required = request.follow_up_required
            execution.updated_at = now
            uow.executions.save(execution)

            order.actual_end = now
            order.actual_hours = (
                request.actual_hours_override
                if request.actual_hours_override is not None
                else actual_hours
            )
            if request.actual_cost is not None:
                order.actual_cost = request.actual_cost
            self.move(uow, order, WorkOrderStatus.COMPLETED, actor.id, now, "Execution completed")

        logger.info(
            "Execution completed",
            extra={
                "work_order_id": str(work_order_id),
                "actor_id": str(actor.id),
                "actual_hours": order.actual_hours,
            },
        )
        if request.follow_up_required:
            self._create_follow_up(order, request.follow_up_description, actor)
        return execution

    def cancel_execution(self, work_order_id: UUID, actor: Actor, reason: str) -> WorkOrder:
        """
        Delete the execution and revert the order to `approved`.

        Timing data and checklist answers are lost; this cannot be undone.

        Raises:
            ValidationError: If no reason is given
            InvalidStateError: If the execution is already completed
        """
        reason = self.require_reason(reason)
        authorize(actor, WorkOrderAction.EXECUTE)
        now = self.now()
        with self._uow_factory() as uow:
            order = uow.work_orders.get_by_id_required(work_order_id)
            execution = self._load(uow, work_order_id)
            if ExecutionStatus(execution.status) == ExecutionStatus.COMPLETED:
                raise InvalidStateError(
                    "A completed execution cannot be cancelled",
                    current_state=ExecutionStatus.COMPLETED.value,
                )
            uow.executions.delete_with_responses(execution)
            order.actual_start = None
            self.move(
                uow,
                order,
                WorkOrderStatus.APPROVED,
                actor.id,
                now,
                f"Execution cancelled: {reason}",
                force=True,
            )

        logger.warning(
            "Execution cancelled",
            extra={"work_order_id": str(work_order_id), "actor_id": str(actor.id)},
        )
        return order

    def stats(self, work_order_id: UUID, actor: Actor) -> ExecutionStats:
        authorize(actor, WorkOrderAction.VIEW)
        now = self.now()
        with self._uow_factory() as uow:
            order = uow.work_orders.get_by_id_required(work_order_id)
            execution = self._load(uow, work_order_id)
            answered = {r.task_id for r in uow.executions.responses(execution.id)}

        items = self._checklist.items_for(order)
        required = [i for i in items if i.is_required]
        return ExecutionStats(
            total_tasks=len(items),
            completed_tasks=sum(1 for i in items if i.id in answered),
            required_tasks=len(required),
            completed_required_tasks=sum(1 for i in required if i.id in answered),
            completion_percentage=self._timer.completion_percentage(
                execution.status, items, answered
            ),
            actual_duration_hours=self._timer.actual_hours(execution, now),
            status=execution.status,
        )

    def _create_follow_up(
        self, order: WorkOrder, description: str | None, actor: Actor
    ) -> WorkOrder:
        follow_up = self._work_orders.create(
            WorkOrderCreate(
                title=f"Follow-up: {order.title}"[:255],
                description=description,
                category=WorkOrderCategory.CORRECTIVE,
                priority=order.priority,
                asset_id=order.asset_id,
                source=WorkOrderSource(work_order_id=order.id),
                related_work_order_id=order.id,
                relationship_type=RelationshipType.FOLLOW_UP,
            ),
            actor,
        )
        logger.info(
            "Follow-up work order created",
            extra={
                "work_order_id": str(order.id),
                "follow_up_id": str(follow_up.id),
                "follow_up_number": follow_up.work_order_number,
            },
        )
        return follow_up

    @staticmethod
    def _load(uow: SqlModelUnitOfWork, work_order_id: UUID) -> WorkOrderExecution:
        execution = uow.executions.for_work_order(work_order_id)
        if execution is None:
            uow.work_orders.get_by_id_required(work_order_id)
            raise NotFoundError("WorkOrderExecution", work_order_id)
        return execution

from uuid import uuid4

import pytest
from sqlmodel import select

from workorder_engine.application.dtos import CompletionRequest
from workorder_engine.domain.shared.exceptions import (
    IncompleteRequiredTasksError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from workorder_engine.domain.work_orders.value_objects.enums import (
    ExecutionStatus,
    RelationshipType,
    WorkOrderCategory,
    WorkOrderStatus as S,
)
from workorder_engine.infrastructure.database.models import WorkOrder

TASKS = [
    {"id": "lockout", "title": "Apply lockout", "is_required": True},
    {"id": "inspect", "title": "Inspect seal", "is_required": True},
    {"id": "photo", "title": "Take photo", "is_required": False},
]


@pytest.fixture
def scheduled(order_factory):
    return order_factory(status=S.SCHEDULED, custom_tasks=TASKS, estimated_hours=1.0)


class TestStart:
    def test_start_moves_order_in_progress(
        self, execution_service, technician_actor, scheduled, load, history, clock
    ):
        execution = execution_service.start(scheduled.id, technician_actor)

        assert execution.status == ExecutionStatus.IN_PROGRESS
        assert execution.started_at == clock.now()
        assert execution.executed_by == technician_actor.id
        stored = load(scheduled.id)
        assert stored.status == S.IN_PROGRESS
        assert stored.actual_start == clock.now()
        assert [e.to_status for e in history(scheduled.id)] == [S.IN_PROGRESS]

    @pytest.mark.parametrize("status", [S.APPROVED, S.PLANNED, S.ON_HOLD, S.COMPLETED])
    def test_only_scheduled_orders_start(
        self, execution_service, technician_actor, order_factory, status
    ):
        order = order_factory(status=status)
        with pytest.raises(InvalidStateError):
            execution_service.start(order.id, technician_actor)

    def test_second_start_rejected(self, execution_service, technician_actor, scheduled):
        execution_service.start(scheduled.id, technician_actor)

        with pytest.raises(InvalidStateError):
            execution_service.start(scheduled.id, technician_actor)

    def test_restart_after_reschedule_resumes_execution(
        self, execution_service, work_order_service, technician_actor, admin, scheduled, clock
    ):
        first = execution_service.start(scheduled.id, technician_actor)
        clock.advance(minutes=30)
        work_order_service.hold(scheduled.id, admin, "crane unavailable")
        clock.advance(minutes=90)
        work_order_service.resume_from_hold(scheduled.id, S.SCHEDULED, admin)

        again = execution_service.start(scheduled.id, technician_actor)

        assert again.id == first.id
        assert again.status == ExecutionStatus.IN_PROGRESS
        assert again.total_pause_duration == 90

    def test_in_progress_order_without_execution_starts_timer(
        self, execution_service, work_order_service, technician_actor, admin, scheduled, load
    ):
        work_order_service.hold(scheduled.id, admin, "crane unavailable")
        work_order_service.resume_from_hold(scheduled.id, S.IN_PROGRESS, admin)

        execution = execution_service.start(scheduled.id, technician_actor)

        assert execution.status == ExecutionStatus.IN_PROGRESS
        stored = load(scheduled.id)
        assert stored.status == S.IN_PROGRESS
        assert stored.actual_start is not None

    def test_missing_execution(self, execution_service, technician_actor, scheduled):
        with pytest.raises(NotFoundError) as exc_info:
            execution_service.get(scheduled.id, technician_actor)
        assert exc_info.value.entity_type == "WorkOrderExecution"


class TestHoldPausesExecution:
    def test_hold_pauses_and_resume_restarts(
        self, execution_service, work_order_service, technician_actor, admin, scheduled, clock
    ):
        execution_service.start(scheduled.id, technician_actor)
        clock.advance(minutes=60)
        work_order_service.hold(scheduled.id, admin, "waiting for parts")
        assert execution_service.get(scheduled.id, technician_actor).status == (
            ExecutionStatus.PAUSED
        )

        clock.advance(hours=3)
        work_order_service.resume_from_hold(scheduled.id, S.IN_PROGRESS, admin)
        clock.advance(minutes=15)
        execution_service.submit_task_response(scheduled.id, "lockout", "ok", technician_actor)
        execution_service.submit_task_response(scheduled.id, "inspect", "ok", technician_actor)
        execution = execution_service.complete(scheduled.id, technician_actor)

        assert execution.total_pause_duration == 180
        assert execution_service.stats(scheduled.id, technician_actor).actual_duration_hours == 1.25


class TestRework:
    def test_completed_execution_reopens(
        self,
        execution_service,
        work_order_service,
        technician_actor,
        admin,
        scheduled,
        clock,
        load,
        history,
    ):
        execution_service.start(scheduled.id, technician_actor)
        for task_id in ("lockout", "inspect"):
            execution_service.submit_task_response(scheduled.id, task_id, "ok", technician_actor)
        clock.advance(hours=1)
        first = execution_service.complete(scheduled.id, technician_actor)
        work_order_service.verify(scheduled.id, admin)
        work_order_service.transition(scheduled.id, S.COMPLETED, admin, "seal still leaking")
        work_order_service.transition(scheduled.id, S.IN_PROGRESS, admin, "rework")
        clock.advance(hours=2)

        reopened = execution_service.start(scheduled.id, technician_actor)
        assert reopened.id == first.id
        assert reopened.status == ExecutionStatus.IN_PROGRESS
        assert reopened.completed_at is None

        clock.advance(minutes=30)
        done = execution_service.complete(scheduled.id, technician_actor)

        assert done.status == ExecutionStatus.COMPLETED
        stored = load(scheduled.id)
        assert stored.status == S.COMPLETED
        assert stored.actual_hours == 1.5
        assert [e.to_status for e in history(scheduled.id)][-3:] == [
            S.COMPLETED,
            S.IN_PROGRESS,
            S.COMPLETED,
        ]

    def test_reopened_execution_cannot_start_twice(
        self, execution_service, work_order_service, technician_actor, admin, scheduled
    ):
        execution_service.start(scheduled.id, technician_actor)
        for task_id in ("lockout", "inspect"):
            execution_service.submit_task_response(scheduled.id, task_id, "ok", technician_actor)
        execution_service.complete(scheduled.id, technician_actor)
        work_order_service.transition(scheduled.id, S.IN_PROGRESS, admin, "rework")
        execution_service.start(scheduled.id, technician_actor)

        execution = execution_service.get(scheduled.id, technician_actor)
        assert execution.status == ExecutionStatus.IN_PROGRESS
        with pytest.raises(InvalidStateError):
            execution_service.start(scheduled.id, technician_actor)


class TestTiming:
    def test_one_and_a_quarter_hours(
        self, execution_service, technician_actor, scheduled, clock, load
    ):
        execution_service.start(scheduled.id, technician_actor)
        clock.advance(minutes=30)
        execution_service.pause(scheduled.id, technician_actor)
        clock.advance(minutes=15)
        execution_service.resume(scheduled.id, technician_actor)
        clock.advance(minutes=45)
        for task_id in ("lockout", "inspect"):
            execution_service.submit_task_response(scheduled.id, task_id, "ok", technician_actor)

        execution = execution_service.complete(scheduled.id, technician_actor)

        assert execution.status == ExecutionStatus.COMPLETED
        assert execution.total_pause_duration == 15
        stored = load(scheduled.id)
        assert stored.status == S.COMPLETED
        assert stored.actual_hours == 1.25
        assert stored.actual_end == clock.now()

    def test_pause_and_resume_are_idempotent(
        self, execution_service, technician_actor, scheduled, clock
    ):
        execution_service.start(scheduled.id, technician_actor)
        paused_at = clock.advance(minutes=10)
        execution_service.pause(scheduled.id, technician_actor)
        clock.advance(minutes=10)
        again = execution_service.pause(scheduled.id, technician_actor)
        assert again.paused_at == paused_at

        clock.advance(minutes=5)
        execution_service.resume(scheduled.id, technician_actor)
        resumed = execution_service.resume(scheduled.id, technician_actor)
        assert resumed.status == ExecutionStatus.IN_PROGRESS
        assert resumed.total_pause_duration == 15

    def test_complete_from_paused_folds_pause(
        self, execution_service, technician_actor, order_factory, clock, load
    ):
        order = order_factory(status=S.SCHEDULED)
        execution_service.start(order.id, technician_actor)
        clock.advance(minutes=60)
        execution_service.pause(order.id, technician_actor)
        clock.advance(minutes=30)

        execution_service.complete(order.id, technician_actor)

        assert load(order.id).actual_hours == 1.0

    def test_override_and_cost(self, execution_service, technician_actor, order_factory, load):
        order = order_factory(status=S.SCHEDULED)
        execution_service.start(order.id, technician_actor)

        execution_service.complete(
            order.id,
            technician_actor,
            CompletionRequest(
                actual_hours_override=2.5, actual_cost=310.0, work_performed="Replaced seal"
            ),
        )

        stored = load(order.id)
        assert stored.actual_hours == 2.5
        assert stored.actual_cost == 310.0


class TestChecklist:
    def test_required_tasks_block_completion(
        self, execution_service, technician_actor, scheduled, load
    ):
        execution_service.start(scheduled.id, technician_actor)
        execution_service.submit_task_response(scheduled.id, "lockout", "done", technician_actor)
        execution_service.submit_task_response(scheduled.id, "photo", "img-1", technician_actor)

        with pytest.raises(IncompleteRequiredTasksError) as exc_info:
            execution_service.complete(scheduled.id, technician_actor)

        assert exc_info.value.missing_task_ids == ["inspect"]
        assert load(scheduled.id).status == S.IN_PROGRESS
        assert execution_service.get(scheduled.id, technician_actor).status == (
            ExecutionStatus.IN_PROGRESS
        )

        execution_service.submit_task_response(scheduled.id, "inspect", "ok", technician_actor)
        execution_service.complete(scheduled.id, technician_actor)
        assert load(scheduled.id).status == S.COMPLETED

    def test_unknown_task_rejected(self, execution_service, technician_actor, scheduled):
        execution_service.start(scheduled.id, technician_actor)
        with pytest.raises(ValidationError):
            execution_service.submit_task_response(scheduled.id, "nope", "x", technician_actor)

    def test_answer_is_overwritten(self, execution_service, technician_actor, scheduled):
        execution_service.start(scheduled.id, technician_actor)
        execution_service.submit_task_response(scheduled.id, "lockout", "first", technician_actor)
        response = execution_service.submit_task_response(
            scheduled.id, "lockout", "second", technician_actor
        )
        assert response.response == "second"
        assert execution_service.stats(scheduled.id, technician_actor).completed_tasks == 1

    def test_stats(self, execution_service, technician_actor, scheduled, clock):
        execution_service.start(scheduled.id, technician_actor)
        execution_service.submit_task_response(scheduled.id, "lockout", "ok", technician_actor)
        execution_service.submit_task_response(scheduled.id, "inspect", "ok", technician_actor)
        clock.advance(minutes=90)

        stats = execution_service.stats(scheduled.id, technician_actor)

        assert stats.total_tasks == 3
        assert stats.required_tasks == 2
        assert stats.completed_required_tasks == 2
        assert stats.completion_percentage == 100
        assert stats.actual_duration_hours == 1.5

    def test_completion_percentage_rounds(
        self, execution_service, technician_actor, order_factory
    ):
        tasks = [{"id": f"t{i}", "is_required": True} for i in range(3)]
        order = order_factory(status=S.SCHEDULED, custom_tasks=tasks)
        execution_service.start(order.id, technician_actor)
        execution_service.submit_task_response(order.id, "t0", "ok", technician_actor)
        execution_service.submit_task_response(order.id, "t1", "ok", technician_actor)

        assert execution_service.stats(order.id, technician_actor).completion_percentage == 67


class TestCompletionGuards:
    def test_second_completion_rejected(self, execution_service, technician_actor, order_factory):
        order = order_factory(status=S.SCHEDULED)
        execution_service.start(order.id, technician_actor)
        execution_service.complete(order.id, technician_actor)
        with pytest.raises(InvalidStateError):
            execution_service.complete(order.id, technician_actor)

    def test_held_order_cannot_complete(
        self, execution_service, work_order_service, technician_actor, admin, order_factory, load
    ):
        order = order_factory(status=S.SCHEDULED)
        execution_service.start(order.id, technician_actor)
        work_order_service.hold(order.id, admin, "waiting for parts")

        with pytest.raises(InvalidTransitionError):
            execution_service.complete(order.id, technician_actor)
        assert execution_service.get(order.id, technician_actor).status == (
            ExecutionStatus.PAUSED
        )

    def test_follow_up_needs_description(self, execution_service, technician_actor, order_factory):
        order = order_factory(status=S.SCHEDULED)
        execution_service.start(order.id, technician_actor)
        with pytest.raises(ValidationError):
            execution_service.complete(
                order.id, technician_actor, CompletionRequest(follow_up_required=True)
            )

    def test_follow_up_order_created(
        self, execution_service, technician_actor, order_factory, uow_factory
    ):
        asset_id = uuid4()
        order = order_factory(status=S.SCHEDULED, title="Pump overhaul", asset_id=asset_id)
        execution_service.start(order.id, technician_actor)

        execution_service.complete(
            order.id,
            technician_actor,
            CompletionRequest(follow_up_required=True, follow_up_description="Bearing is worn"),
        )

        with uow_factory() as uow:
            (follow_up,) = uow.session.exec(
                select(WorkOrder).where(WorkOrder.related_work_order_id == order.id)
            ).all()
        assert follow_up.title == "Follow-up: Pump overhaul"
        assert follow_up.status == S.REQUESTED
        assert follow_up.category == WorkOrderCategory.CORRECTIVE
        assert follow_up.asset_id == asset_id
        assert follow_up.relationship_type == RelationshipType.FOLLOW_UP
        assert follow_up.source_type == "work_order"
        assert follow_up.source_id == order.id


class TestCancelExecution:
    def test_cancel_reverts_to_approved(
        self, execution_service, technician_actor, scheduled, load, history
    ):
        execution_service.start(scheduled.id, technician_actor)
        execution_service.submit_task_response(scheduled.id, "lockout", "ok", technician_actor)

        order = execution_service.cancel_execution(scheduled.id, technician_actor, "wrong asset")

        assert order.status == S.APPROVED
        assert load(scheduled.id).actual_start is None
        entries = history(scheduled.id)
        assert (entries[-1].from_status, entries[-1].to_status) == (S.IN_PROGRESS, S.APPROVED)
        assert entries[-1].reason == "Execution cancelled: wrong asset"
        with pytest.raises(NotFoundError):
            execution_service.get(scheduled.id, technician_actor)

    def test_cancel_needs_reason(self, execution_service, technician_actor, scheduled):
        execution_service.start(scheduled.id, technician_actor)
        with pytest.raises(ValidationError):
            execution_service.cancel_execution(scheduled.id, technician_actor, " ")

    def test_completed_execution_cannot_be_cancelled(
        self, execution_service, technician_actor, order_factory
    ):
        order = order_factory(status=S.SCHEDULED)
        execution_service.start(order.id, technician_actor)
        execution_service.complete(order.id, technician_actor)
        with pytest.raises(InvalidStateError):
            execution_service.cancel_execution(order.id, technician_actor, "too late")

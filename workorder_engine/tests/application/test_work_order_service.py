"""
Tests for work order creation, transitions and planning against a real
in-memory database.
"""

from datetime import timedelta
from uuid import uuid4

import pytest

from workorder_engine.application.dtos import PlanningRequest, WorkOrderCreate
from workorder_engine.application.services.work_order_service import WorkOrderService
from workorder_engine.domain.shared.exceptions import (
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    RepositoryError,
    ValidationError,
)
from workorder_engine.domain.work_orders.services import PlannedLine
from workorder_engine.domain.work_orders.value_objects.enums import (
    STATUS_TRANSITIONS,
    PriorityLevel,
    WorkOrderStatus as S,
)
from workorder_engine.domain.work_orders.value_objects.source import RoutineSource
from workorder_engine.infrastructure.database.models import WorkOrderType

ALL_PAIRS = [(source, target) for source in S for target in S]


def make_type(uow_factory, **fields) -> WorkOrderType:
    fields.setdefault("code", f"T{uuid4().hex[:6]}")
    fields.setdefault("name", "Corrective repair")
    work_order_type = WorkOrderType(**fields)
    with uow_factory() as uow:
        uow.work_orders.add_type(work_order_type)
    return work_order_type


class TestCreate:
    def test_creates_requested_order_with_history(self, work_order_service, admin, history):
        order = work_order_service.create(WorkOrderCreate(title="Leaking valve"), admin)

        assert order.status == S.REQUESTED
        assert order.work_order_number == "WO-2024-03-00001"
        assert order.requested_by == admin.id
        assert order.version == 1
        entries = history(order.id)
        assert len(entries) == 1
        assert entries[0].from_status is None
        assert entries[0].to_status == S.REQUESTED
        assert entries[0].reason == "Work order created"

    def test_numbers_increment_within_month(self, work_order_service, admin):
        first = work_order_service.create(WorkOrderCreate(title="A"), admin)
        second = work_order_service.create(WorkOrderCreate(title="B"), admin)
        assert (first.work_order_number, second.work_order_number) == (
            "WO-2024-03-00001",
            "WO-2024-03-00002",
        )

    def test_number_continues_from_month_max(self, work_order_service, admin, order_factory):
        order_factory(work_order_number="WO-2024-03-00041")
        order_factory(work_order_number="WO-2024-02-00099")

        order = work_order_service.create(WorkOrderCreate(title="A"), admin)

        assert order.work_order_number == "WO-2024-03-00042"

    def test_sequence_resets_each_month(self, work_order_service, admin, clock):
        work_order_service.create(WorkOrderCreate(title="March"), admin)
        clock.advance(days=30)
        order = work_order_service.create(WorkOrderCreate(title="April"), admin)
        assert order.work_order_number == "WO-2024-04-00001"

    def test_taken_number_is_retried(self, work_order_service, admin, monkeypatch):
        taken = work_order_service.create(WorkOrderCreate(title="A"), admin)
        real = WorkOrderService._generate_number
        calls = []

        def racing(self, uow, now):
            calls.append(now)
            if len(calls) == 1:
                return taken.work_order_number
            return real(self, uow, now)

        monkeypatch.setattr(WorkOrderService, "_generate_number", racing)
        order = work_order_service.create(WorkOrderCreate(title="B"), admin)

        assert len(calls) == 2
        assert order.work_order_number == "WO-2024-03-00002"

    def test_retries_are_bounded(self, work_order_service, admin, monkeypatch):
        taken = work_order_service.create(WorkOrderCreate(title="A"), admin)
        monkeypatch.setattr(
            WorkOrderService, "_generate_number", lambda self, uow, now: taken.work_order_number
        )
        with pytest.raises(RepositoryError):
            work_order_service.create(WorkOrderCreate(title="B"), admin)

    def test_type_defaults(self, work_order_service, admin, uow_factory, clock):
        work_order_type = make_type(
            uow_factory, default_priority=PriorityLevel.URGENT, sla_hours=24
        )

        order = work_order_service.create(
            WorkOrderCreate(title="Broken conveyor", work_order_type_id=work_order_type.id),
            admin,
        )

        assert order.priority == PriorityLevel.URGENT
        assert order.requested_due_date == clock.now() + timedelta(hours=24)
        assert order.priority_score == 80

    def test_explicit_priority_beats_type(self, work_order_service, admin, uow_factory):
        work_order_type = make_type(uow_factory, default_priority=PriorityLevel.URGENT)
        order = work_order_service.create(
            WorkOrderCreate(
                title="Dusty panel",
                work_order_type_id=work_order_type.id,
                priority=PriorityLevel.LOW,
            ),
            admin,
        )
        assert order.priority == PriorityLevel.LOW

    def test_routine_source_auto_approves(self, work_order_service, admin, uow_factory, history):
        work_order_type = make_type(uow_factory, auto_approve_from_routine=True)

        order = work_order_service.create(
            WorkOrderCreate(
                title="Monthly lubrication",
                work_order_type_id=work_order_type.id,
                source=RoutineSource(routine_id=uuid4()),
            ),
            admin,
        )

        assert order.status == S.APPROVED
        assert order.approved_by == admin.id
        assert order.source_type == "routine"
        assert [e.to_status for e in history(order.id)] == [S.REQUESTED, S.APPROVED]

    def test_manual_source_is_not_auto_approved(self, work_order_service, admin, uow_factory):
        work_order_type = make_type(uow_factory, auto_approve_from_routine=True)
        order = work_order_service.create(
            WorkOrderCreate(title="Ad hoc", work_order_type_id=work_order_type.id), admin
        )
        assert order.status == S.REQUESTED

    def test_inactive_type_rejected(self, work_order_service, admin, uow_factory):
        work_order_type = make_type(uow_factory, is_active=False)
        with pytest.raises(ValidationError):
            work_order_service.create(
                WorkOrderCreate(title="X", work_order_type_id=work_order_type.id), admin
            )

    def test_unknown_related_order(self, work_order_service, admin):
        with pytest.raises(NotFoundError):
            work_order_service.create(
                WorkOrderCreate(title="X", related_work_order_id=uuid4()), admin
            )

    def test_estimated_total_is_sum(self, work_order_service, admin):
        order = work_order_service.create(
            WorkOrderCreate(title="X", estimated_parts_cost=12.5, estimated_labor_cost=30),
            admin,
        )
        assert order.estimated_total_cost == 42.5


class TestTransition:
    @pytest.mark.parametrize("source,target", ALL_PAIRS)
    def test_transition_grid(
        self, work_order_service, admin, order_factory, load, history, source, target
    ):
        order = order_factory(status=source)

        if target in STATUS_TRANSITIONS[source]:
            work_order_service.transition(order.id, target, admin, "grid")
            stored = load(order.id)
            assert stored.status == target
            assert stored.version == 2
            entries = history(order.id)
            assert [(e.from_status, e.to_status) for e in entries] == [(source, target)]
        else:
            with pytest.raises(InvalidTransitionError):
                work_order_service.transition(order.id, target, admin, "grid")
            stored = load(order.id)
            assert stored.status == source
            assert stored.version == 1
            assert history(order.id) == []

    def test_history_is_ordered(self, work_order_service, admin, history):
        order = work_order_service.create(WorkOrderCreate(title="X"), admin)
        work_order_service.approve(order.id, admin)
        work_order_service.hold(order.id, admin, "waiting for parts")
        work_order_service.resume_from_hold(order.id, S.APPROVED, admin)

        entries = history(order.id)

        assert [e.to_status for e in entries] == [S.REQUESTED, S.APPROVED, S.ON_HOLD, S.APPROVED]
        assert [e.sequence for e in entries] == [1, 2, 3, 4]
        assert entries[2].reason == "waiting for parts"

    def test_permission_checked_before_state(
        self, work_order_service, requester, order_factory, load
    ):
        order = order_factory(status=S.CLOSED)
        with pytest.raises(PermissionDeniedError):
            work_order_service.approve(order.id, requester)
        assert load(order.id).status == S.CLOSED

    def test_unknown_order(self, work_order_service, admin):
        with pytest.raises(NotFoundError):
            work_order_service.approve(uuid4(), admin)

    @pytest.mark.parametrize("operation", ["reject", "hold", "cancel"])
    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_reason_required(self, work_order_service, admin, order_factory, operation, reason):
        order = order_factory(status=S.REQUESTED)
        with pytest.raises(ValidationError):
            getattr(work_order_service, operation)(order.id, admin, reason)

    def test_resume_requires_hold(self, work_order_service, admin, order_factory):
        order = order_factory(status=S.APPROVED)
        with pytest.raises(InvalidStateError):
            work_order_service.resume_from_hold(order.id, S.PLANNED, admin)

    def test_verify_and_close_stamp(self, work_order_service, admin, order_factory, load):
        order = order_factory(status=S.COMPLETED)
        work_order_service.verify(order.id, admin)
        work_order_service.close(order.id, admin)
        stored = load(order.id)
        assert stored.status == S.CLOSED
        assert stored.verified_by == admin.id
        assert stored.closed_by == admin.id


class TestPlanning:
    def test_plan_sets_costs_and_moves_to_planned(
        self, work_order_service, admin, order_factory, part_service
    ):
        order = order_factory(status=S.APPROVED)

        planned = work_order_service.plan(
            order.id,
            PlanningRequest(
                estimated_hours=3,
                labor_rate=40,
                parts=[PlannedLine(part_name="Filter", estimated_quantity=2, unit_cost=12.5)],
            ),
            admin,
        )

        assert planned.status == S.PLANNED
        assert planned.planned_by == admin.id
        assert planned.estimated_labor_cost == 120.0
        assert planned.estimated_parts_cost == 25.0
        assert planned.estimated_total_cost == 145.0
        assert len(part_service.list_lines(order.id, admin)) == 1

    def test_replanning_keeps_status(self, work_order_service, admin, order_factory):
        order = order_factory(status=S.PLANNED, estimated_hours=2.0)
        planned = work_order_service.plan(
            order.id, PlanningRequest(estimated_labor_cost=75.5), admin
        )
        assert planned.status == S.PLANNED
        assert planned.estimated_total_cost == 75.5

    def test_rate_needs_hours(self, work_order_service, admin, order_factory):
        order = order_factory(status=S.APPROVED)
        with pytest.raises(ValidationError):
            work_order_service.plan(order.id, PlanningRequest(labor_rate=50), admin)

    def test_cannot_plan_in_progress(self, work_order_service, admin, order_factory):
        order = order_factory(status=S.IN_PROGRESS)
        with pytest.raises(InvalidStateError):
            work_order_service.plan(order.id, PlanningRequest(estimated_hours=1), admin)

    def test_complete_planning_requires_window(self, work_order_service, admin, order_factory):
        order = order_factory(status=S.PLANNED, estimated_hours=2.0)
        with pytest.raises(ValidationError):
            work_order_service.complete_planning(order.id, admin)

    def test_complete_planning(
        self, work_order_service, scheduling_service, admin, order_factory, clock, tech_a
    ):
        order = order_factory(status=S.PLANNED, estimated_hours=2.0)
        start = clock.now() + timedelta(hours=1)
        scheduling_service.schedule_one(
            order.id, start, start + timedelta(hours=2), admin, technician_id=tech_a
        )

        ready = work_order_service.complete_planning(order.id, admin)

        assert ready.status == S.READY_TO_SCHEDULE


class TestReads:
    def test_refresh_priority_score(self, work_order_service, admin, order_factory, clock, load):
        order = order_factory(
            priority=PriorityLevel.URGENT,
            created_at=clock.now() - timedelta(days=1),
            requested_due_date=clock.now() - timedelta(days=3),
        )

        work_order_service.refresh_priority_score(order.id, admin)

        assert load(order.id).priority_score == 87

    def test_statistics(self, work_order_service, admin, order_factory, clock):
        order = order_factory(
            status=S.IN_PROGRESS,
            created_at=clock.now() - timedelta(days=5),
            requested_due_date=clock.now() - timedelta(days=2, hours=3),
            estimated_hours=2.0,
            actual_hours=3.0,
            estimated_labor_cost=100.0,
            actual_cost=80.0,
        )

        stats = work_order_service.statistics(order.id, admin)

        assert stats.age_days == 5
        assert stats.overdue is True
        assert stats.days_overdue == 2
        assert stats.hours_variance_percentage == 50.0
        assert stats.cost_variance_percentage == -20.0
        assert stats.completion_percentage == 0

    def test_statistics_without_actuals(self, work_order_service, admin, order_factory):
        order = order_factory(estimated_hours=2.0)
        stats = work_order_service.statistics(order.id, admin)
        assert stats.hours_variance_percentage is None
        assert stats.cost_variance_percentage is None
        assert stats.overdue is False

    def test_time_in_status(self, work_order_service, admin, clock):
        order = work_order_service.create(WorkOrderCreate(title="X"), admin)
        clock.advance(hours=2)
        work_order_service.approve(order.id, admin)
        clock.advance(minutes=30)

        assert work_order_service.time_in_status(order.id, admin) == {
            "requested": 2.0,
            "approved": 0.5,
        }

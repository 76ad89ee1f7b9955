"""
Lost-update protection, exercised with two sessions on a file database so
each writer holds its own connection.
"""

import pytest

from workorder_engine.application.services import SchedulingService, WorkOrderService
from workorder_engine.core.db import build_engine, init_db, session_factory
from workorder_engine.domain.shared.exceptions import ConcurrentModificationError
from workorder_engine.domain.work_orders.value_objects.enums import WorkOrderStatus as S
from workorder_engine.domain.work_orders.value_objects.time_window import TimeWindow
from workorder_engine.infrastructure.database.models import WorkOrder
from workorder_engine.infrastructure.database.unit_of_work import unit_of_work_factory


@pytest.fixture
def file_uow_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'work_orders.db'}", echo=False)
    init_db(engine)
    yield unit_of_work_factory(session_factory(engine))
    engine.dispose()


@pytest.fixture
def insert(file_uow_factory, admin, clock):
    def _insert(number: str, status: S, **fields) -> WorkOrder:
        order = WorkOrder(
            work_order_number=number,
            title=number,
            status=status,
            requested_by=admin.id,
            requested_at=clock.now(),
            created_at=clock.now(),
            **fields,
        )
        with file_uow_factory() as uow:
            uow.work_orders.insert(order)
        return order

    return _insert


class TestOptimisticLocking:
    def test_stale_write_is_rejected(self, file_uow_factory, insert, admin, clock, settings):
        order = insert("WO-C-00001", S.REQUESTED)
        service = WorkOrderService(file_uow_factory, clock, settings)

        with pytest.raises(ConcurrentModificationError):
            with file_uow_factory() as stale_uow:
                stale = stale_uow.work_orders.get_by_id_required(order.id)
                service.approve(order.id, admin)
                stale.title = "Edited from a stale read"
                stale_uow.work_orders.save(stale, clock.now())

        with file_uow_factory() as uow:
            stored = uow.work_orders.get_by_id_required(order.id)
            history = uow.history.for_work_order(order.id)
        assert stored.status == S.APPROVED
        assert stored.title == "WO-C-00001"
        assert stored.version == 2
        assert len(history) == 1

    def test_sequential_writes_succeed(self, file_uow_factory, insert, admin, clock, settings):
        order = insert("WO-C-00001", S.REQUESTED)
        service = WorkOrderService(file_uow_factory, clock, settings)

        service.approve(order.id, admin)
        service.hold(order.id, admin, "shutdown window moved")

        with file_uow_factory() as uow:
            assert uow.work_orders.get_by_id_required(order.id).version == 3


class TestCalendarClaim:
    def test_racing_schedulers_cannot_both_commit(
        self, file_uow_factory, insert, admin, clock, settings, directory, tech_a
    ):
        first = insert("WO-C-00001", S.READY_TO_SCHEDULE)
        service = SchedulingService(directory, file_uow_factory, clock, settings)
        window = TimeWindow(start=clock.now().replace(hour=9), end=clock.now().replace(hour=11))

        with pytest.raises(ConcurrentModificationError):
            with file_uow_factory() as slow_uow:
                seen = slow_uow.calendars.read_version(tech_a)
                assert slow_uow.work_orders.find_calendar_conflicts(tech_a, window) == []
                service.schedule_one(
                    first.id, window.start, window.end, admin, technician_id=tech_a
                )
                slow_uow.calendars.claim(tech_a, seen)

        with file_uow_factory() as uow:
            assert uow.calendars.read_version(tech_a) == 1

    def test_claims_advance_version(
        self, file_uow_factory, insert, admin, clock, settings, directory, tech_a
    ):
        first = insert("WO-C-00001", S.READY_TO_SCHEDULE)
        second = insert("WO-C-00002", S.READY_TO_SCHEDULE)
        service = SchedulingService(directory, file_uow_factory, clock, settings)

        day = clock.now().replace(hour=0)
        service.schedule_one(
            first.id, day.replace(hour=9), day.replace(hour=11), admin, technician_id=tech_a
        )
        service.schedule_one(
            second.id, day.replace(hour=11), day.replace(hour=13), admin, technician_id=tech_a
        )

        with file_uow_factory() as uow:
            assert uow.calendars.read_version(tech_a) == 2

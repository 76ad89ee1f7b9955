import itertools
from collections.abc import Callable, Generator
from datetime import datetime
from uuid import UUID, uuid4

import pytest
from sqlalchemy.engine import Engine

from workorder_engine.application.services import (
    ExecutionService,
    PartLedgerService,
    SchedulingService,
    WorkOrderService,
)
from workorder_engine.core.clock import FixedClock
from workorder_engine.core.config import Settings
from workorder_engine.core.db import build_engine, init_db, session_factory
from workorder_engine.core.rbac import RoleActor, WorkOrderRole
from workorder_engine.domain.work_orders.ports import StaticResourceDirectory
from workorder_engine.domain.work_orders.value_objects.enums import WorkOrderStatus
from workorder_engine.infrastructure.database.models import WorkOrder
from workorder_engine.infrastructure.database.unit_of_work import (
    UnitOfWorkFactory,
    unit_of_work_factory,
)

# Monday
NOW = datetime(2024, 3, 4, 8, 0)


@pytest.fixture
def settings() -> Settings:
    return Settings(DATABASE_URL="sqlite://")


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory database per test."""
    test_engine = build_engine("sqlite://", echo=False)
    init_db(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def uow_factory(engine: Engine) -> UnitOfWorkFactory:
    return unit_of_work_factory(session_factory(engine))


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def admin() -> RoleActor:
    return RoleActor(id=uuid4(), roles=frozenset({WorkOrderRole.ADMIN}))


@pytest.fixture
def requester() -> RoleActor:
    return RoleActor(id=uuid4(), roles=frozenset({WorkOrderRole.REQUESTER}))


@pytest.fixture
def technician_actor() -> RoleActor:
    return RoleActor(id=uuid4(), roles=frozenset({WorkOrderRole.TECHNICIAN}))


@pytest.fixture
def tech_a() -> UUID:
    return uuid4()


@pytest.fixture
def tech_b() -> UUID:
    return uuid4()


@pytest.fixture
def team() -> UUID:
    return uuid4()


@pytest.fixture
def directory(tech_a: UUID, tech_b: UUID, team: UUID) -> StaticResourceDirectory:
    return StaticResourceDirectory({tech_a: None, tech_b: None}, {team})


@pytest.fixture
def work_order_service(uow_factory, clock, settings) -> WorkOrderService:
    return WorkOrderService(uow_factory, clock, settings)


@pytest.fixture
def execution_service(uow_factory, clock, settings) -> ExecutionService:
    return ExecutionService(uow_factory, clock, settings)


@pytest.fixture
def part_service(uow_factory, clock, settings) -> PartLedgerService:
    return PartLedgerService(uow_factory, clock, settings)


@pytest.fixture
def scheduling_service(directory, uow_factory, clock, settings) -> SchedulingService:
    return SchedulingService(directory, uow_factory, clock, settings)


@pytest.fixture
def order_factory(uow_factory, clock, admin) -> Callable[..., WorkOrder]:
    """Insert a work order directly in any status, bypassing the lifecycle."""
    counter = itertools.count(1)

    def _make(status: WorkOrderStatus = WorkOrderStatus.REQUESTED, **fields) -> WorkOrder:
        n = next(counter)
        fields.setdefault("work_order_number", f"WO-TEST-{n:05d}")
        fields.setdefault("title", f"Order {n}")
        fields.setdefault("requested_by", admin.id)
        fields.setdefault("requested_at", clock.now())
        fields.setdefault("created_at", clock.now())
        order = WorkOrder(status=status, **fields)
        order.set_estimates()
        with uow_factory() as uow:
            uow.work_orders.insert(order)
        return order

    return _make


@pytest.fixture
def load(uow_factory) -> Callable[[UUID], WorkOrder]:
    def _load(work_order_id: UUID) -> WorkOrder:
        with uow_factory() as uow:
            return uow.work_orders.get_by_id_required(work_order_id)

    return _load


@pytest.fixture
def history(uow_factory):
    def _history(work_order_id: UUID):
        with uow_factory() as uow:
            return uow.history.for_work_order(work_order_id)

    return _history

"""
Technician workload read model.

Hours are the full scheduled durations of the technician's orders that
intersect the window; closed, cancelled and rejected orders no longer count.
"""

from collections import Counter
from datetime import datetime
from uuid import UUID

from workorder_engine.core.config import Settings, get_settings
from workorder_engine.domain.shared.exceptions import ValidationError
from workorder_engine.domain.work_orders.ports import ResourceDirectory
from workorder_engine.domain.work_orders.services import (
    TechnicianLoad,
    utilization_ratio,
    window_capacity_hours,
    working_days,
)
from workorder_engine.domain.work_orders.value_objects.enums import (
    CALENDAR_STATUSES,
    WORKLOAD_EXCLUDED_STATUSES,
    WorkOrderStatus,
)
from workorder_engine.domain.work_orders.value_objects.time_window import TimeWindow
from workorder_engine.infrastructure.database.models import WorkOrder
from workorder_engine.infrastructure.database.unit_of_work import (
    SqlModelUnitOfWork,
    UnitOfWorkFactory,
    unit_of_work_factory,
)

from ..dtos import UtilizationReport

_WORKLOAD_STATUSES = frozenset(WorkOrderStatus) - WORKLOAD_EXCLUDED_STATUSES


class WorkloadQuery:
    def __init__(
        self,
        directory: ResourceDirectory,
        uow_factory: UnitOfWorkFactory | None = None,
        settings: Settings | None = None,
    ):
        self._directory = directory
        self._uow_factory = uow_factory or unit_of_work_factory()
        self._settings = settings or get_settings()

    def ensure_technician(self, technician_id: UUID, field_name: str = "technician_id") -> None:
        if not self._directory.technician_exists(technician_id):
            raise ValidationError(field_name, technician_id, "unknown technician")

    def daily_hours(self, technician_id: UUID) -> float:
        override = self._directory.daily_capacity_hours(technician_id)
        return self._settings.WORKDAY_HOURS if override is None else override

    def capacity_hours(self, technician_id: UUID, window: TimeWindow) -> float:
        return window_capacity_hours(window, self.daily_hours(technician_id))

    def orders_in_window(
        self,
        uow: SqlModelUnitOfWork,
        technician_id: UUID,
        window: TimeWindow,
        exclude_ids: set[UUID] | None = None,
    ) -> list[WorkOrder]:
        orders = uow.work_orders.find_intersecting(
            window, statuses=set(_WORKLOAD_STATUSES), technician_id=technician_id
        )
        excluded = exclude_ids or set()
        return [o for o in orders if o.id not in excluded]

    def technician_load(
        self,
        uow: SqlModelUnitOfWork,
        technician_id: UUID,
        window: TimeWindow,
        exclude_ids: set[UUID] | None = None,
    ) -> TechnicianLoad:
        """Committed hours and calendar-blocking intervals, as the optimizer sees them."""
        orders = self.orders_in_window(uow, technician_id, window, exclude_ids)
        busy = [
            o.scheduled_window
            for o in orders
            if WorkOrderStatus(o.status) in CALENDAR_STATUSES
        ]
        return TechnicianLoad(
            technician_id=technician_id,
            capacity_hours=self.capacity_hours(technician_id, window),
            committed_hours=round(sum(o.scheduled_hours for o in orders), 4),
            busy=busy,
        )

    def workload(self, technician_id: UUID, start: datetime, end: datetime) -> UtilizationReport:
        """
        Raises:
            ValidationError: If the window is inverted or the technician is unknown
        """
        window = TimeWindow.of(start, end)
        self.ensure_technician(technician_id)
        with self._uow_factory() as uow:
            orders = self.orders_in_window(uow, technician_id, window)

        scheduled_hours = round(sum(o.scheduled_hours for o in orders), 2)
        capacity = self.capacity_hours(technician_id, window)
        days = working_days(window)
        by_priority = Counter(o.priority.value for o in orders)
        return UtilizationReport(
            technician_id=technician_id,
            start=window.start,
            end=window.end,
            total_work_orders=len(orders),
            scheduled_hours=scheduled_hours,
            capacity_hours=capacity,
            utilization=utilization_ratio(scheduled_hours, capacity),
            working_days=days,
            hours_per_day=round(scheduled_hours / days, 2) if days else 0.0,
            work_orders_by_priority=dict(sorted(by_priority.items())),
        )

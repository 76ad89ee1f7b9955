"""Calendar read projection over scheduled and in-progress work orders."""

from datetime import datetime
from uuid import UUID

from workorder_engine.domain.work_orders.value_objects.enums import CALENDAR_STATUSES
from workorder_engine.domain.work_orders.value_objects.time_window import TimeWindow
from workorder_engine.infrastructure.database.models import WorkOrder
from workorder_engine.infrastructure.database.unit_of_work import (
    UnitOfWorkFactory,
    unit_of_work_factory,
)

from ..dtos import CalendarEntry, CalendarGroup, CalendarView

UNASSIGNED_KEY = "unassigned"


def group_key(order: WorkOrder) -> str:
    if order.assigned_technician_id is not None:
        return f"technician:{order.assigned_technician_id}"
    if order.assigned_team_id is not None:
        return f"team:{order.assigned_team_id}"
    return UNASSIGNED_KEY


class CalendarQuery:
    def __init__(self, uow_factory: UnitOfWorkFactory | None = None):
        self._uow_factory = uow_factory or unit_of_work_factory()

    def calendar(
        self,
        start: datetime,
        end: datetime,
        technician_id: UUID | None = None,
        team_id: UUID | None = None,
        asset_id: UUID | None = None,
    ) -> CalendarView:
        """
        Orders intersecting [start, end), one group per technician or team.

        Raises:
            ValidationError: If end is before start
        """
        window = TimeWindow.of(start, end)
        with self._uow_factory() as uow:
            orders = uow.work_orders.find_intersecting(
                window,
                statuses=set(CALENDAR_STATUSES),
                technician_id=technician_id,
                team_id=team_id,
                asset_id=asset_id,
            )

        groups: dict[str, CalendarGroup] = {}
        for order in orders:
            key = group_key(order)
            group = groups.get(key)
            if group is None:
                group = CalendarGroup(
                    key=key,
                    technician_id=order.assigned_technician_id,
                    team_id=None if order.assigned_technician_id else order.assigned_team_id,
                )
                groups[key] = group
            group.entries.append(
                CalendarEntry(
                    work_order_id=order.id,
                    work_order_number=order.work_order_number,
                    title=order.title,
                    status=order.status,
                    priority=order.priority,
                    start=order.scheduled_start,
                    end=order.scheduled_end,
                    technician_id=order.assigned_technician_id,
                    team_id=order.assigned_team_id,
                    asset_id=order.asset_id,
                )
            )
        return CalendarView(
            start=window.start,
            end=window.end,
            groups=[groups[key] for key in sorted(groups)],
        )

"""
Base application service providing common functionality.

Application services own the transaction boundary: each use case opens one
unit of work, checks authorization, applies domain rules and persists the
result together with its history entries.
"""

import logging
from abc import ABC
from datetime import datetime
from uuid import UUID

from workorder_engine.core.clock import Clock, SystemClock
from workorder_engine.core.config import Settings, get_settings
from workorder_engine.core.rbac import ACTION_FOR_STATUS, authorize
from workorder_engine.domain.shared.exceptions import (
    ConflictingAssignmentError,
    ValidationError,
)
from workorder_engine.domain.work_orders.ports import Actor
from workorder_engine.domain.work_orders.services import StatusChange, StatusStateMachine
from workorder_engine.domain.work_orders.value_objects.enums import (
    CALENDAR_STATUSES,
    WorkOrderStatus,
)
from workorder_engine.domain.work_orders.value_objects.time_window import TimeWindow
from workorder_engine.infrastructure.database.models import StatusHistoryEntry, WorkOrder
from workorder_engine.infrastructure.database.unit_of_work import (
    SqlModelUnitOfWork,
    UnitOfWorkFactory,
    unit_of_work_factory,
)

logger = logging.getLogger(__name__)


class ApplicationServiceBase(ABC):
    """
    Base class for application services.

    Provides the unit of work factory, the clock and the status transition
    helper shared by every use case that moves a work order.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory | None = None,
        clock: Clock | None = None,
        settings: Settings | None = None,
    ):
        """
        Args:
            uow_factory: Factory for creating unit of work instances
            clock: Time source, defaults to the system clock
            settings: Engine settings, defaults to the cached environment settings
        """
        self._uow_factory = uow_factory or unit_of_work_factory()
        self._clock = clock or SystemClock()
        self._settings = settings or get_settings()
        self._state_machine = StatusStateMachine()

    def now(self) -> datetime:
        return self._clock.now()

    @staticmethod
    def require_reason(reason: str | None, field_name: str = "reason") -> str:
        if reason is None or not reason.strip():
            raise ValidationError(field_name, reason, "a reason is required")
        return reason.strip()

    def record_change(self, uow: SqlModelUnitOfWork, change: StatusChange) -> StatusHistoryEntry:
        """Append the history entry describing a status change."""
        entry = StatusHistoryEntry(
            work_order_id=change.work_order_id,
            from_status=change.from_status,
            to_status=change.to_status,
            changed_by=change.changed_by,
            reason=change.reason,
            created_at=change.changed_at,
        )
        return uow.history.append(entry)

    def move(
        self,
        uow: SqlModelUnitOfWork,
        order: WorkOrder,
        target: WorkOrderStatus,
        actor_id: UUID,
        now: datetime,
        reason: str | None = None,
        force: bool = False,
        check_calendar: bool = True,
    ) -> StatusChange:
        """
        Transition a loaded order, then persist it and its history entry in `uow`.

        An order re-entering the calendar (from hold or rework) is checked
        against the technician's bookings and claims the calendar version,
        unless the caller already did so in this unit of work.

        Raises:
            InvalidTransitionError: If the target is not allowed from the current status
            ConflictingAssignmentError: If the re-entered window overlaps another booking
            ConcurrentModificationError: If the order or calendar changed since it was read
        """
        entering_calendar = (
            target in CALENDAR_STATUSES
            and WorkOrderStatus(order.status) not in CALENDAR_STATUSES
        )
        if entering_calendar and check_calendar:
            if not force:
                self._state_machine.ensure_allowed(order, target)
            self.claim_calendar(uow, order, order.assigned_technician_id, order.scheduled_window)
        if force:
            change = self._state_machine.force(order, target, actor_id, now, reason)
        else:
            change = self._state_machine.apply(order, target, actor_id, now, reason)
        uow.work_orders.save(order, now)
        self.record_change(uow, change)
        logger.info(
            "Work order status changed",
            extra={
                "work_order_id": str(order.id),
                "work_order_number": order.work_order_number,
                "actor_id": str(actor_id),
                "from_status": change.from_status.value if change.from_status else None,
                "to_status": change.to_status.value,
            },
        )
        return change

    @staticmethod
    def claim_calendar(
        uow: SqlModelUnitOfWork,
        order: WorkOrder,
        technician_id: UUID | None,
        window: TimeWindow | None,
    ) -> None:
        """Check `window` against the technician's bookings and claim the calendar."""
        if technician_id is None or window is None:
            return
        calendar_version = uow.calendars.read_version(technician_id)
        conflicts = uow.work_orders.find_calendar_conflicts(
            technician_id, window, exclude_ids={order.id}
        )
        if conflicts:
            logger.info(
                "Scheduling conflict",
                extra={
                    "work_order_id": str(order.id),
                    "technician_id": str(technician_id),
                    "conflicts": [str(c.id) for c in conflicts],
                },
            )
            raise ConflictingAssignmentError(technician_id, [c.id for c in conflicts])
        uow.calendars.claim(technician_id, calendar_version)

    @staticmethod
    def authorize_transition(actor: Actor, target: WorkOrderStatus, order: WorkOrder) -> None:
        authorize(actor, ACTION_FOR_STATUS[WorkOrderStatus(target)], order)

"""
Part reservation use cases.

Step operations move one line through the ledger; `replace_planned_lines`
applies a planning edit and keeps the order's parts estimate in sync.
"""

import logging
from datetime import datetime
from uuid import UUID

from workorder_engine.core.rbac import WorkOrderAction, authorize
from workorder_engine.domain.shared.exceptions import InvalidStateError
from workorder_engine.domain.work_orders.ports import Actor
from workorder_engine.domain.work_orders.services import PartLedger, PlannedLine
from workorder_engine.domain.work_orders.value_objects.enums import (
    PartReservationStatus,
    WorkOrderStatus,
)
from workorder_engine.infrastructure.database.models import PartReservation, WorkOrder
from workorder_engine.infrastructure.database.unit_of_work import SqlModelUnitOfWork

from ..dtos import PlannedLinesResult
from .base_service import ApplicationServiceBase

logger = logging.getLogger(__name__)

# Orders whose material list can no longer be edited
_FROZEN_STATUSES = frozenset(
    {
        WorkOrderStatus.CLOSED,
        WorkOrderStatus.CANCELLED,
        WorkOrderStatus.REJECTED,
    }
)


def apply_planned_lines(
    uow: SqlModelUnitOfWork,
    ledger: PartLedger,
    order: WorkOrder,
    lines: list[PlannedLine],
    now: datetime,
) -> PlannedLinesResult:
    """
    Diff `lines` against the order's stored lines and write the result.

    Only lines still `planned` are touched. The order's parts estimate and
    total are recomputed; the caller persists the order.
    """
    existing = uow.parts.for_work_order(order.id)
    diff = ledger.diff_planned_lines(existing, lines)
    by_id = {line.id: line for line in existing}

    updated = []
    for line_id, incoming in diff.to_update:
        stored = by_id[line_id]
        ledger.apply_planned_values(stored, incoming, now)
        uow.parts.save(stored)
        updated.append(line_id)

    deleted = []
    for line_id in diff.to_delete:
        uow.parts.delete(by_id[line_id])
        deleted.append(line_id)

    created = []
    for incoming in diff.to_insert:
        line = PartReservation(
            work_order_id=order.id,
            part_id=incoming.part_id,
            part_number=incoming.part_number,
            part_name=incoming.part_name,
            estimated_quantity=incoming.estimated_quantity,
            unit_cost=incoming.unit_cost,
            created_at=now,
        )
        line.recompute_total()
        uow.parts.save(line)
        created.append(line.id)

    parts_cost = ledger.parts_cost(uow.parts.for_work_order(order.id))
    order.set_estimates(parts_cost=parts_cost)
    return PlannedLinesResult(
        created=created,
        updated=updated,
        deleted=deleted,
        skipped=list(diff.skipped),
        estimated_parts_cost=parts_cost,
    )


class PartLedgerService(ApplicationServiceBase):
    """Application service for material lines on work orders."""

    def __init__(self, uow_factory=None, clock=None, settings=None):
        super().__init__(uow_factory, clock, settings)
        self._ledger = PartLedger()

    def list_lines(self, work_order_id: UUID, actor: Actor) -> list[PartReservation]:
        authorize(actor, WorkOrderAction.VIEW)
        with self._uow_factory() as uow:
            uow.work_orders.get_by_id_required(work_order_id)
            return uow.parts.for_work_order(work_order_id)

    def replace_planned_lines(
        self, work_order_id: UUID, lines: list[PlannedLine], actor: Actor
    ) -> PlannedLinesResult:
        """
        Replace the planned material list of an order.

        Raises:
            NotFoundError: If the order does not exist
            InvalidStateError: If the order is closed, cancelled or rejected
            ValidationError: If a quantity or cost is negative
        """
        authorize(actor, WorkOrderAction.MANAGE_PARTS)
        now = self.now()
        with self._uow_factory() as uow:
            order = uow.work_orders.get_by_id_required(work_order_id)
            self._ensure_editable(order)
            result = apply_planned_lines(uow, self._ledger, order, lines, now)
            uow.work_orders.save(order, now)

        logger.info(
            "Planned part lines replaced",
            extra={
                "work_order_id": str(work_order_id),
                "actor_id": str(actor.id),
                "created_count": len(result.created),
                "updated_count": len(result.updated),
                "deleted_count": len(result.deleted),
                "skipped_count": len(result.skipped),
            },
        )
        return result

    def reserve(self, line_id: UUID, quantity: float, actor: Actor) -> PartReservation:
        return self._advance(line_id, PartReservationStatus.RESERVED, quantity, actor)

    def issue(self, line_id: UUID, quantity: float, actor: Actor) -> PartReservation:
        return self._advance(line_id, PartReservationStatus.ISSUED, quantity, actor)

    def use(self, line_id: UUID, quantity: float, actor: Actor) -> PartReservation:
        return self._advance(line_id, PartReservationStatus.USED, quantity, actor)

    def return_part(self, line_id: UUID, quantity: float, actor: Actor) -> PartReservation:
        return self._advance(line_id, PartReservationStatus.RETURNED, quantity, actor)

    def _advance(
        self,
        line_id: UUID,
        target: PartReservationStatus,
        quantity: float,
        actor: Actor,
    ) -> PartReservation:
        authorize(actor, WorkOrderAction.MANAGE_PARTS)
        now = self.now()
        with self._uow_factory() as uow:
            line = uow.parts.get_by_id_required(line_id)
            order = uow.work_orders.get_by_id_required(line.work_order_id)
            self._ensure_editable(order)
            self._ledger.advance(line, target, quantity, actor.id, now)
            uow.parts.save(line)
            # returned lines leave the estimate, used lines reprice it
            parts_cost = self._ledger.parts_cost(uow.parts.for_work_order(order.id))
            if parts_cost != order.estimated_parts_cost:
                order.set_estimates(parts_cost=parts_cost)
                uow.work_orders.save(order, now)

        logger.info(
            "Part line advanced",
            extra={
                "line_id": str(line_id),
                "work_order_id": str(line.work_order_id),
                "status": target.value,
                "quantity": quantity,
                "actor_id": str(actor.id),
            },
        )
        return line

    @staticmethod
    def _ensure_editable(order: WorkOrder) -> None:
        status = WorkOrderStatus(order.status)
        if status in _FROZEN_STATUSES:
            raise InvalidStateError(
                f"Parts of work order {order.work_order_number} can no longer change",
                current_state=status.value,
                details={"work_order_id": str(order.id)},
            )

"""
Work order status state machine.

Applies one transition to a loaded record and describes the change so the
caller can persist the record and its history entry as one unit.
Authorization and persistence happen elsewhere.
"""

from datetime import datetime
from uuid import UUID

from ...shared.base import DomainService, ValueObject
from ...shared.exceptions import InvalidTransitionError
from ..value_objects.enums import WorkOrderStatus

# Target status -> (actor field, timestamp field) stamped on entry
STATUS_STAMPS: dict[WorkOrderStatus, tuple[str, str]] = {
    WorkOrderStatus.APPROVED: ("approved_by", "approved_at"),
    WorkOrderStatus.PLANNED: ("planned_by", "planned_at"),
    WorkOrderStatus.VERIFIED: ("verified_by", "verified_at"),
    WorkOrderStatus.CLOSED: ("closed_by", "closed_at"),
}


class StatusChange(ValueObject):
    work_order_id: UUID
    from_status: WorkOrderStatus | None
    to_status: WorkOrderStatus
    changed_by: UUID
    reason: str | None = None
    changed_at: datetime


class StatusStateMachine(DomainService):
    def ensure_allowed(self, work_order, target_status: WorkOrderStatus) -> None:
        """
        Raises:
            InvalidTransitionError: If target is not reachable from the current status
        """
        current = WorkOrderStatus(work_order.status)
        if not current.can_transition_to(target_status):
            raise InvalidTransitionError(work_order.id, current.value, target_status.value)

    def apply(
        self,
        work_order,
        target_status: WorkOrderStatus,
        actor_id: UUID,
        now: datetime,
        reason: str | None = None,
    ) -> StatusChange:
        """
        Move the record to `target_status`, stamping approval/planning/verification/closure.

        The record is left untouched when the transition is illegal.
        """
        target_status = WorkOrderStatus(target_status)
        self.ensure_allowed(work_order, target_status)
        return self.force(work_order, target_status, actor_id, now, reason)

    def force(
        self,
        work_order,
        target_status: WorkOrderStatus,
        actor_id: UUID,
        now: datetime,
        reason: str | None = None,
    ) -> StatusChange:
        """Write a status without consulting the transition table."""
        from_status = WorkOrderStatus(work_order.status)
        work_order.status = target_status
        stamp = STATUS_STAMPS.get(target_status)
        if stamp:
            actor_field, time_field = stamp
            setattr(work_order, actor_field, actor_id)
            setattr(work_order, time_field, now)
        return StatusChange(
            work_order_id=work_order.id,
            from_status=from_status,
            to_status=target_status,
            changed_by=actor_id,
            reason=reason,
            changed_at=now,
        )

"""
Role-Based Access Control

Authorization answers "may this actor invoke this operation at all". It is
checked at the service boundary before, and independently of, any state gating.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from uuid import UUID

from workorder_engine.domain.shared.exceptions import PermissionDeniedError
from workorder_engine.domain.work_orders.ports import Actor
from workorder_engine.domain.work_orders.value_objects.enums import WorkOrderStatus

logger = logging.getLogger(__name__)


class WorkOrderAction(str, Enum):
    CREATE = "work_order:create"
    VIEW = "work_order:view"
    APPROVE = "work_order:approve"
    REJECT = "work_order:reject"
    PLAN = "work_order:plan"
    SCHEDULE = "work_order:schedule"
    HOLD = "work_order:hold"
    EXECUTE = "work_order:execute"
    VERIFY = "work_order:verify"
    CLOSE = "work_order:close"
    CANCEL = "work_order:cancel"
    MANAGE_PARTS = "work_order:manage_parts"


class WorkOrderRole(str, Enum):
    REQUESTER = "requester"
    PLANNER = "planner"
    SCHEDULER = "scheduler"
    TECHNICIAN = "technician"
    SUPERVISOR = "supervisor"
    ADMIN = "admin"


ACTION_FOR_STATUS: dict[WorkOrderStatus, WorkOrderAction] = {
    WorkOrderStatus.APPROVED: WorkOrderAction.APPROVE,
    WorkOrderStatus.REJECTED: WorkOrderAction.REJECT,
    WorkOrderStatus.PLANNED: WorkOrderAction.PLAN,
    WorkOrderStatus.READY_TO_SCHEDULE: WorkOrderAction.PLAN,
    WorkOrderStatus.SCHEDULED: WorkOrderAction.SCHEDULE,
    WorkOrderStatus.ON_HOLD: WorkOrderAction.HOLD,
    WorkOrderStatus.IN_PROGRESS: WorkOrderAction.EXECUTE,
    WorkOrderStatus.COMPLETED: WorkOrderAction.EXECUTE,
    WorkOrderStatus.VERIFIED: WorkOrderAction.VERIFY,
    WorkOrderStatus.CLOSED: WorkOrderAction.CLOSE,
    WorkOrderStatus.CANCELLED: WorkOrderAction.CANCEL,
    WorkOrderStatus.REQUESTED: WorkOrderAction.CREATE,
}

_REQUESTER = {WorkOrderAction.CREATE, WorkOrderAction.VIEW}
_TECHNICIAN = _REQUESTER | {WorkOrderAction.EXECUTE, WorkOrderAction.HOLD}
_PLANNER = _REQUESTER | {
    WorkOrderAction.PLAN,
    WorkOrderAction.MANAGE_PARTS,
    WorkOrderAction.HOLD,
}
_SCHEDULER = _PLANNER | {WorkOrderAction.SCHEDULE}
_SUPERVISOR = _SCHEDULER | _TECHNICIAN | {
    WorkOrderAction.APPROVE,
    WorkOrderAction.REJECT,
    WorkOrderAction.VERIFY,
    WorkOrderAction.CLOSE,
    WorkOrderAction.CANCEL,
}

ROLE_PERMISSIONS: dict[WorkOrderRole, frozenset[WorkOrderAction]] = {
    WorkOrderRole.REQUESTER: frozenset(_REQUESTER),
    WorkOrderRole.TECHNICIAN: frozenset(_TECHNICIAN),
    WorkOrderRole.PLANNER: frozenset(_PLANNER),
    WorkOrderRole.SCHEDULER: frozenset(_SCHEDULER),
    WorkOrderRole.SUPERVISOR: frozenset(_SUPERVISOR),
    WorkOrderRole.ADMIN: frozenset(WorkOrderAction),
}


@dataclass(frozen=True)
class RoleActor:
    """Actor whose capabilities come from a fixed role matrix."""

    id: UUID
    roles: frozenset[WorkOrderRole] = field(default_factory=frozenset)

    def can_perform(self, action: str, resource: Any) -> bool:
        return any(action in ROLE_PERMISSIONS[role] for role in self.roles)


def authorize(actor: Actor, action: WorkOrderAction, resource: Any = None) -> None:
    """
    Raise PermissionDeniedError unless the actor holds the capability.

    Raises:
        PermissionDeniedError: If actor.can_perform returns False
    """
    if not actor.can_perform(action.value, resource):
        logger.warning(
            "Permission denied",
            extra={"actor_id": str(actor.id), "action": action.value},
        )
        raise PermissionDeniedError(actor.id, action.value)

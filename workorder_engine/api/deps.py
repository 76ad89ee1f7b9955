"""
API dependencies.

Services are built per request from the collaborators stored on
`app.state` by `create_app`. The acting user comes from the
`X-Actor-Id` and `X-Actor-Roles` headers.
"""

import logging
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Request, status

from workorder_engine.application.services import (
    ExecutionService,
    PartLedgerService,
    SchedulingService,
    WorkOrderService,
)
from workorder_engine.core.rbac import RoleActor, WorkOrderRole

logger = logging.getLogger(__name__)


def get_current_actor(
    x_actor_id: Annotated[str | None, Header()] = None,
    x_actor_roles: Annotated[str | None, Header()] = None,
) -> RoleActor:
    if not x_actor_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="X-Actor-Id header required"
        )
    try:
        actor_id = UUID(x_actor_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="X-Actor-Id must be a UUID"
        )
    roles = set()
    for raw in (x_actor_roles or "").split(","):
        name = raw.strip().lower()
        if not name:
            continue
        try:
            roles.add(WorkOrderRole(name))
        except ValueError:
            logger.warning("Ignoring unknown role", extra={"role": name})
    return RoleActor(id=actor_id, roles=frozenset(roles))


def get_work_order_service(request: Request) -> WorkOrderService:
    state = request.app.state
    return WorkOrderService(state.uow_factory, state.clock, state.settings, state.checklist)


def get_execution_service(request: Request) -> ExecutionService:
    state = request.app.state
    return ExecutionService(state.uow_factory, state.clock, state.settings, state.checklist)


def get_part_ledger_service(request: Request) -> PartLedgerService:
    state = request.app.state
    return PartLedgerService(state.uow_factory, state.clock, state.settings)


def get_scheduling_service(request: Request) -> SchedulingService:
    state = request.app.state
    return SchedulingService(state.directory, state.uow_factory, state.clock, state.settings)


CurrentActor = Annotated[RoleActor, Depends(get_current_actor)]
WorkOrderServiceDep = Annotated[WorkOrderService, Depends(get_work_order_service)]
ExecutionServiceDep = Annotated[ExecutionService, Depends(get_execution_service)]
PartLedgerServiceDep = Annotated[PartLedgerService, Depends(get_part_ledger_service)]
SchedulingServiceDep = Annotated[SchedulingService, Depends(get_scheduling_service)]

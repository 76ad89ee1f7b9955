"""
Work order lifecycle routes.

Creation, status transitions, planning and per-order reads.
"""

from uuid import UUID

from fastapi import APIRouter, status

from workorder_engine.api.deps import (
    CurrentActor,
    PartLedgerServiceDep,
    WorkOrderServiceDep,
)
from workorder_engine.application.dtos import (
    PartReservationPublic,
    PlannedLinesResult,
    PlanningRequest,
    ReasonRequest,
    StatusHistoryPublic,
    TransitionRequest,
    WorkOrderCreate,
    WorkOrderPublic,
    WorkOrderStatistics,
)
from workorder_engine.domain.work_orders.services import PlannedLine

router = APIRouter(prefix="/work-orders", tags=["work-orders"])


@router.post(
    "/",
    summary="Create work order",
    response_model=WorkOrderPublic,
    status_code=status.HTTP_201_CREATED,
    responses={
        403: {"description": "Insufficient permissions"},
        404: {"description": "Unknown type or related order"},
    },
)
def create_work_order(
    request: WorkOrderCreate, actor: CurrentActor, service: WorkOrderServiceDep
) -> WorkOrderPublic:
    return WorkOrderPublic.model_validate(service.create(request, actor))


@router.get("/{work_order_id}", response_model=WorkOrderPublic)
def get_work_order(
    work_order_id: UUID, actor: CurrentActor, service: WorkOrderServiceDep
) -> WorkOrderPublic:
    return WorkOrderPublic.model_validate(service.get(work_order_id, actor))


@router.post(
    "/{work_order_id}/transition",
    summary="Change work order status",
    response_model=WorkOrderPublic,
    responses={409: {"description": "Transition not allowed or concurrent update"}},
)
def transition_work_order(
    work_order_id: UUID,
    request: TransitionRequest,
    actor: CurrentActor,
    service: WorkOrderServiceDep,
) -> WorkOrderPublic:
    order = service.transition(work_order_id, request.target_status, actor, request.reason)
    return WorkOrderPublic.model_validate(order)


@router.post("/{work_order_id}/approve", response_model=WorkOrderPublic)
def approve_work_order(
    work_order_id: UUID,
    request: ReasonRequest,
    actor: CurrentActor,
    service: WorkOrderServiceDep,
) -> WorkOrderPublic:
    return WorkOrderPublic.model_validate(service.approve(work_order_id, actor, request.reason))


@router.post("/{work_order_id}/reject", response_model=WorkOrderPublic)
def reject_work_order(
    work_order_id: UUID,
    request: ReasonRequest,
    actor: CurrentActor,
    service: WorkOrderServiceDep,
) -> WorkOrderPublic:
    return WorkOrderPublic.model_validate(service.reject(work_order_id, actor, request.reason))


@router.post("/{work_order_id}/hold", response_model=WorkOrderPublic)
def hold_work_order(
    work_order_id: UUID,
    request: ReasonRequest,
    actor: CurrentActor,
    service: WorkOrderServiceDep,
) -> WorkOrderPublic:
    return WorkOrderPublic.model_validate(service.hold(work_order_id, actor, request.reason))


@router.post("/{work_order_id}/resume", response_model=WorkOrderPublic)
def resume_work_order(
    work_order_id: UUID,
    request: TransitionRequest,
    actor: CurrentActor,
    service: WorkOrderServiceDep,
) -> WorkOrderPublic:
    order = service.resume_from_hold(
        work_order_id, request.target_status, actor, request.reason
    )
    return WorkOrderPublic.model_validate(order)


@router.post("/{work_order_id}/cancel", response_model=WorkOrderPublic)
def cancel_work_order(
    work_order_id: UUID,
    request: ReasonRequest,
    actor: CurrentActor,
    service: WorkOrderServiceDep,
) -> WorkOrderPublic:
    return WorkOrderPublic.model_validate(service.cancel(work_order_id, actor, request.reason))


@router.post("/{work_order_id}/verify", response_model=WorkOrderPublic)
def verify_work_order(
    work_order_id: UUID,
    request: ReasonRequest,
    actor: CurrentActor,
    service: WorkOrderServiceDep,
) -> WorkOrderPublic:
    return WorkOrderPublic.model_validate(service.verify(work_order_id, actor, request.reason))


@router.post("/{work_order_id}/close", response_model=WorkOrderPublic)
def close_work_order(
    work_order_id: UUID,
    request: ReasonRequest,
    actor: CurrentActor,
    service: WorkOrderServiceDep,
) -> WorkOrderPublic:
    return WorkOrderPublic.model_validate(service.close(work_order_id, actor, request.reason))


@router.post("/{work_order_id}/plan", response_model=WorkOrderPublic)
def plan_work_order(
    work_order_id: UUID,
    request: PlanningRequest,
    actor: CurrentActor,
    service: WorkOrderServiceDep,
) -> WorkOrderPublic:
    return WorkOrderPublic.model_validate(service.plan(work_order_id, request, actor))


@router.post("/{work_order_id}/complete-planning", response_model=WorkOrderPublic)
def complete_planning(
    work_order_id: UUID,
    request: ReasonRequest,
    actor: CurrentActor,
    service: WorkOrderServiceDep,
) -> WorkOrderPublic:
    order = service.complete_planning(work_order_id, actor, request.reason)
    return WorkOrderPublic.model_validate(order)


@router.get("/{work_order_id}/parts", response_model=list[PartReservationPublic])
def list_part_lines(
    work_order_id: UUID, actor: CurrentActor, service: PartLedgerServiceDep
) -> list[PartReservationPublic]:
    return [
        PartReservationPublic.model_validate(line)
        for line in service.list_lines(work_order_id, actor)
    ]


@router.put(
    "/{work_order_id}/parts",
    summary="Replace planned part lines",
    response_model=PlannedLinesResult,
)
def replace_planned_lines(
    work_order_id: UUID,
    lines: list[PlannedLine],
    actor: CurrentActor,
    service: PartLedgerServiceDep,
) -> PlannedLinesResult:
    return service.replace_planned_lines(work_order_id, lines, actor)


@router.get("/{work_order_id}/history", response_model=list[StatusHistoryPublic])
def get_history(
    work_order_id: UUID, actor: CurrentActor, service: WorkOrderServiceDep
) -> list[StatusHistoryPublic]:
    return [
        StatusHistoryPublic.model_validate(entry)
        for entry in service.history(work_order_id, actor)
    ]


@router.get("/{work_order_id}/time-in-status", response_model=dict[str, float])
def get_time_in_status(
    work_order_id: UUID, actor: CurrentActor, service: WorkOrderServiceDep
) -> dict[str, float]:
    return service.time_in_status(work_order_id, actor)


@router.get("/{work_order_id}/statistics", response_model=WorkOrderStatistics)
def get_statistics(
    work_order_id: UUID, actor: CurrentActor, service: WorkOrderServiceDep
) -> WorkOrderStatistics:
    return service.statistics(work_order_id, actor)


@router.post("/{work_order_id}/priority", response_model=WorkOrderPublic)
def refresh_priority(
    work_order_id: UUID, actor: CurrentActor, service: WorkOrderServiceDep
) -> WorkOrderPublic:
    return WorkOrderPublic.model_validate(service.refresh_priority_score(work_order_id, actor))

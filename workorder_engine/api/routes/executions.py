"""Execution routes nested under a work order."""

from uuid import UUID

from fastapi import APIRouter, status

from workorder_engine.api.deps import CurrentActor, ExecutionServiceDep
from workorder_engine.application.dtos import (
    CompletionRequest,
    ExecutionPublic,
    ExecutionStats,
    ReasonRequest,
    TaskAnswer,
    TaskResponsePublic,
    WorkOrderPublic,
)

router = APIRouter(prefix="/work-orders/{work_order_id}/execution", tags=["execution"])


@router.get("", response_model=ExecutionPublic)
def get_execution(
    work_order_id: UUID, actor: CurrentActor, service: ExecutionServiceDep
) -> ExecutionPublic:
    return ExecutionPublic.model_validate(service.get(work_order_id, actor))


@router.post(
    "/start",
    response_model=ExecutionPublic,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"description": "Work order is not scheduled"}},
)
def start_execution(
    work_order_id: UUID, actor: CurrentActor, service: ExecutionServiceDep
) -> ExecutionPublic:
    return ExecutionPublic.model_validate(service.start(work_order_id, actor))


@router.post("/pause", response_model=ExecutionPublic)
def pause_execution(
    work_order_id: UUID, actor: CurrentActor, service: ExecutionServiceDep
) -> ExecutionPublic:
    return ExecutionPublic.model_validate(service.pause(work_order_id, actor))


@router.post("/resume", response_model=ExecutionPublic)
def resume_execution(
    work_order_id: UUID, actor: CurrentActor, service: ExecutionServiceDep
) -> ExecutionPublic:
    return ExecutionPublic.model_validate(service.resume(work_order_id, actor))


@router.post("/responses", response_model=TaskResponsePublic)
def submit_task_response(
    work_order_id: UUID,
    answer: TaskAnswer,
    actor: CurrentActor,
    service: ExecutionServiceDep,
) -> TaskResponsePublic:
    response = service.submit_task_response(
        work_order_id, answer.task_id, answer.response, actor
    )
    return TaskResponsePublic.model_validate(response)


@router.post(
    "/complete",
    response_model=ExecutionPublic,
    responses={409: {"description": "Required checklist items unanswered"}},
)
def complete_execution(
    work_order_id: UUID,
    request: CompletionRequest,
    actor: CurrentActor,
    service: ExecutionServiceDep,
) -> ExecutionPublic:
    return ExecutionPublic.model_validate(service.complete(work_order_id, actor, request))


@router.post(
    "/cancel",
    summary="Cancel execution",
    description="Deletes the execution and its timing data, reverting the order to approved.",
    response_model=WorkOrderPublic,
)
def cancel_execution(
    work_order_id: UUID,
    request: ReasonRequest,
    actor: CurrentActor,
    service: ExecutionServiceDep,
) -> WorkOrderPublic:
    order = service.cancel_execution(work_order_id, actor, request.reason)
    return WorkOrderPublic.model_validate(order)


@router.get("/stats", response_model=ExecutionStats)
def get_execution_stats(
    work_order_id: UUID, actor: CurrentActor, service: ExecutionServiceDep
) -> ExecutionStats:
    return service.stats(work_order_id, actor)

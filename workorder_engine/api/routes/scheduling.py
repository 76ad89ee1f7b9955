"""
Scheduling routes.

Availability, calendar and workload are read projections; schedule and
batch write; optimize only proposes a plan.
"""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Query

from workorder_engine.api.deps import CurrentActor, SchedulingServiceDep
from workorder_engine.application.dtos import (
    AvailabilityResult,
    BatchResult,
    BatchScheduleRequest,
    CalendarView,
    OptimizationPlan,
    OptimizeRequest,
    ScheduleRequest,
    UtilizationReport,
    WorkOrderPublic,
)
from workorder_engine.core.rbac import WorkOrderAction, authorize

router = APIRouter(prefix="/scheduling", tags=["scheduling"])


@router.get("/availability", response_model=AvailabilityResult)
def check_availability(
    actor: CurrentActor,
    service: SchedulingServiceDep,
    technician_id: UUID,
    start: datetime,
    end: datetime,
) -> AvailabilityResult:
    authorize(actor, WorkOrderAction.VIEW)
    return service.check_availability(technician_id, start, end)


@router.post(
    "/work-orders/{work_order_id}",
    summary="Schedule one work order",
    response_model=WorkOrderPublic,
    responses={409: {"description": "Technician already booked or order not schedulable"}},
)
def schedule_work_order(
    work_order_id: UUID,
    request: ScheduleRequest,
    actor: CurrentActor,
    service: SchedulingServiceDep,
) -> WorkOrderPublic:
    order = service.schedule_one(
        work_order_id,
        request.start,
        request.end,
        actor,
        technician_id=request.technician_id,
        team_id=request.team_id,
    )
    return WorkOrderPublic.model_validate(order)


@router.post("/batch", response_model=BatchResult)
def schedule_batch(
    request: BatchScheduleRequest, actor: CurrentActor, service: SchedulingServiceDep
) -> BatchResult:
    return service.schedule_batch(request.assignments, actor)


@router.get("/calendar", response_model=CalendarView)
def get_calendar(
    actor: CurrentActor,
    service: SchedulingServiceDep,
    start: datetime,
    end: datetime,
    technician_id: UUID | None = Query(None),
    team_id: UUID | None = Query(None),
    asset_id: UUID | None = Query(None),
) -> CalendarView:
    authorize(actor, WorkOrderAction.VIEW)
    return service.calendar(start, end, technician_id, team_id, asset_id)


@router.get("/workload/{technician_id}", response_model=UtilizationReport)
def get_workload(
    technician_id: UUID,
    actor: CurrentActor,
    service: SchedulingServiceDep,
    start: datetime,
    end: datetime,
) -> UtilizationReport:
    authorize(actor, WorkOrderAction.VIEW)
    return service.workload(technician_id, start, end)


@router.post("/optimize", response_model=OptimizationPlan)
def optimize(
    request: OptimizeRequest, actor: CurrentActor, service: SchedulingServiceDep
) -> OptimizationPlan:
    return service.optimize(
        request.work_order_ids, request.technician_ids, request.start, request.end, actor
    )

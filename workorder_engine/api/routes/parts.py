"""Part line ledger routes."""

from uuid import UUID

from fastapi import APIRouter

from workorder_engine.api.deps import CurrentActor, PartLedgerServiceDep
from workorder_engine.application.dtos import PartReservationPublic, QuantityRequest

router = APIRouter(prefix="/part-lines", tags=["parts"])


@router.post("/{line_id}/reserve", response_model=PartReservationPublic)
def reserve_part(
    line_id: UUID, request: QuantityRequest, actor: CurrentActor, service: PartLedgerServiceDep
) -> PartReservationPublic:
    return PartReservationPublic.model_validate(service.reserve(line_id, request.quantity, actor))


@router.post("/{line_id}/issue", response_model=PartReservationPublic)
def issue_part(
    line_id: UUID, request: QuantityRequest, actor: CurrentActor, service: PartLedgerServiceDep
) -> PartReservationPublic:
    return PartReservationPublic.model_validate(service.issue(line_id, request.quantity, actor))


@router.post("/{line_id}/use", response_model=PartReservationPublic)
def use_part(
    line_id: UUID, request: QuantityRequest, actor: CurrentActor, service: PartLedgerServiceDep
) -> PartReservationPublic:
    return PartReservationPublic.model_validate(service.use(line_id, request.quantity, actor))


@router.post("/{line_id}/return", response_model=PartReservationPublic)
def return_part(
    line_id: UUID, request: QuantityRequest, actor: CurrentActor, service: PartLedgerServiceDep
) -> PartReservationPublic:
    line = service.return_part(line_id, request.quantity, actor)
    return PartReservationPublic.model_validate(line)

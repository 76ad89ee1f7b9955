"""Part reservation line repository."""

from uuid import UUID

from sqlmodel import select

from workorder_engine.domain.work_orders.value_objects.enums import PartReservationStatus
from workorder_engine.infrastructure.database.models import PartReservation

from .base import BaseRepository


class PartReservationRepository(BaseRepository[PartReservation]):
    @property
    def entity_class(self):
        return PartReservation

    def for_work_order(
        self, work_order_id: UUID, status: PartReservationStatus | None = None
    ) -> list[PartReservation]:
        statement = select(PartReservation).where(
            PartReservation.work_order_id == work_order_id
        )
        if status is not None:
            statement = statement.where(PartReservation.status == status)
        statement = statement.order_by(PartReservation.created_at, PartReservation.id)
        return list(self.session.exec(statement).all())

    def save(self, line: PartReservation) -> PartReservation:
        return self.add(line)

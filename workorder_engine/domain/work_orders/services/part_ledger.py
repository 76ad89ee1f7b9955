"""
Part reservation ledger rules.

Lines move forward only (planned -> reserved -> issued -> used) and may be
returned from any committed state. Planning edits touch `planned` lines only.
"""

from datetime import datetime
from uuid import UUID

from ...shared.base import DomainService, ValueObject
from ...shared.exceptions import InvalidStateError, ValidationError
from ..value_objects.enums import PartReservationStatus

# Target status -> (quantity field, actor field, timestamp field)
_STEP_FIELDS: dict[PartReservationStatus, tuple[str, str, str]] = {
    PartReservationStatus.RESERVED: ("reserved_quantity", "reserved_by", "reserved_at"),
    PartReservationStatus.ISSUED: ("issued_quantity", "issued_by", "issued_at"),
    PartReservationStatus.USED: ("used_quantity", "used_by", "used_at"),
    PartReservationStatus.RETURNED: ("returned_quantity", "returned_by", "returned_at"),
}


class PlannedLine(ValueObject):
    """Incoming line of a planning edit. Lines without an id are new."""

    id: UUID | None = None
    part_id: UUID | None = None
    part_number: str | None = None
    part_name: str
    estimated_quantity: float
    unit_cost: float = 0.0


class PlannedLineDiff(ValueObject):
    to_update: list[tuple[UUID, PlannedLine]] = []
    to_insert: list[PlannedLine] = []
    to_delete: list[UUID] = []
    skipped: list[UUID] = []


def validate_quantity(field_name: str, quantity: float) -> None:
    if quantity is None or quantity < 0:
        raise ValidationError(field_name, quantity, "must be a non-negative number")


class PartLedger(DomainService):
    def advance(
        self,
        line,
        target_status: PartReservationStatus,
        quantity: float,
        actor_id: UUID,
        now: datetime,
    ) -> None:
        """
        Move one line forward, stamping actor and time and recomputing cost.

        Raises:
            ValidationError: If quantity is negative
            InvalidStateError: If the step is not allowed from the line's status
        """
        validate_quantity("quantity", quantity)
        current = PartReservationStatus(line.status)
        if not current.can_transition_to(target_status):
            raise InvalidStateError(
                f"Part line cannot move from {current.value} to {target_status.value}",
                current_state=current.value,
                details={"line_id": str(line.id), "attempted": target_status.value},
            )
        quantity_field, actor_field, time_field = _STEP_FIELDS[target_status]
        setattr(line, quantity_field, quantity)
        setattr(line, actor_field, actor_id)
        setattr(line, time_field, now)
        line.status = target_status
        line.updated_at = now
        line.recompute_total()

    def diff_planned_lines(self, existing: list, incoming: list[PlannedLine]) -> PlannedLineDiff:
        """
        Compare a planning edit with the stored lines.

        Only `planned` lines are updated or deleted; ids pointing at lines already
        reserved/issued/used/returned are reported as skipped.
        """
        for line in incoming:
            validate_quantity("estimated_quantity", line.estimated_quantity)
            validate_quantity("unit_cost", line.unit_cost)

        by_id = {line.id: line for line in existing}
        incoming_ids = {line.id for line in incoming if line.id is not None}
        to_update: list[tuple[UUID, PlannedLine]] = []
        to_insert: list[PlannedLine] = []
        skipped: list[UUID] = []

        for line in incoming:
            stored = by_id.get(line.id) if line.id is not None else None
            if stored is None:
                to_insert.append(line)
            elif PartReservationStatus(stored.status) == PartReservationStatus.PLANNED:
                to_update.append((stored.id, line))
            else:
                skipped.append(stored.id)

        to_delete = [
            stored.id
            for stored in existing
            if stored.id not in incoming_ids
            and PartReservationStatus(stored.status) == PartReservationStatus.PLANNED
        ]
        return PlannedLineDiff(
            to_update=to_update, to_insert=to_insert, to_delete=to_delete, skipped=skipped
        )

    def apply_planned_values(self, line, incoming: PlannedLine, now: datetime) -> None:
        line.part_id = incoming.part_id
        line.part_number = incoming.part_number
        line.part_name = incoming.part_name
        line.estimated_quantity = incoming.estimated_quantity
        line.unit_cost = incoming.unit_cost
        line.updated_at = now
        line.recompute_total()

    def parts_cost(self, lines: list) -> float:
        """Estimated parts cost: sum of every line that has not been returned."""
        total = sum(
            line.total_cost
            for line in lines
            if PartReservationStatus(line.status) != PartReservationStatus.RETURNED
        )
        return round(total, 2)

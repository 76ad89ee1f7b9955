from datetime import datetime
from uuid import uuid4

import pytest

from workorder_engine.domain.shared.exceptions import InvalidStateError, ValidationError
from workorder_engine.domain.work_orders.services import PartLedger, PlannedLine
from workorder_engine.domain.work_orders.value_objects.enums import PartReservationStatus as P
from workorder_engine.infrastructure.database.models import PartReservation

NOW = datetime(2024, 3, 4, 8, 0)


def make_line(status: P = P.PLANNED, quantity: float = 2, unit_cost: float = 10.0):
    line = PartReservation(
        work_order_id=uuid4(),
        part_name="Bearing 6204",
        status=status,
        estimated_quantity=quantity,
        unit_cost=unit_cost,
    )
    line.recompute_total()
    return line


class TestAdvance:
    def test_forward_chain_stamps_each_step(self):
        ledger = PartLedger()
        line = make_line()
        actor = uuid4()

        ledger.advance(line, P.RESERVED, 2, actor, NOW)
        ledger.advance(line, P.ISSUED, 2, actor, NOW)
        ledger.advance(line, P.USED, 1.5, actor, NOW)

        assert line.status == P.USED
        assert line.reserved_by == actor and line.reserved_at == NOW
        assert line.issued_quantity == 2
        assert line.used_quantity == 1.5
        assert line.total_cost == 15.0

    def test_total_uses_estimate_until_used(self):
        line = make_line(quantity=3, unit_cost=4.0)
        PartLedger().advance(line, P.RESERVED, 5, uuid4(), NOW)
        assert line.total_cost == 12.0

    @pytest.mark.parametrize("source", [P.RESERVED, P.ISSUED, P.USED])
    def test_return_from_committed_states(self, source):
        line = make_line(status=source)
        PartLedger().advance(line, P.RETURNED, 1, uuid4(), NOW)
        assert line.status == P.RETURNED
        assert line.returned_quantity == 1

    @pytest.mark.parametrize(
        "source,target",
        [
            (P.PLANNED, P.ISSUED),
            (P.PLANNED, P.USED),
            (P.PLANNED, P.RETURNED),
            (P.ISSUED, P.RESERVED),
            (P.USED, P.ISSUED),
            (P.RETURNED, P.RESERVED),
        ],
    )
    def test_illegal_steps(self, source, target):
        line = make_line(status=source)
        with pytest.raises(InvalidStateError):
            PartLedger().advance(line, target, 1, uuid4(), NOW)
        assert line.status == source

    def test_negative_quantity(self):
        line = make_line()
        with pytest.raises(ValidationError):
            PartLedger().advance(line, P.RESERVED, -1, uuid4(), NOW)
        assert line.status == P.PLANNED


class TestPlannedLineDiff:
    def test_only_planned_lines_are_editable(self):
        ledger = PartLedger()
        keep = make_line()
        drop = make_line()
        reserved = make_line(status=P.RESERVED)
        reserved_missing = make_line(status=P.ISSUED)
        incoming = [
            PlannedLine(id=keep.id, part_name="Bearing 6204", estimated_quantity=4),
            PlannedLine(id=reserved.id, part_name="Changed", estimated_quantity=9),
            PlannedLine(part_name="Seal kit", estimated_quantity=1, unit_cost=30),
        ]

        diff = ledger.diff_planned_lines([keep, drop, reserved, reserved_missing], incoming)

        assert [line_id for line_id, _ in diff.to_update] == [keep.id]
        assert diff.to_delete == [drop.id]
        assert diff.skipped == [reserved.id]
        assert [line.part_name for line in diff.to_insert] == ["Seal kit"]

    def test_unknown_id_is_inserted(self):
        incoming = [PlannedLine(id=uuid4(), part_name="Belt", estimated_quantity=1)]
        diff = PartLedger().diff_planned_lines([], incoming)
        assert len(diff.to_insert) == 1

    def test_rejects_negative_quantities(self):
        with pytest.raises(ValidationError):
            PartLedger().diff_planned_lines(
                [], [PlannedLine(part_name="Belt", estimated_quantity=-2)]
            )

    def test_parts_cost_skips_returned(self):
        lines = [make_line(quantity=2, unit_cost=10), make_line(status=P.RETURNED)]
        assert PartLedger().parts_cost(lines) == 20.0

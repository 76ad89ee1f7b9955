"""
Greedy technician assignment.

Intentionally a deterministic heuristic rather than a solver: orders are taken
by priority score (desc), due date (asc, undated last) and number; each goes to
the technician with the lowest current projected utilization that still has
capacity and a free slot in the window. Identical inputs give identical plans.
"""

from datetime import datetime, timedelta
from uuid import UUID

from ...shared.base import DomainService, ValueObject
from ..value_objects.time_window import TimeWindow
from .capacity import weekend_blocks

_EPSILON = 1e-9


class OptimizationCandidate(ValueObject):
    work_order_id: UUID
    work_order_number: str
    priority_score: int
    due_date: datetime | None = None
    estimated_hours: float


class TechnicianLoad(ValueObject):
    technician_id: UUID
    capacity_hours: float
    committed_hours: float = 0.0
    busy: list[TimeWindow] = []

    @property
    def utilization(self) -> float:
        if self.capacity_hours <= 0:
            return float("inf")
        return self.committed_hours / self.capacity_hours


class PlannedAssignment(ValueObject):
    work_order_id: UUID
    work_order_number: str
    technician_id: UUID
    start: datetime
    end: datetime
    priority_score: int
    utilization_before: float


class UnassignedOrder(ValueObject):
    work_order_id: UUID
    work_order_number: str | None = None
    reason: str


def candidate_sort_key(candidate: OptimizationCandidate) -> tuple:
    return (
        -candidate.priority_score,
        candidate.due_date is None,
        candidate.due_date or datetime.max,
        candidate.work_order_number,
    )


def earliest_slot(
    busy: list[TimeWindow], window: TimeWindow, hours: float
) -> TimeWindow | None:
    """
    First gap in `window` of the given length that avoids every busy interval.

    Weekends count as busy, matching the weekday-only capacity model.
    """
    duration = timedelta(hours=hours)
    cursor = window.start
    for interval in sorted([*busy, *weekend_blocks(window)], key=lambda w: (w.start, w.end)):
        if interval.end <= cursor:
            continue
        if interval.start - cursor >= duration:
            break
        cursor = max(cursor, interval.end)
    if window.end - cursor >= duration:
        return TimeWindow(start=cursor, end=cursor + duration)
    return None


class AssignmentOptimizer(DomainService):
    def optimize(
        self,
        candidates: list[OptimizationCandidate],
        technicians: list[TechnicianLoad],
        window: TimeWindow,
    ) -> tuple[list[PlannedAssignment], list[UnassignedOrder], list[TechnicianLoad]]:
        committed = {t.technician_id: t.committed_hours for t in technicians}
        busy = {t.technician_id: list(t.busy) for t in technicians}
        capacity = {t.technician_id: t.capacity_hours for t in technicians}

        assigned: list[PlannedAssignment] = []
        unassigned: list[UnassignedOrder] = []

        for candidate in sorted(candidates, key=candidate_sort_key):
            best: tuple[float, UUID, TimeWindow] | None = None
            saw_capacity = False
            for technician in technicians:
                tech_id = technician.technician_id
                remaining = capacity[tech_id] - committed[tech_id]
                if remaining + _EPSILON < candidate.estimated_hours:
                    continue
                saw_capacity = True
                slot = earliest_slot(busy[tech_id], window, candidate.estimated_hours)
                if slot is None:
                    continue
                utilization = (
                    committed[tech_id] / capacity[tech_id]
                    if capacity[tech_id] > 0
                    else float("inf")
                )
                if best is None or utilization < best[0]:
                    best = (utilization, tech_id, slot)

            if best is None:
                reason = (
                    "no technician has a free slot of the required length"
                    if saw_capacity
                    else "no technician has enough remaining capacity"
                )
                unassigned.append(
                    UnassignedOrder(
                        work_order_id=candidate.work_order_id,
                        work_order_number=candidate.work_order_number,
                        reason=reason,
                    )
                )
                continue

            utilization, tech_id, slot = best
            committed[tech_id] += candidate.estimated_hours
            busy[tech_id].append(slot)
            assigned.append(
                PlannedAssignment(
                    work_order_id=candidate.work_order_id,
                    work_order_number=candidate.work_order_number,
                    technician_id=tech_id,
                    start=slot.start,
                    end=slot.end,
                    priority_score=candidate.priority_score,
                    utilization_before=round(utilization, 4),
                )
            )

        final_loads = [
            TechnicianLoad(
                technician_id=t.technician_id,
                capacity_hours=t.capacity_hours,
                committed_hours=committed[t.technician_id],
                busy=busy[t.technician_id],
            )
            for t in technicians
        ]
        return assigned, unassigned, final_loads

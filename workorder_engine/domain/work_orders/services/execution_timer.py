"""
Execution timing rules.

Pause/resume are idempotent outside their source state so duplicate or retried
requests are harmless. Durations are counted in whole minutes.
"""

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from ...shared.base import DomainService
from ...shared.exceptions import InvalidStateError
from ..ports import ChecklistItem
from ..value_objects.enums import ExecutionStatus


def whole_minutes(start: datetime, end: datetime) -> int:
    if end <= start:
        return 0
    return int((end - start).total_seconds() // 60)


def minutes_to_hours(minutes: int) -> float:
    """Hours rounded half-up to two decimals."""
    hours = Decimal(max(0, minutes)) / Decimal(60)
    return float(hours.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class ExecutionTimer(DomainService):
    """State changes and projections for a WorkOrderExecution record."""

    def pause(self, execution, now: datetime) -> bool:
        """Returns False (no-op) unless the execution is running."""
        if ExecutionStatus(execution.status) != ExecutionStatus.IN_PROGRESS:
            return False
        execution.status = ExecutionStatus.PAUSED
        execution.paused_at = now
        return True

    def resume(self, execution, now: datetime) -> bool:
        """Returns False (no-op) unless the execution is paused."""
        if ExecutionStatus(execution.status) != ExecutionStatus.PAUSED:
            return False
        execution.total_pause_duration += whole_minutes(execution.paused_at, now)
        execution.paused_at = None
        execution.status = ExecutionStatus.IN_PROGRESS
        execution.resumed_at = now
        return True

    def complete(self, execution, now: datetime) -> float:
        """
        Close the timer and return actual hours.

        A paused execution has its open pause folded in first.

        Raises:
            InvalidStateError: If the execution is already completed
        """
        status = ExecutionStatus(execution.status)
        if status == ExecutionStatus.COMPLETED:
            raise InvalidStateError(
                "Execution is already completed", current_state=status.value
            )
        if status == ExecutionStatus.PAUSED:
            self.resume(execution, now)
        execution.status = ExecutionStatus.COMPLETED
        execution.completed_at = now
        return self.actual_hours(execution, now)

    def reopen(self, execution, now: datetime) -> bool:
        """
        Restart a completed execution for rework.

        The gap since completion is booked as pause time, so actual hours
        keep counting only the worked periods. Returns False unless completed.
        """
        if ExecutionStatus(execution.status) != ExecutionStatus.COMPLETED:
            return False
        execution.total_pause_duration += whole_minutes(execution.completed_at, now)
        execution.completed_at = None
        execution.status = ExecutionStatus.IN_PROGRESS
        execution.resumed_at = now
        return True

    def actual_minutes(self, execution, now: datetime) -> int:
        """Worked minutes: elapsed minus pauses, including a pause still open."""
        end = execution.completed_at or now
        paused = execution.total_pause_duration
        if execution.paused_at is not None:
            paused += whole_minutes(execution.paused_at, end)
        return max(0, whole_minutes(execution.started_at, end) - paused)

    def actual_hours(self, execution, now: datetime) -> float:
        return minutes_to_hours(self.actual_minutes(execution, now))

    def missing_required(
        self, items: list[ChecklistItem], answered_task_ids: set[str]
    ) -> list[str]:
        return [i.id for i in items if i.is_required and i.id not in answered_task_ids]

    def completion_percentage(
        self,
        execution_status: ExecutionStatus | None,
        items: list[ChecklistItem],
        answered_task_ids: set[str],
    ) -> int:
        completed = execution_status == ExecutionStatus.COMPLETED
        required = [i for i in items if i.is_required]
        if not required:
            return 100 if completed else 0
        answered = sum(1 for i in required if i.id in answered_task_ids)
        percentage = Decimal(100 * answered) / Decimal(len(required))
        return min(100, int(percentage.quantize(Decimal("1"), rounding=ROUND_HALF_UP)))

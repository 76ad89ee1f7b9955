from .assignment_optimizer import (
    AssignmentOptimizer,
    OptimizationCandidate,
    PlannedAssignment,
    TechnicianLoad,
    UnassignedOrder,
)
from .capacity import utilization_ratio, window_capacity_hours, working_days
from .execution_timer import ExecutionTimer, minutes_to_hours, whole_minutes
from .part_ledger import PartLedger, PlannedLine, PlannedLineDiff
from .priority_scorer import calculate_priority_score
from .status_machine import StatusChange, StatusStateMachine

__all__ = [
    "AssignmentOptimizer",
    "ExecutionTimer",
    "OptimizationCandidate",
    "PartLedger",
    "PlannedAssignment",
    "PlannedLine",
    "PlannedLineDiff",
    "StatusChange",
    "StatusStateMachine",
    "TechnicianLoad",
    "UnassignedOrder",
    "calculate_priority_score",
    "minutes_to_hours",
    "utilization_ratio",
    "whole_minutes",
    "window_capacity_hours",
    "working_days",
]

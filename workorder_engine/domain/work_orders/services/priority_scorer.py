"""
Priority scoring.

A pure function of the order's label, age and due date. It is advisory input
for scheduling order and never gates a transition.
"""

from datetime import datetime

from ..value_objects.enums import PriorityLevel

BASE_SCORE = 50
MAX_AGE_BONUS = 10
MAX_OVERDUE_BONUS = 20
OVERDUE_POINTS_PER_DAY = 2


def whole_days_between(earlier: datetime, later: datetime) -> int:
    """Whole elapsed days, truncated; zero when `later` is not after `earlier`."""
    if later <= earlier:
        return 0
    return (later - earlier).days


def calculate_priority_score(
    priority: PriorityLevel,
    created_at: datetime,
    now: datetime,
    due_date: datetime | None = None,
) -> int:
    score = BASE_SCORE + PriorityLevel(priority).score_weight
    score += min(MAX_AGE_BONUS, whole_days_between(created_at, now))
    if due_date is not None and due_date < now:
        days_overdue = whole_days_between(due_date, now)
        score += min(MAX_OVERDUE_BONUS, OVERDUE_POINTS_PER_DAY * days_overdue)
    return max(0, min(100, score))

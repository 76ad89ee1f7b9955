"""Working-time capacity of a technician over a window."""

from datetime import datetime, time, timedelta

from ..value_objects.time_window import TimeWindow

WEEKEND = {5, 6}


def window_capacity_hours(window: TimeWindow, daily_hours: float) -> float:
    """Sum over weekdays of min(daily hours, hours of the window on that day)."""
    total = 0.0
    for day in window.days():
        if day.weekday() in WEEKEND:
            continue
        total += min(daily_hours, window.hours_on(day))
    return round(total, 4)


def weekend_blocks(window: TimeWindow) -> list[TimeWindow]:
    """Weekend dates touched by the window, as whole-day busy intervals."""
    blocks = []
    for day in window.days():
        if day.weekday() in WEEKEND:
            start = datetime.combine(day, time.min)
            blocks.append(TimeWindow(start=start, end=start + timedelta(days=1)))
    return blocks


def working_days(window: TimeWindow) -> int:
    return sum(1 for day in window.days() if day.weekday() not in WEEKEND)


def utilization_ratio(committed_hours: float, capacity_hours: float) -> float:
    """Committed over capacity; a zero-capacity window reads as full once anything is booked."""
    if capacity_hours <= 0:
        return 0.0 if committed_hours <= 0 else 1.0
    return round(committed_hours / capacity_hours, 4)

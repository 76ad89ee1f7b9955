"""
Time Window Value Object

Half-open [start, end) interval used for scheduling slots, calendar ranges
and capacity windows.
"""

from datetime import date, datetime, time, timedelta, timezone

from ...shared.base import ValueObject
from ...shared.exceptions import ValidationError


def as_naive_utc(value: datetime) -> datetime:
    """Stored datetimes are naive UTC; aware inputs are converted."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class TimeWindow(ValueObject):
    """A half-open period between two naive UTC datetimes."""

    start: datetime
    end: datetime

    @classmethod
    def of(cls, start: datetime, end: datetime, field_name: str = "end") -> "TimeWindow":
        """
        Build a window, rejecting an end before the start.

        Raises:
            ValidationError: If end < start
        """
        if start is None or end is None:
            raise ValidationError(field_name, None, "start and end are required")
        start, end = as_naive_utc(start), as_naive_utc(end)
        if end < start:
            raise ValidationError(
                field_name, end.isoformat(), f"must not be before {start.isoformat()}"
            )
        return cls(start=start, end=end)

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    @property
    def duration_hours(self) -> float:
        return self.duration.total_seconds() / 3600

    def overlaps(self, other: "TimeWindow") -> bool:
        """Half-open overlap: back-to-back windows do not overlap."""
        return self.start < other.end and other.start < self.end

    def contains(self, other: "TimeWindow") -> bool:
        return self.start <= other.start and other.end <= self.end

    def days(self) -> list[date]:
        """Calendar dates touched by the window."""
        if self.end <= self.start:
            return []
        last = (self.end - timedelta(microseconds=1)).date()
        current = self.start.date()
        result = []
        while current <= last:
            result.append(current)
            current += timedelta(days=1)
        return result

    def hours_on(self, day: date) -> float:
        """Hours of this window falling on a calendar date."""
        day_start = datetime.combine(day, time.min)
        day_end = day_start + timedelta(days=1)
        start = max(self.start, day_start)
        end = min(self.end, day_end)
        if end <= start:
            return 0.0
        return (end - start).total_seconds() / 3600

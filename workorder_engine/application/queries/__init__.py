from .calendar import CalendarQuery
from .workload import WorkloadQuery

__all__ = ["CalendarQuery", "WorkloadQuery"]

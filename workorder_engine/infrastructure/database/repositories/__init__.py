from .base import BaseRepository
from .execution_repository import ExecutionRepository
from .part_repository import PartReservationRepository
from .work_order_repository import (
    DuplicateWorkOrderNumberError,
    StatusHistoryRepository,
    TechnicianCalendarRepository,
    WorkOrderRepository,
)

__all__ = [
    "BaseRepository",
    "DuplicateWorkOrderNumberError",
    "ExecutionRepository",
    "PartReservationRepository",
    "StatusHistoryRepository",
    "TechnicianCalendarRepository",
    "WorkOrderRepository",
]

from .execution_service import ExecutionService
from .part_ledger_service import PartLedgerService
from .scheduling_service import SchedulingService
from .work_order_service import WorkOrderService

__all__ = [
    "ExecutionService",
    "PartLedgerService",
    "SchedulingService",
    "WorkOrderService",
]

"""
Work order repository with optimistic version checks and calendar queries.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import func, or_, select

from workorder_engine.domain.shared.exceptions import (
    ConcurrentModificationError,
    RepositoryError,
)
from workorder_engine.domain.work_orders.value_objects.enums import (
    CALENDAR_STATUSES,
    WorkOrderStatus,
)
from workorder_engine.domain.work_orders.value_objects.time_window import TimeWindow
from workorder_engine.infrastructure.database.models import (
    StatusHistoryEntry,
    TechnicianCalendar,
    WorkOrder,
    WorkOrderType,
)

from .base import BaseRepository


class DuplicateWorkOrderNumberError(RepositoryError):
    """Raised when a generated number lost the race to another writer."""

    def __init__(self, number: str) -> None:
        super().__init__(f"Work order number already taken: {number}")
        self.number = number


class WorkOrderRepository(BaseRepository[WorkOrder]):
    """
    Repository implementation for WorkOrder records.

    Every update goes through `save`, which bumps `version` only if the row
    still carries the version that was read.
    """

    @property
    def entity_class(self):
        return WorkOrder

    def find_by_number(self, work_order_number: str) -> WorkOrder | None:
        statement = select(WorkOrder).where(
            WorkOrder.work_order_number == work_order_number
        )
        return self.session.exec(statement).first()

    def numbers_with_prefix(self, prefix: str) -> list[str]:
        try:
            statement = select(WorkOrder.work_order_number).where(
                WorkOrder.work_order_number.like(f"{prefix}%")  # type: ignore[attr-defined]
            )
            return list(self.session.exec(statement).all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"Error reading work order numbers: {str(e)}") from e

    def insert(self, order: WorkOrder) -> WorkOrder:
        """
        Insert a new work order.

        Raises:
            DuplicateWorkOrderNumberError: If the number is already taken
            RepositoryError: If database operation fails
        """
        try:
            self.session.add(order)
            self.session.flush()
            return order
        except IntegrityError as e:
            if "work_order_number" in str(e.orig).lower() or "unique" in str(e.orig).lower():
                raise DuplicateWorkOrderNumberError(order.work_order_number) from e
            raise RepositoryError(f"Integrity error inserting work order: {str(e)}") from e
        except SQLAlchemyError as e:
            raise RepositoryError(f"Database error inserting work order: {str(e)}") from e

    def save(self, order: WorkOrder, now: datetime) -> WorkOrder:
        """
        Persist changes, failing if another writer committed first.

        Raises:
            ConcurrentModificationError: If the stored version moved on
            RepositoryError: If database operation fails
        """
        table = WorkOrder.__table__  # type: ignore[attr-defined]
        expected = order.version
        try:
            result = self.session.connection().execute(
                update(table)
                .where(table.c.id == order.id, table.c.version == expected)
                .values(version=expected + 1)
            )
        except SQLAlchemyError as e:
            raise RepositoryError(f"Database error saving work order: {str(e)}") from e
        if result.rowcount != 1:
            raise ConcurrentModificationError("WorkOrder", order.id)
        order.version = expected + 1
        order.updated_at = now
        try:
            self.session.add(order)
            self.session.flush()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Database error saving work order: {str(e)}") from e
        return order

    def find_calendar_conflicts(
        self,
        technician_id: UUID,
        window: TimeWindow,
        exclude_ids: set[UUID] | None = None,
    ) -> list[WorkOrder]:
        """Scheduled/in-progress orders of a technician overlapping a half-open window."""
        statement = select(WorkOrder).where(
            WorkOrder.assigned_technician_id == technician_id,
            WorkOrder.status.in_(list(CALENDAR_STATUSES)),  # type: ignore[attr-defined]
            WorkOrder.scheduled_start < window.end,  # type: ignore[operator]
            WorkOrder.scheduled_end > window.start,  # type: ignore[operator]
        )
        conflicts = self.session.exec(statement).all()
        excluded = exclude_ids or set()
        return sorted(
            (o for o in conflicts if o.id not in excluded),
            key=lambda o: (o.scheduled_start, o.work_order_number),
        )

    def find_intersecting(
        self,
        window: TimeWindow,
        statuses: set[WorkOrderStatus] | None = None,
        technician_id: UUID | None = None,
        team_id: UUID | None = None,
        asset_id: UUID | None = None,
    ) -> list[WorkOrder]:
        """Orders whose scheduled window intersects [start, end)."""
        statement = select(WorkOrder).where(
            WorkOrder.scheduled_start.is_not(None),  # type: ignore[union-attr]
            WorkOrder.scheduled_end.is_not(None),  # type: ignore[union-attr]
            WorkOrder.scheduled_start < window.end,  # type: ignore[operator]
            or_(
                WorkOrder.scheduled_end > window.start,  # type: ignore[operator]
                WorkOrder.scheduled_start == window.start,
            ),
        )
        if statuses:
            statement = statement.where(WorkOrder.status.in_(list(statuses)))  # type: ignore[attr-defined]
        if technician_id is not None:
            statement = statement.where(WorkOrder.assigned_technician_id == technician_id)
        if team_id is not None:
            statement = statement.where(WorkOrder.assigned_team_id == team_id)
        if asset_id is not None:
            statement = statement.where(WorkOrder.asset_id == asset_id)
        statement = statement.order_by(WorkOrder.scheduled_start, WorkOrder.work_order_number)
        return list(self.session.exec(statement).all())

    def get_type(self, type_id: UUID) -> WorkOrderType | None:
        return self.session.get(WorkOrderType, type_id)

    def get_type_by_code(self, code: str) -> WorkOrderType | None:
        return self.session.exec(
            select(WorkOrderType).where(WorkOrderType.code == code)
        ).first()

    def add_type(self, work_order_type: WorkOrderType) -> WorkOrderType:
        self.session.add(work_order_type)
        self.session.flush()
        return work_order_type


class StatusHistoryRepository(BaseRepository[StatusHistoryEntry]):
    """Append-only access to the status history log."""

    @property
    def entity_class(self):
        return StatusHistoryEntry

    def append(self, entry: StatusHistoryEntry) -> StatusHistoryEntry:
        """Add an entry after the last one recorded for the same order."""
        statement = select(func.max(StatusHistoryEntry.sequence)).where(
            StatusHistoryEntry.work_order_id == entry.work_order_id
        )
        last = self.session.exec(statement).one()
        entry.sequence = (last or 0) + 1
        return self.add(entry)

    def delete(self, entity: StatusHistoryEntry) -> None:
        raise RepositoryError("Status history entries are immutable")

    def for_work_order(self, work_order_id: UUID) -> list[StatusHistoryEntry]:
        statement = (
            select(StatusHistoryEntry)
            .where(StatusHistoryEntry.work_order_id == work_order_id)
            .order_by(StatusHistoryEntry.sequence)
        )
        return list(self.session.exec(statement).all())


class TechnicianCalendarRepository(BaseRepository[TechnicianCalendar]):
    """Version rows used to serialise writes to one technician's calendar."""

    @property
    def entity_class(self):
        return TechnicianCalendar

    def read_version(self, technician_id: UUID) -> int | None:
        table = TechnicianCalendar.__table__  # type: ignore[attr-defined]
        row = self.session.connection().execute(
            select(table.c.version).where(table.c.technician_id == technician_id)
        ).first()
        return None if row is None else row[0]

    def claim(self, technician_id: UUID, read_version: int | None) -> None:
        """
        Advance the calendar version seen at read time.

        Raises:
            ConcurrentModificationError: If another writer claimed it first
        """
        table = TechnicianCalendar.__table__  # type: ignore[attr-defined]
        connection = self.session.connection()
        try:
            if read_version is None:
                connection.execute(
                    table.insert().values(technician_id=technician_id, version=1)
                )
                return
            result = connection.execute(
                update(table)
                .where(
                    table.c.technician_id == technician_id,
                    table.c.version == read_version,
                )
                .values(version=read_version + 1)
            )
        except IntegrityError as e:
            raise ConcurrentModificationError("TechnicianCalendar", technician_id) from e
        except SQLAlchemyError as e:
            raise RepositoryError(f"Database error claiming calendar: {str(e)}") from e
        if result.rowcount != 1:
            raise ConcurrentModificationError("TechnicianCalendar", technician_id)

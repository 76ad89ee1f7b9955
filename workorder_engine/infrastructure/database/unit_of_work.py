"""
Unit of Work implementation for managing transactions across repositories.

One unit of work is one database transaction: a status change and its history
entry, or a schedule write and its calendar claim, commit together or not at all.
"""

import logging
from collections.abc import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from workorder_engine.core.db import session_factory as default_session_factory
from workorder_engine.domain.shared.exceptions import RepositoryError

from .repositories import (
    ExecutionRepository,
    PartReservationRepository,
    StatusHistoryRepository,
    TechnicianCalendarRepository,
    WorkOrderRepository,
)

logger = logging.getLogger(__name__)


class SqlModelUnitOfWork:
    """
    SQLModel-based implementation of Unit of Work pattern.

    Commits on clean exit and rolls back when the block raises.
    """

    work_orders: WorkOrderRepository
    history: StatusHistoryRepository
    executions: ExecutionRepository
    parts: PartReservationRepository
    calendars: TechnicianCalendarRepository

    def __init__(self, session_factory: Callable[[], Session] | None = None):
        self._session_factory = session_factory or default_session_factory()
        self._session: Session | None = None

    def __enter__(self) -> "SqlModelUnitOfWork":
        self._session = self._session_factory()
        self.work_orders = WorkOrderRepository(self._session)
        self.history = StatusHistoryRepository(self._session)
        self.executions = ExecutionRepository(self._session)
        self.parts = PartReservationRepository(self._session)
        self.calendars = TechnicianCalendarRepository(self._session)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is not None:
                self.rollback()
            else:
                try:
                    self.commit()
                except Exception:
                    self.rollback()
                    raise
        finally:
            if self._session:
                self._session.close()
                self._session = None

    def commit(self) -> None:
        """
        Commit the current transaction.

        Raises:
            RepositoryError: If commit fails
        """
        if not self._session:
            raise RepositoryError("No active session to commit")
        try:
            self._session.commit()
        except SQLAlchemyError as e:
            logger.error("Transaction commit failed", exc_info=True)
            raise RepositoryError(f"Failed to commit transaction: {str(e)}") from e

    def rollback(self) -> None:
        if not self._session:
            return
        try:
            self._session.rollback()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Failed to rollback transaction: {str(e)}") from e

    @property
    def session(self) -> Session:
        if not self._session:
            raise RepositoryError("No active database session")
        return self._session


UnitOfWorkFactory = Callable[[], SqlModelUnitOfWork]


def unit_of_work_factory(
    session_factory: Callable[[], Session] | None = None,
) -> UnitOfWorkFactory:
    def _create() -> SqlModelUnitOfWork:
        return SqlModelUnitOfWork(session_factory)

    return _create

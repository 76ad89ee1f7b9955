"""Execution and checklist response repository."""

from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from workorder_engine.domain.shared.exceptions import RepositoryError
from workorder_engine.infrastructure.database.models import (
    TaskResponse,
    WorkOrderExecution,
)

from .base import BaseRepository


class ExecutionRepository(BaseRepository[WorkOrderExecution]):
    @property
    def entity_class(self):
        return WorkOrderExecution

    def for_work_order(self, work_order_id: UUID) -> WorkOrderExecution | None:
        statement = select(WorkOrderExecution).where(
            WorkOrderExecution.work_order_id == work_order_id
        )
        return self.session.exec(statement).first()

    def save(self, execution: WorkOrderExecution) -> WorkOrderExecution:
        return self.add(execution)

    def responses(self, execution_id: UUID) -> list[TaskResponse]:
        statement = (
            select(TaskResponse)
            .where(TaskResponse.execution_id == execution_id)
            .order_by(TaskResponse.created_at)
        )
        return list(self.session.exec(statement).all())

    def upsert_response(
        self, execution_id: UUID, task_id: str, response: str | None, responded_by: UUID
    ) -> TaskResponse:
        statement = select(TaskResponse).where(
            TaskResponse.execution_id == execution_id,
            TaskResponse.task_id == task_id,
        )
        existing = self.session.exec(statement).first()
        if existing is None:
            existing = TaskResponse(
                execution_id=execution_id,
                task_id=task_id,
                response=response,
                responded_by=responded_by,
            )
        else:
            existing.response = response
            existing.responded_by = responded_by
        self.session.add(existing)
        self.session.flush()
        return existing

    def delete_with_responses(self, execution: WorkOrderExecution) -> None:
        """Hard-delete an execution; its timing data is not kept."""
        try:
            for response in self.responses(execution.id):
                self.session.delete(response)
            self.session.flush()
            self.session.delete(execution)
            self.session.flush()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Database error deleting execution: {str(e)}") from e

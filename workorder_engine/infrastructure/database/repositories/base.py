"""
Shared lookup and persistence helpers for the work order repositories.

Repositories never commit; the unit of work owns the transaction boundary.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from workorder_engine.domain.shared.exceptions import NotFoundError, RepositoryError

EntityType = TypeVar("EntityType", bound=SQLModel)


class BaseRepository(Generic[EntityType], ABC):
    """Id lookups, bulk lookups and flushed add/delete for one SQLModel table."""

    def __init__(self, session: Session):
        self.session = session

    @property
    @abstractmethod
    def entity_class(self) -> type[EntityType]:
        """Table class this repository reads and writes."""
        pass

    @property
    def entity_name(self) -> str:
        return self.entity_class.__name__

    def get_by_id(self, entity_id: UUID) -> EntityType | None:
        try:
            return self.session.get(self.entity_class, entity_id)
        except SQLAlchemyError as e:
            raise RepositoryError(f"Database error during get_by_id: {str(e)}") from e

    def get_by_id_required(self, entity_id: UUID) -> EntityType:
        """
        Load a row by primary key.

        Raises:
            NotFoundError: If no row has this id
            RepositoryError: If the query fails
        """
        entity = self.get_by_id(entity_id)
        if entity is None:
            raise NotFoundError(self.entity_name, entity_id)
        return entity

    def list_by_ids(self, entity_ids: list[UUID]) -> list[EntityType]:
        if not entity_ids:
            return []
        try:
            statement = select(self.entity_class).where(
                self.entity_class.id.in_(entity_ids)  # type: ignore[attr-defined]
            )
            return list(self.session.exec(statement).all())
        except SQLAlchemyError as e:
            raise RepositoryError(f"Database error during list_by_ids: {str(e)}") from e

    def add(self, entity: EntityType) -> EntityType:
        try:
            self.session.add(entity)
            self.session.flush()
            return entity
        except SQLAlchemyError as e:
            raise RepositoryError(f"Database error during add: {str(e)}") from e

    def delete(self, entity: EntityType) -> None:
        try:
            self.session.delete(entity)
            self.session.flush()
        except SQLAlchemyError as e:
            raise RepositoryError(f"Database error during delete: {str(e)}") from e

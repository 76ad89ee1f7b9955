"""
Domain Exceptions

Typed outcomes of work order operations. Every error here is an expected,
user-facing result except RepositoryError, which wraps storage faults.
"""

from enum import Enum
from uuid import UUID

DetailValue = str | int | float | bool | None


class ErrorType(str, Enum):
    """Error type enumeration for discriminated unions."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INVALID_TRANSITION = "invalid_transition"
    INVALID_STATE = "invalid_state"
    CONCURRENCY = "concurrency"
    RESOURCE_CONFLICT = "resource_conflict"
    INCOMPLETE_TASKS = "incomplete_tasks"
    PERMISSION_DENIED = "permission_denied"
    REPOSITORY = "repository"


class DomainError(Exception):
    """Base class for all domain errors with type discrimination."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType,
        details: dict[str, DetailValue] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.details = details or {}

    def to_dict(self) -> dict[str, str | dict[str, DetailValue]]:
        """Convert error to dictionary for API responses."""
        return {
            "type": self.error_type.value,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(DomainError):
    """Raised when input is malformed. Always raised before any mutation."""

    def __init__(
        self,
        field_name: str,
        value: DetailValue | object,
        message: str,
        error_code: str | None = None,
    ) -> None:
        self.field_name = field_name
        self.value = value
        self.error_code = error_code or "VALIDATION_ERROR"
        super().__init__(
            f"Validation failed for field '{field_name}': {message}",
            ErrorType.VALIDATION,
            {
                "field": field_name,
                "value": str(value) if value is not None else None,
                "error_code": self.error_code,
            },
        )


class NotFoundError(DomainError):
    """Raised when an id does not resolve to a record."""

    def __init__(self, entity_type: str, entity_id: UUID | str) -> None:
        super().__init__(
            f"{entity_type} not found: {entity_id}",
            ErrorType.NOT_FOUND,
            {"entity_type": entity_type, "entity_id": str(entity_id)},
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class InvalidTransitionError(DomainError):
    """Raised when a target status is not in the current status' allowed set."""

    def __init__(
        self, work_order_id: UUID, current_status: str, attempted_status: str
    ) -> None:
        super().__init__(
            f"Cannot change work order {work_order_id} from {current_status} to {attempted_status}",
            ErrorType.INVALID_TRANSITION,
            {
                "work_order_id": str(work_order_id),
                "current_status": current_status,
                "attempted_status": attempted_status,
            },
        )
        self.work_order_id = work_order_id
        self.current_status = current_status
        self.attempted_status = attempted_status


class InvalidStateError(DomainError):
    """Raised when an operation is not legal in the record's current state."""

    def __init__(
        self,
        message: str,
        current_state: str | None = None,
        details: dict[str, DetailValue] | None = None,
    ) -> None:
        state_details = dict(details or {})
        state_details["current_state"] = current_state
        super().__init__(message, ErrorType.INVALID_STATE, state_details)
        self.current_state = current_state


class ConcurrentModificationError(DomainError):
    """Raised when a record changed between read and write (lost race)."""

    def __init__(self, entity_type: str, entity_id: UUID | str) -> None:
        super().__init__(
            f"Concurrent modification of {entity_type}: {entity_id}",
            ErrorType.CONCURRENCY,
            {"entity_type": entity_type, "entity_id": str(entity_id)},
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class ConflictingAssignmentError(DomainError):
    """Raised when a technician is already booked for an overlapping window."""

    def __init__(self, technician_id: UUID, conflicting_ids: list[UUID]) -> None:
        super().__init__(
            f"Technician {technician_id} is already assigned during the requested window",
            ErrorType.RESOURCE_CONFLICT,
            {
                "technician_id": str(technician_id),
                "conflicting_work_order_ids": ",".join(str(i) for i in conflicting_ids),
            },
        )
        self.technician_id = technician_id
        self.conflicting_ids = list(conflicting_ids)


class IncompleteRequiredTasksError(DomainError):
    """Raised when completion is attempted with unanswered required checklist items."""

    def __init__(self, work_order_id: UUID, missing_task_ids: list[str]) -> None:
        super().__init__(
            f"Work order {work_order_id} has {len(missing_task_ids)} required task(s) unanswered",
            ErrorType.INCOMPLETE_TASKS,
            {
                "work_order_id": str(work_order_id),
                "missing_task_ids": ",".join(missing_task_ids),
            },
        )
        self.work_order_id = work_order_id
        self.missing_task_ids = list(missing_task_ids)


class PermissionDeniedError(DomainError):
    """Raised when the actor may not invoke an operation at all."""

    def __init__(self, actor_id: UUID | str, action: str) -> None:
        super().__init__(
            f"Actor {actor_id} is not allowed to {action}",
            ErrorType.PERMISSION_DENIED,
            {"actor_id": str(actor_id), "action": action},
        )
        self.actor_id = actor_id
        self.action = action


class RepositoryError(DomainError):
    """Unexpected storage fault. No partial mutation has been committed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, ErrorType.REPOSITORY)

"""
Collaborator interfaces consumed by the work order engine.

Identity, the technician/team directory and form definitions live outside this
package; the engine only reads them through these protocols.
"""

from typing import Any, Protocol
from uuid import UUID

from ..shared.base import ValueObject


class Actor(Protocol):
    """Opaque caller identity with a capability check."""

    id: UUID

    def can_perform(self, action: str, resource: Any) -> bool: ...


class ResourceDirectory(Protocol):
    """Read-only lookup of technicians and teams."""

    def technician_exists(self, technician_id: UUID) -> bool: ...

    def team_exists(self, team_id: UUID) -> bool: ...

    def daily_capacity_hours(self, technician_id: UUID) -> float | None:
        """Per-technician working hours per weekday, or None for the default."""
        ...


class ChecklistItem(ValueObject):
    id: str
    title: str = ""
    is_required: bool = False


class ChecklistLookup(Protocol):
    """Resolves the checklist (form tasks or ad-hoc tasks) attached to an order."""

    def items_for(self, work_order: Any) -> list[ChecklistItem]: ...


class CustomTaskChecklist:
    """Reads ad-hoc tasks stored on the order's `custom_tasks` JSON column."""

    def items_for(self, work_order: Any) -> list[ChecklistItem]:
        items = []
        for raw in work_order.custom_tasks or []:
            items.append(
                ChecklistItem(
                    id=str(raw["id"]),
                    title=str(raw.get("title", "")),
                    is_required=bool(raw.get("is_required", False)),
                )
            )
        return items


class StaticResourceDirectory:
    """In-memory directory, used for wiring without an external HR system."""

    def __init__(
        self,
        technicians: dict[UUID, float | None] | None = None,
        teams: set[UUID] | None = None,
    ) -> None:
        self._technicians = dict(technicians or {})
        self._teams = set(teams or set())

    def add_technician(self, technician_id: UUID, daily_hours: float | None = None) -> None:
        self._technicians[technician_id] = daily_hours

    def add_team(self, team_id: UUID) -> None:
        self._teams.add(team_id)

    def technician_exists(self, technician_id: UUID) -> bool:
        return technician_id in self._technicians

    def team_exists(self, team_id: UUID) -> bool:
        return team_id in self._teams

    def daily_capacity_hours(self, technician_id: UUID) -> float | None:
        return self._technicians.get(technician_id)

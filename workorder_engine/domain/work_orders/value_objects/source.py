"""
Work order provenance as a tagged union.

Each source kind carries its own typed reference; persistence flattens it to
the (source_type, source_id) column pair and `source_from_columns` rebuilds it.
"""

from typing import Annotated, Literal
from uuid import UUID

from pydantic import Field, TypeAdapter

from ...shared.base import ValueObject
from ...shared.exceptions import ValidationError


class ManualSource(ValueObject):
    kind: Literal["manual"] = "manual"

    @property
    def reference_id(self) -> UUID | None:
        return None


class RoutineSource(ValueObject):
    kind: Literal["routine"] = "routine"
    routine_id: UUID

    @property
    def reference_id(self) -> UUID | None:
        return self.routine_id


class SensorSource(ValueObject):
    kind: Literal["sensor"] = "sensor"
    sensor_id: UUID

    @property
    def reference_id(self) -> UUID | None:
        return self.sensor_id


class InspectionFindingSource(ValueObject):
    kind: Literal["inspection_finding"] = "inspection_finding"
    inspection_id: UUID

    @property
    def reference_id(self) -> UUID | None:
        return self.inspection_id


class WorkOrderSource(ValueObject):
    """Order raised from another work order (e.g. a follow-up)."""

    kind: Literal["work_order"] = "work_order"
    work_order_id: UUID

    @property
    def reference_id(self) -> UUID | None:
        return self.work_order_id


WorkOrderSourceRef = Annotated[
    ManualSource | RoutineSource | SensorSource | InspectionFindingSource | WorkOrderSource,
    Field(discriminator="kind"),
]

_source_adapter: TypeAdapter[WorkOrderSourceRef] = TypeAdapter(WorkOrderSourceRef)

_REFERENCE_FIELDS = {
    "routine": "routine_id",
    "sensor": "sensor_id",
    "inspection_finding": "inspection_id",
    "work_order": "work_order_id",
}


def parse_source(data: dict | WorkOrderSourceRef | None) -> WorkOrderSourceRef:
    if data is None:
        return ManualSource()
    if isinstance(
        data,
        ManualSource | RoutineSource | SensorSource | InspectionFindingSource | WorkOrderSource,
    ):
        return data
    try:
        return _source_adapter.validate_python(data)
    except ValueError as e:
        raise ValidationError("source", str(data), str(e)) from e


def source_from_columns(source_type: str, source_id: UUID | None) -> WorkOrderSourceRef:
    payload: dict = {"kind": source_type}
    field_name = _REFERENCE_FIELDS.get(source_type)
    if field_name:
        payload[field_name] = source_id
    return parse_source(payload)

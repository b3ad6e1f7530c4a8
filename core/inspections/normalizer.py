"""Build variant-filtered persistence payloads from inspection records."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, assert_never

from core.inspections.fields import (
    COMMON_FIELDS,
    PIPING_FIELDS,
    PRESSURE_VESSEL_FIELDS,
    STORAGE_TANK_FIELDS,
    FieldDescriptor,
)
from core.inspections.models import (
    InspectionRecord,
    InspectionType,
    PipingInspection,
    PressureVesselInspection,
    StorageTankInspection,
)

REPORT_COLUMN = "generated_report"


@dataclass(frozen=True)
class PersistencePayload:
    """Row written to the report store for one successful generation."""

    inspection_type: InspectionType
    columns: Mapping[str, Any]
    generated_report: str

    def as_row(self) -> dict[str, Any]:
        row: dict[str, Any] = {"inspection_type": self.inspection_type}
        row.update(self.columns)
        row[REPORT_COLUMN] = self.generated_report
        return row


def normalize(record: InspectionRecord, report_text: str) -> PersistencePayload:
    """Copy common fields plus exactly the record variant's registry fields."""

    variant_fields: tuple[FieldDescriptor, ...]
    match record:
        case PressureVesselInspection():
            variant_fields = PRESSURE_VESSEL_FIELDS
        case PipingInspection():
            variant_fields = PIPING_FIELDS
        case StorageTankInspection():
            variant_fields = STORAGE_TANK_FIELDS
        case _:
            assert_never(record)

    columns: dict[str, Any] = {}
    for descriptor in (*COMMON_FIELDS, *variant_fields):
        columns[descriptor.name] = _column_value(getattr(record, descriptor.name))

    return PersistencePayload(
        inspection_type=record.inspection_type,
        columns=MappingProxyType(columns),
        generated_report=report_text,
    )


def _column_value(value: object) -> Any:
    if value is None:
        return None
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value

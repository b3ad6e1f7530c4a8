"""Inspection record models for the three API inspection variants."""

from __future__ import annotations

import datetime as dt
from collections.abc import Mapping
from types import MappingProxyType
from typing import Annotated, Any, Literal, Union, get_args

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

InspectionType = Literal["API510", "API570", "API653"]
CoatingCondition = Literal["excellent", "good", "fair", "poor", "not painted"]
InsulationCondition = Literal["excellent", "good", "fair", "poor", "not insulated"]
EquipmentType = Literal["boiler", "drum", "exchanger", "reactor", "tower"]

INSPECTION_TYPES: tuple[InspectionType, ...] = get_args(InspectionType)
COATING_CONDITIONS: tuple[str, ...] = get_args(CoatingCondition)
INSULATION_CONDITIONS: tuple[str, ...] = get_args(InsulationCondition)
EQUIPMENT_TYPES: tuple[str, ...] = get_args(EquipmentType)

VARIANT_LABELS: Mapping[InspectionType, str] = MappingProxyType(
    {
        "API510": "API 510 - Pressure Vessel",
        "API570": "API 570 - Piping",
        "API653": "API 653 - Storage Tank",
    }
)


class _InspectionFields(BaseModel):
    """Attributes shared by every inspection variant."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    inspection_date: dt.date | None = None
    inspector: str = ""
    facility: str = ""
    coating: CoatingCondition = "good"
    insulation: InsulationCondition = "good"
    welds: str = ""
    recommendations: str = ""


class PressureVesselInspection(_InspectionFields):
    """API 510 pressure vessel inspection."""

    inspection_type: Literal["API510"] = "API510"
    equipment_id: str = ""
    equipment_type: EquipmentType = "boiler"
    shell: str = ""
    heads: str = ""
    nozzles: str = ""
    supports: str = ""


class PipingInspection(_InspectionFields):
    """API 570 piping inspection."""

    inspection_type: Literal["API570"] = "API570"
    piping_id: str = ""
    piping_details: str = ""
    piping_components: str = ""
    supports: str = ""
    bolting: str = ""


class StorageTankInspection(_InspectionFields):
    """API 653 storage tank inspection."""

    inspection_type: Literal["API653"] = "API653"
    tank_number: str = ""
    tank_type: str = ""
    tank_location: str = ""
    shell: str = ""
    bottom: str = ""
    roof: str = ""
    nozzles: str = ""


InspectionRecord = Annotated[
    Union[PressureVesselInspection, PipingInspection, StorageTankInspection],
    Field(discriminator="inspection_type"),
]

RECORD_MODELS: Mapping[InspectionType, type[_InspectionFields]] = MappingProxyType(
    {
        "API510": PressureVesselInspection,
        "API570": PipingInspection,
        "API653": StorageTankInspection,
    }
)

_RECORD_ADAPTER: TypeAdapter[InspectionRecord] = TypeAdapter(InspectionRecord)


class GeneratedReport(BaseModel):
    """Report text returned by the generator for one submitted record."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    text: str
    inspection_type: InspectionType


def parse_record(data: Mapping[str, Any]) -> InspectionRecord:
    """Validate a raw mapping into the matching inspection variant."""

    return _RECORD_ADAPTER.validate_python(dict(data))


def new_record(inspection_type: InspectionType = "API510") -> InspectionRecord:
    """Build a draft record holding the variant defaults."""

    try:
        model = RECORD_MODELS[inspection_type]
    except KeyError as exc:
        raise ValueError(f"Unsupported inspection type: {inspection_type}") from exc
    return model()  # type: ignore[return-value]


def switch_variant(
    record: InspectionRecord,
    inspection_type: InspectionType,
    *,
    preserve_common: bool = True,
) -> InspectionRecord:
    """Return a fresh record of ``inspection_type``.

    Variant-specific attributes always restart from defaults so values typed
    for the previous variant never reach the new one. Common attributes are
    carried over only when ``preserve_common`` is set.
    """

    fresh = new_record(inspection_type)
    if not preserve_common:
        return fresh

    common = {name: getattr(record, name) for name in _InspectionFields.model_fields}
    return fresh.model_copy(update=common)

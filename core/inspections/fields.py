"""Field schema registry shared by form rendering and payload normalization."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Literal

from core.inspections.models import (
    COATING_CONDITIONS,
    EQUIPMENT_TYPES,
    INSPECTION_TYPES,
    INSULATION_CONDITIONS,
    RECORD_MODELS,
    InspectionRecord,
    InspectionType,
)

FieldKind = Literal["text", "textarea", "date", "select"]


@dataclass(frozen=True)
class FieldDescriptor:
    """Contract for one input field of an inspection form."""

    name: str
    label: str
    kind: FieldKind
    choices: tuple[str, ...] = ()
    required: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "label": self.label,
            "kind": self.kind,
            "choices": list(self.choices),
            "required": self.required,
        }


def _text(name: str, label: str) -> FieldDescriptor:
    return FieldDescriptor(name=name, label=label, kind="text")


def _textarea(name: str, label: str) -> FieldDescriptor:
    return FieldDescriptor(name=name, label=label, kind="textarea")


def _select(name: str, label: str, choices: tuple[str, ...]) -> FieldDescriptor:
    return FieldDescriptor(name=name, label=label, kind="select", choices=choices)


COMMON_FIELDS: tuple[FieldDescriptor, ...] = (
    FieldDescriptor(name="inspection_date", label="Inspection Date", kind="date"),
    _text("inspector", "Inspector"),
    _text("facility", "Facility"),
    _select("coating", "Coating Condition", COATING_CONDITIONS),
    _select("insulation", "Insulation Condition", INSULATION_CONDITIONS),
    _textarea("welds", "Welds"),
    _textarea("recommendations", "Recommendations"),
)

PRESSURE_VESSEL_FIELDS: tuple[FieldDescriptor, ...] = (
    _text("equipment_id", "Equipment ID"),
    _select("equipment_type", "Equipment Type", EQUIPMENT_TYPES),
    _textarea("shell", "Shell"),
    _textarea("heads", "Heads"),
    _textarea("nozzles", "Nozzles"),
    _textarea("supports", "Supports"),
)

PIPING_FIELDS: tuple[FieldDescriptor, ...] = (
    _text("piping_id", "Piping ID"),
    _textarea("piping_details", "Piping"),
    _textarea("piping_components", "Piping Components"),
    _textarea("supports", "Supports"),
    _textarea("bolting", "Bolting"),
)

STORAGE_TANK_FIELDS: tuple[FieldDescriptor, ...] = (
    _text("tank_number", "Tank Number"),
    _text("tank_type", "Tank Type"),
    _text("tank_location", "Tank Location"),
    _textarea("shell", "Shell"),
    _textarea("bottom", "Bottom"),
    _textarea("roof", "Roof"),
    _textarea("nozzles", "Nozzles"),
)

VARIANT_FIELDS: Mapping[InspectionType, tuple[FieldDescriptor, ...]] = MappingProxyType(
    {
        "API510": PRESSURE_VESSEL_FIELDS,
        "API570": PIPING_FIELDS,
        "API653": STORAGE_TANK_FIELDS,
    }
)


def get_field_descriptors(
    inspection_type: InspectionType | None = None,
) -> tuple[FieldDescriptor, ...]:
    """Return common descriptors, or the variant-specific ones for a tag."""

    if inspection_type is None:
        return COMMON_FIELDS
    try:
        return VARIANT_FIELDS[inspection_type]
    except KeyError as exc:
        raise ValueError(f"Unsupported inspection type: {inspection_type}") from exc


def form_fields(record: InspectionRecord) -> list[dict[str, Any]]:
    """Build the ordered render plan for a record: common then variant fields."""

    rendered: list[dict[str, Any]] = []
    for descriptor in (*COMMON_FIELDS, *VARIANT_FIELDS[record.inspection_type]):
        entry = descriptor.to_dict()
        entry["value"] = _render_value(getattr(record, descriptor.name))
        rendered.append(entry)
    return rendered


def missing_required_fields(record: InspectionRecord) -> list[str]:
    """Return required field names whose current value is empty."""

    missing: list[str] = []
    for descriptor in (*COMMON_FIELDS, *VARIANT_FIELDS[record.inspection_type]):
        if not descriptor.required:
            continue
        value = getattr(record, descriptor.name)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(descriptor.name)
    return missing


def _render_value(value: object) -> str:
    if value is None:
        return ""
    if hasattr(value, "isoformat"):
        return value.isoformat()  # type: ignore[no-any-return]
    return str(value)


def _assert_registry_alignment() -> None:
    """Fail fast when registry field lists diverge from the record models."""

    if set(VARIANT_FIELDS) != set(INSPECTION_TYPES):
        raise RuntimeError(
            "Field registry must cover every inspection type: "
            f"registry={sorted(VARIANT_FIELDS)}, types={sorted(INSPECTION_TYPES)}"
        )

    common_names = {descriptor.name for descriptor in COMMON_FIELDS}
    for inspection_type, model in RECORD_MODELS.items():
        variant_names = [descriptor.name for descriptor in VARIANT_FIELDS[inspection_type]]
        declared = set(model.model_fields) - {"inspection_type"}
        if len(variant_names) != len(set(variant_names)) or (
            common_names | set(variant_names) != declared
        ):
            raise RuntimeError(
                f"Field registry for {inspection_type} must match model fields: "
                f"registry={sorted(common_names | set(variant_names))}, model={sorted(declared)}"
            )


_assert_registry_alignment()

"""Human-readable rendering of form plans and submission outcomes for CLI output."""

from __future__ import annotations

from typing import Any

from core.inspections.fields import FieldDescriptor
from core.inspections.models import VARIANT_LABELS, InspectionType
from core.orchestrator.submission import SubmissionOutcome


def render_field_plan(
    common: tuple[FieldDescriptor, ...],
    variants: dict[InspectionType, tuple[FieldDescriptor, ...]],
) -> str:
    """Render common fields followed by each requested variant's fields."""

    lines: list[str] = ["common:"]
    lines.extend(_descriptor_line(descriptor) for descriptor in common)
    for inspection_type, descriptors in variants.items():
        lines.append(f"{inspection_type} ({VARIANT_LABELS[inspection_type]}):")
        lines.extend(_descriptor_line(descriptor) for descriptor in descriptors)
    return "\n".join(lines)


def render_outcome(outcome: SubmissionOutcome) -> str:
    """Render one-screen submission summary."""

    lines: list[str] = ["submission_summary:"]
    lines.append(f"submission_id={outcome.submission_id}")
    lines.append(f"result={'DONE' if outcome.ok else 'FAILED'}")
    if outcome.report is not None:
        lines.append(f"inspection_type={outcome.report.inspection_type}")
        lines.append(f"report_chars={len(outcome.report.text)}")
    if outcome.error is not None:
        lines.append(f"error_kind={outcome.error.kind}")
        if outcome.error.missing_fields:
            lines.append(f"missing_fields: {', '.join(outcome.error.missing_fields)}")
    return "\n".join(lines)


def outcome_payload(outcome: SubmissionOutcome) -> dict[str, Any]:
    return outcome.model_dump(mode="json", exclude={"report": {"text"}})


def _descriptor_line(descriptor: FieldDescriptor) -> str:
    line = f"  {descriptor.name} [{descriptor.kind}] {descriptor.label}"
    if descriptor.choices:
        line += f" choices={'|'.join(descriptor.choices)}"
    return line

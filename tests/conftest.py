from __future__ import annotations

import datetime as dt
from collections.abc import Callable
from typing import Any

import pytest

from core.inspections.models import InspectionRecord, InspectionType, new_record
from core.inspections.normalizer import PersistencePayload
from core.utils.errors import GenerationError, PersistenceError

_VALUES: dict[str, Any] = {
    "inspection_date": dt.date(2024, 3, 5),
    "inspector": "Dana Reyes",
    "facility": "North Refinery",
    "coating": "fair",
    "insulation": "not insulated",
    "welds": "No visible cracking at girth welds",
    "recommendations": "Re-inspect in 24 months",
    "equipment_id": "V-101",
    "equipment_type": "drum",
    "shell": "Light pitting",
    "heads": "Acceptable",
    "nozzles": "Minor corrosion at N2",
    "supports": "Saddles intact",
    "piping_id": "P-2040",
    "piping_details": "6in carbon steel process line",
    "piping_components": "Elbows and tees acceptable",
    "bolting": "Two studs corroded",
    "tank_number": "T-7",
    "tank_type": "Cone roof",
    "tank_location": "Tank farm B",
    "bottom": "MFL scan clean",
    "roof": "Coating blistered",
}


@pytest.fixture
def complete_record() -> Callable[[InspectionType], InspectionRecord]:
    """Factory for records with every mandatory field filled."""

    def _build(inspection_type: InspectionType) -> InspectionRecord:
        record = new_record(inspection_type)
        for name in type(record).model_fields:
            if name in _VALUES:
                setattr(record, name, _VALUES[name])
        return record

    return _build


class FakeGenerator:
    def __init__(self, report: str = "REPORT TEXT", error: GenerationError | None = None) -> None:
        self.report = report
        self.error = error
        self.calls: list[InspectionRecord] = []
        self.tokens: list[str | None] = []

    async def generate(self, record: InspectionRecord, *, token: str | None = None) -> str:
        self.calls.append(record)
        self.tokens.append(token)
        if self.error is not None:
            raise self.error
        return self.report


class RecordingStore:
    def __init__(self, error: PersistenceError | None = None) -> None:
        self.error = error
        self.payloads: list[PersistencePayload] = []

    async def insert(self, payload: PersistencePayload) -> dict[str, Any]:
        self.payloads.append(payload)
        if self.error is not None:
            raise self.error
        return {"id": len(self.payloads), **payload.as_row()}


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def recording_store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"

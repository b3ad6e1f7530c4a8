"""Submission pipeline: validate -> generate -> normalize -> persist."""

from __future__ import annotations

import asyncio
import json
import logging
import time
import uuid
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from core.generation.client import ReportGenerator
from core.inspections.fields import missing_required_fields
from core.inspections.models import GeneratedReport, InspectionRecord
from core.inspections.normalizer import PersistencePayload, normalize
from core.storage.store import ReportStore
from core.utils.errors import (
    RecordValidationError,
    SubmissionError,
    SubmissionErrorKind,
    SubmissionInProgressError,
)

logger = logging.getLogger("inspecta.submission")

SubmissionState = Literal[
    "idle", "validating", "generating", "normalizing", "persisting", "done", "failed"
]


class SubmissionErrorInfo(BaseModel):
    """Caller-facing description of a failed submission."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: SubmissionErrorKind
    message: str
    missing_fields: list[str] = Field(default_factory=list)

    @classmethod
    def from_error(cls, error: SubmissionError) -> SubmissionErrorInfo:
        missing = error.missing_fields if isinstance(error, RecordValidationError) else []
        return cls(kind=error.kind, message=error.message, missing_fields=list(missing))


class SubmissionOutcome(BaseModel):
    """Terminal result of one submission: a report or an error, never both."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    submission_id: str
    state: Literal["done", "failed"]
    report: GeneratedReport | None = None
    error: SubmissionErrorInfo | None = None

    @property
    def ok(self) -> bool:
        return self.report is not None


class SubmissionOrchestrator:
    """Drives one submission at a time through generator and store.

    Stages run strictly in sequence and the first failure short-circuits the
    rest. Nothing is retried; the caller decides whether to submit again.
    """

    def __init__(self, generator: ReportGenerator, store: ReportStore) -> None:
        self.generator = generator
        self.store = store
        self._state: SubmissionState = "idle"
        self._in_flight = False

    @property
    def state(self) -> SubmissionState:
        return self._state

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def submit(
        self, record: InspectionRecord, *, token: str | None = None
    ) -> SubmissionOutcome:
        """Run the full pipeline for ``record`` and return its outcome.

        ``token`` is forwarded to the generator with this submission only.
        """

        if self._in_flight:
            raise SubmissionInProgressError("A submission is already in progress")
        self._in_flight = True

        submission_id = uuid.uuid4().hex
        started = time.perf_counter()
        snapshot = record.model_copy(deep=True)
        _log_event(
            logging.INFO,
            "start",
            submission_id,
            inspection_type=snapshot.inspection_type,
        )

        try:
            report = await self._run_stages(snapshot, submission_id, token)
        except SubmissionError as exc:
            failed_stage = self._state
            self._transition("failed", submission_id)
            _log_event(
                logging.ERROR,
                "error",
                submission_id,
                error_kind=exc.kind,
                failure_stage=failed_stage,
                message=exc.message,
                elapsed_ms=_elapsed_ms(started),
            )
            return SubmissionOutcome(
                submission_id=submission_id,
                state="failed",
                error=SubmissionErrorInfo.from_error(exc),
            )
        except asyncio.CancelledError:
            _log_event(logging.WARNING, "cancelled", submission_id, failure_stage=self._state)
            self._state = "idle"
            raise
        finally:
            self._in_flight = False

        self._transition("done", submission_id)
        _log_event(
            logging.INFO,
            "done",
            submission_id,
            inspection_type=report.inspection_type,
            report_chars=len(report.text),
            elapsed_ms=_elapsed_ms(started),
        )
        return SubmissionOutcome(submission_id=submission_id, state="done", report=report)

    async def _run_stages(
        self, record: InspectionRecord, submission_id: str, token: str | None
    ) -> GeneratedReport:
        self._transition("validating", submission_id)
        _validate(record)

        self._transition("generating", submission_id)
        report_text = await self.generator.generate(record, token=token)

        self._transition("normalizing", submission_id)
        payload: PersistencePayload = normalize(record, report_text)

        self._transition("persisting", submission_id)
        await self.store.insert(payload)

        return GeneratedReport(text=report_text, inspection_type=record.inspection_type)

    def _transition(self, state: SubmissionState, submission_id: str) -> None:
        previous = self._state
        self._state = state
        _log_event(logging.DEBUG, "transition", submission_id, previous=previous, state=state)


def _validate(record: InspectionRecord) -> None:
    missing = missing_required_fields(record)
    if missing:
        raise RecordValidationError(
            f"Missing required fields: {', '.join(missing)}",
            missing_fields=missing,
        )


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _log_event(level: int, event: str, submission_id: str, **fields: Any) -> None:
    payload = {
        "event": event,
        "submission_id": submission_id,
        **fields,
    }
    logger.log(
        level, json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))
    )

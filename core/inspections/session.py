"""Per-user form session holding the draft record and displayed result."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from core.inspections.fields import form_fields
from core.inspections.models import (
    GeneratedReport,
    InspectionRecord,
    InspectionType,
    new_record,
    switch_variant,
)
from core.orchestrator.submission import SubmissionOrchestrator, SubmissionOutcome
from core.utils.errors import SubmissionInProgressError


class InspectionSession:
    """Draft record plus the report or error currently shown to the user.

    ``epoch`` changes whenever the draft is discarded. Outcomes of submissions
    started under an older epoch are dropped instead of being applied.
    """

    def __init__(
        self,
        inspection_type: InspectionType = "API510",
        *,
        preserve_common_on_switch: bool = True,
    ) -> None:
        self.record: InspectionRecord = new_record(inspection_type)
        self.preserve_common_on_switch = preserve_common_on_switch
        self.report: GeneratedReport | None = None
        self.error: str | None = None
        self.submitting = False
        self.epoch = 0

    def update_field(self, name: str, value: Any) -> None:
        if name == "inspection_type":
            self.switch_variant(value)
            return
        if name not in type(self.record).model_fields:
            raise ValueError(
                f"Field '{name}' does not belong to inspection type {self.record.inspection_type}"
            )
        setattr(self.record, name, value)

    def switch_variant(self, inspection_type: InspectionType) -> None:
        if inspection_type == self.record.inspection_type:
            return
        self.record = switch_variant(
            self.record,
            inspection_type,
            preserve_common=self.preserve_common_on_switch,
        )

    def discard(self) -> None:
        """Abandon the current draft; pending outcomes will not be applied."""

        self.epoch += 1
        self.record = new_record(self.record.inspection_type)
        self.report = None
        self.error = None
        self.submitting = False

    def fields(self) -> list[dict[str, Any]]:
        return form_fields(self.record)

    async def submit(
        self, orchestrator: SubmissionOrchestrator, *, token: str | None = None
    ) -> SubmissionOutcome | None:
        """Submit the draft; return the outcome, or ``None`` when it went stale.

        ``token`` is the credential of the caller making this submission.
        """

        if self.submitting:
            raise SubmissionInProgressError("A submission is already in progress")

        started_epoch = self.epoch
        self.submitting = True
        self.report = None
        self.error = None
        try:
            outcome = await orchestrator.submit(self.record, token=token)
        finally:
            if self.epoch == started_epoch:
                self.submitting = False

        if self.epoch != started_epoch:
            return None

        if outcome.report is not None:
            self.report = outcome.report
        elif outcome.error is not None:
            self.error = outcome.error.message
        return outcome


OrchestratorFactory = Callable[[], SubmissionOrchestrator]
SessionKey = tuple[str, str]


@dataclass
class SessionEntry:
    session: InspectionSession
    orchestrator: SubmissionOrchestrator
    last_seen: float = 0.0


@dataclass
class SessionRegistry:
    """Maps session keys to their form session and orchestrator.

    Entries idle for longer than ``idle_ttl_seconds`` are dropped, and the
    least recently used entry goes first once ``max_sessions`` is reached.
    Entries with a submission in flight are never evicted.
    """

    orchestrator_factory: OrchestratorFactory
    preserve_common_on_switch: bool = True
    idle_ttl_seconds: float = 3600.0
    max_sessions: int = 1000
    clock: Callable[[], float] = time.monotonic
    _entries: OrderedDict[SessionKey, SessionEntry] = field(default_factory=OrderedDict)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def get(self, session_key: SessionKey) -> SessionEntry:
        """Return the entry for ``session_key``, creating it on first use."""

        with self._lock:
            now = self.clock()
            evicted = self._evict_idle(now)
            entry = self._entries.get(session_key)
            if entry is None:
                evicted.extend(self._evict_overflow())
                entry = SessionEntry(
                    session=InspectionSession(
                        preserve_common_on_switch=self.preserve_common_on_switch
                    ),
                    orchestrator=self.orchestrator_factory(),
                )
                self._entries[session_key] = entry
            else:
                self._entries.move_to_end(session_key)
            entry.last_seen = now

        for stale in evicted:
            stale.session.discard()
        return entry

    def drop(self, session_key: SessionKey) -> None:
        with self._lock:
            entry = self._entries.pop(session_key, None)
        if entry is not None:
            entry.session.discard()

    def __len__(self) -> int:
        return len(self._entries)

    def _evict_idle(self, now: float) -> list[SessionEntry]:
        expired = [
            key
            for key, entry in self._entries.items()
            if now - entry.last_seen > self.idle_ttl_seconds and not entry.session.submitting
        ]
        return [self._entries.pop(key) for key in expired]

    def _evict_overflow(self) -> list[SessionEntry]:
        evicted: list[SessionEntry] = []
        for key in list(self._entries):
            if len(self._entries) < self.max_sessions:
                break
            if self._entries[key].session.submitting:
                continue
            evicted.append(self._entries.pop(key))
        return evicted

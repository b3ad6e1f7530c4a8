"""FastAPI wrapper for the inspection report submission pipeline."""

from __future__ import annotations

import datetime as dt
import importlib.metadata
import json
import logging
import threading
import time
import uuid
from typing import Any, cast, get_args

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from core.config import Settings, load_settings
from core.generation.client import HttpReportGenerator
from core.inspections.fields import COMMON_FIELDS, VARIANT_FIELDS
from core.inspections.models import (
    COATING_CONDITIONS,
    EQUIPMENT_TYPES,
    INSPECTION_TYPES,
    INSULATION_CONDITIONS,
    VARIANT_LABELS,
    GeneratedReport,
    InspectionType,
    new_record,
    parse_record,
)
from core.inspections.session import SessionEntry, SessionKey, SessionRegistry
from core.orchestrator.submission import SubmissionOrchestrator, SubmissionOutcome
from core.reports.presenter import ExportFormat, present
from core.storage.store import InMemoryReportStore, ReportStore, SupabaseReportStore
from core.utils.errors import SubmissionErrorKind, SubmissionInProgressError

app = FastAPI(title="inspecta API", version="0.1.0")
logger = logging.getLogger("inspecta.api")

REQUEST_ID_HEADER = "X-Inspecta-Request-Id"
SESSION_HEADER = "X-Inspecta-Session"

_ERROR_STATUS: dict[SubmissionErrorKind, tuple[int, str]] = {
    "validation": (422, "VALIDATION_FAILED"),
    "generation": (502, "GENERATION_FAILED"),
    "persistence": (502, "PERSISTENCE_FAILED"),
    "in_progress": (409, "SUBMISSION_IN_PROGRESS"),
}


class DownloadRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    report: str
    inspection_type: InspectionType
    format: ExportFormat = "txt"


class SessionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    inspection_type: InspectionType | None = None
    fields: dict[str, Any] = Field(default_factory=dict)


class ApiRequestError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        error_code: str,
        message: str,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.detail = detail or {}


_registry_lock = threading.Lock()
_registry_cache: SessionRegistry | None = None


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Ensure every response has a request id header."""

    request_id = uuid.uuid4().hex
    request.state.request_id = request_id
    try:
        response = await call_next(request)
    except Exception:  # noqa: BLE001
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="INTERNAL_ERROR",
            status_code=500,
            failure_stage="middleware",
        )
        response = _error_response(
            status_code=500,
            error_code="INTERNAL_ERROR",
            message="internal server error",
            request_id=request_id,
            detail={"path": request.url.path},
        )
    response.headers.setdefault(REQUEST_ID_HEADER, request_id)
    return response


@app.exception_handler(ApiRequestError)
async def api_request_error_handler(request: Request, exc: ApiRequestError) -> JSONResponse:
    request_id = _request_id_from_request(request)
    _log_event(
        logging.ERROR,
        "error",
        request_id,
        error_code=exc.error_code,
        status_code=exc.status_code,
        path=request.url.path,
    )
    return _error_response(
        status_code=exc.status_code,
        error_code=exc.error_code,
        message=exc.message,
        request_id=request_id,
        detail=exc.detail,
    )


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    """Liveness endpoint."""

    return {"status": "ok"}


@app.get("/v1/meta")
async def meta_v1(request: Request) -> JSONResponse:
    """Inspection types, enumerated domains and per-type form fields."""

    request_id = _request_id_from_request(request)
    payload = {
        "inspection_types": [
            {"code": code, "label": VARIANT_LABELS[code]} for code in INSPECTION_TYPES
        ],
        "domains": {
            "coating": list(COATING_CONDITIONS),
            "insulation": list(INSULATION_CONDITIONS),
            "equipment_type": list(EQUIPMENT_TYPES),
        },
        "common_fields": [descriptor.to_dict() for descriptor in COMMON_FIELDS],
        "variant_fields": {
            code: [descriptor.to_dict() for descriptor in VARIANT_FIELDS[code]]
            for code in INSPECTION_TYPES
        },
        "export_formats": list(get_args(ExportFormat)),
        "version": app.version,
    }
    return JSONResponse(status_code=200, headers={REQUEST_ID_HEADER: request_id}, content=payload)


@app.get("/v1/records/new")
async def new_record_v1(request: Request, inspection_type: str = "API510") -> JSONResponse:
    """Return a blank draft record holding the variant defaults."""

    request_id = _request_id_from_request(request)
    typed = _inspection_type_or_error(inspection_type)
    return JSONResponse(
        status_code=200,
        headers={REQUEST_ID_HEADER: request_id},
        content=new_record(typed).model_dump(mode="json"),
    )


@app.get("/v1/session")
async def get_session_v1(request: Request) -> JSONResponse:
    """Return the caller's draft record with its render plan and displayed result."""

    request_id = _request_id_from_request(request)
    entry = _session_entry(request)
    return JSONResponse(
        status_code=200,
        headers={REQUEST_ID_HEADER: request_id},
        content=_session_payload(entry),
    )


@app.patch("/v1/session")
async def patch_session_v1(request: Request, update: SessionUpdate) -> JSONResponse:
    """Switch the draft's inspection type and/or set field values."""

    request_id = _request_id_from_request(request)
    entry = _session_entry(request)
    session = entry.session
    try:
        if update.inspection_type is not None:
            session.switch_variant(update.inspection_type)
        for name, value in update.fields.items():
            session.update_field(name, value)
    except (ValueError, ValidationError) as exc:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_FIELD",
            message=_first_line(exc),
            detail={"inspection_type": session.record.inspection_type},
        ) from exc
    return JSONResponse(
        status_code=200,
        headers={REQUEST_ID_HEADER: request_id},
        content=_session_payload(entry),
    )


@app.delete("/v1/session")
async def delete_session_v1(request: Request) -> JSONResponse:
    """Discard the draft; late results of pending submissions are dropped."""

    request_id = _request_id_from_request(request)
    _get_session_registry().drop(_session_key(request))
    return JSONResponse(
        status_code=200, headers={REQUEST_ID_HEADER: request_id}, content={"discarded": True}
    )


@app.post("/v1/session/submit")
async def submit_session_v1(request: Request) -> JSONResponse:
    """Submit the caller's current draft record."""

    entry = _session_entry(request)
    return await _submit_entry(request, entry)


@app.post("/v1/submit")
async def submit_v1(request: Request) -> JSONResponse:
    """Submit a complete record sent as the JSON body."""

    try:
        raw = await request.json()
    except json.JSONDecodeError as exc:
        raise ApiRequestError(
            status_code=400, error_code="INVALID_RECORD", message="body must be valid JSON"
        ) from exc
    if not isinstance(raw, dict):
        raise ApiRequestError(
            status_code=400, error_code="INVALID_RECORD", message="body must be a JSON object"
        )
    try:
        record = parse_record(raw)
    except ValidationError as exc:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_RECORD",
            message="record does not match any inspection type",
            detail={"errors": exc.errors(include_url=False, include_context=False)},
        ) from exc

    request_started = time.perf_counter()
    request_id = _request_id_from_request(request)
    orchestrator = _get_session_registry().orchestrator_factory()
    _log_event(logging.INFO, "start", request_id, inspection_type=record.inspection_type)
    outcome = await orchestrator.submit(record, token=_bearer_token(request))
    return _outcome_response(request_id, outcome, request_started)


@app.get("/v1/session/report")
async def download_session_report_v1(request: Request, format: str = "txt") -> Response:
    """Download the report currently displayed in the caller's session."""

    entry = _session_entry(request)
    report = entry.session.report
    if report is None:
        raise ApiRequestError(
            status_code=404, error_code="NO_REPORT", message="no generated report to download"
        )
    return _download_response(request, report, _export_format_or_error(format))


@app.post("/v1/reports/download")
async def download_report_v1(request: Request, body: DownloadRequest) -> Response:
    """Turn report text into a file attachment."""

    report = GeneratedReport(text=body.report, inspection_type=body.inspection_type)
    return _download_response(request, report, body.format)


async def _submit_entry(request: Request, entry: SessionEntry) -> JSONResponse:
    request_started = time.perf_counter()
    request_id = _request_id_from_request(request)
    record = entry.session.record
    _log_event(logging.INFO, "start", request_id, inspection_type=record.inspection_type)

    try:
        outcome = await entry.session.submit(entry.orchestrator, token=_bearer_token(request))
    except SubmissionInProgressError as exc:
        raise _in_progress_error() from exc

    if outcome is None:
        raise ApiRequestError(
            status_code=409,
            error_code="SUBMISSION_DISCARDED",
            message="session was discarded before the submission finished",
        )
    return _outcome_response(request_id, outcome, request_started)


def _outcome_response(
    request_id: str, outcome: SubmissionOutcome, request_started: float
) -> JSONResponse:
    if outcome.error is not None:
        status_code, error_code = _ERROR_STATUS[outcome.error.kind]
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code=error_code,
            status_code=status_code,
            submission_id=outcome.submission_id,
            total_ms=_elapsed_ms(request_started),
        )
        detail: dict[str, Any] = {"submission_id": outcome.submission_id}
        if outcome.error.missing_fields:
            detail["missing_fields"] = outcome.error.missing_fields
        return _error_response(
            status_code=status_code,
            error_code=error_code,
            message=outcome.error.message,
            request_id=request_id,
            detail=detail,
        )

    _log_event(
        logging.INFO,
        "done",
        request_id,
        submission_id=outcome.submission_id,
        total_ms=_elapsed_ms(request_started),
    )
    return JSONResponse(
        status_code=200,
        headers={REQUEST_ID_HEADER: request_id},
        content=_outcome_payload(outcome),
    )


def _download_response(
    request: Request, report: GeneratedReport, export_format: ExportFormat
) -> Response:
    request_id = _request_id_from_request(request)
    download = present(report, on_date=dt.date.today(), export_format=export_format)
    return Response(
        content=download.content,
        media_type=download.mime_type,
        headers={
            REQUEST_ID_HEADER: request_id,
            "Content-Disposition": f'attachment; filename="{download.download_name}"',
        },
    )


def _outcome_payload(outcome: SubmissionOutcome) -> dict[str, Any]:
    report = cast(GeneratedReport, outcome.report)
    return {
        "submission_id": outcome.submission_id,
        "inspection_type": report.inspection_type,
        "report": report.text,
    }


def _session_payload(entry: SessionEntry) -> dict[str, Any]:
    session = entry.session
    return {
        "record": session.record.model_dump(mode="json"),
        "fields": session.fields(),
        "report": session.report.text if session.report is not None else None,
        "error": session.error,
        "submitting": session.submitting,
        "state": entry.orchestrator.state,
    }


def _session_entry(request: Request) -> SessionEntry:
    registry = _get_session_registry()
    return registry.get(_session_key(request))


def _session_key(request: Request) -> SessionKey:
    """Sessions are scoped by the session header and the caller's credential."""

    name = request.headers.get(SESSION_HEADER, "").strip()
    token = _bearer_token(request) or ""
    if not name and not token:
        raise ApiRequestError(
            status_code=400,
            error_code="SESSION_REQUIRED",
            message=f"send {SESSION_HEADER} or a bearer token to use a session",
        )
    return (name, token)


def _bearer_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, credential = header.partition(" ")
    if scheme.lower() != "bearer" or not credential.strip():
        return None
    return credential.strip()


def _get_session_registry() -> SessionRegistry:
    global _registry_cache

    with _registry_lock:
        if _registry_cache is None:
            settings = load_settings()
            logging.getLogger("inspecta").setLevel(settings.log_level)
            generator = HttpReportGenerator(
                settings.generator_url, timeout_seconds=settings.generator_timeout_seconds
            )
            store = _build_store(settings)
            _registry_cache = SessionRegistry(
                orchestrator_factory=lambda: SubmissionOrchestrator(generator, store),
                preserve_common_on_switch=settings.preserve_common_on_switch,
                idle_ttl_seconds=settings.session_idle_ttl_seconds,
                max_sessions=settings.max_sessions,
            )
        return _registry_cache


def _build_store(settings: Settings) -> ReportStore:
    if settings.store_url and settings.store_key:
        return SupabaseReportStore(
            settings.store_url, settings.store_key, table=settings.store_table
        )
    logger.warning("store_url/store_key not configured; using in-memory report store")
    return InMemoryReportStore()


def _inspection_type_or_error(raw: str) -> InspectionType:
    normalized = raw.strip().upper()
    if normalized not in INSPECTION_TYPES:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_ARGUMENT",
            message=f"inspection_type must be one of: {', '.join(INSPECTION_TYPES)}",
            detail={"field": "inspection_type"},
        )
    return cast(InspectionType, normalized)


def _export_format_or_error(raw: str) -> ExportFormat:
    normalized = raw.strip().lower()
    if normalized not in get_args(ExportFormat):
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_ARGUMENT",
            message="format must be one of: txt, docx",
            detail={"field": "format"},
        )
    return cast(ExportFormat, normalized)


def _in_progress_error() -> ApiRequestError:
    status_code, error_code = _ERROR_STATUS["in_progress"]
    return ApiRequestError(
        status_code=status_code,
        error_code=error_code,
        message="A submission is already in progress",
    )


def _first_line(exc: Exception) -> str:
    return str(exc).splitlines()[0] if str(exc) else type(exc).__name__


def _request_id_from_request(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    return uuid.uuid4().hex


def _package_version() -> str:
    try:
        return importlib.metadata.version("inspecta")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def _dump_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def _error_response(
    *,
    status_code: int,
    error_code: str,
    message: str,
    request_id: str,
    detail: dict[str, Any] | None = None,
) -> JSONResponse:
    payload_detail = dict(detail or {})
    payload_detail["request_id"] = request_id

    return JSONResponse(
        status_code=status_code,
        headers={REQUEST_ID_HEADER: request_id},
        content={
            "error_code": error_code,
            "message": message,
            "detail": payload_detail,
        },
    )


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _log_event(level: int, event: str, request_id: str, **fields: Any) -> None:
    payload = {
        "event": event,
        "request_id": request_id,
        "build": _package_version(),
        **fields,
    }
    logger.log(level, _dump_json(payload))

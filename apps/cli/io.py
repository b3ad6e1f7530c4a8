"""CLI I/O helpers for record loading and atomic output writing."""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from core.inspections.models import InspectionRecord, parse_record
from core.reports.presenter import ReportDownload


def load_record(path: Path) -> InspectionRecord:
    """Read and validate an inspection record JSON file."""

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid JSON in record file: {path}") from exc
    if not isinstance(raw, dict):
        raise ValueError(f"Record file must contain a JSON object: {path}")

    try:
        return parse_record(raw)
    except ValidationError as exc:
        raise ValueError(f"Invalid record schema: {path}: {exc.error_count()} error(s)") from exc


def write_record_atomic(path: Path, record: InspectionRecord) -> None:
    """Write a draft record as indented JSON atomically."""

    path.parent.mkdir(parents=True, exist_ok=True)
    _atomic_write_bytes(
        path,
        (json.dumps(record.model_dump(mode="json"), ensure_ascii=False, indent=2) + "\n").encode(
            "utf-8"
        ),
    )


def write_download_atomic(out_dir: Path, download: ReportDownload) -> Path:
    """Save a report download under ``out_dir`` and return its path."""

    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / download.download_name
    _atomic_write_bytes(path, download.content)
    return path


def write_outcome_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    """Write the submission outcome summary JSON atomically."""

    path.parent.mkdir(parents=True, exist_ok=True)
    _atomic_write_bytes(
        path,
        json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":")).encode(
            "utf-8"
        ),
    )


def _atomic_write_bytes(path: Path, data: bytes) -> None:
    fd, raw_tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=f"{path.name}.",
        suffix=".tmp",
    )
    os.close(fd)
    tmp_path = Path(raw_tmp_path)

    try:
        tmp_path.write_bytes(data)
        tmp_path.replace(path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink(missing_ok=True)
        raise

from __future__ import annotations

import json
from pathlib import Path

import pytest

from apps.cli.io import load_record, write_download_atomic, write_record_atomic
from core.inspections.models import new_record
from core.reports.presenter import ReportDownload


def _download() -> ReportDownload:
    return ReportDownload(
        content=b"REPORT TEXT",
        suggested_filename="inspection-report-API510-2024-03-05",
        mime_type="text/plain; charset=utf-8",
        extension=".txt",
    )


def test_write_download_atomic_cleans_tmp_on_success(tmp_path: Path) -> None:
    path = write_download_atomic(tmp_path / "reports", _download())

    assert path == tmp_path / "reports" / "inspection-report-API510-2024-03-05.txt"
    assert path.read_bytes() == b"REPORT TEXT"
    assert list(path.parent.glob("*.tmp")) == []


def test_write_download_atomic_cleans_tmp_on_failure(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def broken_replace(self: Path, target: Path) -> Path:
        raise OSError("replace failed")

    monkeypatch.setattr(Path, "replace", broken_replace)

    with pytest.raises(OSError, match="replace failed"):
        write_download_atomic(tmp_path, _download())

    assert not (tmp_path / "inspection-report-API510-2024-03-05.txt").exists()
    assert list(tmp_path.glob("*.tmp")) == []


def test_record_written_by_new_loads_back(tmp_path: Path) -> None:
    path = tmp_path / "draft.json"

    write_record_atomic(path, new_record("API570"))
    loaded = load_record(path)

    assert loaded.inspection_type == "API570"
    assert loaded.coating == "good"


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("{not json", "Invalid JSON"),
        ("[1, 2]", "must contain a JSON object"),
        (json.dumps({"inspection_type": "API999"}), "Invalid record schema"),
    ],
)
def test_load_record_rejects_bad_files(tmp_path: Path, content: str, message: str) -> None:
    path = tmp_path / "record.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError, match=message):
        load_record(path)

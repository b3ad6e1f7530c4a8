from __future__ import annotations

import datetime as dt
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

import apps.cli.main as cli_main
from apps.cli.main import app
from core.utils.errors import GenerationError

runner = CliRunner()


class _StubGenerator:
    error: GenerationError | None = None
    tokens: list[str | None] = []

    def __init__(self, url: str, *, token: str | None = None, timeout_seconds: float = 60.0):
        type(self).tokens.append(token)

    async def generate(self, record, *, token=None) -> str:  # noqa: ANN001
        if type(self).error is not None:
            raise type(self).error
        return f"REPORT FOR {record.inspection_type}"


@pytest.fixture
def stub_generator(monkeypatch: pytest.MonkeyPatch) -> type[_StubGenerator]:
    monkeypatch.setattr(_StubGenerator, "error", None)
    monkeypatch.setattr(_StubGenerator, "tokens", [])
    monkeypatch.setattr(cli_main, "HttpReportGenerator", _StubGenerator)
    monkeypatch.delenv("INSPECTA_CONFIG", raising=False)
    return _StubGenerator


def _write_record(path: Path, record) -> None:  # noqa: ANN001
    path.write_text(json.dumps(record.model_dump(mode="json")), encoding="utf-8")


def test_fields_command_lists_one_variant() -> None:
    result = runner.invoke(app, ["fields", "--type", "api570"])

    assert result.exit_code == 0
    assert "common:" in result.output
    assert "API570 (API 570 - Piping):" in result.output
    assert "piping_components [textarea]" in result.output
    assert "API653" not in result.output


def test_fields_command_rejects_unknown_type() -> None:
    result = runner.invoke(app, ["fields", "--type", "API999"])

    assert result.exit_code == 1
    assert "ERROR: --type must be one of" in result.output


def test_new_command_writes_draft_and_refuses_overwrite(tmp_path: Path) -> None:
    out = tmp_path / "draft.json"

    first = runner.invoke(app, ["new", "--type", "API653", "--out", str(out)])
    second = runner.invoke(app, ["new", "--type", "API653", "--out", str(out)])

    assert first.exit_code == 0
    draft = json.loads(out.read_text(encoding="utf-8"))
    assert draft["inspection_type"] == "API653"
    assert draft["tank_number"] == ""
    assert second.exit_code == 1
    assert "already exists" in second.output


def test_submit_writes_text_report(tmp_path: Path, stub_generator, complete_record) -> None:
    record_path = tmp_path / "record.json"
    _write_record(record_path, complete_record("API653"))
    out_dir = tmp_path / "out"
    summary = tmp_path / "summary.json"

    result = runner.invoke(
        app,
        [
            "submit",
            "--record",
            str(record_path),
            "--out-dir",
            str(out_dir),
            "--dry-store",
            "--token",
            "anon-key",
            "--summary-json",
            str(summary),
        ],
    )

    assert result.exit_code == 0, result.output
    expected = out_dir / f"inspection-report-API653-{dt.date.today().isoformat()}.txt"
    assert expected.read_text(encoding="utf-8") == "REPORT FOR API653"
    assert stub_generator.tokens == ["anon-key"]
    assert "result=DONE" in result.output
    summary_payload = json.loads(summary.read_text(encoding="utf-8"))
    assert summary_payload["state"] == "done"
    assert "text" not in summary_payload["report"]


def test_submit_validation_failure_exits_1(tmp_path: Path, stub_generator, complete_record) -> None:
    record = complete_record("API510")
    record.heads = ""
    record_path = tmp_path / "record.json"
    _write_record(record_path, record)

    result = runner.invoke(
        app, ["submit", "--record", str(record_path), "--out-dir", str(tmp_path), "--dry-store"]
    )

    assert result.exit_code == 1
    assert "missing_fields: heads" in result.output
    assert "ERROR: Missing required fields: heads" in result.output
    assert not list(tmp_path.glob("inspection-report-*"))


def test_submit_generation_failure_exits_1(tmp_path: Path, stub_generator, complete_record) -> None:
    stub_generator.error = GenerationError("x")
    record_path = tmp_path / "record.json"
    _write_record(record_path, complete_record("API570"))

    result = runner.invoke(app, ["submit", "--record", str(record_path), "--dry-store"])

    assert result.exit_code == 1
    assert "error_kind=generation" in result.output
    assert "ERROR: x" in result.output


def test_submit_without_store_credentials_fails(
    tmp_path: Path, stub_generator, complete_record, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("INSPECTA_STORE_URL", raising=False)
    monkeypatch.delenv("INSPECTA_STORE_KEY", raising=False)
    record_path = tmp_path / "record.json"
    _write_record(record_path, complete_record("API570"))

    result = runner.invoke(app, ["submit", "--record", str(record_path)])

    assert result.exit_code == 1
    assert "store_url and store_key must be configured" in result.output


def test_submit_rejects_invalid_record_file(tmp_path: Path, stub_generator) -> None:
    record_path = tmp_path / "record.json"
    record_path.write_text(json.dumps({"inspection_type": "API510", "roof": "x"}), encoding="utf-8")

    result = runner.invoke(app, ["submit", "--record", str(record_path), "--dry-store"])

    assert result.exit_code == 1
    assert "Invalid record schema" in result.output


def test_submit_rejects_unknown_format(tmp_path: Path, stub_generator, complete_record) -> None:
    record_path = tmp_path / "record.json"
    _write_record(record_path, complete_record("API510"))

    result = runner.invoke(
        app, ["submit", "--record", str(record_path), "--format", "pdf", "--dry-store"]
    )

    assert result.exit_code == 1
    assert "--format must be one of" in result.output

from __future__ import annotations

import json
import subprocess
import sys
from pathlib import Path


def _run_summarizer(log_path: Path) -> dict[str, object]:
    result = subprocess.run(
        [sys.executable, "scripts/summarize_logs.py", "--json", str(log_path)],
        cwd=Path(__file__).resolve().parents[1],
        check=False,
        capture_output=True,
        text=True,
    )
    assert result.returncode == 0
    return json.loads(result.stdout)


def test_log_summarizer_counts_each_submission_once(tmp_path: Path) -> None:
    log_path = tmp_path / "app.log"
    events = [
        {"event": "start", "request_id": "r-1", "build": "0.1.0", "inspection_type": "API510"},
        {"event": "start", "submission_id": "a", "inspection_type": "API510"},
        {"event": "done", "submission_id": "a", "report_chars": 900, "elapsed_ms": 120},
        {"event": "done", "request_id": "r-1", "submission_id": "a", "total_ms": 125},
        {"event": "start", "request_id": "r-2", "build": "0.1.0", "inspection_type": "API653"},
        {"event": "start", "submission_id": "b", "inspection_type": "API653"},
        {
            "event": "error",
            "submission_id": "b",
            "error_kind": "persistence",
            "failure_stage": "persisting",
            "elapsed_ms": 320,
        },
        {
            "event": "error",
            "request_id": "r-2",
            "submission_id": "b",
            "error_code": "PERSISTENCE_FAILED",
            "status_code": 502,
            "total_ms": 330,
        },
    ]
    log_path.write_text(
        "\n".join([*(json.dumps(event) for event in events), "not-json-line"]),
        encoding="utf-8",
    )

    payload = _run_summarizer(log_path)

    assert payload["parse_errors"] == 1
    assert payload["event_counts"] == {"done": 1, "error": 1, "start": 2}
    assert payload["api_event_counts"] == {"done": 1, "error": 1, "start": 2}
    assert payload["inspection_type_counts"] == {"API510": 1, "API653": 1}
    assert payload["error_kind_counts"] == {"persistence": 1}
    assert payload["failure_stage_counts"] == {"persisting": 1}
    assert payload["http_status_counts"] == {"502": 1}
    assert payload["elapsed_ms_p50"] == 120
    assert payload["elapsed_ms_p95"] == 320
    assert payload["request_ms_p95"] == 330

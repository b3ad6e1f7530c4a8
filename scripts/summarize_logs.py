#!/usr/bin/env python3
"""Summarize inspecta JSON line logs for ops/CI usage."""

from __future__ import annotations

import argparse
import json
import math
from collections import Counter
from pathlib import Path
from typing import Any


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Summarize inspecta submission logs.")
    parser.add_argument("files", nargs="+", help="One or more JSONL log files.")
    parser.add_argument("--json", action="store_true", help="Output JSON.")
    return parser.parse_args()


def _percentile(values: list[int], p: float) -> int | None:
    if not values:
        return None
    ordered = sorted(values)
    index = min(len(ordered) - 1, max(0, math.ceil((p / 100) * len(ordered)) - 1))
    return ordered[index]


def summarize_log_files(paths: list[Path]) -> dict[str, Any]:
    event_counts: Counter[str] = Counter()
    api_event_counts: Counter[str] = Counter()
    error_kind_counts: Counter[str] = Counter()
    failure_stage_counts: Counter[str] = Counter()
    status_counts: Counter[str] = Counter()
    inspection_type_counts: Counter[str] = Counter()
    elapsed_values: list[int] = []
    request_ms_values: list[int] = []
    parse_errors = 0
    lines_total = 0

    for path in paths:
        try:
            lines = path.read_text(encoding="utf-8").splitlines()
        except OSError:
            parse_errors += 1
            continue

        for line in lines:
            lines_total += 1
            raw = line.strip()
            if not raw:
                continue

            try:
                payload = json.loads(raw)
            except json.JSONDecodeError:
                parse_errors += 1
                continue

            if not isinstance(payload, dict):
                parse_errors += 1
                continue

            # API request events carry request_id; submission events only submission_id.
            from_api = "request_id" in payload
            event = payload.get("event")
            if from_api:
                if isinstance(event, str):
                    api_event_counts[event] += 1
                if "status_code" in payload:
                    status_counts[str(payload["status_code"])] += 1
                total_ms = payload.get("total_ms")
                if event in {"done", "error"} and isinstance(total_ms, int | float):
                    request_ms_values.append(int(total_ms))
            elif isinstance(event, str):
                event_counts[event] += 1
                if event == "start" and isinstance(payload.get("inspection_type"), str):
                    inspection_type_counts[payload["inspection_type"]] += 1
                elapsed = payload.get("elapsed_ms")
                if event in {"done", "error"} and isinstance(elapsed, int | float):
                    elapsed_values.append(int(elapsed))

            error_kind = payload.get("error_kind")
            if isinstance(error_kind, str):
                error_kind_counts[error_kind] += 1

            failure_stage = payload.get("failure_stage")
            if isinstance(failure_stage, str):
                failure_stage_counts[failure_stage] += 1

    return {
        "files": [str(path) for path in paths],
        "lines_total": lines_total,
        "parse_errors": parse_errors,
        "event_counts": dict(sorted(event_counts.items())),
        "api_event_counts": dict(sorted(api_event_counts.items())),
        "inspection_type_counts": dict(sorted(inspection_type_counts.items())),
        "error_kind_counts": dict(sorted(error_kind_counts.items())),
        "failure_stage_counts": dict(sorted(failure_stage_counts.items())),
        "http_status_counts": dict(sorted(status_counts.items())),
        "elapsed_ms_p50": _percentile(elapsed_values, 50),
        "elapsed_ms_p95": _percentile(elapsed_values, 95),
        "request_ms_p50": _percentile(request_ms_values, 50),
        "request_ms_p95": _percentile(request_ms_values, 95),
    }


def main() -> None:
    args = _parse_args()
    paths = [Path(item).expanduser() for item in args.files]
    summary = summarize_log_files(paths)

    if args.json:
        print(json.dumps(summary, ensure_ascii=False, indent=2, sort_keys=True))
        return

    print("inspecta log summary")
    for key in (
        "lines_total",
        "parse_errors",
        "event_counts",
        "api_event_counts",
        "inspection_type_counts",
        "error_kind_counts",
        "failure_stage_counts",
        "http_status_counts",
        "elapsed_ms_p50",
        "elapsed_ms_p95",
        "request_ms_p50",
        "request_ms_p95",
    ):
        print(f"{key}={summary[key]}")


if __name__ == "__main__":
    main()

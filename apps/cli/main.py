"""Typer CLI entrypoint for inspecta."""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from pathlib import Path
from typing import Annotated, cast, get_args

import typer

from apps.cli.format_human import outcome_payload, render_field_plan, render_outcome
from apps.cli.io import (
    load_record,
    write_download_atomic,
    write_outcome_json_atomic,
    write_record_atomic,
)
from core.config import Settings, load_settings
from core.generation.client import HttpReportGenerator
from core.inspections.fields import COMMON_FIELDS, VARIANT_FIELDS
from core.inspections.models import INSPECTION_TYPES, InspectionType, new_record
from core.orchestrator.submission import SubmissionOrchestrator
from core.reports.presenter import ExportFormat, present
from core.storage.store import InMemoryReportStore, ReportStore, SupabaseReportStore

app = typer.Typer(help="Inspection report CLI", rich_markup_mode=None)


@app.callback()
def cli_callback() -> None:
    """CLI root callback to keep subcommands explicit."""


@app.command("fields")
def fields_command(
    inspection_type: Annotated[
        str | None, typer.Option("--type", help="Only show one inspection type.")
    ] = None,
) -> None:
    """Print the form fields for each inspection type."""

    if inspection_type is None:
        variants = dict(VARIANT_FIELDS)
    else:
        typed = _parse_inspection_type(inspection_type)
        variants = {typed: VARIANT_FIELDS[typed]}
    typer.echo(render_field_plan(COMMON_FIELDS, variants))


@app.command("new")
def new_command(
    out: Annotated[Path, typer.Option(..., dir_okay=False)],
    inspection_type: Annotated[str, typer.Option("--type")] = "API510",
    force: Annotated[
        bool, typer.Option("--force", help="Overwrite the output when it already exists.")
    ] = False,
) -> None:
    """Write a blank draft record with variant defaults."""

    typed = _parse_inspection_type(inspection_type)
    if out.exists() and not force:
        typer.echo(f"ERROR: output already exists: {out} (use --force)")
        raise typer.Exit(code=1)
    write_record_atomic(out, new_record(typed))
    typer.echo(f"INFO: wrote {typed} draft to {out}")


@app.command("submit")
def submit_command(
    record: Annotated[Path, typer.Option(..., exists=True, dir_okay=False, file_okay=True)],
    out_dir: Annotated[Path, typer.Option()] = Path("."),
    export_format: Annotated[str, typer.Option("--format")] = "txt",
    token: Annotated[
        str | None,
        typer.Option("--token", envvar="INSPECTA_TOKEN", help="Bearer token for the generator."),
    ] = None,
    config: Annotated[
        Path | None, typer.Option("--config", dir_okay=False, help="Settings YAML file.")
    ] = None,
    dry_store: Annotated[
        bool,
        typer.Option("--dry-store", help="Keep the persisted row in memory instead of the store."),
    ] = False,
    summary_json: Annotated[
        Path | None,
        typer.Option("--summary-json", dir_okay=False, help="Write the outcome summary as JSON."),
    ] = None,
) -> None:
    """Generate, persist and save one inspection report."""

    normalized_format = export_format.lower().strip()
    if normalized_format not in get_args(ExportFormat):
        typer.echo("ERROR: --format must be one of: txt, docx.")
        raise typer.Exit(code=1)
    format_typed = cast(ExportFormat, normalized_format)

    try:
        settings = load_settings(config)
        inspection = load_record(record)
        store = _build_store(settings, dry_store=dry_store)
    except ValueError as exc:
        typer.echo(f"ERROR: {exc}")
        raise typer.Exit(code=1) from exc

    logging.basicConfig(level=settings.log_level)
    orchestrator = SubmissionOrchestrator(
        generator=HttpReportGenerator(
            settings.generator_url,
            token=token,
            timeout_seconds=settings.generator_timeout_seconds,
        ),
        store=store,
    )
    outcome = asyncio.run(orchestrator.submit(inspection))
    typer.echo(render_outcome(outcome))
    if summary_json is not None:
        write_outcome_json_atomic(summary_json, outcome_payload(outcome))

    if outcome.report is None:
        message = outcome.error.message if outcome.error is not None else "submission failed"
        typer.echo(f"ERROR: {message}")
        raise typer.Exit(code=1)

    download = present(outcome.report, on_date=dt.date.today(), export_format=format_typed)
    path = write_download_atomic(out_dir, download)
    typer.echo(f"INFO: wrote report to {path}")


def _build_store(settings: Settings, *, dry_store: bool) -> ReportStore:
    if dry_store:
        return InMemoryReportStore()
    if not settings.store_url or not settings.store_key:
        raise ValueError("store_url and store_key must be configured (or pass --dry-store)")
    return SupabaseReportStore(settings.store_url, settings.store_key, table=settings.store_table)


def _parse_inspection_type(raw: str) -> InspectionType:
    normalized = raw.strip().upper()
    if normalized not in INSPECTION_TYPES:
        typer.echo(f"ERROR: --type must be one of: {', '.join(INSPECTION_TYPES)}.")
        raise typer.Exit(code=1)
    return cast(InspectionType, normalized)


def main() -> None:
    """Console script entrypoint."""

    app()


if __name__ == "__main__":
    main()

"""Turn generated report text into a downloadable artifact."""

from __future__ import annotations

import datetime as dt
import io
from dataclasses import dataclass
from typing import Literal

from docx import Document

from core.inspections.models import VARIANT_LABELS, GeneratedReport, InspectionType

ExportFormat = Literal["txt", "docx"]

TEXT_MIME_TYPE = "text/plain; charset=utf-8"
DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


@dataclass(frozen=True)
class ReportDownload:
    """File content plus the metadata a client needs to save it."""

    content: bytes
    suggested_filename: str
    mime_type: str
    extension: str

    @property
    def download_name(self) -> str:
        return f"{self.suggested_filename}{self.extension}"


def report_filename(inspection_type: InspectionType, on_date: dt.date) -> str:
    """Build ``inspection-report-<type>-<YYYY-MM-DD>`` without extension."""

    return f"inspection-report-{inspection_type}-{on_date.isoformat()}"


def present(
    report: GeneratedReport,
    *,
    on_date: dt.date | None = None,
    export_format: ExportFormat = "txt",
) -> ReportDownload:
    """Build the download artifact for ``report`` dated ``on_date`` (default today)."""

    filename = report_filename(report.inspection_type, on_date or dt.date.today())
    if export_format == "txt":
        return ReportDownload(
            content=report.text.encode("utf-8"),
            suggested_filename=filename,
            mime_type=TEXT_MIME_TYPE,
            extension=".txt",
        )
    if export_format == "docx":
        return ReportDownload(
            content=_render_docx(report),
            suggested_filename=filename,
            mime_type=DOCX_MIME_TYPE,
            extension=".docx",
        )
    raise ValueError(f"Unsupported export format: {export_format}")


def _render_docx(report: GeneratedReport) -> bytes:
    document = Document()
    document.add_heading(f"Inspection Report - {VARIANT_LABELS[report.inspection_type]}", level=1)
    for line in report.text.splitlines():
        document.add_paragraph(line)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


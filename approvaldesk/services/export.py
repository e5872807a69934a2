"""CSV and PDF renderings of audit entries."""
from __future__ import annotations

import csv
import enum
import io
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Mapping, Sequence

from reportlab.lib.pagesizes import A4, landscape
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from approvaldesk.config import Settings, get_settings
from approvaldesk.models.audit import AuditAction
from approvaldesk.schemas.approval import ApprovalSnapshot
from approvaldesk.schemas.audit import AuditLogRead, DeletionMetadata
from approvaldesk.services.audit import AuditTrail, Period
from approvaldesk.utils.time import format_report_timestamp, utcnow

logger = logging.getLogger(__name__)

# The trailing "Action" repeats "Status" for spreadsheets built on the old layout.
CSV_HEADERS = ["ID", "Type", "Requester", "Approver", "Status", "Justification", "Date", "Action"]
CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
PDF_MEDIA_TYPE = "application/pdf"
NOT_AVAILABLE = "N/A"
NO_DATA_MESSAGE = "No audit entries were recorded for the selected period."

PAGE_SIZE = landscape(A4)
MARGIN = 36
ROW_HEIGHT = 14
FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
FONT_SIZE = 8
COLUMN_WIDTHS = (60, 70, 115, 115, 55, 180, 115, 55)

_NEWLINES = re.compile(r"\r\n|\r|\n")


class ExportFormat(str, enum.Enum):
    csv = "csv"
    pdf = "pdf"


@dataclass(frozen=True)
class ExportResult:
    content: bytes
    media_type: str
    filename: str
    entry_count: int
    period: Period


def export_filename(start_date: str | None, end_date: str | None, fmt: ExportFormat) -> str:
    """Attachment name clients rely on: ``audit-logs-{start}-to-{end}.{ext}``."""

    return f"audit-logs-{start_date or 'all'}-to-{end_date or 'all'}.{fmt.value}"


def _flatten(value: object) -> str:
    return _NEWLINES.sub(" ", str(value))


def _fit(text: str, width: float, font: str, size: int) -> str:
    """Truncate ``text`` so it fits in ``width`` points."""

    if stringWidth(text, font, size) <= width:
        return text
    ellipsis = "..."
    while text and stringWidth(text + ellipsis, font, size) > width:
        text = text[:-1]
    return text + ellipsis


class ExportEngine:
    """Renders audit entries; reads nothing but what it is handed."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def _display_id(self, approval_id: str) -> str:
        if not approval_id:
            return NOT_AVAILABLE
        length = self._settings.EXPORT_ID_DISPLAY_LENGTH
        if len(approval_id) <= length:
            return approval_id
        return approval_id[:length] + "..."

    def rows(
        self,
        entries: Sequence[AuditLogRead],
        subjects: Mapping[str, ApprovalSnapshot] | None = None,
    ) -> list[list[str]]:
        """One row per entry, in the column order of ``CSV_HEADERS``."""

        subjects = subjects or {}
        rows: list[list[str]] = []
        for entry in entries:
            if entry.action == AuditAction.DELETED and isinstance(entry.metadata, DeletionMetadata):
                subject: ApprovalSnapshot | None = entry.metadata.snapshot
            else:
                subject = subjects.get(entry.approval_id)
            action = entry.action.value
            rows.append(
                [
                    _flatten(value)
                    for value in (
                        self._display_id(entry.approval_id),
                        subject.type.value if subject else NOT_AVAILABLE,
                        subject.requester if subject else NOT_AVAILABLE,
                        entry.approver or NOT_AVAILABLE,
                        action,
                        entry.comment or "-",
                        format_report_timestamp(entry.timestamp),
                        action,
                    )
                ]
            )
        return rows

    def to_csv(
        self,
        entries: Sequence[AuditLogRead],
        subjects: Mapping[str, ApprovalSnapshot] | None = None,
    ) -> bytes:
        """UTF-8 CSV with a byte-order mark so spreadsheets pick the encoding."""

        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        writer.writerows(self.rows(entries, subjects))
        return ("\ufeff" + buffer.getvalue()).encode("utf-8")

    def to_pdf(
        self,
        entries: Sequence[AuditLogRead],
        subjects: Mapping[str, ApprovalSnapshot] | None = None,
        *,
        period: Period | None = None,
        generated_at: datetime | None = None,
    ) -> bytes:
        rows = self.rows(entries, subjects)
        buffer = io.BytesIO()
        pdf = canvas.Canvas(buffer, pagesize=PAGE_SIZE)
        pdf.setTitle(self._settings.EXPORT_PDF_TITLE)
        _, height = PAGE_SIZE
        page = 1

        y = self._draw_title(pdf, len(rows), generated_at or utcnow(), period)
        if not rows:
            pdf.setFont(FONT, 11)
            pdf.drawString(MARGIN, y - 2 * ROW_HEIGHT, NO_DATA_MESSAGE)
        else:
            y = self._draw_table_header(pdf, y)
            for row in rows:
                if y - ROW_HEIGHT < MARGIN:
                    self._draw_page_number(pdf, page)
                    pdf.showPage()
                    page += 1
                    y = self._draw_table_header(pdf, height - MARGIN)
                self._draw_row(pdf, row, y, FONT)
                y -= ROW_HEIGHT
        self._draw_page_number(pdf, page)
        pdf.save()
        return buffer.getvalue()

    def _draw_title(self, pdf: canvas.Canvas, count: int, generated_at: datetime, period: Period | None) -> float:
        _, height = PAGE_SIZE
        y = height - MARGIN
        pdf.setFont(FONT_BOLD, 16)
        pdf.drawString(MARGIN, y, self._settings.EXPORT_PDF_TITLE)
        y -= 2 * ROW_HEIGHT
        pdf.setFont(FONT, 10)
        pdf.drawString(MARGIN, y, f"Generated at: {format_report_timestamp(generated_at)}")
        y -= ROW_HEIGHT
        pdf.drawString(MARGIN, y, f"Total entries: {count}")
        if period is not None and (period.start or period.end):
            y -= ROW_HEIGHT
            start = format_report_timestamp(period.start) if period.start else "beginning"
            end = format_report_timestamp(period.end) if period.end else "now"
            suffix = " (adjusted to recorded data)" if period.adjusted else ""
            pdf.drawString(MARGIN, y, f"Period: {start} to {end}{suffix}")
        return y - ROW_HEIGHT

    def _draw_table_header(self, pdf: canvas.Canvas, y: float) -> float:
        self._draw_row(pdf, CSV_HEADERS, y, FONT_BOLD)
        pdf.line(MARGIN, y - 3, MARGIN + sum(COLUMN_WIDTHS), y - 3)
        return y - ROW_HEIGHT

    def _draw_row(self, pdf: canvas.Canvas, cells: Sequence[str], y: float, font: str) -> None:
        pdf.setFont(font, FONT_SIZE)
        x = MARGIN
        for cell, width in zip(cells, COLUMN_WIDTHS):
            pdf.drawString(x, y, _fit(cell, width - 4, font, FONT_SIZE))
            x += width

    def _draw_page_number(self, pdf: canvas.Canvas, page: int) -> None:
        width, _ = PAGE_SIZE
        pdf.setFont(FONT, FONT_SIZE)
        pdf.drawRightString(width - MARGIN, MARGIN / 2, f"Page {page}")


def export_audit_logs(
    trail: AuditTrail,
    fmt: ExportFormat,
    start_date: str | None = None,
    end_date: str | None = None,
    *,
    engine: ExportEngine | None = None,
) -> ExportResult:
    """Query the trail for a window (oldest first) and render it."""

    engine = engine or ExportEngine()
    period = Period.from_bounds(start_date, end_date)
    entries = trail.query_period(period, ascending=True)
    if not entries and (start_date or end_date):
        period = trail.adjust_period_to_include_data(start_date, end_date)
        if period.adjusted:
            entries = trail.query_period(period, ascending=True)
    subjects = trail.resolve_subjects(entries)

    if fmt == ExportFormat.csv:
        content = engine.to_csv(entries, subjects)
        media_type = CSV_MEDIA_TYPE
    else:
        content = engine.to_pdf(entries, subjects, period=period)
        media_type = PDF_MEDIA_TYPE

    logger.info(
        "Audit export generated",
        extra={
            "format": fmt.value,
            "start": start_date,
            "end": end_date,
            "entries": len(entries),
            "bytes": len(content),
            "period_adjusted": period.adjusted,
        },
    )
    return ExportResult(
        content=content,
        media_type=media_type,
        filename=export_filename(start_date, end_date, fmt),
        entry_count=len(entries),
        period=period,
    )


__all__ = [
    "CSV_HEADERS",
    "CSV_MEDIA_TYPE",
    "PDF_MEDIA_TYPE",
    "NO_DATA_MESSAGE",
    "ExportEngine",
    "ExportFormat",
    "ExportResult",
    "export_audit_logs",
    "export_filename",
]

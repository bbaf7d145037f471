"""
Excel export for reports.

One workbook per report: a summary sheet with the headline figures followed
by one sheet per table. Money columns keep numeric cells with a currency
number format so the workbook stays usable for further calculation.
"""

from __future__ import annotations

import io
import logging
from typing import TYPE_CHECKING, Any

from openpyxl import Workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter

if TYPE_CHECKING:
    from openpyxl.worksheet.worksheet import Worksheet

    from truckops.models.report import ReportDocument

logger = logging.getLogger(__name__)

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_HEADER_FONT = Font(bold=True)
_HEADER_FILL = PatternFill("solid", fgColor="F1F5F9")
_TITLE_FONT = Font(bold=True, size=14)
_MIN_WIDTH = 10
_MAX_WIDTH = 60
# Excel rejects sheet titles longer than 31 characters or containing these.
_SHEET_NAME_LIMIT = 31
_INVALID_SHEET_CHARS = set("[]:*?/\\")


def _sheet_title(name: str, used: set[str]) -> str:
    cleaned = "".join(c for c in name if c not in _INVALID_SHEET_CHARS).strip() or "Sheet"
    title = cleaned[:_SHEET_NAME_LIMIT]
    n = 2
    while title.lower() in used:
        suffix = f" ({n})"
        title = cleaned[: _SHEET_NAME_LIMIT - len(suffix)] + suffix
        n += 1
    used.add(title.lower())
    return title


def _fit_columns(ws: Worksheet) -> None:
    widths: dict[int, int] = {}
    for row in ws.iter_rows():
        for cell in row:
            if cell.value is None:
                continue
            length = len(str(cell.value))
            widths[cell.column] = max(widths.get(cell.column, 0), length)
    for column, width in widths.items():
        ws.column_dimensions[get_column_letter(column)].width = min(
            _MAX_WIDTH, max(_MIN_WIDTH, width + 2)
        )


def _write_header(ws: Worksheet, headers: list[str], row: int) -> None:
    for col, header in enumerate(headers, start=1):
        cell = ws.cell(row=row, column=col, value=header)
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL


def _cell_value(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def build_workbook(document: ReportDocument) -> Workbook:
    wb = Workbook()
    wb.properties.title = document.title
    wb.properties.creator = "TruckOps"
    wb.properties.subject = document.period_label

    used: set[str] = set()
    summary = wb.active
    summary.title = _sheet_title("Summary", used)
    summary.cell(row=1, column=1, value=document.title).font = _TITLE_FONT
    summary.cell(row=3, column=1, value="Period:")
    summary.cell(row=3, column=2, value=document.period_label)
    if document.subtitle:
        summary.cell(row=4, column=1, value="Business:")
        summary.cell(row=4, column=2, value=document.subtitle)
    summary.cell(row=5, column=1, value="Generated:")
    summary.cell(row=5, column=2, value=document.generated_at.strftime("%d.%m.%Y %H:%M"))
    for offset, (label, value) in enumerate(document.summary):
        summary.cell(row=7 + offset, column=1, value=label).font = _HEADER_FONT
        summary.cell(row=7 + offset, column=2, value=value)
    _fit_columns(summary)

    money_format = f'"{document.currency}" #,##0.00'
    for table in document.tables:
        ws = wb.create_sheet(_sheet_title(table.sheet_name, used))
        _write_header(ws, table.headers, row=1)
        for r, values in enumerate(table.rows, start=2):
            for c, value in enumerate(values, start=1):
                cell = ws.cell(row=r, column=c, value=_cell_value(value))
                if c - 1 in table.currency_columns and isinstance(value, (int, float)):
                    cell.number_format = money_format
        ws.freeze_panes = "A2"
        _fit_columns(ws)
    return wb


def render_excel(document: ReportDocument) -> tuple[bytes, str]:
    """Render *document* to XLSX bytes.

    Returns:
        ``(content, content_type)``.
    """
    wb = build_workbook(document)
    buffer = io.BytesIO()
    wb.save(buffer)
    logger.debug("Excel report built with %d sheets", len(wb.sheetnames))
    return buffer.getvalue(), XLSX_CONTENT_TYPE

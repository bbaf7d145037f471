"""CSV and JSON renditions of a report document."""

from __future__ import annotations

import csv
import io
from typing import TYPE_CHECKING

import orjson

from truckops.services.reports.builder import format_currency

if TYPE_CHECKING:
    from truckops.models.report import ReportDocument

CSV_CONTENT_TYPE = "text/csv; charset=utf-8"
JSON_CONTENT_TYPE = "application/json"


def render_csv(document: ReportDocument) -> tuple[bytes, str]:
    """Write the summary and then every table, separated by blank lines."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow([document.title])
    writer.writerow(["Period", document.period_label])
    for label, value in document.summary:
        writer.writerow([label, value])

    for table in document.tables:
        writer.writerow([])
        writer.writerow([table.title])
        writer.writerow(table.headers)
        for row in table.rows:
            writer.writerow(
                [
                    format_currency(cell, document.currency)
                    if i in table.currency_columns
                    else cell
                    for i, cell in enumerate(row)
                ]
            )
    return buffer.getvalue().encode("utf-8"), CSV_CONTENT_TYPE


def render_json(document: ReportDocument) -> tuple[bytes, str]:
    content = orjson.dumps(document.model_dump(mode="json"), option=orjson.OPT_INDENT_2)
    return content, JSON_CONTENT_TYPE

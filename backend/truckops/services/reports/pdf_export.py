"""
PDF export for reports.

Renders a ReportDocument to HTML via an embedded Jinja2 template and
converts it to PDF using WeasyPrint. Falls back to the HTML bytes if
WeasyPrint or its system libraries are not available.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from jinja2 import Environment, select_autoescape

from truckops.services.reports.builder import format_currency

if TYPE_CHECKING:
    from truckops.models.report import ReportDocument

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
HTML_CONTENT_TYPE = "text/html; charset=utf-8"

# ---------------------------------------------------------------------------
# Embedded HTML template (A4, page counter in the footer)
# ---------------------------------------------------------------------------

_REPORT_HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>{{ doc.title }}</title>
<style>
  @page {
    size: A4;
    margin: 2cm 1.5cm;
    @bottom-left {
      content: "Generated on {{ generated }}";
      font-size: 8pt;
      color: #999;
    }
    @bottom-right {
      content: "Page " counter(page) " of " counter(pages);
      font-size: 8pt;
      color: #999;
    }
  }
  body {
    font-family: 'Helvetica Neue', Helvetica, Arial, sans-serif;
    font-size: 10pt;
    line-height: 1.5;
    color: #333;
  }
  .header {
    margin-bottom: 1.5em;
    padding-bottom: 0.8em;
    border-bottom: 2px solid #3B82F6;
  }
  .header h1 { color: #1E3A8A; font-size: 20pt; margin: 0 0 0.2em 0; }
  .header .subtitle { color: #666; font-size: 10pt; }
  .summary {
    background: #F8FAFC;
    padding: 0.8em 1.2em;
    border-left: 4px solid #3B82F6;
    margin-bottom: 1.5em;
  }
  .summary td { border: none; padding: 0.2em 0.6em; }
  .summary td.value { text-align: right; font-weight: 600; }
  h2 {
    color: #1E3A8A;
    font-size: 13pt;
    border-bottom: 1px solid #E2E8F0;
    padding-bottom: 0.2em;
    margin-top: 1.2em;
  }
  table { width: 100%; border-collapse: collapse; margin: 0.6em 0; }
  th, td { border: 1px solid #E2E8F0; padding: 0.35em 0.6em; text-align: left; }
  th { background: #F1F5F9; font-weight: 600; color: #374151; }
  tr:nth-child(even) td { background: #FAFBFC; }
  td.money { text-align: right; white-space: nowrap; }
  .empty { color: #9CA3AF; font-style: italic; }
</style>
</head>
<body>
  <div class="header">
    <h1>{{ doc.title }}</h1>
    <div class="subtitle">
      {% if doc.subtitle %}{{ doc.subtitle }} | {% endif %}Period: {{ doc.period_label }}
    </div>
  </div>

  {% if doc.summary %}
  <div class="summary">
    <table>
      {% for label, value in doc.summary %}
      <tr><td>{{ label }}</td><td class="value">{{ value }}</td></tr>
      {% endfor %}
    </table>
  </div>
  {% endif %}

  {% for table in doc.tables %}
  <h2>{{ table.title }}</h2>
  {% if table.rows %}
  <table>
    <thead>
      <tr>{% for h in table.headers %}<th>{{ h }}</th>{% endfor %}</tr>
    </thead>
    <tbody>
      {% for row in table.rows %}
      <tr>
        {% for cell in row %}
        {% if loop.index0 in table.currency_columns %}
        <td class="money">{{ money(cell) }}</td>
        {% else %}
        <td>{{ cell }}</td>
        {% endif %}
        {% endfor %}
      </tr>
      {% endfor %}
    </tbody>
  </table>
  {% else %}
  <p class="empty">No data for this period.</p>
  {% endif %}
  {% endfor %}
</body>
</html>"""

_env = Environment(autoescape=select_autoescape(default_for_string=True))


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def render_html(document: ReportDocument) -> str:
    """Render *document* to a standalone HTML page."""
    template = _env.from_string(_REPORT_HTML_TEMPLATE)
    return template.render(
        doc=document,
        money=lambda value: format_currency(value, document.currency),
        generated=document.generated_at.strftime("%d.%m.%Y %H:%M"),
    )


def render_pdf(document: ReportDocument) -> tuple[bytes, str]:
    """Render *document* to PDF bytes.

    Returns:
        ``(content, content_type)``. When WeasyPrint cannot produce a PDF
        the HTML is returned instead with an HTML content type.
    """
    html_content = render_html(document)
    try:
        return _convert_to_pdf(html_content), PDF_CONTENT_TYPE
    except ImportError:
        logger.warning("WeasyPrint not available, falling back to HTML export")
    except Exception as exc:
        logger.warning("PDF conversion failed: %s. Falling back to HTML.", exc)
    return html_content.encode("utf-8"), HTML_CONTENT_TYPE


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _convert_to_pdf(html_content: str) -> bytes:
    """Convert HTML to PDF using WeasyPrint."""
    from weasyprint import HTML

    return HTML(string=html_content).write_pdf()

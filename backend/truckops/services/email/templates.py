"""
Jinja2 templates for outbound email.

Each ``render_*`` function returns ``(subject, html, text)`` ready to hand
to :meth:`EmailClient.send`. Styles are inlined because most mail clients
ignore ``<style>`` blocks.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import TYPE_CHECKING

from jinja2 import Environment, select_autoescape
from markupsafe import Markup

if TYPE_CHECKING:
    from truckops.models.alert import Alert
    from truckops.models.inventory import InventoryItem
    from truckops.models.report import ReportRecord

_env = Environment(autoescape=select_autoescape(default_for_string=True))

# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

_LAYOUT = """<!DOCTYPE html>
<html lang="en">
<body style="margin:0;padding:0;background:#F3F4F6;font-family:Helvetica,Arial,sans-serif;">
  <div style="max-width:600px;margin:24px auto;background:#FFFFFF;border-radius:8px;overflow:hidden;">
    <div style="background:{{ accent }};color:#FFFFFF;padding:16px 24px;font-size:18px;font-weight:bold;">
      {{ heading }}
    </div>
    <div style="padding:24px;color:#1F2937;font-size:14px;line-height:1.6;">
      {{ body }}
    </div>
    <div style="padding:12px 24px;color:#9CA3AF;font-size:11px;border-top:1px solid #E5E7EB;">
      TruckOps &middot; {{ sent_at }}
    </div>
  </div>
</body>
</html>"""

_ALERT_BODY = """<p>{{ alert.message }}</p>
<table style="border-collapse:collapse;width:100%;">
  <tr><td style="padding:4px 8px;color:#6B7280;">Severity</td><td style="padding:4px 8px;font-weight:bold;">{{ alert.severity }}</td></tr>
  <tr><td style="padding:4px 8px;color:#6B7280;">Category</td><td style="padding:4px 8px;">{{ alert.category }}</td></tr>
  {% if alert.metric %}<tr><td style="padding:4px 8px;color:#6B7280;">Metric</td><td style="padding:4px 8px;">{{ alert.metric }}: {{ alert.value }} (threshold {{ alert.threshold }})</td></tr>{% endif %}
  <tr><td style="padding:4px 8px;color:#6B7280;">Tenant</td><td style="padding:4px 8px;">{{ alert.tenant_id }}</td></tr>
</table>"""

_LOW_STOCK_BODY = """<p><strong>{{ item.product_name }}</strong> is running low.</p>
<p>Current stock: <strong>{{ stock }} {{ item.unit }}</strong><br>
Minimum stock: {{ item.min_stock }} {{ item.unit }}</p>
<p>Please reorder soon to avoid running out during service.</p>"""

_REPORT_BODY = """<p>Your scheduled <strong>{{ report.report_type }}</strong> report is ready.</p>
<p>{{ report.title }}{% if period %} ({{ period }}){% endif %}</p>
{% if download_url %}<p><a href="{{ download_url }}" style="color:#2563EB;">Download the report</a></p>{% endif %}"""

_SEVERITY_COLORS = {
    "critical": "#DC2626",
    "high": "#EA580C",
    "medium": "#D97706",
    "low": "#2563EB",
}


def _wrap(heading: str, body: str, accent: str = "#0D9488") -> str:
    return _env.from_string(_LAYOUT).render(
        heading=heading,
        body=Markup(body),
        accent=accent,
        sent_at=datetime.now(UTC).strftime("%Y-%m-%d %H:%M UTC"),
    )


# ---------------------------------------------------------------------------
# Public renderers
# ---------------------------------------------------------------------------


def render_alert_email(alert: Alert) -> tuple[str, str, str]:
    severity = str(alert.severity)
    subject = f"[{severity.upper()}] {alert.message}"
    body = _env.from_string(_ALERT_BODY).render(alert=alert)
    html = _wrap("Alert triggered", body, _SEVERITY_COLORS.get(severity, "#0D9488"))
    text = f"{alert.message}\nSeverity: {severity}\nCategory: {alert.category}"
    return subject, html, text


def render_low_stock_email(item: InventoryItem, stock: float) -> tuple[str, str, str]:
    subject = f"Low stock: {item.product_name}"
    body = _env.from_string(_LOW_STOCK_BODY).render(item=item, stock=stock)
    html = _wrap("Low stock warning", body, "#D97706")
    text = (
        f"{item.product_name} is running low: {stock} {item.unit} left "
        f"(minimum {item.min_stock} {item.unit})."
    )
    return subject, html, text


def render_report_email(
    report: ReportRecord,
    period: str = "",
    download_url: str | None = None,
) -> tuple[str, str, str]:
    subject = f"Scheduled report: {report.title}"
    body = _env.from_string(_REPORT_BODY).render(
        report=report, period=period, download_url=download_url
    )
    html = _wrap("Your report is ready", body)
    text = f"Your scheduled {report.report_type} report is ready: {report.title}"
    if period:
        text += f" ({period})"
    return subject, html, text

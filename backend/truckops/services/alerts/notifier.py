"""
Notification fan-out for triggered alerts.

Each channel enabled on the rule is attempted independently. A failing
channel is logged and reported but never propagates, so alert creation is
not affected by a broken mail relay or webhook.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

import httpx
import orjson
from pydantic import BaseModel, Field

from truckops.models.alert import NotificationChannel

if TYPE_CHECKING:
    from redis.asyncio import Redis

    from truckops.models.alert import Alert, AlertRule
    from truckops.services.email.client import EmailClient

logger = logging.getLogger(__name__)

ALERT_CHANNEL_PREFIX = "truckops:alerts"


def alert_channel(tenant_id: str) -> str:
    """Redis pub/sub channel carrying a tenant's live alerts."""
    return f"{ALERT_CHANNEL_PREFIX}:{tenant_id}"


class NotificationReport(BaseModel):
    """Outcome of one fan-out."""

    alert_id: str
    muted: bool = False
    delivered: list[str] = Field(default_factory=list)
    failed: dict[str, str] = Field(default_factory=dict)
    skipped: list[str] = Field(default_factory=list)


class AlertNotifier:
    """Dispatch an alert to email, push and webhook channels.

    Args:
        email_client: Client for the email functions, or ``None``.
        redis: Redis client used for push fan-out, or ``None``.
        http_client: Client used for webhooks; created lazily when omitted.
        muted: When true, nothing is sent.
        default_channels: Channels used for alerts without a rule.
        default_recipients: Recipients used for alerts without a rule.
    """

    def __init__(
        self,
        email_client: Optional[EmailClient] = None,
        redis: Optional[Redis] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        muted: bool = False,
        default_channels: tuple[str, ...] = (NotificationChannel.PUSH.value,),
        default_recipients: tuple[str, ...] = (),
    ) -> None:
        self._email = email_client
        self._redis = redis
        self._http = http_client
        self.muted = muted
        self._default_channels = default_channels
        self._default_recipients = default_recipients

    async def notify(self, alert: Alert, rule: Optional[AlertRule] = None) -> NotificationReport:
        if rule is not None:
            channels = [getattr(c, "value", c) for c in rule.channels]
            recipients = list(rule.recipients)
        else:
            channels = list(self._default_channels)
            recipients = list(self._default_recipients)

        report = NotificationReport(alert_id=alert.alert_id)
        if self.muted:
            report.muted = True
            report.skipped = channels
            return report

        for channel in channels:
            try:
                sent = await self._dispatch(channel, alert, recipients)
            except Exception as exc:
                logger.warning(
                    "Alert notification via %s failed: %s",
                    channel,
                    exc,
                    extra={"alert_id": alert.alert_id, "tenant_id": alert.tenant_id},
                )
                report.failed[channel] = str(exc)
                continue
            if sent:
                report.delivered.append(channel)
            else:
                report.skipped.append(channel)

        return report

    async def _dispatch(self, channel: str, alert: Alert, recipients: list[str]) -> bool:
        if channel == NotificationChannel.EMAIL.value:
            return await self._send_email(alert, recipients)
        if channel == NotificationChannel.PUSH.value:
            return await self._publish(alert)
        if channel == NotificationChannel.WEBHOOK.value:
            return await self._post_webhooks(alert, recipients)

        logger.info(
            "Notification channel %s has no delivery backend; skipping",
            channel,
            extra={"alert_id": alert.alert_id},
        )
        return False

    async def _send_email(self, alert: Alert, recipients: list[str]) -> bool:
        from truckops.services.email.templates import render_alert_email

        addresses = [r for r in recipients if "@" in r]
        if self._email is None or not addresses:
            return False
        subject, html, text = render_alert_email(alert)
        await self._email.send(
            to=addresses,
            subject=subject,
            html=html,
            text=text,
            metadata={"alert_id": alert.alert_id, "tenant_id": alert.tenant_id},
        )
        return True

    async def _publish(self, alert: Alert) -> bool:
        if self._redis is None:
            return False
        payload = orjson.dumps(alert.model_dump(mode="json"))
        await self._redis.publish(alert_channel(alert.tenant_id), payload)
        return True

    async def _post_webhooks(self, alert: Alert, recipients: list[str]) -> bool:
        urls = [r for r in recipients if r.startswith(("http://", "https://"))]
        if not urls:
            return False
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=httpx.Timeout(10.0))
        body: dict[str, Any] = {"event": "alert.triggered", "alert": alert.model_dump(mode="json")}
        for url in urls:
            response = await self._http.post(url, json=body)
            response.raise_for_status()
        return True

    async def close(self) -> None:
        if self._http is not None:
            await self._http.aclose()

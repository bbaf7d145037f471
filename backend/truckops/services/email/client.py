"""
Async HTTP client for the serverless email functions.

Outbound email (alert notifications, low-stock warnings, scheduled report
delivery) is sent by POSTing to two callable endpoints, ``sendEmail`` and
``sendBatchEmails``, under ``EMAIL_FUNCTION_URL``.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field

from truckops.config import Settings
from truckops.core.exceptions import ServiceUnavailableException

logger = logging.getLogger(__name__)

SEND_ENDPOINT = "sendEmail"
BATCH_ENDPOINT = "sendBatchEmails"


class EmailMessage(BaseModel):
    """One outbound email in the wire shape the functions expect."""

    to: list[str] = Field(..., min_length=1)
    subject: str
    html: str = ""
    text: str = ""
    attachment_url: Optional[str] = Field(default=None, serialization_alias="attachmentUrl")
    metadata: dict[str, Any] = Field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class EmailClient:
    """Thin wrapper around ``httpx.AsyncClient`` for the email functions.

    Failures are logged and raised as ``ServiceUnavailableException`` so
    best-effort callers can catch a single exception type.

    Args:
        base_url: Base URL of the functions; empty disables sending.
        token: Optional bearer token.
        sender: ``from`` address added to the metadata.
        timeout: Request timeout in seconds.
        http_client: Pre-built client, used by tests to inject a transport.
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        sender: str = "",
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._sender = sender
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._http = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers=headers,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> EmailClient:
        return cls(
            base_url=settings.EMAIL_FUNCTION_URL,
            token=settings.EMAIL_FUNCTION_TOKEN,
            sender=settings.EMAIL_FROM,
            timeout=settings.EMAIL_TIMEOUT,
        )

    @property
    def configured(self) -> bool:
        return bool(self._base_url)

    async def close(self) -> None:
        """Shut down the underlying HTTP client."""
        await self._http.aclose()

    async def ping(self) -> None:
        """Check that the functions host answers.

        Any response below 500 counts as reachable; the host is not
        expected to serve its base URL.

        Raises:
            ServiceUnavailableException: If not configured, unreachable, or
                answering with a server error.
        """
        if not self.configured:
            raise ServiceUnavailableException(
                service="Email service",
                detail={"reason": "EMAIL_FUNCTION_URL is not set"},
            )
        try:
            response = await self._http.get(self._base_url)
        except httpx.RequestError as exc:
            raise ServiceUnavailableException(
                service="Email service", detail={"reason": str(exc)}
            ) from exc
        if response.status_code >= 500:
            raise ServiceUnavailableException(
                service="Email service", detail={"status_code": response.status_code}
            )

    async def send(
        self,
        to: list[str] | str,
        subject: str,
        html: str = "",
        text: str = "",
        attachment_url: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Send a single email.

        Returns:
            The JSON body returned by the function.

        Raises:
            ServiceUnavailableException: If the function is not configured,
                unreachable, or answers with an error status.
        """
        recipients = [to] if isinstance(to, str) else list(to)
        message = EmailMessage(
            to=recipients,
            subject=subject,
            html=html,
            text=text,
            attachment_url=attachment_url,
            metadata=self._with_sender(metadata),
        )
        return await self._post(SEND_ENDPOINT, message.to_payload())

    async def send_batch(self, messages: list[EmailMessage]) -> dict[str, Any]:
        """Send several emails in one call to ``sendBatchEmails``."""
        for message in messages:
            message.metadata = self._with_sender(message.metadata)
        payload = {"emails": [m.to_payload() for m in messages]}
        return await self._post(BATCH_ENDPOINT, payload)

    def _with_sender(self, metadata: Optional[dict[str, Any]]) -> dict[str, Any]:
        merged = dict(metadata or {})
        if self._sender:
            merged.setdefault("from", self._sender)
        return merged

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        if not self.configured:
            logger.warning("Email function URL not configured; dropping %s call", endpoint)
            raise ServiceUnavailableException(
                service="Email service",
                detail={"reason": "EMAIL_FUNCTION_URL is not set"},
            )

        url = f"{self._base_url}/{endpoint}"
        start = time.perf_counter()
        try:
            response = await self._http.post(url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.error(
                "Email function HTTP %d after %.0fms: %s",
                exc.response.status_code,
                elapsed_ms,
                exc.response.text[:500],
            )
            raise ServiceUnavailableException(
                service="Email service",
                detail={"status_code": exc.response.status_code},
            ) from exc
        except httpx.RequestError as exc:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.error("Email function request failed after %.0fms: %s", elapsed_ms, exc)
            raise ServiceUnavailableException(
                service="Email service",
                detail={"reason": str(exc)},
            ) from exc

        logger.info(
            "Email function %s succeeded",
            endpoint,
            extra={"endpoint": endpoint},
        )
        if not response.content:
            return {}
        return response.json()

"""Outbound email providers for order notifications.

Providers make a single attempt. The dispatcher does not retry either, so a
failed send is logged and dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import uuid4

import httpx

from app.core.config import settings
from app.utils.normalization import mask_email

logger = logging.getLogger(__name__)

RESEND_SEND_URL = "https://api.resend.com/emails"


@dataclass(frozen=True)
class EmailSendResult:
    id: str | None = None
    error: str | None = None


class EmailProvider(Protocol):
    key: str

    async def send(
        self,
        *,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> EmailSendResult:
        """Send one message; failures are reported in the result, not raised."""


class ResendEmailProvider:
    """Resend HTTP API, one POST per message."""

    key = "resend"

    def __init__(
        self,
        api_key: str,
        from_address: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._from_address = from_address
        self._timeout = timeout
        self._transport = transport

    async def send(
        self,
        *,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> EmailSendResult:
        payload: dict[str, object] = {
            "from": self._from_address,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        if text:
            payload["text"] = text
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(RESEND_SEND_URL, headers=headers, json=payload)
        except httpx.TimeoutException:
            return EmailSendResult(error="Connection timeout")
        except httpx.HTTPError as e:
            return EmailSendResult(error=f"Connection error: {e.__class__.__name__}")

        if 200 <= response.status_code < 300:
            try:
                data = response.json()
            except ValueError:
                data = {}
            message_id = data.get("id") if isinstance(data, dict) else None
            if isinstance(message_id, str) and message_id:
                return EmailSendResult(id=message_id)
            return EmailSendResult(error="Provider response missing message id")

        detail = ""
        try:
            data = response.json()
            if isinstance(data, dict):
                detail = str(data.get("message") or "")
        except ValueError:
            detail = ""
        error = f"HTTP {response.status_code}"
        if detail:
            error = f"{error}: {detail[:200]}"
        return EmailSendResult(error=error)


class LoggingEmailProvider:
    """Dry run: log the send instead of delivering it."""

    key = "log"

    async def send(
        self,
        *,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> EmailSendResult:
        message_id = f"dry-run-{uuid4().hex}"
        logger.info(
            "Email dry run to=%s subject=%r message_id=%s",
            mask_email(to),
            subject,
            message_id,
        )
        return EmailSendResult(id=message_id)


def get_email_provider() -> EmailProvider:
    """Resend when an API key is configured, otherwise the dry-run provider."""
    if settings.RESEND_API_KEY:
        return ResendEmailProvider(
            api_key=settings.RESEND_API_KEY,
            from_address=settings.email_from_address,
            timeout=settings.NOTIFY_SEND_TIMEOUT_SECONDS,
        )
    return LoggingEmailProvider()

"""Outbound delivery of rendered digests.

The scheduler talks to a DeliveryAdapter. The default adapter sends one
Resend email addressed to the whole recipient list.
"""

import asyncio
from dataclasses import dataclass
from typing import Protocol

import resend

from focusroom.config import get_settings
from focusroom.core.errors import DeliveryFailure
from focusroom.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class DeliveryReport:
    """Outcome of handing a digest to the transport."""

    emails_sent: int
    emails_failed: int
    message_id: str | None = None


class DeliveryAdapter(Protocol):
    """Protocol for digest transports."""

    name: str

    def is_configured(self) -> bool: ...

    async def send(self, to: list[str], subject: str, html: str) -> DeliveryReport:
        """Send one message to every address in ``to``.

        Raises DeliveryFailure if the transport rejected the message.
        """
        ...


class ResendDelivery:
    """Resend transport. Unconfigured (no API key) means nothing is sent."""

    name = "resend"

    def __init__(self, api_key: str | None = None, sender: str | None = None) -> None:
        settings = get_settings()
        self.api_key = settings.resend_api_key if api_key is None else api_key
        self.sender = sender or settings.email_from

    def is_configured(self) -> bool:
        return bool(self.api_key)

    async def send(self, to: list[str], subject: str, html: str) -> DeliveryReport:
        if not self.is_configured():
            logger.bind(recipient_count=len(to)).warning("resend_not_configured")
            return DeliveryReport(emails_sent=0, emails_failed=0)

        resend.api_key = self.api_key
        params = {
            "from": self.sender,
            "to": to,
            "subject": subject,
            "html": html,
        }

        try:
            # resend's client is synchronous
            loop = asyncio.get_running_loop()
            response = await loop.run_in_executor(None, resend.Emails.send, params)
        except Exception as e:
            logger.bind(recipient_count=len(to), error=str(e)).error("digest_email_failed")
            raise DeliveryFailure(f"Resend rejected the digest: {e}", len(to)) from e

        message_id = response.get("id") if isinstance(response, dict) else None
        logger.bind(recipient_count=len(to), message_id=message_id).info("digest_email_sent")
        return DeliveryReport(emails_sent=len(to), emails_failed=0, message_id=message_id)

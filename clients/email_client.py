"""
Transactional email through the HTTP email gateway.

Invoices and receipts leave as one signed JSON request each: the gateway
checks X-API-Key and an HMAC-SHA256 of the raw body (X-Signature), then
queues the message. Attachments are base64 inside that same body, so the
signature covers them too.
"""

import base64
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass, field

import requests

logger = logging.getLogger(__name__)


class EmailGatewayError(Exception):
    """Gateway unreachable, or it refused the message."""


@dataclass
class Attachment:
    filename: str
    content: bytes
    content_type: str = "application/pdf"

    def to_wire(self) -> dict:
        return {
            "filename": self.filename,
            "content_type": self.content_type,
            "content": base64.b64encode(self.content).decode("ascii"),
        }


@dataclass
class OutgoingEmail:
    """
    One message to a client.

    sender_name and reply_to carry the business identity; the gateway's own
    address stays the envelope sender.
    """
    to: str
    subject: str
    text: str
    html: str | None = None
    sender_name: str | None = None
    reply_to: str | None = None
    attachments: list[Attachment] = field(default_factory=list)

    def to_wire(self) -> dict:
        payload = {"type": "custom", "email": self.to, "subject": self.subject, "body": self.text}
        optional = {"html": self.html, "sender_name": self.sender_name, "reply_to": self.reply_to}
        payload.update({key: value for key, value in optional.items() if value})
        if self.attachments:
            payload["attachments"] = [attachment.to_wire() for attachment in self.attachments]
        return payload


class EmailGatewayClient:
    """
    Usage:
        gateway = EmailGatewayClient(**get_email_config())
        message_id = gateway.send(OutgoingEmail(to=..., subject=..., text=...))
    """

    def __init__(self, gateway_url: str, api_key: str, hmac_secret: str, timeout: int = 30):
        """
        Raises:
            ValueError: If any credential is empty
        """
        for name, value in (("gateway_url", gateway_url), ("api_key", api_key), ("hmac_secret", hmac_secret)):
            if not value:
                raise ValueError(f"{name} is required")

        self.gateway_url = gateway_url
        self.api_key = api_key
        self._secret = hmac_secret.encode("utf-8")
        self.timeout = timeout

    def signature(self, body: bytes) -> str:
        return hmac.new(self._secret, body, hashlib.sha256).hexdigest()

    def send(self, email: OutgoingEmail) -> str | None:
        """
        Hand one message to the gateway.

        Returns:
            The gateway's message id, when it reports one

        Raises:
            EmailGatewayError: Network failure, unreadable reply, or a rejection
        """
        body = json.dumps(email.to_wire(), separators=(",", ":")).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self.api_key,
            "X-Signature": self.signature(body),
        }

        try:
            response = requests.post(self.gateway_url, data=body, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Email gateway connection failed: {e}")
            raise EmailGatewayError(f"Connection failed: {e}") from e

        try:
            reply = response.json()
        except ValueError as e:
            logger.error(f"Email gateway returned non-JSON ({response.status_code}): {response.text[:200]}")
            raise EmailGatewayError("Invalid response from gateway") from e

        if response.status_code != 200 or not reply.get("success"):
            reason = reply.get("message", "Unknown error")
            logger.error(f"Email gateway rejected message to {email.to}: {reason}")
            raise EmailGatewayError(f"Gateway error: {reason}")

        logger.info(f"Email queued for {email.to}: {email.subject}")
        return reply.get("message_id")

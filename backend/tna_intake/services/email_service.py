"""
Email delivery sinks.

Provides:
- PauboxEmailSink: HIPAA-compliant HTTPS email API (primary)
- SmtpEmailSink: plain SMTP relay (fallback)

Each sink exposes ``name``, ``is_configured`` and ``send()``. ``send()``
returns the provider message id and raises ``NotificationError`` on any
failure; choosing between sinks is the dispatcher's job.
"""

import json
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional

import httpx

from ..core.config import Settings
from ..core.errors import NotificationError


logger = logging.getLogger(__name__)


def mask_email(address: str) -> str:
    """``jane@example.com`` -> ``jan***@example.com`` for log lines."""
    if "@" not in address:
        return "***"
    local, domain = address.split("@", 1)
    return f"{local[:3]}***@{domain}"


class EmailSink:
    """Interface shared by email providers."""

    name = "email"

    @property
    def is_configured(self) -> bool:
        raise NotImplementedError

    def send(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> str:
        raise NotImplementedError


class PauboxEmailSink(EmailSink):
    """
    Sends email through the Paubox Email API.

    API Documentation: https://docs.paubox.com/docs/email-api/
    """

    name = "paubox"

    def __init__(self, params: Settings, timeout: float = 30.0):
        self.api_key = params.paubox_api_key
        self.api_base_url = params.paubox_api_base_url.rstrip("/")
        self.from_email = params.email_from
        self.from_name = params.org_name
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.api_base_url and self.from_email)

    def _get_headers(self) -> dict:
        """Get API request headers with authentication."""
        return {
            "Content-Type": "application/json",
            "Authorization": f"Token token={self.api_key}",
        }

    def send(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> str:
        if not self.is_configured:
            raise NotificationError(self.name, "not configured")

        content = {"text/html": html_content}
        if text_content:
            content["text/plain"] = text_content

        # Paubox API format: https://docs.paubox.com/docs/email-api/send-messages
        payload = {
            "data": {
                "message": {
                    "recipients": [to_email],
                    "headers": {
                        "subject": subject,
                        "from": f"{self.from_name} <{self.from_email}>",
                    },
                    "content": content,
                    "allow_non_tls": True,
                }
            }
        }

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    f"{self.api_base_url}/messages",
                    headers=self._get_headers(),
                    json=payload,
                )
        except httpx.TimeoutException as e:
            raise NotificationError(self.name, f"request timed out: {e}")
        except httpx.RequestError as e:
            raise NotificationError(self.name, f"request failed: {e}")

        if response.status_code not in (200, 201):
            detail = response.text
            try:
                detail = json.dumps(response.json())
            except ValueError:
                pass
            raise NotificationError(self.name, f"API returned {response.status_code}: {detail}")

        tracking_id = response.json().get("sourceTrackingId", "")
        logger.info(
            f"Email sent via Paubox to {mask_email(to_email)} (tracking id: {tracking_id})"
        )
        return tracking_id


class SmtpEmailSink(EmailSink):
    """Sends multipart/alternative email over SMTP (STARTTLS when credentials are set)."""

    name = "smtp"

    def __init__(self, params: Settings, timeout: float = 30.0):
        self.smtp_host = params.smtp_host
        self.smtp_port = params.smtp_port
        self.smtp_username = params.smtp_username
        self.smtp_password = params.smtp_password
        self.from_email = params.email_from
        self.from_name = params.org_name
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.smtp_host and self.from_email)

    def send(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        text_content: Optional[str] = None,
    ) -> str:
        if not self.is_configured:
            raise NotificationError(self.name, "not configured")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email

        if text_content:
            msg.attach(MIMEText(text_content, "plain"))
        msg.attach(MIMEText(html_content, "html"))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout) as server:
                # Only use TLS and login if credentials are provided
                if self.smtp_username and self.smtp_password:
                    server.starttls()
                    server.login(self.smtp_username, self.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(self.name, str(e))

        logger.info(f"Email sent via SMTP to {mask_email(to_email)}")
        return msg.get("Message-ID", "")


def default_email_sinks(params: Settings) -> List[EmailSink]:
    """Primary then fallback, in delivery order."""
    return [PauboxEmailSink(params), SmtpEmailSink(params)]

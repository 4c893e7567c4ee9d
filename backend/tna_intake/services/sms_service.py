"""
SMS delivery sinks.

Provides:
- TwilioSmsSink: Twilio REST API (primary)
- SmsGatewaySink: any Twilio-compatible HTTP gateway (fallback, also used
  with a local capture server during development)
"""

import logging
from typing import List, Optional

import requests
from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from ..core.config import Settings
from ..core.errors import NotificationError


logger = logging.getLogger(__name__)


def normalize_phone(number: str) -> str:
    """E.164-ish: keep digits and a leading +, assume US when no country code."""
    digits = "".join(char for char in number if char.isdigit())
    if number.strip().startswith("+"):
        return f"+{digits}"
    if len(digits) == 10:
        return f"+1{digits}"
    return f"+{digits}"


class SmsSink:
    """Interface shared by SMS providers."""

    name = "sms"

    @property
    def is_configured(self) -> bool:
        raise NotImplementedError

    def send(self, to_number: str, message: str) -> str:
        raise NotImplementedError


class TwilioSmsSink(SmsSink):
    name = "twilio"

    def __init__(self, params: Settings):
        self.account_sid = params.twilio_account_sid
        self.auth_token = params.twilio_auth_token
        self.from_number = params.twilio_phone_number
        self._client: Optional[Client] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = Client(self.account_sid, self.auth_token)
        return self._client

    def send(self, to_number: str, message: str) -> str:
        if not self.is_configured:
            raise NotificationError(self.name, "not configured")

        to_number = normalize_phone(to_number)
        try:
            message_obj = self.client.messages.create(
                body=message,
                from_=self.from_number,
                to=to_number,
            )
        except TwilioRestException as e:
            raise NotificationError(self.name, f"{e.msg} (code {e.code})")

        logger.info(f"SMS sent via Twilio (SID: {message_obj.sid})")
        return message_obj.sid


class SmsGatewaySink(SmsSink):
    """Posts form data to ``/2010-04-01/Accounts/<sid>/Messages.json`` like Twilio does."""

    name = "sms_gateway"

    def __init__(self, params: Settings, timeout: float = 10.0):
        self.base_url = params.sms_gateway_url.rstrip("/")
        self.account_sid = params.twilio_account_sid or "local"
        self.auth_token = params.twilio_auth_token
        self.from_number = params.twilio_phone_number or "+15555555555"
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.base_url)

    def send(self, to_number: str, message: str) -> str:
        if not self.is_configured:
            raise NotificationError(self.name, "not configured")

        url = f"{self.base_url}/2010-04-01/Accounts/{self.account_sid}/Messages.json"
        auth = (self.account_sid, self.auth_token) if self.auth_token else None
        try:
            response = requests.post(
                url,
                data={
                    "To": normalize_phone(to_number),
                    "From": self.from_number,
                    "Body": message,
                },
                auth=auth,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise NotificationError(self.name, f"request failed: {e}")

        if response.status_code not in (200, 201):
            raise NotificationError(self.name, f"gateway returned {response.status_code}")

        try:
            sid = response.json().get("sid", "")
        except ValueError:
            sid = ""
        logger.info(f"SMS accepted by gateway (SID: {sid or 'n/a'})")
        return sid


def default_sms_sinks(params: Settings) -> List[SmsSink]:
    """Primary then fallback, in delivery order."""
    return [TwilioSmsSink(params), SmsGatewaySink(params)]

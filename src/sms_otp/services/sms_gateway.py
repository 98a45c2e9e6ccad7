"""SMS gateway — async HTTP client for the Africa's Talking messaging API.

Only the outcome of a send is reported back.  The message body carries the
passcode, so it is never written to the logs.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from sms_otp.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

# Recipient status codes Africa's Talking reports for an accepted message
# (Processed, Sent, Queued).
ACCEPTED_STATUS_CODES = frozenset({100, 101, 102})


class SmsDeliveryError(Exception):
    """Raised when a message could not be handed to the SMS provider."""


class SmsSender(Protocol):
    """Anything that can deliver a text message to a phone number."""

    async def send(self, phone_number: str, message: str) -> None:
        """Deliver *message* or raise :class:`SmsDeliveryError`."""


class AfricasTalkingSender:
    """Sends SMS through the Africa's Talking bulk messaging endpoint."""

    def __init__(
        self,
        config: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        config = config or default_settings
        self._api_key = config.at_api_key
        self._username = config.at_username
        self._sender_id = config.at_sender_id
        self._url = f"{config.at_base_url.rstrip('/')}/version1/messaging"
        self._timeout = config.sms_timeout_seconds
        self._transport = transport

    async def send(self, phone_number: str, message: str) -> None:
        """Deliver *message* to *phone_number*.

        Raises
        ------
        SmsDeliveryError
            Missing credentials, transport failure, a non-2xx response or
            a rejected recipient.
        """
        if not self._api_key or not self._username:
            logger.warning("AT_API_KEY / AT_USERNAME not set — cannot send SMS to %s", phone_number)
            raise SmsDeliveryError("SMS gateway credentials are not configured")

        data = {"username": self._username, "to": phone_number, "message": message}
        if self._sender_id:
            data["from"] = self._sender_id
        headers = {"apiKey": self._api_key, "Accept": "application/json"}

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post(self._url, data=data, headers=headers)
        except httpx.HTTPError as exc:
            logger.exception("SMS request error for %s: %s", phone_number, exc)
            raise SmsDeliveryError(f"SMS request failed: {exc}") from exc

        if not resp.is_success:
            logger.error(
                "SMS send to %s failed: %s %s", phone_number, resp.status_code, resp.text
            )
            raise SmsDeliveryError(f"SMS gateway returned {resp.status_code}")

        try:
            recipients = resp.json()["SMSMessageData"]["Recipients"]
            if not isinstance(recipients, list) or not all(
                isinstance(r, dict) for r in recipients
            ):
                raise TypeError("Recipients is not a list of objects")
        except (ValueError, KeyError, TypeError) as exc:
            logger.error("Unexpected SMS gateway response for %s: %s", phone_number, resp.text)
            raise SmsDeliveryError("Unexpected SMS gateway response") from exc

        rejected = [r for r in recipients if r.get("statusCode") not in ACCEPTED_STATUS_CODES]
        if not recipients or rejected:
            status = rejected[0].get("status") if rejected else "no recipients"
            logger.error("SMS to %s rejected by gateway: %s", phone_number, status)
            raise SmsDeliveryError(f"SMS rejected: {status}")

        logger.info("SMS sent to %s", phone_number)

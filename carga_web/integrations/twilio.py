"""WhatsApp messages through the Twilio Messages REST endpoint."""

from __future__ import annotations

import logging
from typing import Dict, Optional

import requests

from . import IntegrationError, resolve_session

logger = logging.getLogger(__name__)

MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"
REQUEST_TIMEOUT = 15


def whatsapp_address(number: str) -> str:
    number = number.strip()
    return number if number.startswith("whatsapp:") else f"whatsapp:{number}"


class TwilioWhatsAppClient:
    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        from_number: Optional[str],
        *,
        session: Optional[requests.Session] = None,
    ):
        self._sid = account_sid
        self._token = auth_token
        self._from = from_number
        self._session = resolve_session(session)

    def send_message(self, to: str, message: str) -> Dict[str, str]:
        """Send ``message`` to an E.164 number and return ``{sid, status}``.

        Raises:
            IntegrationError: Missing credentials or a rejected request.
        """

        if not (self._sid and self._token and self._from):
            raise IntegrationError(
                "Twilio credentials are not configured in the environment variables (.env). "
                "Please set TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN, and TWILIO_PHONE_NUMBER."
            )
        try:
            response = self._session.post(
                MESSAGES_URL.format(sid=self._sid),
                data={
                    "From": whatsapp_address(self._from),
                    "To": whatsapp_address(to),
                    "Body": message,
                },
                auth=(self._sid, self._token),
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise IntegrationError(f"Failed to send WhatsApp message: {exc}") from exc

        payload = response.json() if response.content else {}
        if not response.ok:
            logger.error("Twilio API error %s: %s", response.status_code, payload)
            raise IntegrationError(
                f"Failed to send WhatsApp message: {payload.get('message', response.status_code)}"
            )
        logger.info("WhatsApp message sent successfully with SID: %s", payload.get("sid"))
        return {"sid": payload.get("sid", ""), "status": "success"}


__all__ = ["TwilioWhatsAppClient", "whatsapp_address"]

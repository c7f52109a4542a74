"""SMS delivery via Twilio's REST API, with a logging fallback for development."""

from __future__ import annotations

import logging

import httpx

from pairing import config

logger = logging.getLogger(__name__)

_TWILIO_API = "https://api.twilio.com/2010-04-01"


class SmsService:
    """Best-effort SMS sender.

    Delivery is at-least-one-attempt: failures are logged and reported as
    False, never raised. Without Twilio credentials the message is logged
    instead of sent.
    """

    def __init__(
        self,
        account_sid: str | None = None,
        auth_token: str | None = None,
        from_number: str | None = None,
    ) -> None:
        self._account_sid = account_sid if account_sid is not None else config.settings.TWILIO_ACCOUNT_SID
        self._auth_token = auth_token if auth_token is not None else config.settings.TWILIO_AUTH_TOKEN
        self._from = from_number if from_number is not None else config.settings.TWILIO_FROM_NUMBER

    @property
    def simulated(self) -> bool:
        return not (self._account_sid and self._auth_token)

    async def send_message(self, phone: str, text: str) -> bool:
        """
        Send a text message.

        Args:
            phone: Recipient phone number in E.164 format (e.g. "+15551234567")
            text: Message body

        Returns:
            True if the provider accepted the message (or it was simulated)
        """
        if self.simulated:
            logger.info("SIMULATED SMS to %s: %s", phone, text)
            return True

        try:
            async with httpx.AsyncClient(
                auth=(self._account_sid, self._auth_token),
                timeout=10.0,
            ) as client:
                response = await client.post(
                    f"{_TWILIO_API}/Accounts/{self._account_sid}/Messages.json",
                    data={"To": phone, "From": self._from, "Body": text},
                )
                response.raise_for_status()
                return True
        except httpx.HTTPError as exc:
            logger.warning("SMS send to %s failed: %s", phone, exc)
            return False

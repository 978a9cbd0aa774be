from typing import Optional

import httpx

from src.api.notifications.providers.base import BaseSmsProvider
from src.config.settings import settings
from src.shared.error_handler import ErrorHandler

TWILIO_API_URL = "https://api.twilio.com/2010-04-01"


class TwilioSmsProvider(BaseSmsProvider):
    """SMS through the Twilio Messages REST API."""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self._client = client
        self._error_handler = ErrorHandler(__name__)

    @property
    def messages_url(self) -> str:
        return f"{TWILIO_API_URL}/Accounts/{self.account_sid}/Messages.json"

    async def send_sms(self, to: str, body: str) -> bool:
        payload = {"To": to, "From": self.from_number, "Body": body}
        auth = (self.account_sid, self.auth_token)

        if self._client is not None:
            response = await self._client.post(self.messages_url, data=payload, auth=auth)
        else:
            async with httpx.AsyncClient(timeout=settings.TWILIO_TIMEOUT_SECONDS) as client:
                response = await client.post(self.messages_url, data=payload, auth=auth)

        response.raise_for_status()
        self._error_handler.logger.info(f"SMS sent: {response.json().get('sid')}")
        return True

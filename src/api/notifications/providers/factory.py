from typing import Dict, List, Optional

from src.api.notifications.providers.base import BasePushProvider, BaseSmsProvider
from src.config.settings import settings
from src.shared.utils import get_logger

logger = get_logger(__name__)


class LogOnlyPushProvider(BasePushProvider):
    """Writes pushes to the log. Used when the store runs in memory."""

    async def send_to_device(
        self, token: str, title: str, body: str, data: Optional[Dict[str, str]] = None
    ) -> bool:
        logger.info(f"[push -> {token}] {title}: {body!r} {data or {}}")
        return True

    async def send_multicast(
        self, tokens: List[str], title: str, body: str, data: Optional[Dict[str, str]] = None
    ) -> int:
        for token in tokens:
            await self.send_to_device(token, title, body, data)
        return len(tokens)


class LogOnlySmsProvider(BaseSmsProvider):
    """Writes text messages to the log when Twilio is not configured."""

    async def send_sms(self, to: str, body: str) -> bool:
        logger.info(f"[sms -> {to}] {body!r}")
        return True


class NotificationProviderFactory:
    _push: Optional[BasePushProvider] = None
    _sms: Optional[BaseSmsProvider] = None

    @classmethod
    def get_push_provider(cls) -> BasePushProvider:
        if cls._push is None:
            if settings.STORE_BACKEND == "memory":
                cls._push = LogOnlyPushProvider()
            else:
                from src.api.notifications.providers.fcm import FirebasePushProvider

                cls._push = FirebasePushProvider()
        return cls._push

    @classmethod
    def get_sms_provider(cls) -> BaseSmsProvider:
        if cls._sms is None:
            if settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN and settings.TWILIO_FROM_NUMBER:
                from src.api.notifications.providers.twilio import TwilioSmsProvider

                cls._sms = TwilioSmsProvider(
                    account_sid=settings.TWILIO_ACCOUNT_SID,
                    auth_token=settings.TWILIO_AUTH_TOKEN,
                    from_number=settings.TWILIO_FROM_NUMBER,
                )
            else:
                logger.warning("Twilio credentials not set, text messages will only be logged")
                cls._sms = LogOnlySmsProvider()
        return cls._sms

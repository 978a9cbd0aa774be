import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from firebase_admin import messaging

from src.api.notifications.providers.base import BasePushProvider
from src.shared.error_handler import ErrorHandler

ANDROID_ICON = "ic_custom_notification"


class FirebasePushProvider(BasePushProvider):
    """Push notifications through Firebase Cloud Messaging."""

    def __init__(self):
        self._error_handler = ErrorHandler(__name__)
        # firebase-admin messaging calls are blocking
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="fcm")

    def _android_config(self) -> messaging.AndroidConfig:
        return messaging.AndroidConfig(
            notification=messaging.AndroidNotification(icon=ANDROID_ICON)
        )

    async def send_to_device(
        self, token: str, title: str, body: str, data: Optional[Dict[str, str]] = None
    ) -> bool:
        message = messaging.Message(
            notification=messaging.Notification(title=title, body=body),
            android=self._android_config(),
            data=data or {},
            token=token,
        )
        loop = asyncio.get_running_loop()
        message_id = await loop.run_in_executor(self._executor, messaging.send, message)
        self._error_handler.logger.info(f"Push sent: {message_id}")
        return bool(message_id)

    async def send_multicast(
        self, tokens: List[str], title: str, body: str, data: Optional[Dict[str, str]] = None
    ) -> int:
        if not tokens:
            return 0
        message = messaging.MulticastMessage(
            notification=messaging.Notification(title=title, body=body),
            android=self._android_config(),
            data=data or {},
            tokens=tokens,
        )
        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(
            self._executor, messaging.send_each_for_multicast, message
        )
        if response.failure_count:
            self._error_handler.logger.warning(
                f"Push multicast: {response.failure_count} of {len(tokens)} devices failed"
            )
        return response.success_count

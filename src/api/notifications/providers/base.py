from abc import ABC, abstractmethod
from typing import Dict, List, Optional


class BasePushProvider(ABC):
    """
    Abstract Base Class for push notification providers.
    Ensures a consistent interface for the NotificationService.
    """

    @abstractmethod
    async def send_to_device(
        self, token: str, title: str, body: str, data: Optional[Dict[str, str]] = None
    ) -> bool:
        """Send one notification to one device. Returns True when accepted."""
        pass

    @abstractmethod
    async def send_multicast(
        self, tokens: List[str], title: str, body: str, data: Optional[Dict[str, str]] = None
    ) -> int:
        """Send the same notification to several devices. Returns the success count."""
        pass


class BaseSmsProvider(ABC):
    """Abstract Base Class for SMS providers."""

    @abstractmethod
    async def send_sms(self, to: str, body: str) -> bool:
        """Send a text message to a full international number."""
        pass

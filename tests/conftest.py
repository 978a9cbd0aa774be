import os

# Settings are read at import time
os.environ["STORE_BACKEND"] = "memory"
os.environ.setdefault("ADMIN_PHONE_NUMBER", "9884713398")

import random
from typing import Dict, List, Optional

import pytest
import pytest_asyncio

from src.api.events.handlers import build_dispatcher
from src.api.notifications.providers.base import BasePushProvider, BaseSmsProvider
from src.api.notifications.service import NotificationService
from src.api.orders.services.assignment_service import AssignmentService
from src.api.runners.services.conflict_service import ConflictCheckService
from src.api.runners.services.counter_service import RunnerCounterService
from src.api.runners.services.selection_service import RunnerSelectionService
from src.database.memory_store import InMemoryStore
from tests.constants import ADMIN_PHONE


class RecordingPushProvider(BasePushProvider):
    def __init__(self):
        self.sent: List[Dict] = []
        self.fail = False

    async def send_to_device(self, token, title, body, data=None):
        if self.fail:
            raise RuntimeError("FCM unavailable")
        self.sent.append({"tokens": [token], "title": title, "body": body, "data": data})
        return True

    async def send_multicast(self, tokens, title, body, data=None):
        if self.fail:
            raise RuntimeError("FCM unavailable")
        self.sent.append({"tokens": list(tokens), "title": title, "body": body, "data": data})
        return len(tokens)


class RecordingSmsProvider(BaseSmsProvider):
    def __init__(self):
        self.sent: List[Dict] = []
        self.fail = False

    async def send_sms(self, to, body):
        if self.fail:
            raise RuntimeError("Twilio unavailable")
        self.sent.append({"to": to, "body": body})
        return True


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def push() -> RecordingPushProvider:
    return RecordingPushProvider()


@pytest.fixture
def sms() -> RecordingSmsProvider:
    return RecordingSmsProvider()


@pytest.fixture
def notifications(store, push, sms) -> NotificationService:
    return NotificationService(store, push, sms, admin_phone=ADMIN_PHONE, country_code="+91")


@pytest.fixture
def conflict_checker(store) -> ConflictCheckService:
    return ConflictCheckService(store, window_minutes=60)


@pytest.fixture
def selector(store, conflict_checker) -> RunnerSelectionService:
    return RunnerSelectionService(
        store, conflict_checker, policy="conflict_aware", rng=random.Random(7)
    )


@pytest.fixture
def counters(store) -> RunnerCounterService:
    return RunnerCounterService(store)


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def make_assignment(store, selector, counters, notifications, sleeps):
    async def fake_sleep(delay: float) -> None:
        sleeps.append(delay)

    def _make(trigger: str = "created", activation_batch_size: int = 1, max_attempts: int = 5):
        return AssignmentService(
            store,
            selector,
            counters,
            notifications,
            trigger=trigger,
            activation_batch_size=activation_batch_size,
            max_attempts=max_attempts,
            backoff_seconds=0.1,
            sleep=fake_sleep,
        )

    return _make


@pytest.fixture
def assignment(make_assignment) -> AssignmentService:
    return make_assignment()


@pytest.fixture
def dispatcher(assignment, notifications):
    return build_dispatcher(assignment, notifications)


@pytest_asyncio.fixture
async def seed(store):
    """Helpers that put documents in the store without emitting events to anyone."""

    class Seed:
        async def runner(
            self,
            runner_id: str,
            active: bool = True,
            active_orders: int = 0,
            completed: int = 0,
            total: Optional[int] = None,
            fcm_token: Optional[str] = None,
        ) -> str:
            data = {
                "name": runner_id.title(),
                "phone": "9000000000",
                "isActive": active,
                "activeOrders": active_orders,
                "completedOrders": completed,
                "totalCompletedOrders": completed if total is None else total,
            }
            if fcm_token:
                data["fcmToken"] = fcm_token
            return await store.create("runners", data, doc_id=runner_id)

        async def order(
            self,
            order_id: str,
            delivery_time: Optional[str] = "18:00",
            status: str = "received",
            runner: Optional[str] = None,
            **extra,
        ) -> str:
            data = {
                "orderStatus": status,
                "restaurant": "restaurant-1",
                "customer": "customer-1",
                "orderNum": 1001,
                "pickupCode": "4321",
                **extra,
            }
            if delivery_time is not None:
                data["deliveryTime"] = delivery_time
            if runner:
                data["runner"] = runner
            return await store.create("orders", data, doc_id=order_id)

        async def reference_data(self):
            await store.create(
                "restaurants", {"name": "Spice Route", "branch": "Adyar"}, doc_id="restaurant-1"
            )
            await store.create(
                "customers", {"name": "Asha", "mobile": "9876543210"}, doc_id="customer-1"
            )
            await store.create(
                "users", {"restaurants": ["restaurant-1"], "fcmToken": "staff-token-1"}, doc_id="user-1"
            )
            await store.create(
                "users", {"restaurants": ["restaurant-1", "restaurant-2"]}, doc_id="user-2"
            )
            await store.create(
                "users", {"restaurants": ["restaurant-2"], "fcmToken": "other-token"}, doc_id="user-3"
            )

    return Seed()

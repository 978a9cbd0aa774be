"""
Service wiring for the FastAPI app and scripts.

Each capability is built once per process. Routes receive them through
`Depends`, so tests swap them with `app.dependency_overrides`.
"""

from functools import lru_cache

from src.api.events.dispatcher import EventDispatcher
from src.api.events.handlers import build_dispatcher
from src.api.notifications.providers.factory import NotificationProviderFactory
from src.api.notifications.service import NotificationService
from src.api.orders.services.assignment_service import AssignmentService
from src.api.runners.services.conflict_service import ConflictCheckService
from src.api.runners.services.counter_service import RunnerCounterService
from src.api.runners.services.selection_service import RunnerSelectionService
from src.config.settings import settings
from src.database.base import OrderStore
from src.database.memory_store import InMemoryStore
from src.shared.utils import get_logger

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_store() -> OrderStore:
    if settings.STORE_BACKEND == "memory":
        logger.warning("Using the in-memory order store; data is lost on restart")
        return InMemoryStore()

    from src.database.connection import get_firestore_client
    from src.database.firestore_store import FirestoreStore

    return FirestoreStore(get_firestore_client())


@lru_cache(maxsize=1)
def get_notification_service() -> NotificationService:
    return NotificationService(
        get_store(),
        push=NotificationProviderFactory.get_push_provider(),
        sms=NotificationProviderFactory.get_sms_provider(),
    )


@lru_cache(maxsize=1)
def get_counter_service() -> RunnerCounterService:
    return RunnerCounterService(get_store())


@lru_cache(maxsize=1)
def get_assignment_service() -> AssignmentService:
    store = get_store()
    selector = RunnerSelectionService(store, ConflictCheckService(store))
    return AssignmentService(store, selector, get_counter_service(), get_notification_service())


@lru_cache(maxsize=1)
def get_dispatcher() -> EventDispatcher:
    dispatcher = build_dispatcher(get_assignment_service(), get_notification_service())
    store = get_store()
    if isinstance(store, InMemoryStore):
        # No external trigger system in memory mode
        store.subscribe(dispatcher.on_store_change)
    return dispatcher

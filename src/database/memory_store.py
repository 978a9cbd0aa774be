"""
In-memory implementation of the order store.

Used for local development (STORE_BACKEND=memory) and by the test suite. It
mirrors the Firestore behaviours the engine relies on: field sentinels,
query semantics for missing fields, optimistic transactions that retry when a
document read inside them changes before commit, and change notifications
after every committed write.
"""

import asyncio
import copy
import itertools
from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from src.database.base import (
    DELETE_FIELD,
    ArrayUnion,
    DESCENDING,
    BatchWrite,
    ChangeListener,
    Increment,
    OrderStore,
    QueryFilter,
    QueryOrder,
    StoreTransaction,
)
from src.config.constants import ChangeKind
from src.shared.exceptions import ResourceNotFoundError, TransactionContentionError
from src.shared.utils import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

_MISSING = object()


def _matches(document: Dict[str, Any], query_filter: QueryFilter) -> bool:
    field, op, expected = query_filter
    value = document.get(field, _MISSING)
    if value is _MISSING:
        return False

    if op == "==":
        return value == expected
    if op == "!=":
        return value != expected
    if op == "in":
        return value in expected
    if op == "array_contains":
        return isinstance(value, list) and expected in value
    if op == "<":
        return value < expected
    if op == "<=":
        return value <= expected
    if op == ">":
        return value > expected
    if op == ">=":
        return value >= expected
    raise ValueError(f"Unsupported query operator: {op}")


def _apply_fields(document: Dict[str, Any], fields: Dict[str, Any]) -> None:
    for field, value in fields.items():
        if value is DELETE_FIELD:
            document.pop(field, None)
        elif isinstance(value, Increment):
            document[field] = document.get(field, 0) + value.delta
        elif isinstance(value, ArrayUnion):
            current = list(document.get(field) or [])
            for item in value.values:
                if item not in current:
                    current.append(item)
            document[field] = current
        else:
            document[field] = copy.deepcopy(value)


def _with_id(doc_id: str, document: Dict[str, Any]) -> Dict[str, Any]:
    result = copy.deepcopy(document)
    result["id"] = doc_id
    return result


class InMemoryTransaction(StoreTransaction):
    def __init__(self, store: "InMemoryStore"):
        self._store = store
        self.reads: Dict[Tuple[str, str], int] = {}
        self.writes: List[BatchWrite] = []

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        if self.writes:
            raise ValueError("Transaction reads must happen before writes")
        await asyncio.sleep(0)
        self.reads[(collection, doc_id)] = self._store._versions[(collection, doc_id)]
        document = self._store._collections[collection].get(doc_id)
        return _with_id(doc_id, document) if document is not None else None

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        self.writes.append((collection, doc_id, dict(fields)))


class InMemoryStore(OrderStore):
    def __init__(self, max_transaction_attempts: int = 5):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self._versions: Dict[Tuple[str, str], int] = defaultdict(int)
        self._lock = asyncio.Lock()
        self._listeners: List[ChangeListener] = []
        self._ids = itertools.count(1)
        self.max_transaction_attempts = max_transaction_attempts

    def subscribe(self, listener: ChangeListener) -> None:
        """Register a coroutine called after every committed write."""
        self._listeners.append(listener)

    async def create(self, collection: str, data: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        """Insert a new document and emit a created change."""
        async with self._lock:
            doc_id = doc_id or f"{collection[:-1]}-{next(self._ids)}"
            if doc_id in self._collections[collection]:
                raise ValueError(f"Document {collection}/{doc_id} already exists")
            self._collections[collection][doc_id] = copy.deepcopy(data)
            self._versions[(collection, doc_id)] += 1
            after = _with_id(doc_id, data)

        await self._publish([(collection, ChangeKind.CREATED.value, doc_id, None, after)])
        return doc_id

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(0)
        document = self._collections[collection].get(doc_id)
        return _with_id(doc_id, document) if document is not None else None

    async def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter] = (),
        order_by: Sequence[QueryOrder] = (),
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        await asyncio.sleep(0)
        results = [
            _with_id(doc_id, document)
            for doc_id, document in self._collections[collection].items()
            if all(_matches(document, f) for f in filters)
        ]

        # Documents missing an ordering field are left out, as in Firestore
        for field, _ in order_by:
            results = [doc for doc in results if field in doc]
        for field, direction in reversed(order_by):
            results.sort(key=lambda doc: doc[field], reverse=direction == DESCENDING)

        if limit is not None:
            results = results[:limit]
        return results

    async def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        async with self._lock:
            changes = self._commit([(collection, doc_id, fields)])
        await self._publish(changes)

    async def batch_update(self, writes: Sequence[BatchWrite]) -> None:
        async with self._lock:
            changes = self._commit(list(writes))
        await self._publish(changes)

    async def run_transaction(self, callback: Callable[[StoreTransaction], Awaitable[T]]) -> T:
        for attempt in range(1, self.max_transaction_attempts + 1):
            transaction = InMemoryTransaction(self)
            result = await callback(transaction)

            async with self._lock:
                stale = [
                    key for key, version in transaction.reads.items()
                    if self._versions[key] != version
                ]
                if stale:
                    logger.debug(f"Transaction attempt {attempt} lost on {stale}, retrying")
                    continue
                changes = self._commit(transaction.writes)

            await self._publish(changes)
            return result

        raise TransactionContentionError(
            f"Transaction failed to commit after {self.max_transaction_attempts} attempts"
        )

    def _commit(self, writes: List[BatchWrite]):
        """Apply writes atomically. Caller must hold the lock."""
        for collection, doc_id, _ in writes:
            if doc_id not in self._collections[collection]:
                raise ResourceNotFoundError(f"No document to update: {collection}/{doc_id}")

        befores: Dict[Tuple[str, str], Dict[str, Any]] = {}
        for collection, doc_id, fields in writes:
            document = self._collections[collection][doc_id]
            befores.setdefault((collection, doc_id), _with_id(doc_id, document))
            _apply_fields(document, fields)
            self._versions[(collection, doc_id)] += 1

        return [
            (collection, ChangeKind.UPDATED.value, doc_id, before,
             _with_id(doc_id, self._collections[collection][doc_id]))
            for (collection, doc_id), before in befores.items()
        ]

    async def _publish(self, changes) -> None:
        for change in changes:
            for listener in self._listeners:
                await listener(*change)

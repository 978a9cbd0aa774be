"""
Firestore implementation of the order store.

Orders point at runners, restaurants and customers through Firestore
document references. This adapter hides that: reference values are turned
into plain ids on read, and ids are turned back into references on write
and in query filters.
"""

from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_document import BaseDocumentReference
from google.cloud.firestore_v1.base_query import FieldFilter

from src.config.constants import REFERENCE_ARRAY_FIELDS, REFERENCE_FIELDS
from src.config.settings import settings
from src.database.base import (
    DELETE_FIELD,
    ArrayUnion,
    BatchWrite,
    Increment,
    OrderStore,
    QueryFilter,
    QueryOrder,
    StoreTransaction,
)
from src.shared.error_handler import ErrorHandler, handle_service_errors
from src.shared.exceptions import TransactionContentionError

T = TypeVar("T")


class FirestoreStore(OrderStore):
    def __init__(self, client: firestore.AsyncClient, max_transaction_attempts: int = 5):
        self._client = client
        self._error_handler = ErrorHandler(__name__)
        self.max_transaction_attempts = max_transaction_attempts

    def document(self, collection: str, doc_id: str):
        return self._client.collection(collection).document(doc_id)

    # ---- value translation -------------------------------------------------

    def _decode(self, snapshot) -> Optional[Dict[str, Any]]:
        if not snapshot.exists:
            return None
        data = snapshot.to_dict() or {}
        for field, value in data.items():
            if isinstance(value, BaseDocumentReference):
                data[field] = value.id
            elif isinstance(value, list):
                data[field] = [
                    item.id if isinstance(item, BaseDocumentReference) else item
                    for item in value
                ]
        data["id"] = snapshot.id
        return data

    def _reference(self, field: str, value: Any) -> Any:
        target = REFERENCE_FIELDS.get(field) or REFERENCE_ARRAY_FIELDS.get(field)
        if target and isinstance(value, str):
            return self.document(target, value)
        return value

    def _encode_fields(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        encoded = {}
        for field, value in fields.items():
            if value is DELETE_FIELD:
                encoded[field] = firestore.DELETE_FIELD
            elif isinstance(value, Increment):
                encoded[field] = firestore.Increment(value.delta)
            elif isinstance(value, ArrayUnion):
                encoded[field] = firestore.ArrayUnion(
                    [self._reference(field, item) for item in value.values]
                )
            elif field in REFERENCE_ARRAY_FIELDS and isinstance(value, list):
                encoded[field] = [self._reference(field, item) for item in value]
            else:
                encoded[field] = self._reference(field, value)
        return encoded

    def _encode_filter(self, query_filter: QueryFilter) -> FieldFilter:
        field, op, value = query_filter
        if op in ("in", "not-in") and isinstance(value, (list, tuple)):
            value = [self._reference(field, item) for item in value]
        else:
            value = self._reference(field, value)
        return FieldFilter(field, op, value)

    # ---- store contract ----------------------------------------------------

    @handle_service_errors("reading document")
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        snapshot = await self.document(collection, doc_id).get()
        return self._decode(snapshot)

    @handle_service_errors("querying documents")
    async def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter] = (),
        order_by: Sequence[QueryOrder] = (),
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        query = self._client.collection(collection)
        for query_filter in filters:
            query = query.where(filter=self._encode_filter(query_filter))
        for field, direction in order_by:
            query = query.order_by(field, direction=direction)
        if limit is not None:
            query = query.limit(limit)

        snapshots = await query.get()
        return [self._decode(snapshot) for snapshot in snapshots]

    @handle_service_errors("updating document")
    async def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        await self.document(collection, doc_id).update(self._encode_fields(fields))

    @handle_service_errors("committing batch")
    async def batch_update(self, writes: Sequence[BatchWrite]) -> None:
        writes = list(writes)
        limit = settings.FIRESTORE_BATCH_LIMIT
        # Firestore caps a batch at 500 writes
        for start in range(0, len(writes), limit):
            batch = self._client.batch()
            for collection, doc_id, fields in writes[start:start + limit]:
                batch.update(self.document(collection, doc_id), self._encode_fields(fields))
            await batch.commit()

    @handle_service_errors("running transaction")
    async def run_transaction(self, callback: Callable[[StoreTransaction], Awaitable[T]]) -> T:
        transaction = self._client.transaction(max_attempts=self.max_transaction_attempts)

        @firestore.async_transactional
        async def _run(fs_transaction):
            return await callback(FirestoreTransaction(self, fs_transaction))

        try:
            return await _run(transaction)
        except ValueError as e:
            # Raised by the client once max_attempts commits were aborted
            if isinstance(e.__cause__, gcp_exceptions.Aborted):
                raise TransactionContentionError(
                    f"Transaction failed to commit after {self.max_transaction_attempts} attempts", e
                ) from e
            raise


class FirestoreTransaction(StoreTransaction):
    def __init__(self, store: FirestoreStore, transaction):
        self._store = store
        self._transaction = transaction

    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        snapshot = await self._store.document(collection, doc_id).get(transaction=self._transaction)
        return self._store._decode(snapshot)

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        self._transaction.update(
            self._store.document(collection, doc_id), self._store._encode_fields(fields)
        )

"""
Order store contract.

The assignment engine only talks to the store through this interface so the
same code runs against Firestore in production and an in-memory store in
local development and tests. Documents are returned as plain dicts holding
the stored fields plus an "id" key; references to other documents are plain
ids.
"""

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

T = TypeVar("T")

ASCENDING = "ASCENDING"
DESCENDING = "DESCENDING"

# (field, operator, value); operators follow Firestore: ==, !=, <, <=, >, >=, in, array_contains
QueryFilter = Tuple[str, str, Any]
# (field, ASCENDING | DESCENDING)
QueryOrder = Tuple[str, str]
# (collection, document id, fields)
BatchWrite = Tuple[str, str, Dict[str, Any]]

# Called after every committed write: (collection, kind, document id, before, after)
ChangeListener = Callable[[str, str, str, Optional[Dict[str, Any]], Optional[Dict[str, Any]]], Awaitable[None]]


class Increment:
    """Field value that atomically adds delta to the stored number."""

    __slots__ = ("delta",)

    def __init__(self, delta: int):
        self.delta = delta

    def __eq__(self, other):
        return isinstance(other, Increment) and other.delta == self.delta

    def __repr__(self):
        return f"Increment({self.delta})"


class ArrayUnion:
    """Field value that appends each of values to a stored array unless already present."""

    __slots__ = ("values",)

    def __init__(self, values: List[Any]):
        self.values = list(values)

    def __eq__(self, other):
        return isinstance(other, ArrayUnion) and other.values == self.values

    def __repr__(self):
        return f"ArrayUnion({self.values!r})"


class _DeleteField:
    def __repr__(self):
        return "DELETE_FIELD"


# Field value that removes the field from the document
DELETE_FIELD = _DeleteField()


class StoreTransaction(ABC):
    """
    Read/write view handed to a transaction callback.

    All reads must happen before the first write, as Firestore requires.
    Writes are buffered and applied atomically when the callback returns.
    """

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        pass


class OrderStore(ABC):
    """Abstract async document store holding orders, runners and reference data."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Fetch a document, or None when it does not exist."""
        pass

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: Sequence[QueryFilter] = (),
        order_by: Sequence[QueryOrder] = (),
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Run a field-level query."""
        pass

    @abstractmethod
    async def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Atomically update fields of an existing document."""
        pass

    @abstractmethod
    async def batch_update(self, writes: Sequence[BatchWrite]) -> None:
        """Apply several document updates as one atomic batch."""
        pass

    @abstractmethod
    async def run_transaction(self, callback: Callable[[StoreTransaction], Awaitable[T]]) -> T:
        """
        Run callback inside an optimistic transaction.

        The callback may be invoked more than once if a document it read is
        changed by a concurrent writer before the commit.
        """
        pass

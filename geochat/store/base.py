"""
Document store interface.

Every component talks to the backing store only through this interface: point reads,
overwrite/merge writes, equality queries with a limit, idempotent deletes, atomic
read-modify-write, and snapshot subscriptions that deliver the full result set on
every change.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from geochat.store.subscription import ErrorCallback, Subscription


class _ServerTimestamp:
    """Sentinel replaced by the store clock (epoch milliseconds) on write."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


@dataclass(frozen=True)
class StoredDocument:
    id: str
    data: Dict[str, Any]


@dataclass(frozen=True)
class Query:
    """Equality-filtered, optionally ordered and limited collection query."""

    collection: str
    filters: Tuple[Tuple[str, Any], ...] = ()
    order_by: Optional[str] = None
    descending: bool = False
    limit: Optional[int] = None

    def matches(self, data: Optional[Dict[str, Any]]) -> bool:
        if data is None:
            return False
        return all(data.get(name) == value for name, value in self.filters)

    def describe(self) -> str:
        where = ",".join(f"{name}={value}" for name, value in self.filters)
        return f"{self.collection}[{where}]" if where else self.collection


SnapshotCallback = Callable[[List[StoredDocument]], Union[None, Awaitable[None]]]
Mutation = Callable[[Optional[Dict[str, Any]]], Dict[str, Any]]


def sort_documents(documents: List[StoredDocument], query: Query) -> List[StoredDocument]:
    """Apply the query's ordering and limit to an already filtered result set."""
    result = list(documents)
    if query.order_by:
        field_name = query.order_by

        def sort_key(doc: StoredDocument):
            value = doc.data.get(field_name)
            # documents missing the order field sort as smallest
            if value is None:
                return (False, 0, doc.id)
            return (True, value, doc.id)

        result.sort(key=sort_key, reverse=query.descending)
    if query.limit is not None:
        result = result[:query.limit]
    return result


class DocumentStore(ABC):

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Point read; None when the document does not exist."""

    @abstractmethod
    async def add(self, collection: str, data: Dict[str, Any]) -> str:
        """Create a document with a store-generated id and return the id."""

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        """Overwrite the document, or shallow-merge the named fields when ``merge``."""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Shallow-merge into an existing document; NotFoundException when absent."""

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Delete the document. Deleting a missing document is not an error."""

    @abstractmethod
    async def query(self, query: Query) -> List[StoredDocument]:
        """Run an equality query."""

    @abstractmethod
    async def transact(self, collection: str, doc_id: str, mutate: Mutation) -> Dict[str, Any]:
        """
        Atomic read-modify-write.

        ``mutate`` receives the current document (or None) and returns the full new
        document. It may be called more than once when a concurrent writer wins, so it
        must not have side effects. Exceptions raised by ``mutate`` abort the write and
        propagate.
        """

    @abstractmethod
    async def watch(
        self,
        query: Query,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Subscription:
        """
        Subscribe to a query. ``on_snapshot`` receives the current result set before
        this returns and the full result set again after every change to a matching
        document. Establishment failures raise from here.
        """

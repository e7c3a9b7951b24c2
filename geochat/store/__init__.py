from .base import SERVER_TIMESTAMP, DocumentStore, Query, StoredDocument
from .redis_store import RedisDocumentStore
from .subscription import Subscription

__all__ = [
    "SERVER_TIMESTAMP",
    "DocumentStore",
    "Query",
    "StoredDocument",
    "RedisDocumentStore",
    "Subscription",
]

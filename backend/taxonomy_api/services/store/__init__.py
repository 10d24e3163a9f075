"""Graph store adapters: the only code that touches durable storage."""

from taxonomy_api.services.store.base import BaseGraphStore, KeysetAfter
from taxonomy_api.services.store.replica_router import ReplicaRouter
from taxonomy_api.services.store.sqlite_store import SqliteGraphStore

__all__ = [
    "BaseGraphStore",
    "KeysetAfter",
    "ReplicaRouter",
    "SqliteGraphStore",
]

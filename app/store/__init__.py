"""
Storage layer: document store contract plus Firestore and in-memory backends.
"""

from app.store.base import DocumentStore, StoreTransaction
from app.store.keyed import KeyedStateStore
from app.store.memory import InMemoryStore

__all__ = ["DocumentStore", "StoreTransaction", "KeyedStateStore", "InMemoryStore"]

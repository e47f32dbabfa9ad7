"""
Firestore-backed DocumentStore.

Transactions use firestore.transactional, which re-runs the transaction
function on contention. Compare-and-swap checks inside the function are
therefore re-evaluated against fresh snapshots on every attempt.
"""

from contextlib import contextmanager
from typing import Callable, Dict, List, Optional, Sequence
import logging

from firebase_admin import firestore
from google.api_core import exceptions as google_exceptions

from app.core.errors import NotFound, TransientStoreError
from app.store.base import DocumentStore, Filter, StoreTransaction, T
from app.utils.firestore_helpers import build_query

logger = logging.getLogger(__name__)

# Errors worth retrying from the caller's side
_TRANSIENT_ERRORS = (
    google_exceptions.ServiceUnavailable,
    google_exceptions.DeadlineExceeded,
    google_exceptions.InternalServerError,
    google_exceptions.Aborted,
    google_exceptions.RetryError,
)


def _snapshot_to_dict(snapshot) -> Optional[Dict]:
    if not snapshot.exists:
        return None
    data = snapshot.to_dict() or {}
    data["id"] = snapshot.id
    return data


def _strip_id(data: Dict) -> Dict:
    return {k: v for k, v in data.items() if k != "id"}


class _FirestoreTransaction(StoreTransaction):
    def __init__(self, client: firestore.Client, transaction):
        self._client = client
        self._transaction = transaction

    def _ref(self, collection: str, doc_id: str):
        return self._client.collection(collection).document(doc_id)

    def get(self, collection: str, doc_id: str) -> Optional[Dict]:
        snapshot = self._ref(collection, doc_id).get(transaction=self._transaction)
        return _snapshot_to_dict(snapshot)

    def set(self, collection: str, doc_id: str, data: Dict) -> None:
        self._transaction.set(self._ref(collection, doc_id), _strip_id(data))

    def add(self, collection: str, data: Dict) -> str:
        ref = self._client.collection(collection).document()
        self._transaction.set(ref, _strip_id(data))
        return ref.id

    def update(self, collection: str, doc_id: str, fields: Dict) -> None:
        self._transaction.update(self._ref(collection, doc_id), _strip_id(fields))

    def increment(self, collection: str, doc_id: str, field: str, amount: int) -> None:
        self._transaction.update(self._ref(collection, doc_id), {field: firestore.Increment(amount)})

    def delete(self, collection: str, doc_id: str) -> None:
        self._transaction.delete(self._ref(collection, doc_id))


class FirestoreStore(DocumentStore):
    """DocumentStore over a firebase_admin Firestore client."""

    def __init__(self, client: firestore.Client):
        self.db = client

    @contextmanager
    def _translate_errors(self, operation: str):
        try:
            yield
        except google_exceptions.NotFound as e:
            raise NotFound(f"Document not found during {operation}") from e
        except _TRANSIENT_ERRORS as e:
            logger.error(f"Firestore unavailable during {operation}: {e}")
            raise TransientStoreError("Storage is temporarily unavailable. Please retry.") from e

    def get(self, collection: str, doc_id: str) -> Optional[Dict]:
        with self._translate_errors("get"):
            return _snapshot_to_dict(self.db.collection(collection).document(doc_id).get())

    def add(self, collection: str, data: Dict, doc_id: Optional[str] = None) -> str:
        with self._translate_errors("add"):
            collection_ref = self.db.collection(collection)
            ref = collection_ref.document(doc_id) if doc_id else collection_ref.document()
            ref.set(_strip_id(data))
            return ref.id

    def update(self, collection: str, doc_id: str, fields: Dict) -> Dict:
        with self._translate_errors("update"):
            ref = self.db.collection(collection).document(doc_id)
            ref.update(_strip_id(fields))
            return _snapshot_to_dict(ref.get())

    def increment(self, collection: str, doc_id: str, field: str, amount: int = 1) -> None:
        with self._translate_errors("increment"):
            self.db.collection(collection).document(doc_id).update({field: firestore.Increment(amount)})

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._translate_errors("delete"):
            ref = self.db.collection(collection).document(doc_id)
            if not ref.get().exists:
                return False
            ref.delete()
            return True

    def find(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict]:
        with self._translate_errors("find"):
            query = build_query(
                self.db.collection(collection), filters,
                order_by=order_by, descending=descending, limit=limit, offset=offset,
            )
            return [_snapshot_to_dict(doc) for doc in query.stream()]

    def run_transaction(self, fn: Callable[[StoreTransaction], T]) -> T:
        client = self.db

        @firestore.transactional
        def _run(transaction):
            return fn(_FirestoreTransaction(client, transaction))

        with self._translate_errors("transaction"):
            return _run(client.transaction())

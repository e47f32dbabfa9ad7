"""
In-memory DocumentStore used when USE_MOCK_DB is set and by the test suite.

A single re-entrant lock serialises every transaction, which gives the
compare-and-swap semantics the moderation flow relies on.
"""

import copy
import threading
import uuid
from typing import Callable, Dict, List, Optional, Sequence

from app.core.errors import NotFound
from app.store.base import DocumentStore, Filter, StoreTransaction, T, matches


def _new_id() -> str:
    return uuid.uuid4().hex[:20]


class _InMemoryTransaction(StoreTransaction):
    """Buffers writes until the transaction function returns."""

    def __init__(self, store: "InMemoryStore"):
        self._store = store
        self._writes: List[Callable[[], None]] = []
        self._pending_ids: set = set()

    def get(self, collection: str, doc_id: str) -> Optional[Dict]:
        return self._store._read(collection, doc_id)

    def set(self, collection: str, doc_id: str, data: Dict) -> None:
        payload = copy.deepcopy(data)
        self._pending_ids.add((collection, doc_id))
        self._writes.append(lambda: self._store._write(collection, doc_id, payload))

    def add(self, collection: str, data: Dict) -> str:
        doc_id = _new_id()
        self.set(collection, doc_id, data)
        return doc_id

    def update(self, collection: str, doc_id: str, fields: Dict) -> None:
        self._require(collection, doc_id)
        payload = copy.deepcopy(fields)
        self._writes.append(lambda: self._store._merge(collection, doc_id, payload))

    def increment(self, collection: str, doc_id: str, field: str, amount: int) -> None:
        self._require(collection, doc_id)
        self._writes.append(lambda: self._store._increment(collection, doc_id, field, amount))

    def delete(self, collection: str, doc_id: str) -> None:
        self._writes.append(lambda: self._store._remove(collection, doc_id))

    def _require(self, collection: str, doc_id: str) -> None:
        if (collection, doc_id) in self._pending_ids:
            return
        if doc_id not in self._store._collections.get(collection, {}):
            raise NotFound(f"{collection}/{doc_id} not found")

    def commit(self) -> None:
        for write in self._writes:
            write()


class InMemoryStore(DocumentStore):
    """Dict-of-dicts store. Documents are deep-copied on the way in and out."""

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict]] = {}
        self._lock = threading.RLock()

    # -- primitives (callers hold the lock) --

    def _read(self, collection: str, doc_id: str) -> Optional[Dict]:
        data = self._collections.get(collection, {}).get(doc_id)
        if data is None:
            return None
        result = copy.deepcopy(data)
        result["id"] = doc_id
        return result

    def _write(self, collection: str, doc_id: str, data: Dict) -> None:
        data = {k: v for k, v in data.items() if k != "id"}
        self._collections.setdefault(collection, {})[doc_id] = data

    def _merge(self, collection: str, doc_id: str, fields: Dict) -> None:
        self._collections[collection][doc_id].update(fields)

    def _increment(self, collection: str, doc_id: str, field: str, amount: int) -> None:
        doc = self._collections[collection][doc_id]
        doc[field] = (doc.get(field) or 0) + amount

    def _remove(self, collection: str, doc_id: str) -> bool:
        return self._collections.get(collection, {}).pop(doc_id, None) is not None

    # -- DocumentStore --

    def get(self, collection: str, doc_id: str) -> Optional[Dict]:
        with self._lock:
            return self._read(collection, doc_id)

    def add(self, collection: str, data: Dict, doc_id: Optional[str] = None) -> str:
        doc_id = doc_id or _new_id()
        with self._lock:
            self._write(collection, doc_id, copy.deepcopy(data))
        return doc_id

    def update(self, collection: str, doc_id: str, fields: Dict) -> Dict:
        with self._lock:
            if doc_id not in self._collections.get(collection, {}):
                raise NotFound(f"{collection}/{doc_id} not found")
            self._merge(collection, doc_id, copy.deepcopy(fields))
            return self._read(collection, doc_id)

    def increment(self, collection: str, doc_id: str, field: str, amount: int = 1) -> None:
        with self._lock:
            if doc_id not in self._collections.get(collection, {}):
                raise NotFound(f"{collection}/{doc_id} not found")
            self._increment(collection, doc_id, field, amount)

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            return self._remove(collection, doc_id)

    def find(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict]:
        with self._lock:
            results = [
                self._read(collection, doc_id)
                for doc_id, data in self._collections.get(collection, {}).items()
                if matches(data, filters)
            ]
        if order_by:
            present = [r for r in results if r.get(order_by) is not None]
            missing = [r for r in results if r.get(order_by) is None]
            present.sort(key=lambda r: r[order_by], reverse=descending)
            results = present + missing
        results = results[offset:]
        if limit is not None:
            results = results[:limit]
        return results

    def run_transaction(self, fn: Callable[[StoreTransaction], T]) -> T:
        with self._lock:
            transaction = _InMemoryTransaction(self)
            result = fn(transaction)
            transaction.commit()
            return result

    def clear(self) -> None:
        with self._lock:
            self._collections.clear()

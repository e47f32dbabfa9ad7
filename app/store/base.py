"""
Document store contract.

Services never talk to Firestore directly; they go through a DocumentStore
so the same code runs against Firestore in production and against the
in-memory store in local development and tests.

Contract:
- Documents are plain dicts. Reads return a copy with the document id under "id".
- Filters are (field, op, value) tuples. Supported ops: ==, !=, <, <=, >, >=, in.
- run_transaction(fn) runs fn(txn) with serializable semantics. All reads
  inside fn must happen before its writes. fn may be retried by the backend,
  so it must not have side effects outside the transaction.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

Filter = Tuple[str, str, Any]
T = TypeVar("T")

SUPPORTED_OPS = ("==", "!=", "<", "<=", ">", ">=", "in")


class StoreTransaction(ABC):
    """Operations available inside run_transaction."""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict]:
        raise NotImplementedError

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Dict) -> None:
        raise NotImplementedError

    @abstractmethod
    def add(self, collection: str, data: Dict) -> str:
        raise NotImplementedError

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: Dict) -> None:
        raise NotImplementedError

    @abstractmethod
    def increment(self, collection: str, doc_id: str, field: str, amount: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        raise NotImplementedError


class DocumentStore(ABC):
    """Transactional key/document store keyed by collection and document id."""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict]:
        raise NotImplementedError

    @abstractmethod
    def add(self, collection: str, data: Dict, doc_id: Optional[str] = None) -> str:
        raise NotImplementedError

    @abstractmethod
    def update(self, collection: str, doc_id: str, fields: Dict) -> Dict:
        """Update fields of an existing document. Raises NotFound if missing."""
        raise NotImplementedError

    @abstractmethod
    def increment(self, collection: str, doc_id: str, field: str, amount: int = 1) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def find(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Dict]:
        raise NotImplementedError

    def count(self, collection: str, filters: Sequence[Filter] = ()) -> int:
        return len(self.find(collection, filters))

    @abstractmethod
    def run_transaction(self, fn: Callable[[StoreTransaction], T]) -> T:
        raise NotImplementedError


def matches(document: Dict, filters: Sequence[Filter]) -> bool:
    """Evaluate filters against a document dict (in-memory query engine)."""
    for field, op, value in filters:
        actual = document.get(field)
        if op == "==":
            ok = actual == value
        elif op == "!=":
            ok = actual != value
        elif op == "in":
            ok = actual in value
        elif actual is None:
            ok = False
        elif op == "<":
            ok = actual < value
        elif op == "<=":
            ok = actual <= value
        elif op == ">":
            ok = actual > value
        elif op == ">=":
            ok = actual >= value
        else:
            raise ValueError(f"Unsupported filter operator: {op}. Supported: {SUPPORTED_OPS}")
        if not ok:
            return False
    return True

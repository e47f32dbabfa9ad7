"""
Keyed state store for short-lived per-subject records (one-time codes,
rate counters).

Each limiter/authenticator owns its own instance; nothing here is a
process-wide singleton. Records are plain dicts. Callers take the key's
lock for read-modify-write sequences; expired records are removed by an
explicit sweep rather than by timers.
"""

from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional
import threading
import zlib


class KeyedStateStore:
    """
    Dict-backed store with striped per-key locks.

    Striping keeps the lock table fixed-size: two keys may share a stripe,
    which only costs concurrency, never correctness.
    """

    def __init__(self, name: str, stripes: int = 64):
        self.name = name
        self._records: Dict[str, Dict] = {}
        self._stripes = [threading.Lock() for _ in range(stripes)]
        self._table_lock = threading.Lock()

    def _stripe(self, key: str) -> threading.Lock:
        return self._stripes[zlib.crc32(key.encode("utf-8")) % len(self._stripes)]

    @contextmanager
    def locked(self, key: str) -> Iterator[None]:
        """Hold the lock for `key` across a read-modify-write sequence."""
        with self._stripe(key):
            yield

    def get(self, key: str) -> Optional[Dict]:
        with self._table_lock:
            record = self._records.get(key)
            return dict(record) if record is not None else None

    def put(self, key: str, record: Dict) -> None:
        with self._table_lock:
            self._records[key] = dict(record)

    def delete(self, key: str) -> bool:
        with self._table_lock:
            return self._records.pop(key, None) is not None

    def sweep(self, is_expired: Callable[[Dict], bool]) -> int:
        """Delete every record for which `is_expired(record)` is true."""
        with self._table_lock:
            expired = [key for key, record in self._records.items() if is_expired(record)]
            for key in expired:
                del self._records[key]
        return len(expired)

    def __len__(self) -> int:
        with self._table_lock:
            return len(self._records)

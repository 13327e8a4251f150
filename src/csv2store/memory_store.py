"""In-process DocumentStore used for tests and dry runs."""

import json
import threading
from typing import Any

from csv2store.store.service import DocumentStore
from csv2store.store.types import EXISTS, OK, StoreResult, other, permanent


class MemoryDocumentStore(DocumentStore):
    """Dict-backed store guarded by a lock.

    With ``capacity`` set, add() reports permanent exhaustion once that many
    documents are held.
    """

    def __init__(self, capacity: int | None = None):
        self._capacity = capacity
        self._documents: dict[str, str] = {}
        self._lock = threading.Lock()

    def connect(self) -> None:
        pass

    def close(self) -> None:
        pass

    def add(self, key: str, document: str) -> StoreResult:
        with self._lock:
            if key in self._documents:
                return other(EXISTS, f"key '{key}' already exists")
            if self._capacity is not None and len(self._documents) >= self._capacity:
                return permanent("full", "capacity exhausted")
            self._documents[key] = document
        return OK

    def get(self, key: str) -> dict[str, Any] | None:
        with self._lock:
            document = self._documents.get(key)
        return json.loads(document) if document is not None else None

    def remove(self, key: str) -> bool:
        with self._lock:
            return self._documents.pop(key, None) is not None

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._documents)

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)

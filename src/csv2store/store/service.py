"""Abstract DocumentStore interface and the startup connectivity check."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from csv2store.converter import generate_key
from csv2store.errors import ConnectivityError
from csv2store.store.types import StoreResult

logger = logging.getLogger(__name__)


class DocumentStore(ABC):
    """Key-value document store interface.

    Design principles:
    - Insert-only: add() never overwrites an existing key
    - Thread-safe: one instance is shared by every upload worker
    - Failures are results, not exceptions: add() classifies backend errors
      into a StoreResult so the upload engine can decide whether to retry
    """

    @abstractmethod
    def connect(self) -> None:
        """Open connections / sessions."""

    @abstractmethod
    def close(self) -> None:
        """Close all connections and release resources."""

    @abstractmethod
    def add(self, key: str, document: str) -> StoreResult:
        """Store ``document`` under ``key`` unless the key already exists."""

    @abstractmethod
    def get(self, key: str) -> dict[str, Any] | None:
        """Return the decoded document stored under ``key``, or None."""

    @abstractmethod
    def remove(self, key: str) -> bool:
        """Delete ``key``. Returns False if it did not exist."""


def verify_connectivity(store: DocumentStore) -> None:
    """Write and remove a throwaway document; raise ConnectivityError on failure."""
    key = "test:" + generate_key()
    try:
        result = store.add(key, json.dumps({"status": "success!"}))
        if not result.success:
            raise ConnectivityError(
                f"unable to store test document: {result.status.value} {result.code} {result.message}"
            )
        store.remove(key)
    except ConnectivityError:
        raise
    except Exception as e:
        raise ConnectivityError(f"unable to connect to store: {e}") from e
    logger.info("Store connectivity verified")

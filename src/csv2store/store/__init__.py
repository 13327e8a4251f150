"""Document store interface and result types."""

from csv2store.store.service import DocumentStore, verify_connectivity
from csv2store.store.types import StoreResult, StoreStatus

__all__ = ["DocumentStore", "StoreResult", "StoreStatus", "verify_connectivity"]

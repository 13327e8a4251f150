"""Shared types for document store backends."""

from dataclasses import dataclass
from enum import Enum


class StoreStatus(Enum):
    SUCCESS = "success"
    TRANSIENT = "transient"  # temporary pressure, retry shortly
    PERMANENT = "permanent"  # capacity exhausted for the rest of the run
    OTHER = "other"


@dataclass(frozen=True)
class StoreResult:
    status: StoreStatus
    code: int | str | None = None
    message: str = ""

    @property
    def success(self) -> bool:
        return self.status is StoreStatus.SUCCESS


OK = StoreResult(StoreStatus.SUCCESS)
EXISTS = "exists"


def transient(code: int | str | None = None, message: str = "") -> StoreResult:
    return StoreResult(StoreStatus.TRANSIENT, code, message)


def permanent(code: int | str | None = None, message: str = "") -> StoreResult:
    return StoreResult(StoreStatus.PERMANENT, code, message)


def other(code: int | str | None = None, message: str = "") -> StoreResult:
    return StoreResult(StoreStatus.OTHER, code, message)

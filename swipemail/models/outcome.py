from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class Degradation(str, Enum):
    """Why a result is best-effort rather than fully durable/authoritative."""

    NOT_FOUND = "not_found"
    CORRUPT_RECORD = "corrupt_record"
    LOCK_CONTENTION = "lock_contention"
    WRITE_FAILED = "write_failed"
    EMPTY_TAGS = "empty_tags"


@dataclass
class Outcome(Generic[T]):
    """A value plus an optional reason it was produced on a degraded path."""

    value: T
    reason: Degradation | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @classmethod
    def degraded(cls, value: T, reason: Degradation) -> "Outcome[T]":
        return cls(value=value, reason=reason)

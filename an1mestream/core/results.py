from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


# ===========================
# Lookup Status
# ===========================
class LookupStatus(str, Enum):
    FOUND = "found"
    NOT_FOUND = "not_found"
    FAILED = "failed"


# ===========================
# Failure Kinds
# ===========================
class FailureKind(str, Enum):
    NETWORK = "network"
    PARSE = "parse"
    DECODE = "decode"


# ===========================
# Lookup Result
# ===========================
@dataclass(frozen=True)
class Lookup(Generic[T]):
    """Outcome of a resolver call.

    Resolvers never raise into the enrichment pipeline; they return one of
    ``found``, ``not_found`` or ``failed`` and the caller picks the fallback.
    Failed lookups are cached like misses, so ``value`` is only meaningful
    when ``status`` is FOUND.
    """

    status: LookupStatus
    value: Optional[T] = None
    failure: Optional[FailureKind] = None
    detail: Optional[str] = None

    @classmethod
    def found(cls, value: T) -> "Lookup[T]":
        return cls(LookupStatus.FOUND, value=value)

    @classmethod
    def not_found(cls) -> "Lookup[T]":
        return cls(LookupStatus.NOT_FOUND)

    @classmethod
    def failed(cls, failure: FailureKind, detail: Optional[str] = None) -> "Lookup[T]":
        return cls(LookupStatus.FAILED, failure=failure, detail=detail)

    @property
    def ok(self) -> bool:
        return self.status is LookupStatus.FOUND

    def unwrap_or(self, default: T) -> T:
        if self.ok:
            return self.value
        return default

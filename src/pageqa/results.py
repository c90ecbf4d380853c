"""Stage outcomes and the errors that produce them."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class FailureKind(str, Enum):
    """Why a stage produced no value."""

    INVALID_INPUT = "invalid_input"
    UPSTREAM_FAILURE = "upstream_failure"
    ABORTED = "aborted"
    TIMEOUT = "timeout"


class StageError(RuntimeError):
    """Raised inside a stage; converted to a ``StageResult`` at the stage boundary."""

    kind = FailureKind.UPSTREAM_FAILURE


class InvalidInputError(StageError):
    """Raised when an argument is rejected before any external call."""

    kind = FailureKind.INVALID_INPUT


class UpstreamError(StageError):
    """Raised when an external service fails or returns an unusable payload."""

    kind = FailureKind.UPSTREAM_FAILURE


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """Value of a stage, or the kind of failure that prevented it."""

    value: T | None = None
    kind: FailureKind | None = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.kind is None

    def unwrap_or_none(self) -> T | None:
        return self.value if self.ok else None

    @classmethod
    def success(cls, value: T) -> "StageResult[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: FailureKind, detail: str) -> "StageResult[T]":
        return cls(kind=kind, detail=detail)

    @classmethod
    def from_error(cls, exc: StageError) -> "StageResult[T]":
        return cls(kind=exc.kind, detail=str(exc))

    @classmethod
    def invalid(cls, detail: str) -> "StageResult[T]":
        return cls.failure(FailureKind.INVALID_INPUT, detail)

    @classmethod
    def upstream(cls, detail: str) -> "StageResult[T]":
        return cls.failure(FailureKind.UPSTREAM_FAILURE, detail)

    @classmethod
    def aborted(cls, detail: str) -> "StageResult[T]":
        return cls.failure(FailureKind.ABORTED, detail)

    @classmethod
    def timed_out(cls, detail: str) -> "StageResult[T]":
        return cls.failure(FailureKind.TIMEOUT, detail)


__all__ = [
    "FailureKind",
    "InvalidInputError",
    "StageError",
    "StageResult",
    "UpstreamError",
]

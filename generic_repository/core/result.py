from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Iterator, TypeVar

T = TypeVar("T")


class Outcome(str, Enum):
    OK = "ok"
    INVALID = "invalid"
    NOT_FOUND = "not_found"
    BACKEND_ERROR = "backend_error"


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a write. Unpacks as ``(success, message)``."""

    success: bool
    message: str
    outcome: Outcome

    @classmethod
    def ok(cls, message: str) -> "OperationResult":
        return cls(True, message, Outcome.OK)

    @classmethod
    def invalid(cls, message: str) -> "OperationResult":
        return cls(False, message, Outcome.INVALID)

    @classmethod
    def not_found(cls, message: str = "Item not found") -> "OperationResult":
        return cls(False, message, Outcome.NOT_FOUND)

    @classmethod
    def failed(cls, message: str) -> "OperationResult":
        return cls(False, message, Outcome.BACKEND_ERROR)

    def __iter__(self) -> Iterator:
        yield self.success
        yield self.message

    def __bool__(self) -> bool:
        return self.success


@dataclass(frozen=True)
class QueryResult(Generic[T]):
    """Outcome of a read. Unpacks as ``(payload, success, message)``.

    ``payload`` is only set when ``success`` is true. An empty match is a
    ``NOT_FOUND`` outcome, never an error.
    """

    payload: T | None
    success: bool
    message: str
    outcome: Outcome

    @classmethod
    def found(cls, payload: T, message: str) -> "QueryResult[T]":
        return cls(payload, True, message, Outcome.OK)

    @classmethod
    def invalid(cls, message: str) -> "QueryResult[T]":
        return cls(None, False, message, Outcome.INVALID)

    @classmethod
    def not_found(cls, message: str = "Item not found") -> "QueryResult[T]":
        return cls(None, False, message, Outcome.NOT_FOUND)

    @classmethod
    def failed(cls, message: str) -> "QueryResult[T]":
        return cls(None, False, message, Outcome.BACKEND_ERROR)

    @property
    def is_not_found(self) -> bool:
        return self.outcome is Outcome.NOT_FOUND

    def __iter__(self) -> Iterator:
        yield self.payload
        yield self.success
        yield self.message

    def __bool__(self) -> bool:
        return self.success

"""Error types for progress-sync.

Fallible store and filesystem operations return a Result instead of raising,
so callers decide explicitly whether a failure aborts the invocation.

    result = store.put_live(checkpoint)
    if result.is_err():
        logger.warning(format_error(result.unwrap_err()))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class SyncError:
    """A structured error with a machine-readable code."""

    code: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful result."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_err(self):
        raise ValueError("Called unwrap_err() on Ok")


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed result."""

    err_value: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self):
        raise ValueError(f"Called unwrap() on Err: {self.err_value}")

    def unwrap_err(self) -> E:
        return self.err_value


Result = Ok[T] | Err[E]


def ok(value: T) -> Ok[T]:
    return Ok(value)


def err(error: E) -> Err[E]:
    return Err(error)


class StoreUnavailable(Exception):
    """The checkpoint store could not be read or written."""


def format_error(error: SyncError) -> str:
    """Format an error for display."""
    return f"[{error.code}] {error.message}"

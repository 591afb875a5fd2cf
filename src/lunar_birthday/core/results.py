"""
Success/failure result type for remote operations.

Lets callers decide per item whether to continue or abort instead of relying
on exceptions propagating out of concurrent work.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class OperationResult(Generic[T]):
    """Outcome of a single remote operation."""

    value: T | None = None
    error: BaseException | None = None

    @classmethod
    def ok(cls, value: T) -> "OperationResult[T]":
        return cls(value=value)

    @classmethod
    def fail(cls, error: BaseException) -> "OperationResult[T]":
        return cls(error=error)

    @property
    def success(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value, re-raising the stored error on failure."""
        if self.error is not None:
            raise self.error
        return self.value  # type: ignore[return-value]

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "error": str(self.error) if self.error is not None else None,
        }

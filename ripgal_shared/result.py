"""
Result pattern for error handling without exceptions.
Engine services return Result[T]; only task cancellation is raised.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Generic, Optional, TypeVar, cast

from .types import ErrorCode

T = TypeVar("T")
U = TypeVar("U")


@dataclass
class Result(Generic[T]):
    """
    Outcome of an engine operation.

    Usage:
        async def get_album(host: str, gid: str) -> Result[dict]:
            if row is None:
                return Result.Err(ErrorCode.NOT_FOUND, f"No such album: {host}/{gid}")
            return Result.Ok(row)
    """
    ok: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: str = "OK"  # OK, NOT_FOUND, CANCELLED, DB_ERROR, CACHE_ERROR, ...
    meta: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def Ok(data: T, **meta: Any) -> "Result[T]":
        """Create a successful result with data and optional metadata."""
        return Result(ok=True, data=data, code="OK", meta=meta)

    @staticmethod
    def Err(code: ErrorCode | str | Enum, error: str, **meta: Any) -> "Result[T]":
        """Create an error result with code, message, and optional metadata."""
        code_value = code.value if isinstance(code, Enum) else code
        return Result(ok=False, error=error, code=str(code_value), meta=meta)

    def forward(self) -> "Result[Any]":
        """Re-wrap an error result for a caller expecting a different payload type."""
        return Result(ok=False, error=self.error, code=self.code, meta=dict(self.meta))

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        """Map the data if ok, otherwise return self."""
        if self.ok and self.data is not None:
            return Result.Ok(fn(self.data), **self.meta)
        return cast(Result[U], self)

    def unwrap(self) -> T:
        """Get data or raise ValueError if error."""
        if self.ok and self.data is not None:
            return self.data
        raise ValueError(f"[{self.code}] {self.error}")

    def unwrap_or(self, default: T) -> T:
        """Get data or return default if error."""
        return self.data if (self.ok and self.data is not None) else default

    @property
    def cancelled(self) -> bool:
        return (not self.ok) and self.code == ErrorCode.CANCELLED.value

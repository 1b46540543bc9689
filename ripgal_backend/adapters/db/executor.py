"""
Instrumented query execution.

Every catalog or cache round trip goes through `QueryExecutor.run`, which:
- refuses to start when the request's `QueryContext` is already cancelled or past its deadline,
- abandons the statement if the context is cancelled while it is in flight,
- accounts latency on the context's `Perf`,
- logs statements slower than the configured threshold with the calling location.

Nothing here retries.
"""

from __future__ import annotations

import asyncio
import os
import sys
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from ...shared import ErrorCode, Result, get_logger, monotonic_ms
from .sqlite import Sqlite

logger = get_logger(__name__)

T = TypeVar("T")

_ABANDONED = object()


@dataclass
class Perf:
    """Per-request timing: statement count, time spent in SQL, total page time."""

    sql_count: int = 0
    sql_time_ms: float = 0.0
    page_time_ms: float = 0.0
    started_ms: float = field(default_factory=monotonic_ms)

    def record(self, elapsed_ms: float) -> None:
        self.sql_count += 1
        self.sql_time_ms += elapsed_ms

    def finish(self) -> "Perf":
        self.page_time_ms = monotonic_ms() - self.started_ms
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sql_count": self.sql_count,
            "sql_time_ms": round(self.sql_time_ms, 3),
            "page_time_ms": round(self.page_time_ms, 3),
        }


@dataclass
class QueryContext:
    """
    Cancellation signal plus perf accumulator for one request.

    `deadline` is a `time.monotonic()` instant; `cancel_event` is set by the
    request layer when the client goes away.
    """

    deadline: Optional[float] = None
    cancel_event: Optional[asyncio.Event] = None
    perf: Perf = field(default_factory=Perf)

    @classmethod
    def with_timeout(cls, seconds: float) -> "QueryContext":
        return cls(deadline=time.monotonic() + float(seconds))

    def cancel(self) -> None:
        if self.cancel_event is None:
            self.cancel_event = asyncio.Event()
        self.cancel_event.set()

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def is_cancelled(self) -> bool:
        if self.cancel_event is not None and self.cancel_event.is_set():
            return True
        return self.deadline is not None and time.monotonic() >= self.deadline


def cancelled_result(op: str = "request") -> Result[Any]:
    return Result.Err(ErrorCode.CANCELLED, f"{op} cancelled")


def ensure_context(ctx: Optional[QueryContext]) -> QueryContext:
    return ctx if ctx is not None else QueryContext()


def _caller_location() -> str:
    """First frame outside this module, as `file.py:line`."""
    frame = sys._getframe(1)
    while frame is not None and frame.f_code.co_filename == __file__:
        frame = frame.f_back
    if frame is None:
        return "<unknown>"
    return f"{os.path.basename(frame.f_code.co_filename)}:{frame.f_lineno}"


async def _await_cancellable(ctx: QueryContext, coro: Awaitable[T]) -> Any:
    if ctx.cancel_event is None and ctx.deadline is None:
        return await coro

    task = asyncio.ensure_future(coro)
    waiters = {task}
    event_task = None
    if ctx.cancel_event is not None:
        event_task = asyncio.ensure_future(ctx.cancel_event.wait())
        waiters.add(event_task)
    try:
        done, _ = await asyncio.wait(waiters, timeout=ctx.remaining(), return_when=asyncio.FIRST_COMPLETED)
    except BaseException:
        task.cancel()
        raise
    finally:
        if event_task is not None:
            event_task.cancel()
    if task in done:
        return task.result()
    task.cancel()
    return _ABANDONED


class QueryExecutor:
    """Instrumented access to one `Sqlite` store."""

    def __init__(self, db: Sqlite, *, slow_sql_ms: int = 100, label: str = "catalog"):
        self.db = db
        self.slow_sql_ms = int(slow_sql_ms)
        self.label = label

    def _maybe_log_slow(self, elapsed_ms: float, op: str, caller: str) -> None:
        if self.slow_sql_ms < 0 or elapsed_ms < self.slow_sql_ms:
            return
        logger.warning(
            "Slow SQL at %s: %.0fms (>= %dms) [%s:%s]",
            caller,
            elapsed_ms,
            self.slow_sql_ms,
            self.label,
            op,
        )

    async def run(
        self,
        ctx: Optional[QueryContext],
        call: Callable[[], Awaitable[Result[T]]],
        *,
        op: str = "query",
    ) -> Result[T]:
        """Run one round trip produced by `call()` with cancellation, perf and slow-log handling."""
        ctx = ensure_context(ctx)
        if ctx.is_cancelled():
            return cancelled_result(op)
        caller = _caller_location() if self.slow_sql_ms >= 0 else ""
        start = monotonic_ms()
        try:
            out = await _await_cancellable(ctx, call())
        finally:
            elapsed = monotonic_ms() - start
            ctx.perf.record(elapsed)
            self._maybe_log_slow(elapsed, op, caller)
        if out is _ABANDONED:
            return cancelled_result(op)
        return out

    async def query(
        self, ctx: Optional[QueryContext], sql: str, params: Any = None, *, op: str = "query"
    ) -> Result[List[Dict[str, Any]]]:
        return await self.run(ctx, lambda: self.db.aquery(sql, params), op=op)

    async def query_one(
        self, ctx: Optional[QueryContext], sql: str, params: Any = None, *, op: str = "query_one"
    ) -> Result[Optional[Dict[str, Any]]]:
        return await self.run(ctx, lambda: self.db.aquery_one(sql, params), op=op)

    async def scalar(
        self, ctx: Optional[QueryContext], sql: str, params: Any = None, *, op: str = "scalar", default: Any = 0
    ) -> Result[Any]:
        """First column of the first row, or `default` when there are no rows or it is NULL."""
        res = await self.query_one(ctx, sql, params, op=op)
        if not res.ok:
            return res.forward()
        row = res.data
        if not row:
            return Result.Ok(default)
        value = next(iter(row.values()))
        return Result.Ok(default if value is None else value)

"""
SQLite connection manager (aiosqlite-backed).

Each `Sqlite` instance owns a dedicated event-loop thread, a small connection
pool and a write lock, so two instances (the read-only catalog and the
writable search-hit cache) never block each other.

Critical guarantee:
- The adapter never raises to callers; it returns `Result(...)`.
  Task cancellation is the only exception that propagates.
"""

from __future__ import annotations

import asyncio
import os
import sqlite3
import threading
from pathlib import Path
from queue import Empty, Queue
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar
from urllib.parse import quote

import aiosqlite
import psutil

from ...shared import ErrorCode, Result, get_logger, sanitize_error_message

logger = get_logger(__name__)

T = TypeVar("T")

# sqlite's own default page cache (~2 MiB) is the floor.
MIN_CACHE_SIZE_KIB = 2000


class _AsyncLoopThread:
    def __init__(self, name: str):
        self._name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._thread_ident: Optional[int] = None
        self._ready = threading.Event()

    def start(self) -> asyncio.AbstractEventLoop:
        if self._loop and self._thread and self._thread.is_alive():
            return self._loop

        self._ready.clear()

        def _run():
            self._thread_ident = threading.get_ident()
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
            self._loop = loop
            self._ready.set()
            try:
                loop.run_forever()
            finally:
                pending = asyncio.all_tasks(loop)
                for task in pending:
                    task.cancel()
                if pending:
                    loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
                loop.close()

        self._thread = threading.Thread(target=_run, name=f"ripgal-db-{self._name}", daemon=True)
        self._thread.start()
        self._ready.wait(timeout=10.0)
        if not self._loop:
            raise RuntimeError("Failed to start DB async loop thread")
        return self._loop

    def run(self, coro):
        loop = self.start()
        # Calling run() from the loop thread deadlocks on fut.result().
        if self._thread_ident == threading.get_ident():
            raise RuntimeError("Synchronous DB API called from DB loop thread")
        fut = asyncio.run_coroutine_threadsafe(coro, loop)
        return fut.result()

    def submit(self, coro):
        loop = self.start()
        return asyncio.run_coroutine_threadsafe(coro, loop)

    def stop(self):
        loop = self._loop
        if not loop:
            return
        if not loop.is_closed():
            loop.call_soon_threadsafe(loop.stop)
        if self._thread and self._thread.is_alive() and self._thread_ident != threading.get_ident():
            self._thread.join(timeout=5.0)
        self._loop = None
        self._thread_ident = None


def compute_cache_size_kib(db_path: Path, cap_kib: int) -> int:
    """
    Page cache budget: the smaller of the database size, available memory and `cap_kib`.

    Returned as a positive KiB count; callers negate it for `PRAGMA cache_size`.
    """
    try:
        db_kib = int(os.path.getsize(db_path) // 1024)
    except OSError:
        db_kib = 0
    avail_kib = int(psutil.virtual_memory().available // 1024)
    return max(MIN_CACHE_SIZE_KIB, min(db_kib, avail_kib, int(cap_kib)))


class Sqlite:
    """
    Connection pool manager for SQLite (aiosqlite-backed).

    Async API; statements execute on a dedicated loop thread.
    """

    def __init__(
        self,
        db_path: str | Path,
        *,
        read_only: bool = False,
        max_connections: int = 1,
        timeout: float = 10.0,
        query_timeout: float = 0.0,
        cache_size_cap_kib: Optional[int] = None,
        wal: bool = True,
        name: str = "db",
    ):
        self.db_path = Path(db_path)
        self.read_only = bool(read_only)
        self.name = name
        self._max_conn_limit = max(1, int(max_connections))
        self._pool: "Queue[aiosqlite.Connection]" = Queue(maxsize=self._max_conn_limit)
        self._timeout = float(timeout)
        self._query_timeout = float(query_timeout or 0.0)
        self._cache_size_cap_kib = cache_size_cap_kib
        self._wal = bool(wal)
        self._initialized = False
        self._closed = False
        self._async_sem: Optional[asyncio.Semaphore] = None
        self._write_lock: Optional[asyncio.Lock] = None
        self._active_conns: set[aiosqlite.Connection] = set()
        self._loop_thread = _AsyncLoopThread(name)

        if not self.read_only:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        try:
            self._loop_thread.run(self._ensure_initialized_async())
            logger.info("Database opened (%s%s): %s", self.name, ", read-only" if self.read_only else "", self.db_path)
        except Exception as exc:
            logger.error("Failed to open database %s: %s", self.db_path, exc)
            self._loop_thread.stop()
            raise

    def get_runtime_status(self) -> Dict[str, Any]:
        """Return lightweight runtime counters for diagnostics."""
        return {
            "name": self.name,
            "read_only": self.read_only,
            "active_connections": len(self._active_conns),
            "pooled_connections": int(self._pool.qsize()),
            "max_connections": int(self._max_conn_limit),
            "query_timeout_s": float(self._query_timeout),
        }

    def _connect_target(self) -> tuple[str, bool]:
        if self.read_only:
            path = quote(str(self.db_path.resolve()))
            return f"file:{path}?mode=ro", True
        return str(self.db_path), False

    async def _apply_connection_pragmas(self, conn: aiosqlite.Connection):
        busy_ms = max(1000, int(self._timeout * 1000))
        await conn.execute(f"PRAGMA busy_timeout = {busy_ms}")
        await conn.execute("PRAGMA foreign_keys=ON")
        await conn.execute("PRAGMA temp_store=MEMORY")
        if self._cache_size_cap_kib is not None:
            cache_kib = compute_cache_size_kib(self.db_path, self._cache_size_cap_kib)
            await conn.execute(f"PRAGMA cache_size=-{cache_kib}")
        if self.read_only:
            await conn.execute("PRAGMA query_only=1")
        elif self._wal:
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA synchronous=NORMAL")

    async def _create_connection(self) -> aiosqlite.Connection:
        target, uri = self._connect_target()
        # Autocommit; transactions are explicit (see `arun_in_transaction`).
        conn = await aiosqlite.connect(target, timeout=self._timeout, isolation_level=None, uri=uri)
        conn.row_factory = sqlite3.Row
        try:
            await self._apply_connection_pragmas(conn)
        except Exception:
            await conn.close()
            raise
        return conn

    async def _acquire_connection_async(self) -> aiosqlite.Connection:
        if self._closed:
            raise RuntimeError("Database is closed")
        if self._async_sem is None:
            self._async_sem = asyncio.Semaphore(self._max_conn_limit)
        sem = self._async_sem
        await sem.acquire()
        try:
            try:
                conn = self._pool.get_nowait()
            except Empty:
                conn = await self._create_connection()
            self._active_conns.add(conn)
            return conn
        except BaseException:
            sem.release()
            raise

    async def _release_connection_async(self, conn: aiosqlite.Connection):
        try:
            self._active_conns.discard(conn)
            if self._closed or self._pool.full():
                await conn.close()
            else:
                self._pool.put(conn)
        finally:
            if self._async_sem:
                self._async_sem.release()

    async def _ensure_initialized_async(self):
        if self._initialized:
            return
        conn = await self._acquire_connection_async()
        try:
            await conn.execute("SELECT 1")
        finally:
            await self._release_connection_async(conn)
        if self._write_lock is None:
            self._write_lock = asyncio.Lock()
        self._initialized = True

    @staticmethod
    def _rows_to_dicts(rows: Any) -> List[Dict[str, Any]]:
        if not rows:
            return []
        return [dict(r) for r in rows]

    async def _with_query_timeout(self, coro):
        if self._query_timeout > 0:
            try:
                return await asyncio.wait_for(coro, timeout=self._query_timeout)
            except asyncio.TimeoutError:
                return Result.Err(ErrorCode.TIMEOUT, "Database operation timed out")
        return await coro

    @staticmethod
    def _is_write_sql(query: str) -> bool:
        q = str(query or "").lstrip()
        if not q:
            return False
        head = q.split(None, 1)[0].upper()
        return head not in ("SELECT", "PRAGMA", "WITH", "EXPLAIN")

    @staticmethod
    def _error_result(exc: Exception) -> Result[Any]:
        if isinstance(exc, sqlite3.OperationalError):
            if "interrupted" in str(exc).lower():
                return Result.Err(ErrorCode.TIMEOUT, "Database operation interrupted")
            logger.warning("Operational error: %s", exc)
            return Result.Err(ErrorCode.DB_ERROR, sanitize_error_message(exc, "Operational error"))
        if isinstance(exc, sqlite3.DatabaseError):
            logger.error("Database error: %s", exc)
            return Result.Err(ErrorCode.DB_ERROR, sanitize_error_message(exc, "Database error"))
        logger.error("Unexpected database error: %s", exc)
        return Result.Err(ErrorCode.DB_ERROR, sanitize_error_message(exc, "Unexpected database error"))

    async def _execute_with_cursor_result(
        self,
        conn: aiosqlite.Connection,
        query: str,
        params: Any,
        *,
        fetch: bool,
    ) -> Result[Any]:
        cursor = await conn.execute(query, params or ())
        try:
            if fetch:
                rows = await cursor.fetchall()
                return Result.Ok(self._rows_to_dicts(rows))
            last_id = getattr(cursor, "lastrowid", None)
            if last_id:
                return Result.Ok(last_id)
            rowcount = getattr(cursor, "rowcount", None)
            return Result.Ok(rowcount if rowcount is not None else 0)
        finally:
            await cursor.close()

    async def _execute_async(self, query: str, params: Any, fetch: bool) -> Result[Any]:
        await self._ensure_initialized_async()

        async def _execute_inner() -> Result[Any]:
            conn = await self._acquire_connection_async()
            try:
                if self._is_write_sql(query) and self._write_lock is not None:
                    async with self._write_lock:
                        return await self._execute_with_cursor_result(conn, query, params, fetch=fetch)
                return await self._execute_with_cursor_result(conn, query, params, fetch=fetch)
            except Exception as exc:
                return self._error_result(exc)
            finally:
                await self._release_connection_async(conn)

        return await self._with_query_timeout(_execute_inner())

    async def _submit(self, coro: Awaitable[T]) -> T:
        fut = self._loop_thread.submit(coro)
        # Cancelling the awaiting task cancels the statement's task on the DB loop too.
        return await asyncio.wrap_future(fut)

    async def aexecute(self, query: str, params: Any = None, fetch: bool = False) -> Result[Any]:
        """Execute SQL on the DB loop thread (async). `params` may be a tuple or a dict."""
        return await self._submit(self._execute_async(query, params, fetch))

    async def aquery(self, sql: str, params: Any = None) -> Result[List[Dict[str, Any]]]:
        """Execute a SELECT query and return rows (async)."""
        return await self.aexecute(sql, params, fetch=True)

    async def aquery_one(self, sql: str, params: Any = None) -> Result[Optional[Dict[str, Any]]]:
        """Execute a SELECT query and return the first row, or `Ok(None)` when empty."""
        res = await self.aquery(sql, params)
        if not res.ok:
            return res.forward()
        rows = res.data or []
        return Result.Ok(rows[0] if rows else None)

    async def _executescript_async(self, script: str) -> Result[bool]:
        await self._ensure_initialized_async()
        conn = await self._acquire_connection_async()
        try:
            assert self._write_lock is not None
            async with self._write_lock:
                await conn.executescript(script)
            return Result.Ok(True)
        except Exception as exc:
            return self._error_result(exc)
        finally:
            await self._release_connection_async(conn)

    async def aexecutescript(self, script: str) -> Result[bool]:
        """Execute a multi-statement script (schema setup)."""
        return await self._submit(self._executescript_async(script))

    async def _run_in_transaction_async(self, work: Callable[[aiosqlite.Connection], Awaitable[T]]) -> Result[T]:
        await self._ensure_initialized_async()
        conn = await self._acquire_connection_async()
        try:
            assert self._write_lock is not None
            async with self._write_lock:
                await conn.execute("BEGIN IMMEDIATE")
                try:
                    value = await work(conn)
                except BaseException:
                    await conn.execute("ROLLBACK")
                    raise
                await conn.execute("COMMIT")
            return Result.Ok(value)
        except Exception as exc:
            return self._error_result(exc)
        finally:
            await self._release_connection_async(conn)

    async def arun_in_transaction(self, work: Callable[[aiosqlite.Connection], Awaitable[T]]) -> Result[T]:
        """
        Run `work(conn)` inside one IMMEDIATE transaction under the write lock.

        `work` executes on the DB loop thread and must only touch the given connection.
        """
        if self.read_only:
            return Result.Err(ErrorCode.DB_ERROR, "Transactions are not available on a read-only database")
        return await self._submit(self._run_in_transaction_async(work))

    async def aoptimize(self, analysis_limit: Optional[int] = None) -> Result[bool]:
        """
        `PRAGMA optimize`, optionally bounded by `analysis_limit`.

        A read-only handle cannot write statistics: it only applies the limit
        and returns Ok(False).
        """
        async def _optimize() -> Result[bool]:
            await self._ensure_initialized_async()
            conn = await self._acquire_connection_async()
            try:
                if analysis_limit is not None:
                    await conn.execute(f"PRAGMA analysis_limit={int(analysis_limit)}")
                if self.read_only:
                    return Result.Ok(False)
                await conn.execute("PRAGMA optimize")
                return Result.Ok(True)
            except Exception as exc:
                return self._error_result(exc)
            finally:
                await self._release_connection_async(conn)

        return await self._submit(_optimize())

    async def _close_all_async(self):
        self._closed = True
        while True:
            try:
                conn = self._pool.get_nowait()
            except Empty:
                break
            await conn.close()
        for conn in list(self._active_conns):
            await conn.close()
        self._active_conns.clear()
        self._async_sem = None

    async def aclose(self):
        """Close connections and stop the DB loop thread (async)."""
        if self._closed:
            return
        try:
            await self._submit(self._close_all_async())
        finally:
            self._loop_thread.stop()

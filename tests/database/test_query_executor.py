import asyncio
import time
from unittest.mock import MagicMock

import pytest

from ripgal_backend.adapters.db import QueryContext, QueryExecutor, Sqlite
from ripgal_backend.adapters.db import executor as executor_mod
from ripgal_backend.adapters.db.schema import missing_catalog_tables, optimize_catalog, tiny_optimize
from ripgal_shared import ErrorCode, Result


@pytest.mark.asyncio
async def test_query_records_perf(services):
    executor = services["catalog"]
    ctx = QueryContext()
    res = await executor.query(ctx, "SELECT album_id FROM album ORDER BY album_id LIMIT 2")
    assert res.ok
    assert [row["album_id"] for row in res.data] == [1, 2]
    one = await executor.scalar(ctx, "SELECT COUNT(*) FROM ripper")
    assert one.data == 2
    assert ctx.perf.sql_count == 2
    assert ctx.perf.sql_time_ms >= 0
    perf = ctx.perf.finish().to_dict()
    assert set(perf) == {"sql_count", "sql_time_ms", "page_time_ms"}


@pytest.mark.asyncio
async def test_scalar_default_on_null(services):
    res = await services["catalog"].scalar(None, "SELECT MAX(album_id) FROM album WHERE album_id < 0", default=None)
    assert res.ok
    assert res.data is None


@pytest.mark.asyncio
async def test_cancelled_context_skips_statement(services):
    executor = services["catalog"]
    ctx = QueryContext()
    ctx.cancel()
    res = await executor.query(ctx, "SELECT 1")
    assert res.cancelled
    assert ctx.perf.sql_count == 0

    expired = QueryContext(deadline=time.monotonic() - 1)
    res = await executor.query(expired, "SELECT 1")
    assert res.code == ErrorCode.CANCELLED.value


@pytest.mark.asyncio
async def test_cancel_while_waiting_abandons_statement():
    gate = asyncio.Event()

    class _SlowDb:
        async def aquery(self, sql, params=None):
            await gate.wait()
            return Result.Ok([])

    executor = QueryExecutor(_SlowDb(), slow_sql_ms=-1)
    ctx = QueryContext(cancel_event=asyncio.Event())
    task = asyncio.create_task(executor.query(ctx, "SELECT 1"))
    await asyncio.sleep(0.01)
    ctx.cancel()
    res = await asyncio.wait_for(task, timeout=2)
    assert res.cancelled
    assert ctx.perf.sql_count == 1


@pytest.mark.asyncio
async def test_deadline_abandons_slow_statement():
    class _SlowDb:
        async def aquery(self, sql, params=None):
            await asyncio.sleep(5)
            return Result.Ok([])

    executor = QueryExecutor(_SlowDb(), slow_sql_ms=-1)
    res = await executor.query(QueryContext.with_timeout(0.05), "SELECT 1")
    assert res.cancelled


@pytest.mark.asyncio
async def test_slow_statements_are_logged(services, monkeypatch):
    mock_logger = MagicMock()
    monkeypatch.setattr(executor_mod, "logger", mock_logger)

    slow = QueryExecutor(services["catalog_db"], slow_sql_ms=0, label="catalog")
    await slow.query(None, "SELECT 1", op="probe")
    assert mock_logger.warning.called
    args = mock_logger.warning.call_args[0]
    assert "Slow SQL" in args[0]
    assert args[1].startswith("test_query_executor.py:")
    assert "probe" in args

    mock_logger.reset_mock()
    quiet = QueryExecutor(services["catalog_db"], slow_sql_ms=-1)
    await quiet.query(None, "SELECT 1")
    assert not mock_logger.warning.called


@pytest.mark.asyncio
async def test_catalog_is_read_only(services):
    res = await services["catalog_db"].aexecute("DELETE FROM album")
    assert not res.ok
    res = await services["catalog_db"].arun_in_transaction(lambda conn: None)
    assert res.code == ErrorCode.DB_ERROR.value


@pytest.mark.asyncio
async def test_missing_tables_are_reported(tmp_path):
    db = Sqlite(tmp_path / "empty.sqlite", wal=False, name="empty")
    try:
        await db.aexecutescript("CREATE TABLE ripper (ripper_id INTEGER PRIMARY KEY);")
        res = await missing_catalog_tables(db)
        assert res.ok
        assert "ripper" not in res.data
        assert "album_fts5" in res.data
    finally:
        await db.aclose()


@pytest.mark.asyncio
async def test_optimize_helpers(services, catalog_path, tmp_path):
    res = await tiny_optimize(services["catalog_db"])
    assert isinstance(res, Result)

    missing = await optimize_catalog(tmp_path / "nope.sqlite")
    assert missing.code == ErrorCode.NOT_FOUND.value

    full = await optimize_catalog(catalog_path)
    assert full.ok, full.error
    assert full.data is True


@pytest.mark.asyncio
async def test_tiny_optimize_on_read_only_catalog_is_quiet(services, monkeypatch):
    from ripgal_backend.adapters.db import sqlite as sqlite_mod

    mock_logger = MagicMock()
    monkeypatch.setattr(sqlite_mod, "logger", mock_logger)

    executor = services["catalog"]
    for _ in range(3):
        listed = await executor.query(None, "SELECT album_id FROM album ORDER BY album_id LIMIT 3")
        assert listed.ok
        res = await tiny_optimize(services["catalog_db"])
        assert res.ok, res.error
        assert res.data is False

    mock_logger.warning.assert_not_called()
    mock_logger.error.assert_not_called()

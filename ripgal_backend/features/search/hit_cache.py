"""
Search-hit cache: memoized total-match counts per (query fingerprint, entity kind).

Rows are insert-only. Before every lookup, rows past their TTL (and, when a
forced refresh is requested, the rows for the current key) are deleted in the
same write transaction as the lookup itself.
"""

from __future__ import annotations

import hashlib
from typing import Any, Callable, Optional

from ...adapters.db import QueryContext, QueryExecutor
from ...config import DEFAULT_CACHE_TTL_MS
from ...shared import EntityKind, ErrorCode, Result, get_logger, ms

logger = get_logger(__name__)

EVICT_SQL = """
DELETE FROM search_hits
 WHERE (? - inserted_ts) > ?
    OR (query_hash = ? AND table_name = ? AND ?)
"""

LOOKUP_SQL = """
SELECT hits
  FROM search_hits
 WHERE query_hash = ?
   AND table_name = ?
 ORDER BY inserted_ts DESC
 LIMIT 1
"""

INSERT_SQL = "INSERT INTO search_hits (query_hash, table_name, hits, inserted_ts) VALUES (?, ?, ?, ?)"


def query_fingerprint(query: str) -> str:
    """sha-256 hex digest of the raw query text."""
    return hashlib.sha256(str(query).encode("utf-8")).hexdigest()


class SearchHitCache:
    def __init__(
        self,
        executor: QueryExecutor,
        *,
        ttl_ms: int = DEFAULT_CACHE_TTL_MS,
        clock: Callable[[], int] = ms,
    ):
        self.executor = executor
        self.ttl_ms = int(ttl_ms)
        self._clock = clock

    def _as_cache_result(self, res: Result[Any], action: str) -> Result[Any]:
        if res.ok or res.cancelled:
            return res
        logger.error("Search-hit cache %s failed: %s", action, res.error)
        return Result.Err(ErrorCode.CACHE_ERROR, f"Search-hit cache {action} failed: {res.error}")

    async def lookup(
        self,
        kind: EntityKind,
        query: str,
        *,
        force_evict: bool = False,
        ctx: Optional[QueryContext] = None,
    ) -> Result[Optional[int]]:
        """
        Evict stale rows, then return the newest cached count for (query, kind).

        Returns:
            Result with the count, or None on a miss.
        """
        key = query_fingerprint(query)
        table = EntityKind(kind).value
        now_ms = int(self._clock())
        evict_params = (now_ms, self.ttl_ms, key, table, 1 if force_evict else 0)

        async def _evict_then_lookup(conn) -> Optional[int]:
            await conn.execute(EVICT_SQL, evict_params)
            async with conn.execute(LOOKUP_SQL, (key, table)) as cursor:
                row = await cursor.fetchone()
            return None if row is None else int(row[0])

        res = await self.executor.run(
            ctx,
            lambda: self.executor.db.arun_in_transaction(_evict_then_lookup),
            op=f"hits_lookup_{table}",
        )
        return self._as_cache_result(res, "lookup")

    async def store(
        self,
        kind: EntityKind,
        query: str,
        hits: int,
        *,
        ctx: Optional[QueryContext] = None,
    ) -> Result[bool]:
        table = EntityKind(kind).value
        params = (query_fingerprint(query), table, int(hits), int(self._clock()))
        res = await self.executor.run(
            ctx,
            lambda: self.executor.db.aexecute(INSERT_SQL, params),
            op=f"hits_store_{table}",
        )
        res = self._as_cache_result(res, "store")
        return Result.Ok(True) if res.ok else res

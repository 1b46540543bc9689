"""
Schema helpers.

The catalog is owned by the external ingestion pipeline; here we only verify
that the tables we read exist and run maintenance pragmas. The search-hit
cache store is ours and is created on demand.
"""

from __future__ import annotations

from pathlib import Path
from typing import List

from ...shared import ErrorCode, Result, get_logger, log_success, timer
from .sqlite import Sqlite

logger = get_logger(__name__)

CATALOG_REQUIRED_TABLES = (
    "ripper",
    "album",
    "remote_file",
    "mime_type",
    "map_album_remote_file",
    "tag",
    "map_album_tag",
    "map_remote_file_tag",
    "album_fts5",
    "remote_file_fts5",
    "tag_fts5",
)

CACHE_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS search_hits (
    query_hash  TEXT    NOT NULL,
    table_name  TEXT    NOT NULL,
    hits        INTEGER NOT NULL,
    inserted_ts INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_search_hits_lookup
    ON search_hits(query_hash, table_name, inserted_ts);
CREATE INDEX IF NOT EXISTS idx_search_hits_inserted
    ON search_hits(inserted_ts);
"""

# Row-limited optimize, cheap enough to run after requests.
TINY_ANALYSIS_LIMIT = 10000


async def ensure_cache_schema(cache_db: Sqlite) -> Result[bool]:
    res = await cache_db.aexecutescript(CACHE_SCHEMA_SQL)
    if not res.ok:
        logger.error("Failed to create search-hit cache schema: %s", res.error)
        return Result.Err(ErrorCode.CACHE_ERROR, f"Failed to create cache schema: {res.error}")
    return Result.Ok(True)


async def missing_catalog_tables(catalog_db: Sqlite) -> Result[List[str]]:
    """Names from `CATALOG_REQUIRED_TABLES` absent from the catalog (tables or virtual tables)."""
    res = await catalog_db.aquery("SELECT name FROM sqlite_master WHERE type IN ('table', 'view')")
    if not res.ok:
        return res.forward()
    present = {str(row.get("name") or "") for row in (res.data or [])}
    return Result.Ok([name for name in CATALOG_REQUIRED_TABLES if name not in present])


async def tiny_optimize(catalog_db: Sqlite) -> Result[bool]:
    """
    `PRAGMA analysis_limit` + `PRAGMA optimize`; failures are reported, never fatal.

    On the read-only catalog handle only the limit is applied.
    """
    res = await catalog_db.aoptimize(analysis_limit=TINY_ANALYSIS_LIMIT)
    if not res.ok:
        logger.debug("Tiny optimize failed: %s", res.error)
    return res


async def optimize_catalog(catalog_path: str | Path, *, timeout: float = 10.0) -> Result[bool]:
    """
    Full `PRAGMA optimize` on the catalog.

    Needs a writable connection (ANALYZE writes statistics), so it opens its
    own short-lived one instead of using the engine's read-only handle.
    """
    path = Path(catalog_path)
    if not path.is_file():
        return Result.Err(ErrorCode.NOT_FOUND, f"Catalog database not found: {path}")
    logger.info("db optimize started")
    db = Sqlite(path, read_only=False, wal=False, timeout=timeout, name="optimize")
    try:
        with timer("db optimize", logger):
            res = await db.aoptimize()
    finally:
        await db.aclose()
    if not res.ok:
        logger.error("db optimize failed: %s", res.error)
        return res
    log_success(logger, "db optimize succeeded")
    return res

"""
Dependency injection - builds the engine's services from an `EngineConfig`.
Simple, debug-friendly DI without framework magic.
"""

from __future__ import annotations

import random
from typing import Any, Optional

from .adapters.db import QueryExecutor, Sqlite
from .adapters.db.schema import ensure_cache_schema, missing_catalog_tables
from .config import EngineConfig
from .features.browser import CatalogBrowser, TagBrowser
from .features.media import MediaLocator, aload_known_files
from .features.navigator import KeysetNavigator
from .features.random import RandomSelector
from .features.search import CatalogSearcher, SearchHitCache
from .shared import ErrorCode, Result, get_logger, log_success

logger = get_logger(__name__)


def _open_catalog_or_error(config: EngineConfig) -> Result[Sqlite]:
    if not config.catalog_db.is_file():
        return Result.Err(ErrorCode.SERVICE_UNAVAILABLE, f"Catalog database not found: {config.catalog_db}")
    logger.info("Opening catalog (read-only): %s", config.catalog_db)
    try:
        return Result.Ok(
            Sqlite(
                config.catalog_db,
                read_only=True,
                max_connections=1,
                timeout=config.db_timeout,
                query_timeout=config.query_timeout,
                cache_size_cap_kib=config.cache_size_cap_kib,
                name="catalog",
            )
        )
    except Exception as exc:
        logger.error("Failed to open catalog: %s", exc)
        return Result.Err(ErrorCode.DB_ERROR, f"Failed to open catalog: {exc}")


def _open_cache_or_error(config: EngineConfig) -> Result[Sqlite]:
    logger.info("Opening search-hit cache: %s", config.cache_db)
    try:
        config.cache_db.parent.mkdir(parents=True, exist_ok=True)
        return Result.Ok(
            Sqlite(
                config.cache_db,
                max_connections=1,
                timeout=config.db_timeout,
                query_timeout=config.query_timeout,
                name="cache",
            )
        )
    except Exception as exc:
        logger.error("Failed to open search-hit cache: %s", exc)
        return Result.Err(ErrorCode.CACHE_ERROR, f"Failed to open search-hit cache: {exc}")


async def _load_known_files(config: EngineConfig) -> dict:
    if config.df_log is None:
        logger.info("No download log configured; known-files lookup disabled")
        return {}
    res = await aload_known_files(config.df_log, config.df_log_root)
    if not res.ok:
        logger.warning("Known-files log not loaded: %s", res.error)
        return {}
    return res.data or {}


def _build_services_dict(
    config: EngineConfig,
    catalog_db: Sqlite,
    cache_db: Sqlite,
    known_files: dict,
    rng: Optional[random.Random],
) -> dict[str, Any]:
    catalog = QueryExecutor(catalog_db, slow_sql_ms=config.slow_sql_ms, label="catalog")
    cache = QueryExecutor(cache_db, slow_sql_ms=config.slow_sql_ms, label="cache")
    tags = TagBrowser(catalog)
    browser = CatalogBrowser(catalog, tags)
    searcher = CatalogSearcher(catalog, SearchHitCache(cache, ttl_ms=config.cache_ttl_ms))
    return {
        "config": config,
        "catalog_db": catalog_db,
        "cache_db": cache_db,
        "catalog": catalog,
        "tags": tags,
        "browser": browser,
        "navigator": KeysetNavigator(catalog),
        "search": searcher,
        "random": RandomSelector(catalog, browser, searcher, rng=rng),
        "media": MediaLocator(config.media_root, known_files, config.df_log_root),
    }


async def build_services(config: EngineConfig, *, rng: Optional[random.Random] = None) -> Result[dict]:
    """
    Build all engine services (DI container).

    Args:
        config: Engine tunables and paths
        rng: Random source for random picks (tests inject a seeded one)

    Returns:
        Result[dict] of service instances
    """
    logger.info("Building services...")
    catalog_res = _open_catalog_or_error(config)
    if not catalog_res.ok or catalog_res.data is None:
        return catalog_res.forward()
    catalog_db = catalog_res.data

    missing = await missing_catalog_tables(catalog_db)
    if not missing.ok or missing.data:
        await catalog_db.aclose()
        detail = missing.error if not missing.ok else ", ".join(missing.data or [])
        logger.error("Catalog is not usable: %s", detail)
        return Result.Err(ErrorCode.SERVICE_UNAVAILABLE, f"Catalog is missing tables: {detail}")

    cache_res = _open_cache_or_error(config)
    if not cache_res.ok or cache_res.data is None:
        await catalog_db.aclose()
        return cache_res.forward()
    cache_db = cache_res.data

    schema_res = await ensure_cache_schema(cache_db)
    if not schema_res.ok:
        await cache_db.aclose()
        await catalog_db.aclose()
        return schema_res.forward()

    known_files = await _load_known_files(config)
    services = _build_services_dict(config, catalog_db, cache_db, known_files, rng)
    log_success(logger, "All services initialized")
    return Result.Ok(services)


async def dispose_services(services: Optional[dict]) -> None:
    """Close both stores; a failure closing one does not keep the other open."""
    if not services:
        return
    for key in ("catalog_db", "cache_db"):
        db = services.get(key)
        if db is None:
            continue
        try:
            await db.aclose()
            logger.debug("%s closed", key)
        except Exception as exc:
            logger.warning("Error closing %s: %s", key, exc, exc_info=True)

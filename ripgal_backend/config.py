"""
Configuration for the ripgal catalog engine.

The engine itself only ever sees an `EngineConfig` instance. Reading the
environment is the job of the surrounding application, via
`load_config_from_env()`.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_DB = "ripme.sqlite"
DEFAULT_CACHE_DB = "ripgal.cache.sqlite"
DEFAULT_MEDIA_ROOT = "./rips"
DEFAULT_DF_LOG = "./ripme.downloaded.files.log"
DEFAULT_BIND = "127.0.0.1:5037"

DEFAULT_SLOW_SQL_MS = 100
DEFAULT_CACHE_TTL_MS = 5 * 60 * 1000
DEFAULT_PAGE_SIZE = 60
MAX_PAGE_SIZE = 200
DEFAULT_DB_TIMEOUT_S = 10.0
# 2 GiB, expressed in KiB like sqlite's negative cache_size.
DEFAULT_CACHE_SIZE_CAP_KIB = 2 * 1024 * 1024


def default_df_log_root(df_log: str | Path) -> Path:
    """The download log's own directory is the default root for its entries."""
    return Path(df_log).expanduser().resolve().parent


@dataclass(frozen=True)
class EngineConfig:
    """Tunables injected into the engine at construction."""

    catalog_db: Path
    cache_db: Path
    media_root: Path
    df_log: Path | None = None
    df_log_root: Path | None = None
    slow_sql_ms: int = DEFAULT_SLOW_SQL_MS
    cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS
    default_page_size: int = DEFAULT_PAGE_SIZE
    max_page_size: int = MAX_PAGE_SIZE
    db_timeout: float = DEFAULT_DB_TIMEOUT_S
    query_timeout: float = 0.0
    cache_size_cap_kib: int = DEFAULT_CACHE_SIZE_CAP_KIB

    @classmethod
    def build(
        cls,
        catalog_db: str | Path,
        media_root: str | Path,
        *,
        cache_db: str | Path | None = None,
        df_log: str | Path | None = None,
        df_log_root: str | Path | None = None,
        **tunables,
    ) -> "EngineConfig":
        """Normalize paths and fill derived defaults."""
        catalog = Path(catalog_db).expanduser()
        cache = Path(cache_db).expanduser() if cache_db else catalog.with_name(DEFAULT_CACHE_DB)
        log_path = Path(df_log).expanduser().resolve() if df_log else None
        if df_log_root:
            log_root: Path | None = Path(df_log_root).expanduser().resolve()
        elif log_path is not None:
            log_root = default_df_log_root(log_path)
        else:
            log_root = None
        return cls(
            catalog_db=catalog,
            cache_db=cache,
            media_root=Path(media_root).expanduser().resolve(),
            df_log=log_path,
            df_log_root=log_root,
            **tunables,
        )

    def with_overrides(self, **changes) -> "EngineConfig":
        return replace(self, **changes)

    @property
    def slow_sql_enabled(self) -> bool:
        return self.slow_sql_ms >= 0


def _env_raw(*names: str, default: str | None = None) -> str | None:
    for name in names:
        if not name:
            continue
        val = os.getenv(name)
        if val is not None and str(val).strip() != "":
            return str(val).strip()
    return default


def _env_int(default: int, *names: str, min_value: int | None = None, max_value: int | None = None) -> int:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid integer for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        logger.warning("Value too small for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, min_value)
        value = min_value
    if max_value is not None and value > max_value:
        logger.warning("Value too large for %s=%s, clamped to %s", names[0] if names else "<unknown>", value, max_value)
        value = max_value
    return value


def _env_float(default: float, *names: str, min_value: float | None = None, max_value: float | None = None) -> float:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid float for %s=%r, using default=%s", names[0] if names else "<unknown>", raw, default)
        return default
    if min_value is not None and value < min_value:
        value = min_value
    if max_value is not None and value > max_value:
        value = max_value
    return value


def _dsn_to_path(dsn: str) -> str:
    """Accept both plain paths and `file:` DSNs (query string dropped)."""
    value = dsn
    if value.startswith("file:"):
        value = value[len("file:"):]
    return value.split("?", 1)[0]


def load_config_from_env() -> EngineConfig:
    """
    Build an `EngineConfig` from `RIPGAL_*` environment variables.

    Variables:
        RIPGAL_DSN / RIPGAL_CATALOG_DB, RIPGAL_CACHE_DB, RIPGAL_MEDIA_ROOT,
        RIPGAL_DF_LOG, RIPGAL_DF_LOG_ROOT, RIPGAL_SLOW_SQL_MS,
        RIPGAL_CACHE_TTL_MS, RIPGAL_DB_TIMEOUT, RIPGAL_QUERY_TIMEOUT
    """
    catalog = _dsn_to_path(_env_raw("RIPGAL_DSN", "RIPGAL_CATALOG_DB", default=f"file:{DEFAULT_CATALOG_DB}") or DEFAULT_CATALOG_DB)
    return EngineConfig.build(
        catalog,
        _env_raw("RIPGAL_MEDIA_ROOT", default=DEFAULT_MEDIA_ROOT) or DEFAULT_MEDIA_ROOT,
        cache_db=_env_raw("RIPGAL_CACHE_DB"),
        df_log=_env_raw("RIPGAL_DF_LOG", default=DEFAULT_DF_LOG),
        df_log_root=_env_raw("RIPGAL_DF_LOG_ROOT"),
        slow_sql_ms=_env_int(DEFAULT_SLOW_SQL_MS, "RIPGAL_SLOW_SQL_MS", min_value=-1, max_value=600_000),
        cache_ttl_ms=_env_int(DEFAULT_CACHE_TTL_MS, "RIPGAL_CACHE_TTL_MS", min_value=1000, max_value=24 * 3600 * 1000),
        db_timeout=_env_float(DEFAULT_DB_TIMEOUT_S, "RIPGAL_DB_TIMEOUT", min_value=1.0, max_value=300.0),
        query_timeout=_env_float(0.0, "RIPGAL_QUERY_TIMEOUT", min_value=0.0, max_value=600.0),
    )

"""Serve the catalog engine over HTTP, or run a one-off catalog optimize."""

from __future__ import annotations

import argparse
import asyncio

from aiohttp import web

from .adapters.db.schema import optimize_catalog
from .config import DEFAULT_BIND, _env_raw, load_config_from_env
from .routes import create_app
from .shared import get_logger

logger = get_logger(__name__)


def _split_bind(bind: str) -> tuple[str, int]:
    host, _, port = bind.rpartition(":")
    return host or "127.0.0.1", int(port)


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="ripgal catalog engine")
    parser.add_argument(
        "--bind",
        default=_env_raw("RIPGAL_BIND", default=DEFAULT_BIND),
        help=f"host:port to listen on (default: RIPGAL_BIND or {DEFAULT_BIND}).",
    )
    parser.add_argument(
        "--optimize",
        action="store_true",
        help="Run PRAGMA optimize on the catalog and exit.",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()
    config = load_config_from_env()
    if args.optimize:
        res = asyncio.run(optimize_catalog(config.catalog_db, timeout=config.db_timeout))
        return 0 if res.ok else 1
    host, port = _split_bind(args.bind)
    logger.info("Listening on http://%s:%s", host, port)
    # Client disconnects cancel the handler, and with it the pending catalog queries.
    web.run_app(create_app(config), host=host, port=port, print=None, handler_cancellation=True)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

"""
Engine services lifecycle on the aiohttp application.
"""

from __future__ import annotations

from typing import Any

from aiohttp import web

from ripgal_backend.config import EngineConfig
from ripgal_backend.deps import build_services, dispose_services
from ripgal_backend.shared import ErrorCode, Result, get_logger

logger = get_logger(__name__)

APPKEY_CONFIG = web.AppKey("ripgal_config", EngineConfig)
APPKEY_SERVICES = web.AppKey("ripgal_services", dict)
APPKEY_SERVICES_ERROR = web.AppKey("ripgal_services_error", str)


async def _on_startup(app: web.Application) -> None:
    res = await build_services(app[APPKEY_CONFIG])
    if not res.ok:
        logger.error("Failed to initialize services: %s", res.error)
        app[APPKEY_SERVICES_ERROR] = res.error or "Initialization failed"
        return
    app[APPKEY_SERVICES] = res.data or {}


async def _on_cleanup(app: web.Application) -> None:
    await dispose_services(app.get(APPKEY_SERVICES))


def install_services(app: web.Application, config: EngineConfig) -> None:
    """Build services on startup and close them on cleanup."""
    app[APPKEY_CONFIG] = config
    app.on_startup.append(_on_startup)
    app.on_cleanup.append(_on_cleanup)


def _require_services(request: web.Request) -> tuple[dict[str, Any] | None, Result[Any] | None]:
    services = request.app.get(APPKEY_SERVICES)
    if services:
        return services, None
    return None, Result.Err(
        ErrorCode.SERVICE_UNAVAILABLE,
        "Services are unavailable",
        detail=request.app.get(APPKEY_SERVICES_ERROR) or "Initialization failed",
    )

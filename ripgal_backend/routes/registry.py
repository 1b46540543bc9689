"""
Route registration.
Coordinates all route handlers and wires them, the engine services and the
middlewares into an aiohttp application.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from aiohttp import web

from ripgal_backend.adapters.db.schema import tiny_optimize
from ripgal_backend.config import EngineConfig
from ripgal_backend.observability import ensure_observability
from ripgal_backend.shared import get_logger

from .core import APPKEY_SERVICES, REQUEST_CTX_KEY, install_services
from .handlers import (
    register_catalog_routes,
    register_health_routes,
    register_media_routes,
    register_random_routes,
    register_search_routes,
    restore_media_headers,
)

API_PREFIX = "/api/"
_APP_KEY_ROUTES_REGISTERED: web.AppKey[bool] = web.AppKey("_ripgal_routes_registered", bool)

logger = get_logger(__name__)


@web.middleware
async def tiny_optimize_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Row-limited `PRAGMA optimize` ahead of each API request; failures never block the request."""
    services = request.app.get(APPKEY_SERVICES)
    if services and request.path.startswith(API_PREFIX):
        await tiny_optimize(services["catalog_db"])
    return await handler(request)


@web.middleware
async def cancel_on_disconnect_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """
    Signal the request's query context when aiohttp cancels the handler.

    The server runs with `handler_cancellation=True`, so a client that goes
    away cancels its handler task.
    """
    try:
        return await handler(request)
    except asyncio.CancelledError:
        ctx = request.get(REQUEST_CTX_KEY)
        if ctx is not None:
            ctx.cancel()
            logger.debug("Request cancelled by client: %s %s", request.method, request.path)
        raise


def register_routes(routes: web.RouteTableDef) -> web.RouteTableDef:
    """Add every engine route to `routes`."""
    register_health_routes(routes)
    register_catalog_routes(routes)
    register_search_routes(routes)
    register_random_routes(routes)
    register_media_routes(routes)
    return routes


def setup_app(app: web.Application, config: EngineConfig) -> web.Application:
    """Install routes, services and middlewares on `app` (idempotent)."""
    if app.get(_APP_KEY_ROUTES_REGISTERED):
        logger.debug("setup_app() skipped: already registered")
        return app
    app[_APP_KEY_ROUTES_REGISTERED] = True

    ensure_observability(app)
    app.middlewares.append(cancel_on_disconnect_middleware)
    app.middlewares.append(tiny_optimize_middleware)
    app.on_response_prepare.append(restore_media_headers)
    install_services(app, config)
    app.add_routes(register_routes(web.RouteTableDef()))
    return app


def create_app(config: EngineConfig) -> web.Application:
    return setup_app(web.Application(), config)

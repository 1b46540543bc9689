"""
Observability helpers (request id + timing) for aiohttp routes.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable
from uuid import uuid4

from aiohttp import web

from .shared import get_logger, log_structured, request_id_var

logger = get_logger(__name__)

_APPKEY_OBS_INSTALLED = web.AppKey("ripgal_observability_installed", bool)
APPKEY_SLOW_REQUEST_MS = web.AppKey("ripgal_slow_request_ms", float)

MS_PER_S = 1000.0
DEFAULT_SLOW_REQUEST_MS = 750.0


def _new_request_id() -> str:
    return uuid4().hex


def _get_request_id(request: web.Request) -> str:
    rid = (request.headers.get("X-Request-ID") or "").strip()
    return rid or _new_request_id()


def _attach_headers(headers: Any, rid: str, duration_ms: float) -> None:
    try:
        headers["X-Request-ID"] = rid
        headers["X-Response-Time"] = f"{duration_ms:.1f}ms"
    except (AttributeError, TypeError, RuntimeError) as exc:
        # Prepared (already streaming) responses reject header changes.
        logger.debug("Unable to attach observability headers: %s", exc)


def _slow_threshold_ms(request: web.Request) -> float:
    try:
        return float(request.app.get(APPKEY_SLOW_REQUEST_MS, DEFAULT_SLOW_REQUEST_MS))
    except (TypeError, ValueError):
        return DEFAULT_SLOW_REQUEST_MS


def _emit_request_log(request: web.Request, *, status: int | None, duration_ms: float) -> None:
    fields = {
        "method": request.method,
        "path": request.path,
        "status": status,
        "duration_ms": round(duration_ms, 1),
    }
    if status is not None and status >= 500:
        log_structured(logger, logging.ERROR, "Request failed", **fields)
    elif duration_ms >= _slow_threshold_ms(request):
        log_structured(logger, logging.WARNING, "Slow request", **fields)
    else:
        logger.debug("%s %s -> %s (%.1fms)", request.method, request.path, status, duration_ms)


@web.middleware
async def request_context_middleware(
    request: web.Request,
    handler: Callable[[web.Request], Awaitable[web.StreamResponse]],
) -> web.StreamResponse:
    """Request-id correlation, `X-Response-Time` and slow/failed request logging."""
    rid = _get_request_id(request)
    request["ripgal_request_id"] = rid
    token = request_id_var.set(rid)
    start = time.perf_counter()
    status: int | None = None
    try:
        response = await handler(request)
        status = int(getattr(response, "status", 200) or 200)
        _attach_headers(response.headers, rid, (time.perf_counter() - start) * MS_PER_S)
        return response
    except web.HTTPException as exc:
        status = int(exc.status)
        _attach_headers(exc.headers, rid, (time.perf_counter() - start) * MS_PER_S)
        raise
    except Exception:
        status = 500
        raise
    finally:
        duration_ms = (time.perf_counter() - start) * MS_PER_S
        request["ripgal_duration_ms"] = duration_ms
        request_id_var.reset(token)
        if status is not None:
            _emit_request_log(request, status=status, duration_ms=duration_ms)


def ensure_observability(app: web.Application, *, slow_request_ms: float = DEFAULT_SLOW_REQUEST_MS) -> None:
    """Install the middleware once."""
    if app.get(_APPKEY_OBS_INSTALLED):
        return
    app[_APPKEY_OBS_INSTALLED] = True
    app[APPKEY_SLOW_REQUEST_MS] = float(slow_request_ms)
    app.middlewares.append(request_context_middleware)

"""
Response utilities for route handlers.
"""

import asyncio
import math

from aiohttp import web

from ripgal_backend.adapters.db import QueryContext
from ripgal_backend.shared import HTTP_STATUS_BY_CODE, SILENT_CODES, Result


def _status_for(result: Result) -> int:
    if result.ok:
        return 200
    return HTTP_STATUS_BY_CODE.get(str(result.code), 500)


def _json_response(result: Result, status: int | None = None):
    """
    Convert Result to JSON response.

    Args:
        result: Result object
        status: HTTP status code (optional, derived from the error code if None)

    Returns:
        aiohttp web.Response

    Raises:
        asyncio.CancelledError: for cancelled results; the connection is dropped without a body.
    """
    if not result.ok and str(result.code) in SILENT_CODES:
        raise asyncio.CancelledError(result.error or "request cancelled")
    if status is None:
        status = _status_for(result)

    payload = _sanitize_json_payload(
        {
            "ok": result.ok,
            "data": result.data,
            "error": result.error,
            "code": result.code,
            "meta": result.meta,
        }
    )
    return web.json_response(payload, status=status)


def _sanitize_json_payload(value):
    """
    Normalize payload values so they are always valid strict JSON.
    - Converts NaN/Infinity floats to None.
    - Recurses through dict/list/tuple containers.
    """
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, dict):
        return {k: _sanitize_json_payload(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_sanitize_json_payload(v) for v in value]
    return value


def _with_perf(result: Result, ctx: QueryContext) -> Result:
    """Attach the request's SQL/page timings to `result.meta`."""
    result.meta["perf"] = ctx.perf.finish().to_dict()
    return result

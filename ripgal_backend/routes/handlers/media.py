"""
Media file serving with conditional requests and byte ranges.
"""

import asyncio
import os

from aiohttp import web

from ripgal_backend.features.media import is_not_modified, media_headers
from ripgal_backend.shared import ErrorCode, Result, get_logger

from ..core import _json_response, _require_services

logger = get_logger(__name__)

_MEDIA_HEADERS_KEY = "ripgal_media_headers"


def _locate(locator, tail: str):
    path = locator.resolve_tail(tail)
    if path is None:
        return None, None
    try:
        return path, os.stat(path)
    except OSError as exc:
        logger.debug("Media stat failed for %s: %s", path, exc)
        return None, None


async def restore_media_headers(request: web.Request, response: web.StreamResponse) -> None:
    """
    `on_response_prepare` hook.

    FileResponse writes its own ETag/Last-Modified while preparing; put ours
    back so clients revalidate against the values we compare.
    """
    headers = request.get(_MEDIA_HEADERS_KEY)
    if headers:
        response.headers.update(headers)


def register_media_routes(routes: web.RouteTableDef) -> None:
    """Register `/media/...` file serving."""

    @routes.get("/media/{tail:.*}")
    async def serve_media(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        tail = request.match_info.get("tail", "")
        path, st = await asyncio.to_thread(_locate, svc["media"], tail)
        if path is None or st is None:
            return _json_response(Result.Err(ErrorCode.NOT_FOUND, "Media not found"))

        headers = media_headers(st)
        if is_not_modified(request.headers, st):
            return web.Response(status=304, headers=headers)
        request[_MEDIA_HEADERS_KEY] = headers
        # FileResponse handles Range/If-Range and streams the file.
        return web.FileResponse(path=str(path), headers=headers)

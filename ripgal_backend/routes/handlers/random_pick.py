"""
Random album/file/page endpoints.
"""

from aiohttp import web

from ripgal_backend.features.paging import atoi_default
from ripgal_backend.features.random import PageSource
from ripgal_backend.shared import EntityKind, ErrorCode, Result, get_logger

from ..core import _json_response, _listing_prefs, _query_str, _request_context, _require_services, _with_perf

logger = get_logger(__name__)

_SEARCH_ENTITIES = {"search_galleries": EntityKind.ALBUM, "search_files": EntityKind.FILE}


async def _page_source(request: web.Request, svc: dict, ctx) -> Result[PageSource]:
    listing = _query_str(request, "listing", "galleries").strip().lower()
    if listing == "galleries":
        return Result.Ok(PageSource.browse())
    if listing == "files":
        album = await svc["browser"].get_album(_query_str(request, "host"), _query_str(request, "gid"), ctx)
        if not album.ok:
            return album.forward()
        return Result.Ok(PageSource.album(int(album.data["album_id"])))
    if listing in _SEARCH_ENTITIES:
        return Result.Ok(PageSource.search(_SEARCH_ENTITIES[listing], _query_str(request, "q")))
    return Result.Err(ErrorCode.INVALID_INPUT, f"Unknown listing: {listing!r}")


def register_random_routes(routes: web.RouteTableDef) -> None:
    """Register random selection routes."""

    @routes.get("/api/random/gallery")
    async def random_gallery(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        ctx = _request_context(request, svc["config"])
        result = await svc["random"].random_album(ctx)
        return _json_response(_with_perf(result, ctx))

    @routes.get("/api/random/file")
    async def random_file(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        ctx = _request_context(request, svc["config"])
        result = await svc["random"].random_file(ctx)
        return _json_response(_with_perf(result, ctx))

    @routes.get("/api/random/page")
    async def random_page(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        config = svc["config"]
        prefs = _listing_prefs(request, config)
        ctx = _request_context(request, config)
        source = await _page_source(request, svc, ctx)
        if not source.ok:
            return _json_response(_with_perf(source, ctx))
        current = atoi_default(request.query.get("page"), 1)
        result = await svc["random"].random_other_page(current, prefs.params.size, source.data, ctx)
        return _json_response(_with_perf(result, ctx))

"""
Search endpoints.
"""

from aiohttp import web

from ripgal_backend.features.paging import Listing, atoi_default
from ripgal_backend.shared import Result, get_logger

from ..core import _json_response, _listing_prefs, _query_flag, _query_str, _request_context, _require_services, _with_perf

logger = get_logger(__name__)

DEFAULT_TAG_LIMIT = 100


def register_search_routes(routes: web.RouteTableDef) -> None:
    """Register full-text search routes."""

    @routes.get("/api/search")
    async def search_all(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        ctx = _request_context(request, svc["config"])
        result = await svc["search"].search_all(_query_str(request, "q"), ctx)
        return _json_response(_with_perf(result, ctx))

    @routes.get("/api/search/galleries")
    async def search_galleries(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        config = svc["config"]
        prefs = _listing_prefs(request, config, Listing.SEARCH_GALLERIES)
        ctx = _request_context(request, config)
        result = await svc["search"].search_albums(
            _query_str(request, "q"), prefs.params, prefs.sort.key, _query_flag(request, "refresh"), ctx
        )
        return prefs.apply(_json_response(_with_perf(result, ctx)))

    @routes.get("/api/search/files")
    async def search_files(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        config = svc["config"]
        prefs = _listing_prefs(request, config, Listing.SEARCH_FILES)
        ctx = _request_context(request, config)
        result = await svc["search"].search_files(
            _query_str(request, "q"), prefs.params, prefs.sort.key, _query_flag(request, "refresh"), ctx
        )
        return prefs.apply(_json_response(_with_perf(result, ctx)))

    @routes.get("/api/search/tags")
    async def search_tags(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        ctx = _request_context(request, svc["config"])
        query = _query_str(request, "q")
        limit = atoi_default(request.query.get("limit"), DEFAULT_TAG_LIMIT)
        if limit < -1 or limit == 0:
            limit = DEFAULT_TAG_LIMIT

        total = await svc["search"].search_tag_hits(query, ctx)
        if not total.ok:
            return _json_response(_with_perf(total, ctx))
        tags = await svc["search"].search_tags(query, limit, ctx)
        if not tags.ok:
            return _json_response(_with_perf(tags, ctx))
        data = {"query": query, "tags": tags.data or [], "total": int(total.data or 0)}
        return _json_response(_with_perf(Result.Ok(data), ctx))

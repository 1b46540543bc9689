"""
Catalog browsing endpoints: galleries, gallery pages, files, tags.
"""

from aiohttp import web

from ripgal_backend.features.paging import Listing
from ripgal_backend.shared import Result, get_logger

from ..core import _json_response, _listing_prefs, _path_int, _request_context, _require_services, _with_perf

logger = get_logger(__name__)


def register_catalog_routes(routes: web.RouteTableDef) -> None:
    """Register album/file/tag browsing routes."""

    @routes.get("/api/galleries")
    async def list_galleries(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        config = svc["config"]
        prefs = _listing_prefs(request, config, Listing.GALLERIES)
        ctx = _request_context(request, config)
        result = await svc["browser"].list_albums(prefs.params, prefs.sort.key, ctx)
        return prefs.apply(_json_response(_with_perf(result, ctx)))

    @routes.get("/api/gallery/{host}/{gid}")
    async def gallery_page(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        config = svc["config"]
        prefs = _listing_prefs(request, config, Listing.FILES)
        ctx = _request_context(request, config)
        result = await svc["browser"].gallery_page(
            request.match_info["host"], request.match_info["gid"], prefs.params, prefs.sort.key, ctx
        )
        return prefs.apply(_json_response(_with_perf(result, ctx)))

    @routes.get("/api/gallery/{host}/{gid}/{file_id}")
    async def gallery_file(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        file_id = _path_int(request, "file_id")
        if not file_id.ok:
            return _json_response(file_id)
        config = svc["config"]
        prefs = _listing_prefs(request, config, Listing.FILES)
        ctx = _request_context(request, config)
        host = request.match_info["host"]

        album = await svc["browser"].get_album(host, request.match_info["gid"], ctx)
        if not album.ok:
            return _json_response(_with_perf(album, ctx))
        album_id = int(album.data["album_id"])

        neighbors = await svc["navigator"].neighbors(album_id, file_id.data, prefs.sort.key, ctx)
        if not neighbors.ok:
            return _json_response(_with_perf(neighbors, ctx))
        tags = await svc["tags"].file_tags(file_id.data, ctx)
        if not tags.ok:
            return _json_response(_with_perf(tags, ctx))

        data = dict(neighbors.data or {})
        data["album"] = album.data
        data["tags"] = tags.data or []
        return prefs.apply(_json_response(_with_perf(Result.Ok(data), ctx)))

    @routes.get("/api/file/{host}/{file_id}")
    async def file_page(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        file_id = _path_int(request, "file_id")
        if not file_id.ok:
            return _json_response(file_id)
        ctx = _request_context(request, svc["config"])

        item = await svc["browser"].get_file(request.match_info["host"], file_id.data, None, ctx)
        if not item.ok:
            return _json_response(_with_perf(item, ctx))
        tags = await svc["tags"].file_tags(file_id.data, ctx)
        if not tags.ok:
            return _json_response(_with_perf(tags, ctx))
        albums = await svc["browser"].related_albums(file_id.data, ctx)
        if not albums.ok:
            return _json_response(_with_perf(albums, ctx))

        data = {"file": item.data, "tags": tags.data or [], "albums": albums.data or []}
        return _json_response(_with_perf(Result.Ok(data), ctx))

    @routes.get("/api/file/{host}/{file_id}/galleries")
    async def file_galleries(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        file_id = _path_int(request, "file_id")
        if not file_id.ok:
            return _json_response(file_id)
        ctx = _request_context(request, svc["config"])

        item = await svc["browser"].get_file(request.match_info["host"], file_id.data, None, ctx)
        if not item.ok:
            return _json_response(_with_perf(item, ctx))
        albums = await svc["browser"].related_albums(file_id.data, ctx)
        return _json_response(_with_perf(albums, ctx))

    @routes.get("/api/tags")
    async def list_tags(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        ctx = _request_context(request, svc["config"])
        result = await svc["tags"].list_tags(ctx)
        return _json_response(_with_perf(result, ctx))

    @routes.get("/api/tag/{name}")
    async def tag_detail(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        config = svc["config"]
        prefs = _listing_prefs(request, config)
        ctx = _request_context(request, config)
        result = await svc["tags"].tag_detail(request.match_info["name"], prefs.params, ctx)
        return prefs.apply(_json_response(_with_perf(result, ctx)))


__all__ = ["register_catalog_routes"]

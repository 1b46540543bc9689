"""
Health check endpoint.
"""

from aiohttp import web

from ripgal_backend.shared import Result

from ..core import _json_response, _require_services


def register_health_routes(routes: web.RouteTableDef) -> None:
    @routes.get("/healthz")
    async def healthz(request: web.Request):
        svc, error_result = _require_services(request)
        if error_result:
            return _json_response(error_result)
        data = {
            "status": "ok",
            "catalog": svc["catalog_db"].get_runtime_status(),
            "cache": svc["cache_db"].get_runtime_status(),
        }
        return _json_response(Result.Ok(data))

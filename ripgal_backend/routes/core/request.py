"""
Request parsing: query context, page parameters and remembered sort/size preferences.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict

from aiohttp import web

from ripgal_backend.adapters.db import QueryContext
from ripgal_backend.config import EngineConfig
from ripgal_backend.features.paging import (
    PAGE_SIZE_COOKIE,
    SORT_PREFERENCE_MAX_AGE_S,
    Listing,
    PageParams,
    SortChoice,
    atoi_default,
    parse_page_params,
    resolve_default_size,
    resolve_sort,
    sort_cookie_name,
)
from ripgal_backend.shared import ErrorCode, Result

REQUEST_CTX_KEY = "ripgal_query_ctx"


def _request_context(request: web.Request, config: EngineConfig | None = None) -> QueryContext:
    """
    Per-request cancellation/deadline and perf accumulator.

    The context is stored on the request so `cancel_on_disconnect_middleware`
    can set its cancel event when the client goes away.
    """
    timeout = float(config.query_timeout) if config is not None else 0.0
    ctx = QueryContext.with_timeout(timeout) if timeout > 0 else QueryContext()
    ctx.cancel_event = asyncio.Event()
    request[REQUEST_CTX_KEY] = ctx
    return ctx


def _query_str(request: web.Request, name: str, default: str = "") -> str:
    return str(request.query.get(name, default) or default)


def _query_flag(request: web.Request, name: str) -> bool:
    return _query_str(request, name).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class ListingPrefs:
    """Page/sort resolved for one listing request, plus the cookies to send back."""

    params: PageParams
    sort: SortChoice | None = None
    cookies: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def apply(self, response: web.StreamResponse) -> web.StreamResponse:
        for name, spec in self.cookies.items():
            response.set_cookie(name, spec["value"], path="/", samesite="Strict", max_age=spec.get("max_age"))
        return response


def _listing_prefs(request: web.Request, config: EngineConfig, listing: Listing | None = None) -> ListingPrefs:
    remembered_size = resolve_default_size(
        request.cookies.get(PAGE_SIZE_COOKIE), config.default_page_size, config.max_page_size
    )
    params = parse_page_params(
        request.query.get("page"),
        request.query.get("size"),
        default_size=remembered_size,
        max_size=config.max_page_size,
    )
    prefs = ListingPrefs(params=params)
    if params.size != remembered_size:
        prefs.cookies[PAGE_SIZE_COOKIE] = {"value": str(params.size)}
    if listing is not None:
        cookie = sort_cookie_name(listing)
        choice = resolve_sort(request.query.get("sort"), listing, request.cookies.get(cookie))
        prefs.sort = choice
        if choice.remember:
            prefs.cookies[cookie] = {"value": choice.key.value, "max_age": SORT_PREFERENCE_MAX_AGE_S}
    return prefs


def _path_int(request: web.Request, name: str) -> Result[int]:
    raw = request.match_info.get(name, "")
    value = atoi_default(raw, -1)
    if value < 0:
        return Result.Err(ErrorCode.INVALID_INPUT, f"Invalid {name}: {raw!r}")
    return Result.Ok(value)

"""
Full-text search over albums, files and tags.

Album and file totals go through the search-hit cache; tag totals are
counted live.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ...adapters.db import QueryContext, QueryExecutor, ensure_context
from ...shared import EntityKind, ErrorCode, Result, get_logger
from ..browser.queries import shape_file
from ..browser.tags import shape_tag
from ..browser.thumbs import attach_thumbnails
from ..paging import PageParams, SortKey, page_window
from . import queries as q
from .hit_cache import SearchHitCache

logger = get_logger(__name__)

COMBINED_LIMIT = 10

_HITS_SQL = {
    EntityKind.ALBUM: q.ALBUM_HITS_SQL,
    EntityKind.FILE: q.FILE_HITS_SQL,
    EntityKind.TAG: q.TAG_HITS_SQL,
}


def _blank(query: Any) -> bool:
    return not str(query or "").strip()


def _invalid_query() -> Result[Any]:
    return Result.Err(ErrorCode.INVALID_INPUT, "Search query must not be empty")


class CatalogSearcher:
    def __init__(self, executor: QueryExecutor, cache: SearchHitCache):
        self.executor = executor
        self.cache = cache

    async def count_hits(self, kind: EntityKind, query: str, ctx: Optional[QueryContext] = None) -> Result[int]:
        """Uncached total of eligible matches."""
        kind = EntityKind(kind)
        res = await self.executor.scalar(ctx, _HITS_SQL[kind], (query,), op=f"hits_{kind.value}")
        if not res.ok:
            return res.forward()
        return Result.Ok(int(res.data or 0))

    async def search_hits(
        self,
        kind: EntityKind,
        query: str,
        force_evict: bool = False,
        ctx: Optional[QueryContext] = None,
    ) -> Result[int]:
        """
        Total matches for `query`, served from the hit cache while fresh.

        `force_evict` drops the cached value for this query first, so the
        count is recomputed. Tags are never cached.
        """
        if _blank(query):
            return _invalid_query()
        kind = EntityKind(kind)
        if kind == EntityKind.TAG:
            return await self.search_tag_hits(query, ctx)

        ctx = ensure_context(ctx)
        cached = await self.cache.lookup(kind, query, force_evict=force_evict, ctx=ctx)
        if not cached.ok:
            return cached.forward()
        if cached.data is not None:
            return Result.Ok(int(cached.data), cached=True)

        counted = await self.count_hits(kind, query, ctx)
        if not counted.ok:
            return counted
        stored = await self.cache.store(kind, query, int(counted.data or 0), ctx=ctx)
        if not stored.ok:
            return stored.forward()
        return Result.Ok(int(counted.data or 0), cached=False)

    async def search_page(
        self,
        kind: EntityKind,
        query: str,
        size: int,
        offset: int,
        sort: Optional[SortKey] = None,
        ctx: Optional[QueryContext] = None,
    ) -> Result[List[Dict[str, Any]]]:
        """
        One window of matching albums or files.

        Albums without an eligible thumbnail are dropped from the window.
        """
        if _blank(query):
            return _invalid_query()
        kind = EntityKind(kind)
        ctx = ensure_context(ctx)
        params = (query, int(size), int(offset))

        if kind == EntityKind.ALBUM:
            album_order = q.album_search_order_for(sort)
            res = await self.executor.query(
                ctx, q.ALBUM_SEARCH_SQL[album_order], params, op=f"search_albums_{album_order.value}"
            )
            if not res.ok:
                return res.forward()
            return await attach_thumbnails(self.executor, ctx, res.data or [])

        if kind == EntityKind.FILE:
            file_order = q.file_search_order_for(sort)
            res = await self.executor.query(
                ctx, q.FILE_SEARCH_SQL[file_order], params, op=f"search_files_{file_order.value}"
            )
            if not res.ok:
                return res.forward()
            return Result.Ok([shape_file(row) for row in (res.data or [])])

        return Result.Err(ErrorCode.INVALID_INPUT, "Tag search is not paged; use search_tags")

    async def _search_listing(
        self,
        kind: EntityKind,
        key: str,
        query: str,
        params: PageParams,
        sort: Optional[SortKey],
        force_evict: bool,
        ctx: Optional[QueryContext],
    ) -> Result[Dict[str, Any]]:
        ctx = ensure_context(ctx)
        hits = await self.search_hits(kind, query, force_evict, ctx)
        if not hits.ok:
            return hits.forward()
        rows = await self.search_page(kind, query, params.size, params.offset, sort, ctx)
        if not rows.ok:
            return rows.forward()
        if kind == EntityKind.ALBUM:
            order = q.album_search_order_for(sort).value
        else:
            order = q.file_search_order_for(sort).value
        window = page_window(params, int(hits.data or 0))
        return Result.Ok({key: rows.data or [], "query": query, "sort": order, **window.to_dict()})

    async def search_albums(
        self,
        query: str,
        params: PageParams,
        sort: Optional[SortKey] = None,
        force_evict: bool = False,
        ctx: Optional[QueryContext] = None,
    ) -> Result[Dict[str, Any]]:
        """Album search results page: {"albums", "query", "sort", **PageWindow.to_dict()}."""
        return await self._search_listing(EntityKind.ALBUM, "albums", query, params, sort, force_evict, ctx)

    async def search_files(
        self,
        query: str,
        params: PageParams,
        sort: Optional[SortKey] = None,
        force_evict: bool = False,
        ctx: Optional[QueryContext] = None,
    ) -> Result[Dict[str, Any]]:
        """File search results page: {"files", "query", "sort", **PageWindow.to_dict()}."""
        return await self._search_listing(EntityKind.FILE, "files", query, params, sort, force_evict, ctx)

    async def search_tag_hits(self, query: str, ctx: Optional[QueryContext] = None) -> Result[int]:
        """Live count of matching remote (non-local) tags."""
        if _blank(query):
            return _invalid_query()
        return await self.count_hits(EntityKind.TAG, query, ctx)

    async def search_tags(
        self, query: str, limit: int = -1, ctx: Optional[QueryContext] = None
    ) -> Result[List[Dict[str, Any]]]:
        """Best `limit` matching tags by rank (-1 = all), ordered by file count then rank."""
        if _blank(query):
            return _invalid_query()
        res = await self.executor.query(ctx, q.TAG_SEARCH_SQL, (query, int(limit)), op="search_tags")
        if not res.ok:
            return res.forward()
        return Result.Ok([shape_tag(row) for row in (res.data or [])])

    async def search_all(self, query: str, ctx: Optional[QueryContext] = None) -> Result[Dict[str, Any]]:
        """Combined search: the first albums, files and tags with their totals."""
        if _blank(query):
            return _invalid_query()
        ctx = ensure_context(ctx)
        out: Dict[str, Any] = {"query": query}

        for kind, key in ((EntityKind.ALBUM, "albums"), (EntityKind.FILE, "files")):
            hits = await self.search_hits(kind, query, False, ctx)
            if not hits.ok:
                return hits.forward()
            rows = await self.search_page(kind, query, COMBINED_LIMIT, 0, SortKey.RANK, ctx)
            if not rows.ok:
                return rows.forward()
            out[key] = rows.data or []
            out[f"{key}_total"] = int(hits.data or 0)

        tag_hits = await self.search_tag_hits(query, ctx)
        if not tag_hits.ok:
            return tag_hits.forward()
        tags = await self.search_tags(query, COMBINED_LIMIT, ctx)
        if not tags.ok:
            return tags.forward()
        out["tags"] = tags.data or []
        out["tags_total"] = int(tag_hits.data or 0)
        return Result.Ok(out)

"""
Catalog browsing: album and file listings, single-item lookups, gallery pages.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ...adapters.db import QueryContext, QueryExecutor, cancelled_result, ensure_context
from ...shared import ErrorCode, Result, get_logger
from ..paging import PageParams, SortKey, page_window
from . import queries as q
from .tags import TagBrowser
from .thumbs import attach_thumbnails

logger = get_logger(__name__)


class CatalogBrowser:
    """Read-only listings over the catalog."""

    def __init__(self, executor: QueryExecutor, tags: Optional[TagBrowser] = None):
        self.executor = executor
        self.tags = tags or TagBrowser(executor)

    async def count_albums(self, ctx: Optional[QueryContext] = None) -> Result[int]:
        res = await self.executor.scalar(ctx, q.ALBUM_TOTAL_SQL, op="album_total")
        return res.map(int) if res.ok else res

    async def list_albums(
        self,
        params: PageParams,
        sort: Optional[SortKey] = None,
        ctx: Optional[QueryContext] = None,
    ) -> Result[Dict[str, Any]]:
        """
        One page of albums plus pagination facts.

        Returns:
            Result with {"albums", "sort", **PageWindow.to_dict()}
        """
        ctx = ensure_context(ctx)
        order = q.album_order_for(sort)
        logger.debug("Listing albums (page=%s, size=%s, order=%s)", params.page, params.size, order.value)

        total_res = await self.count_albums(ctx)
        if not total_res.ok:
            return total_res.forward()

        rows_res = await self.executor.query(
            ctx, q.ALBUM_PAGE_SQL[order], (params.size, params.offset), op=f"albums_{order.value}"
        )
        if not rows_res.ok:
            return rows_res.forward()

        albums_res = await attach_thumbnails(self.executor, ctx, rows_res.data or [])
        if not albums_res.ok:
            return albums_res.forward()

        window = page_window(params, int(total_res.data or 0))
        return Result.Ok({"albums": albums_res.data or [], "sort": order.value, **window.to_dict()})

    async def get_album(self, host: str, gid: str, ctx: Optional[QueryContext] = None) -> Result[Dict[str, Any]]:
        res = await self.executor.query_one(ctx, q.ALBUM_BY_REF_SQL, (host, gid), op="album_by_ref")
        if not res.ok:
            return res.forward()
        if not res.data:
            return Result.Err(ErrorCode.NOT_FOUND, f"No such album: {host}/{gid}")
        return Result.Ok(q.shape_album(res.data))

    async def get_album_by_id(self, album_id: int, ctx: Optional[QueryContext] = None) -> Result[Dict[str, Any]]:
        res = await self.executor.query_one(ctx, q.ALBUM_BY_ID_SQL, (int(album_id),), op="album_by_id")
        if not res.ok:
            return res.forward()
        if not res.data:
            return Result.Err(ErrorCode.NOT_FOUND, f"No such album: {album_id}")
        return Result.Ok(q.shape_album(res.data))

    async def count_album_files(self, album_id: int, ctx: Optional[QueryContext] = None) -> Result[Dict[str, int]]:
        res = await self.executor.query_one(ctx, q.ALBUM_FILES_TOTAL_SQL, (int(album_id),), op="album_files_total")
        if not res.ok:
            return res.forward()
        row = res.data or {}
        return Result.Ok({"total": int(row.get("total") or 0), "total_bytes": int(row.get("total_bytes") or 0)})

    async def list_files(
        self,
        album_id: int,
        params: PageParams,
        sort: Optional[SortKey] = None,
        ctx: Optional[QueryContext] = None,
    ) -> Result[Dict[str, Any]]:
        """
        One page of eligible files in an album.

        Returns:
            Result with {"files", "total_bytes", "sort", **PageWindow.to_dict()};
            NOT_FOUND when the album does not exist.
        """
        ctx = ensure_context(ctx)
        album_res = await self.get_album_by_id(album_id, ctx)
        if not album_res.ok:
            return album_res.forward()
        return await self._list_files_of(int(album_id), params, sort, ctx)

    async def _list_files_of(
        self, album_id: int, params: PageParams, sort: Optional[SortKey], ctx: QueryContext
    ) -> Result[Dict[str, Any]]:
        order = q.file_order_for(sort)
        totals_res = await self.count_album_files(album_id, ctx)
        if not totals_res.ok:
            return totals_res.forward()
        rows_res = await self.executor.query(
            ctx,
            q.ALBUM_FILES_PAGE_SQL[order],
            (album_id, params.size, params.offset),
            op=f"album_files_{order.value}",
        )
        if not rows_res.ok:
            return rows_res.forward()
        totals = totals_res.data or {}
        window = page_window(params, totals.get("total", 0))
        return Result.Ok(
            {
                "files": [q.shape_file(row, album_id) for row in (rows_res.data or [])],
                "total_bytes": totals.get("total_bytes", 0),
                "sort": order.value,
                **window.to_dict(),
            }
        )

    async def get_file(
        self,
        host: str,
        file_id: int,
        album_id: Optional[int] = None,
        ctx: Optional[QueryContext] = None,
    ) -> Result[Dict[str, Any]]:
        """Eligible file by source host and id, optionally required to belong to `album_id`."""
        if album_id is None:
            res = await self.executor.query_one(ctx, q.FILE_BY_REF_SQL, (host, int(file_id)), op="file_by_ref")
        else:
            res = await self.executor.query_one(
                ctx, q.FILE_IN_ALBUM_SQL, (int(album_id), int(file_id)), op="file_in_album"
            )
        if not res.ok:
            return res.forward()
        row = res.data
        if not row or (album_id is not None and row.get("ripper_host") != host):
            return Result.Err(ErrorCode.NOT_FOUND, f"No such file: {host}/{file_id}")
        return Result.Ok(q.shape_file(row, album_id))

    async def related_albums(self, file_id: int, ctx: Optional[QueryContext] = None) -> Result[List[Dict[str, Any]]]:
        """Albums that contain `file_id`, with counts and thumbnails."""
        ctx = ensure_context(ctx)
        res = await self.executor.query(ctx, q.RELATED_ALBUMS_SQL, (int(file_id),), op="related_albums")
        if not res.ok:
            return res.forward()
        return await attach_thumbnails(self.executor, ctx, res.data or [])

    async def gallery_page(
        self,
        host: str,
        gid: str,
        params: PageParams,
        sort: Optional[SortKey] = None,
        ctx: Optional[QueryContext] = None,
    ) -> Result[Dict[str, Any]]:
        """
        Album detail: album row, one page of its files, album tags and top file tags.

        Each step is a separate round trip; cancellation is re-checked between them.
        """
        ctx = ensure_context(ctx)
        album_res = await self.get_album(host, gid, ctx)
        if not album_res.ok:
            return album_res
        album = album_res.data or {}
        album_id = int(album["album_id"])

        files_res = await self._list_files_of(album_id, params, sort, ctx)
        if not files_res.ok:
            return files_res

        if ctx.is_cancelled():
            return cancelled_result("gallery page")
        album_tags_res = await self.tags.album_tags(album_id, ctx)
        if not album_tags_res.ok:
            return album_tags_res.forward()

        file_tags_res = await self.tags.album_file_tags(album_id, ctx)
        if not file_tags_res.ok:
            return file_tags_res.forward()

        files = files_res.data or {}
        album["file_count"] = files.get("total", 0)
        return Result.Ok(
            {
                **files,
                "album": album,
                "album_tags": album_tags_res.data or [],
                "file_tags": file_tags_res.data or [],
            }
        )

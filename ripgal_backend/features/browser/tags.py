"""
Tag reads: per-album and per-file tags, the global tag listing, tag detail pages.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from ...adapters.db import QueryContext, QueryExecutor, ensure_context
from ...shared import ErrorCode, Result
from ..paging import PageParams, page_window
from .queries import ALBUM_AGGREGATES, ALBUM_COLUMNS, ELIGIBLE, FILE_COLUMNS, shape_file
from .thumbs import attach_thumbnails

TOP_FILE_TAGS = 100
TAG_DETAIL_FILES = 100

ALBUM_TAGS_SQL = """
SELECT t.tag_id
     , t.name
     , t.local
  FROM map_album_tag m
  JOIN tag t ON t.tag_id = m.tag_id
 WHERE m.album_id = ?
 ORDER BY t.name
"""

ALBUM_FILE_TAGS_SQL = f"""
SELECT t.tag_id
     , t.name
     , t.local
     , COUNT(*) AS count
  FROM map_album_remote_file marf
  JOIN remote_file rf ON rf.remote_file_id = marf.remote_file_id
  JOIN map_remote_file_tag m ON m.remote_file_id = marf.remote_file_id
  JOIN tag t ON t.tag_id = m.tag_id
 WHERE marf.album_id = ?
   AND {ELIGIBLE}
 GROUP BY t.tag_id
 ORDER BY count DESC, t.name
 LIMIT {TOP_FILE_TAGS}
"""

FILE_TAGS_SQL = """
SELECT t.tag_id
     , t.name
     , t.local
  FROM map_remote_file_tag m
  JOIN tag t ON t.tag_id = m.tag_id
 WHERE m.remote_file_id = ?
 ORDER BY t.name
"""

FILE_TAG_COUNTS_SQL = """
SELECT t.tag_id
     , t.name
     , t.local
     , COUNT(*) AS count
  FROM map_remote_file_tag m
  JOIN tag t ON t.tag_id = m.tag_id
 GROUP BY t.tag_id
 ORDER BY count DESC, t.name ASC
"""

ALBUM_TAG_COUNTS_SQL = """
SELECT t.tag_id
     , t.name
     , t.local
     , COUNT(*) AS count
  FROM map_album_tag m
  JOIN tag t ON t.tag_id = m.tag_id
 GROUP BY t.tag_id
 ORDER BY count DESC, t.name ASC
"""

TAG_BY_NAME_SQL = "SELECT tag_id, name, local FROM tag WHERE name = ?"

TAG_ALBUM_TOTAL_SQL = "SELECT COUNT(*) FROM map_album_tag WHERE tag_id = ?"

TAG_ALBUMS_PAGE_SQL = f"""
  WITH page AS (
      SELECT m.album_id
        FROM map_album_tag m
       WHERE m.tag_id = ?
       ORDER BY m.album_id DESC
       LIMIT ? OFFSET ?
  )
SELECT {ALBUM_COLUMNS}
       {ALBUM_AGGREGATES}
  FROM page p
  JOIN album a ON a.album_id = p.album_id
  JOIN ripper r ON r.ripper_id = a.ripper_id
 ORDER BY a.album_id DESC
"""

TAG_FILES_SQL = f"""
SELECT {FILE_COLUMNS}
  FROM map_remote_file_tag m
  JOIN remote_file rf ON rf.remote_file_id = m.remote_file_id
  JOIN ripper r ON r.ripper_id = rf.ripper_id
  LEFT JOIN mime_type mt ON mt.mime_type_id = rf.mime_type_id
 WHERE m.tag_id = ?
   AND {ELIGIBLE}
 ORDER BY m.remote_file_id
 LIMIT {TAG_DETAIL_FILES}
"""


def shape_tag(row: Dict[str, Any]) -> Dict[str, Any]:
    tag = dict(row)
    tag["local"] = bool(tag.get("local"))
    if "count" in tag:
        tag["count"] = int(tag["count"] or 0)
    return tag


class TagBrowser:
    def __init__(self, executor: QueryExecutor):
        self.executor = executor

    async def _tags(self, ctx: Optional[QueryContext], sql: str, params: Any, op: str) -> Result[List[Dict[str, Any]]]:
        res = await self.executor.query(ctx, sql, params, op=op)
        if not res.ok:
            return res.forward()
        return Result.Ok([shape_tag(row) for row in (res.data or [])])

    async def album_tags(self, album_id: int, ctx: Optional[QueryContext] = None) -> Result[List[Dict[str, Any]]]:
        """Tags attached to the album itself, by name."""
        return await self._tags(ctx, ALBUM_TAGS_SQL, (int(album_id),), "album_tags")

    async def album_file_tags(self, album_id: int, ctx: Optional[QueryContext] = None) -> Result[List[Dict[str, Any]]]:
        """The most frequent tags among the album's eligible files, with per-tag counts."""
        return await self._tags(ctx, ALBUM_FILE_TAGS_SQL, (int(album_id),), "album_file_tags")

    async def file_tags(self, file_id: int, ctx: Optional[QueryContext] = None) -> Result[List[Dict[str, Any]]]:
        return await self._tags(ctx, FILE_TAGS_SQL, (int(file_id),), "file_tags")

    async def list_tags(self, ctx: Optional[QueryContext] = None) -> Result[Dict[str, List[Dict[str, Any]]]]:
        """Every file tag and album tag with usage counts, most used first."""
        ctx = ensure_context(ctx)
        file_res = await self._tags(ctx, FILE_TAG_COUNTS_SQL, None, "file_tag_counts")
        if not file_res.ok:
            return file_res.forward()
        album_res = await self._tags(ctx, ALBUM_TAG_COUNTS_SQL, None, "album_tag_counts")
        if not album_res.ok:
            return album_res.forward()
        return Result.Ok({"file_tags": file_res.data or [], "album_tags": album_res.data or []})

    async def tag_detail(
        self, name: str, params: PageParams, ctx: Optional[QueryContext] = None
    ) -> Result[Dict[str, Any]]:
        """
        Tag by exact name with one page of tagged albums and its first eligible files.

        Returns:
            Result with {"tag", "albums", "files", **PageWindow.to_dict()}; NOT_FOUND for unknown names.
        """
        ctx = ensure_context(ctx)
        tag_res = await self.executor.query_one(ctx, TAG_BY_NAME_SQL, (name,), op="tag_by_name")
        if not tag_res.ok:
            return tag_res.forward()
        if not tag_res.data:
            return Result.Err(ErrorCode.NOT_FOUND, f"No such tag: {name}")
        tag = shape_tag(tag_res.data)
        tag_id = int(tag["tag_id"])

        total_res = await self.executor.scalar(ctx, TAG_ALBUM_TOTAL_SQL, (tag_id,), op="tag_album_total")
        if not total_res.ok:
            return total_res.forward()

        rows_res = await self.executor.query(
            ctx, TAG_ALBUMS_PAGE_SQL, (tag_id, params.size, params.offset), op="tag_albums"
        )
        if not rows_res.ok:
            return rows_res.forward()
        albums_res = await attach_thumbnails(self.executor, ctx, rows_res.data or [])
        if not albums_res.ok:
            return albums_res.forward()

        files_res = await self.executor.query(ctx, TAG_FILES_SQL, (tag_id,), op="tag_files")
        if not files_res.ok:
            return files_res.forward()

        window = page_window(params, int(total_res.data or 0))
        return Result.Ok(
            {
                "tag": tag,
                "albums": albums_res.data or [],
                "files": [shape_file(row) for row in (files_res.data or [])],
                **window.to_dict(),
            }
        )

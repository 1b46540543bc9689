"""Thumbnail fill for album listings."""

from __future__ import annotations

from typing import Any, Dict, List

from ...adapters.db import QueryContext, QueryExecutor
from ...shared import Result
from .queries import THUMB_SQL, shape_album


async def attach_thumbnails(
    executor: QueryExecutor,
    ctx: QueryContext,
    rows: List[Dict[str, Any]],
) -> Result[List[Dict[str, Any]]]:
    """
    Shape album rows and fill thumbnail filename/mime type, one lookup per album.

    Albums without an eligible file (no thumbnail) are dropped here; they
    still counted toward the page window that produced `rows`.
    """
    albums = [shape_album(row) for row in rows]
    albums = [album for album in albums if album.get("thumb") is not None]
    for album in albums:
        thumb = album["thumb"]
        res = await executor.query_one(ctx, THUMB_SQL, (thumb["file_id"],), op="thumb")
        if not res.ok:
            return res.forward()
        if res.data:
            thumb["filename"] = res.data.get("filename")
            thumb["mime_type"] = res.data.get("mime_type")
    return Result.Ok(albums)

"""
SQL for catalog listings.

Every sort-dependent statement is one member of a closed set keyed by an
order enum; the variants are assembled once at import from constant
fragments and never from request input.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

from ..paging import SortKey

ELIGIBLE = "rf.fetched = 1 AND rf.ignored = 0"

ALBUM_COLUMNS = """
       a.album_id
     , a.ripper_id
     , r.name AS ripper_name
     , r.host AS ripper_host
     , a.gid
     , a.uploader
     , a.title
     , a.description
     , a.created_ts
     , a.modified_ts
     , a.hidden
     , a.removed
     , a.local_rating
     , a.last_fetch_ts
     , a.inserted_ts
"""

# Correlated aggregates; only ever evaluated over an already-windowed page.
ALBUM_AGGREGATES = f"""
     , (
        SELECT COUNT(*)
          FROM map_album_remote_file marf
          JOIN remote_file rf ON rf.remote_file_id = marf.remote_file_id
         WHERE marf.album_id = a.album_id
           AND {ELIGIBLE}
       ) AS file_count
     , (
        SELECT marf.remote_file_id
          FROM map_album_remote_file marf
          JOIN remote_file rf ON rf.remote_file_id = marf.remote_file_id
         WHERE marf.album_id = a.album_id
           AND {ELIGIBLE}
         ORDER BY marf.remote_file_id
         LIMIT 1
       ) AS thumb_remote_file_id
"""

FILE_COLUMNS = """
       rf.remote_file_id
     , rf.ripper_id
     , r.name AS ripper_name
     , r.host AS ripper_host
     , rf.urlid
     , rf.filename
     , mt.name AS mime_type
     , rf.title
     , rf.description
     , rf.uploaded_ts
     , rf.uploader
     , rf.hidden
     , rf.removed
     , rf.bytes
     , rf.local_rating
     , rf.inserted_ts
"""

THUMB_SQL = """
SELECT rf.filename
     , mt.name AS mime_type
  FROM remote_file rf
  LEFT JOIN mime_type mt ON mt.mime_type_id = rf.mime_type_id
 WHERE rf.remote_file_id = ? AND rf.fetched = 1
"""


class AlbumOrder(str, Enum):
    FETCHED = "fetched"
    UPLOADED = "uploaded"


class FileOrder(str, Enum):
    FETCHED = "fetched"
    UPLOADED = "uploaded"
    BYTES = "bytes"


ALBUM_ORDER_BY: Dict[AlbumOrder, str] = {
    AlbumOrder.FETCHED: "a.last_fetch_ts DESC, a.album_id DESC",
    AlbumOrder.UPLOADED: "a.created_ts DESC, a.album_id DESC",
}

FILE_ORDER_BY: Dict[FileOrder, str] = {
    FileOrder.FETCHED: "rf.inserted_ts DESC, rf.remote_file_id DESC",
    FileOrder.UPLOADED: "rf.uploaded_ts DESC, rf.remote_file_id DESC",
    FileOrder.BYTES: "rf.bytes DESC, rf.remote_file_id DESC",
}


def album_order_for(sort: Optional[SortKey]) -> AlbumOrder:
    if sort == SortKey.UPLOADED:
        return AlbumOrder.UPLOADED
    return AlbumOrder.FETCHED


def file_order_for(sort: Optional[SortKey]) -> FileOrder:
    if sort == SortKey.UPLOADED:
        return FileOrder.UPLOADED
    if sort == SortKey.BYTES:
        return FileOrder.BYTES
    return FileOrder.FETCHED


def _album_page_sql(order_by: str) -> str:
    return f"""
  WITH page AS (
      SELECT a.album_id
        FROM album a
       ORDER BY {order_by}
       LIMIT ? OFFSET ?
  )
SELECT {ALBUM_COLUMNS}
       {ALBUM_AGGREGATES}
  FROM page p
  JOIN album a ON a.album_id = p.album_id
  JOIN ripper r ON r.ripper_id = a.ripper_id
 ORDER BY {order_by}
"""


def _album_files_page_sql(order_by: str) -> str:
    return f"""
SELECT {FILE_COLUMNS}
  FROM map_album_remote_file marf
  JOIN remote_file rf ON rf.remote_file_id = marf.remote_file_id
  JOIN ripper r ON r.ripper_id = rf.ripper_id
  LEFT JOIN mime_type mt ON mt.mime_type_id = rf.mime_type_id
 WHERE marf.album_id = ?
   AND {ELIGIBLE}
 ORDER BY {order_by}
 LIMIT ? OFFSET ?
"""


ALBUM_PAGE_SQL: Dict[AlbumOrder, str] = {order: _album_page_sql(ALBUM_ORDER_BY[order]) for order in AlbumOrder}
ALBUM_FILES_PAGE_SQL: Dict[FileOrder, str] = {
    order: _album_files_page_sql(FILE_ORDER_BY[order]) for order in FileOrder
}

ALBUM_TOTAL_SQL = "SELECT COUNT(*) AS total FROM album"

ALBUM_FILES_TOTAL_SQL = f"""
SELECT COUNT(*) AS total
     , COALESCE(SUM(rf.bytes), 0) AS total_bytes
  FROM map_album_remote_file marf
  JOIN remote_file rf ON rf.remote_file_id = marf.remote_file_id
 WHERE marf.album_id = ?
   AND {ELIGIBLE}
"""

ALBUM_BY_ID_SQL = f"""
SELECT {ALBUM_COLUMNS}
  FROM album a
  JOIN ripper r ON r.ripper_id = a.ripper_id
 WHERE a.album_id = ?
"""

ALBUM_BY_REF_SQL = f"""
SELECT {ALBUM_COLUMNS}
  FROM album a
  JOIN ripper r ON r.ripper_id = a.ripper_id
 WHERE r.host = ?
   AND a.gid = ?
"""

FILE_BY_REF_SQL = f"""
SELECT {FILE_COLUMNS}
  FROM remote_file rf
  JOIN ripper r ON r.ripper_id = rf.ripper_id
  LEFT JOIN mime_type mt ON mt.mime_type_id = rf.mime_type_id
 WHERE r.host = ?
   AND rf.remote_file_id = ?
   AND {ELIGIBLE}
"""

FILE_IN_ALBUM_SQL = f"""
SELECT {FILE_COLUMNS}
  FROM map_album_remote_file marf
  JOIN remote_file rf ON rf.remote_file_id = marf.remote_file_id
  JOIN ripper r ON r.ripper_id = rf.ripper_id
  LEFT JOIN mime_type mt ON mt.mime_type_id = rf.mime_type_id
 WHERE marf.album_id = ?
   AND marf.remote_file_id = ?
   AND {ELIGIBLE}
"""

RELATED_ALBUMS_SQL = f"""
SELECT {ALBUM_COLUMNS}
       {ALBUM_AGGREGATES}
  FROM map_album_remote_file m
  JOIN album a ON a.album_id = m.album_id
  JOIN ripper r ON r.ripper_id = a.ripper_id
 WHERE m.remote_file_id = ?
 ORDER BY a.album_id
"""


def _as_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    return bool(value)


def shape_album(row: Dict[str, Any]) -> Dict[str, Any]:
    """Normalize flags and move the thumbnail id into a nested `thumb` dict."""
    album = dict(row)
    album["hidden"] = _as_bool(album.get("hidden"))
    album["removed"] = _as_bool(album.get("removed"))
    thumb_id = album.pop("thumb_remote_file_id", None)
    if "file_count" in album:
        album["file_count"] = int(album.get("file_count") or 0)
    album["thumb"] = {"file_id": thumb_id, "filename": None, "mime_type": None} if thumb_id is not None else None
    return album


def shape_file(row: Dict[str, Any], album_id: Optional[int] = None) -> Dict[str, Any]:
    item = dict(row)
    item["file_id"] = item.pop("remote_file_id")
    item["hidden"] = _as_bool(item.get("hidden"))
    item["removed"] = _as_bool(item.get("removed"))
    if album_id is not None:
        item["album_id"] = album_id
    return item

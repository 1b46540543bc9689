"""
Full-text search SQL.

Relevance-ranked variants score only the requested window (LIMIT/OFFSET
inside the scoring CTE); the other variants never compute a score.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Optional

from ..browser.queries import ALBUM_AGGREGATES, ALBUM_COLUMNS, ELIGIBLE, FILE_COLUMNS
from ..paging import SortKey

# Column weights for (title, description).
BM25_WEIGHTS = "9.0, 6.0"

_ALBUM_HAS_ELIGIBLE = f"""EXISTS (
        SELECT 1
          FROM map_album_remote_file marf
          JOIN remote_file rf ON rf.remote_file_id = marf.remote_file_id
         WHERE marf.album_id = af5.ROWID
           AND {ELIGIBLE}
       )"""

ALBUM_HITS_SQL = f"""
SELECT COUNT(*)
  FROM album_fts5 af5
 WHERE album_fts5 MATCH ?
   AND {_ALBUM_HAS_ELIGIBLE}
"""

FILE_HITS_SQL = f"""
SELECT COUNT(*)
  FROM remote_file_fts5 rff5
  JOIN remote_file rf ON rf.remote_file_id = rff5.ROWID
 WHERE remote_file_fts5 MATCH ?
   AND {ELIGIBLE}
"""

TAG_HITS_SQL = """
SELECT COUNT(*)
  FROM tag_fts5 tf5
  JOIN tag t ON t.tag_id = tf5.ROWID
 WHERE tag_fts5 MATCH ?
   AND t.local = 0
"""

# Params: (query, limit); a limit of -1 means unlimited.
TAG_SEARCH_SQL = """
  WITH matches AS (
      SELECT t.tag_id
           , BM25(tag_fts5) AS score
        FROM tag_fts5 tf5
        JOIN tag t ON t.tag_id = tf5.ROWID
       WHERE tag_fts5 MATCH ?
         AND t.local = 0
       ORDER BY score
       LIMIT ?
  )
SELECT t.tag_id
     , t.name
     , t.local
     , m.score
     , (SELECT COUNT(*) FROM map_remote_file_tag mrft WHERE mrft.tag_id = t.tag_id) AS count
  FROM matches m
  JOIN tag t ON t.tag_id = m.tag_id
 ORDER BY count DESC, m.score
"""


class AlbumSearchOrder(str, Enum):
    RANK = "rank"
    FETCHED = "fetched"
    UPLOADED = "uploaded"


class FileSearchOrder(str, Enum):
    RANK = "rank"
    FETCHED = "fetched"
    UPLOADED = "uploaded"
    BYTES = "bytes"


def album_search_order_for(sort: Optional[SortKey]) -> AlbumSearchOrder:
    if sort == SortKey.FETCHED:
        return AlbumSearchOrder.FETCHED
    if sort == SortKey.UPLOADED:
        return AlbumSearchOrder.UPLOADED
    return AlbumSearchOrder.RANK


def file_search_order_for(sort: Optional[SortKey]) -> FileSearchOrder:
    if sort == SortKey.FETCHED:
        return FileSearchOrder.FETCHED
    if sort == SortKey.UPLOADED:
        return FileSearchOrder.UPLOADED
    if sort == SortKey.BYTES:
        return FileSearchOrder.BYTES
    return FileSearchOrder.RANK


_ALBUM_RANKED_SQL = f"""
  WITH matches AS (
      SELECT af5.ROWID AS album_id
           , BM25(album_fts5, {BM25_WEIGHTS}) AS score
        FROM album_fts5 af5
       WHERE album_fts5 MATCH ?
         AND {_ALBUM_HAS_ELIGIBLE}
       ORDER BY score
       LIMIT ? OFFSET ?
  )
SELECT {ALBUM_COLUMNS}
       {ALBUM_AGGREGATES}
     , m.score
  FROM matches m
  JOIN album a ON a.album_id = m.album_id
  JOIN ripper r ON r.ripper_id = a.ripper_id
 ORDER BY m.score
"""


def _album_ordered_sql(order_by: str) -> str:
    return f"""
  WITH matches AS (
      SELECT a.album_id
        FROM album_fts5 af5
        JOIN album a ON a.album_id = af5.ROWID
       WHERE album_fts5 MATCH ?
         AND {_ALBUM_HAS_ELIGIBLE}
       ORDER BY {order_by}
       LIMIT ? OFFSET ?
  )
SELECT {ALBUM_COLUMNS}
       {ALBUM_AGGREGATES}
  FROM matches m
  JOIN album a ON a.album_id = m.album_id
  JOIN ripper r ON r.ripper_id = a.ripper_id
 ORDER BY {order_by}
"""


# Params for every album variant: (query, limit, offset).
ALBUM_SEARCH_SQL: Dict[AlbumSearchOrder, str] = {
    AlbumSearchOrder.RANK: _ALBUM_RANKED_SQL,
    AlbumSearchOrder.FETCHED: _album_ordered_sql("a.inserted_ts DESC, a.album_id DESC"),
    AlbumSearchOrder.UPLOADED: _album_ordered_sql("a.created_ts DESC, a.album_id DESC"),
}

_FILE_RANKED_SQL = f"""
  WITH matches AS (
      SELECT rf.remote_file_id
           , BM25(remote_file_fts5, {BM25_WEIGHTS}) AS score
        FROM remote_file_fts5 rff5
        JOIN remote_file rf ON rf.remote_file_id = rff5.ROWID
       WHERE remote_file_fts5 MATCH ?
         AND {ELIGIBLE}
       ORDER BY score, rf.remote_file_id DESC
       LIMIT ? OFFSET ?
  )
SELECT {FILE_COLUMNS}
     , m.score
  FROM matches m
  JOIN remote_file rf ON rf.remote_file_id = m.remote_file_id
  JOIN ripper r ON r.ripper_id = rf.ripper_id
  LEFT JOIN mime_type mt ON mt.mime_type_id = rf.mime_type_id
 ORDER BY m.score, rf.remote_file_id DESC
"""


def _file_ordered_sql(order_by: str) -> str:
    return f"""
SELECT {FILE_COLUMNS}
  FROM remote_file_fts5 rff5
  JOIN remote_file rf ON rf.remote_file_id = rff5.ROWID
  JOIN ripper r ON r.ripper_id = rf.ripper_id
  LEFT JOIN mime_type mt ON mt.mime_type_id = rf.mime_type_id
 WHERE remote_file_fts5 MATCH ?
   AND {ELIGIBLE}
 ORDER BY {order_by}
 LIMIT ? OFFSET ?
"""


# Params for every file variant: (query, limit, offset).
FILE_SEARCH_SQL: Dict[FileSearchOrder, str] = {
    FileSearchOrder.RANK: _FILE_RANKED_SQL,
    FileSearchOrder.FETCHED: _file_ordered_sql("rf.inserted_ts DESC, rf.remote_file_id DESC"),
    FileSearchOrder.UPLOADED: _file_ordered_sql("rf.uploaded_ts DESC, rf.remote_file_id DESC"),
    FileSearchOrder.BYTES: _file_ordered_sql("rf.bytes DESC, rf.remote_file_id DESC"),
}

"""
Random picks: an album, a file, or another page of a listing.

Single rows are chosen with an id threshold: draw an integer in
[0, max(id)) and take the first qualifying row at or above it. This is O(1)
but favors rows that follow gaps left by deletions.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ...adapters.db import QueryContext, QueryExecutor, ensure_context
from ...shared import EntityKind, ErrorCode, Result, get_logger
from ..browser import CatalogBrowser
from ..browser.queries import ELIGIBLE
from ..paging import page_count
from ..search import CatalogSearcher

logger = get_logger(__name__)

# Albums with at least one eligible file, the same set the album listing shows.
ALBUM_HAS_ELIGIBLE = f"""EXISTS (
        SELECT 1
          FROM map_album_remote_file marf
          JOIN remote_file rf ON rf.remote_file_id = marf.remote_file_id
         WHERE marf.album_id = a.album_id
           AND {ELIGIBLE}
       )"""

MAX_ALBUM_ID_SQL = f"SELECT MAX(a.album_id) FROM album a WHERE {ALBUM_HAS_ELIGIBLE}"

RANDOM_ALBUM_SQL = f"""
SELECT r.host
     , a.gid
     , a.album_id
  FROM album a
  JOIN ripper r ON r.ripper_id = a.ripper_id
 WHERE a.album_id >= ?
   AND {ALBUM_HAS_ELIGIBLE}
 ORDER BY a.album_id
 LIMIT 1
"""

MAX_FILE_ID_SQL = f"SELECT MAX(rf.remote_file_id) FROM remote_file rf WHERE {ELIGIBLE}"

RANDOM_FILE_SQL = f"""
SELECT r.host
     , rf.remote_file_id
     , (
        SELECT a.gid
          FROM map_album_remote_file m
          JOIN album a ON a.album_id = m.album_id
         WHERE m.remote_file_id = rf.remote_file_id
         ORDER BY m.album_id
         LIMIT 1
       ) AS gid
  FROM remote_file rf
  JOIN ripper r ON r.ripper_id = rf.ripper_id
 WHERE rf.remote_file_id >= ?
   AND {ELIGIBLE}
 ORDER BY rf.remote_file_id
 LIMIT 1
"""


def pick_other_page(current: int, pages: int, rng: random.Random) -> int:
    """
    Uniform pick among pages 1..pages other than `current`.

    With at most one page the answer is always 1.
    """
    if pages <= 1:
        return 1
    candidate = rng.randint(0, pages - 2) + 1
    if candidate >= current:
        candidate += 1
    return candidate


class PageSourceKind(str, Enum):
    BROWSE = "browse"
    ALBUM = "album"
    SEARCH = "search"


@dataclass(frozen=True)
class PageSource:
    """The listing a page belongs to; its total drives the page count."""

    kind: PageSourceKind
    album_id: Optional[int] = None
    entity: Optional[EntityKind] = None
    query: Optional[str] = None

    @classmethod
    def browse(cls) -> "PageSource":
        return cls(PageSourceKind.BROWSE)

    @classmethod
    def album(cls, album_id: int) -> "PageSource":
        return cls(PageSourceKind.ALBUM, album_id=int(album_id))

    @classmethod
    def search(cls, entity: EntityKind, query: str) -> "PageSource":
        return cls(PageSourceKind.SEARCH, entity=EntityKind(entity), query=query)


class RandomSelector:
    def __init__(
        self,
        executor: QueryExecutor,
        browser: CatalogBrowser,
        searcher: CatalogSearcher,
        rng: Optional[random.Random] = None,
    ):
        self.executor = executor
        self.browser = browser
        self.searcher = searcher
        self.rng = rng or random.Random()

    async def _threshold_pick(
        self, ctx: QueryContext, max_sql: str, pick_sql: str, what: str
    ) -> Result[Dict[str, Any]]:
        top = await self.executor.scalar(ctx, max_sql, op=f"random_{what}_max", default=None)
        if not top.ok:
            return top.forward()
        if not top.data or int(top.data) <= 0:
            return Result.Err(ErrorCode.NOT_FOUND, f"No {what} to pick from")
        draw = self.rng.randrange(int(top.data))
        row = await self.executor.query_one(ctx, pick_sql, (draw,), op=f"random_{what}")
        if not row.ok:
            return row.forward()
        if not row.data:
            return Result.Err(ErrorCode.NOT_FOUND, f"No {what} to pick from")
        return Result.Ok(row.data)

    async def random_album(self, ctx: Optional[QueryContext] = None) -> Result[Dict[str, Any]]:
        """Returns: Result with {"host", "gid", "album_id"}."""
        ctx = ensure_context(ctx)
        res = await self._threshold_pick(ctx, MAX_ALBUM_ID_SQL, RANDOM_ALBUM_SQL, "album")
        if not res.ok:
            return res
        row = res.data or {}
        return Result.Ok({"host": row.get("host"), "gid": row.get("gid"), "album_id": row.get("album_id")})

    async def random_file(self, ctx: Optional[QueryContext] = None) -> Result[Dict[str, Any]]:
        """Returns: Result with {"host", "file_id", "gid"}; `gid` is None for files in no album."""
        ctx = ensure_context(ctx)
        res = await self._threshold_pick(ctx, MAX_FILE_ID_SQL, RANDOM_FILE_SQL, "file")
        if not res.ok:
            return res
        row = res.data or {}
        return Result.Ok({"host": row.get("host"), "file_id": row.get("remote_file_id"), "gid": row.get("gid")})

    async def _source_total(self, source: PageSource, ctx: QueryContext) -> Result[int]:
        if source.kind == PageSourceKind.BROWSE:
            return await self.browser.count_albums(ctx)
        if source.kind == PageSourceKind.ALBUM:
            res = await self.browser.count_album_files(int(source.album_id or 0), ctx)
            if not res.ok:
                return res.forward()
            return Result.Ok(int((res.data or {}).get("total", 0)))
        return await self.searcher.search_hits(source.entity or EntityKind.ALBUM, source.query or "", False, ctx)

    async def random_other_page(
        self,
        current_page: int,
        page_size: int,
        source: PageSource,
        ctx: Optional[QueryContext] = None,
    ) -> Result[Dict[str, int]]:
        """
        A page of `source` other than `current_page`, chosen uniformly.

        Returns:
            Result with {"page", "page_count"}.
        """
        ctx = ensure_context(ctx)
        total = await self._source_total(source, ctx)
        if not total.ok:
            return total.forward()
        pages = page_count(int(total.data or 0), page_size)
        page = pick_other_page(int(current_page), pages, self.rng)
        logger.debug("Random page %s of %s (current %s, source %s)", page, pages, current_page, source.kind.value)
        return Result.Ok({"page": page, "page_count": pages})

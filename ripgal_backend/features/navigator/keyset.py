"""
Previous/next neighbors of a file within its album, by keyset comparison.

Each order is a strict total order over (sort value, file id) pairs with
NULL sort values least. "prev" is the nearest pairs strictly below the
target, "next" the nearest strictly above; both come back ascending.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from ...adapters.db import QueryContext, QueryExecutor, ensure_context
from ...shared import ErrorCode, Result, get_logger
from ..browser.queries import ELIGIBLE, FILE_COLUMNS, FILE_IN_ALBUM_SQL, shape_file
from ..paging import SortKey

logger = get_logger(__name__)

NEIGHBOR_LIMIT = 3


class NeighborOrder(str, Enum):
    ID = "id"
    FETCHED = "fetched"
    UPLOADED = "uploaded"
    BYTES = "bytes"


# Sort column per order; None means id only.
_COLUMN: Dict[NeighborOrder, Optional[str]] = {
    NeighborOrder.ID: None,
    NeighborOrder.FETCHED: "inserted_ts",
    NeighborOrder.UPLOADED: "uploaded_ts",
    NeighborOrder.BYTES: "bytes",
}

_NULLABLE = {NeighborOrder.UPLOADED, NeighborOrder.BYTES}


def neighbor_order_for(sort: Optional[SortKey]) -> NeighborOrder:
    if sort == SortKey.FETCHED:
        return NeighborOrder.FETCHED
    if sort == SortKey.UPLOADED:
        return NeighborOrder.UPLOADED
    if sort == SortKey.BYTES:
        return NeighborOrder.BYTES
    return NeighborOrder.ID


def _before(order: NeighborOrder) -> str:
    col = _COLUMN[order]
    if col is None:
        return "rf.remote_file_id < :file_id"
    if order not in _NULLABLE:
        return f"(rf.{col} < :k OR (rf.{col} = :k AND rf.remote_file_id < :file_id))"
    return (
        f"((:k IS NULL AND rf.{col} IS NULL AND rf.remote_file_id < :file_id)"
        f" OR (:k IS NOT NULL AND (rf.{col} IS NULL OR rf.{col} < :k"
        f" OR (rf.{col} = :k AND rf.remote_file_id < :file_id))))"
    )


def _after(order: NeighborOrder) -> str:
    col = _COLUMN[order]
    if col is None:
        return "rf.remote_file_id > :file_id"
    if order not in _NULLABLE:
        return f"(rf.{col} > :k OR (rf.{col} = :k AND rf.remote_file_id > :file_id))"
    return (
        f"((:k IS NULL AND (rf.{col} IS NOT NULL OR rf.remote_file_id > :file_id))"
        f" OR (:k IS NOT NULL AND (rf.{col} > :k"
        f" OR (rf.{col} = :k AND rf.remote_file_id > :file_id))))"
    )


def _order_by(order: NeighborOrder, direction: str) -> str:
    # SQLite sorts NULL first ascending and last descending, matching NULL-least.
    col = _COLUMN[order]
    if col is None:
        return f"rf.remote_file_id {direction}"
    return f"rf.{col} {direction}, rf.remote_file_id {direction}"


def _neighbor_sql(condition: str, order_by: str) -> str:
    return f"""
SELECT {FILE_COLUMNS}
  FROM map_album_remote_file marf
  JOIN remote_file rf ON rf.remote_file_id = marf.remote_file_id
  JOIN ripper r ON r.ripper_id = rf.ripper_id
  LEFT JOIN mime_type mt ON mt.mime_type_id = rf.mime_type_id
 WHERE marf.album_id = :album_id
   AND {ELIGIBLE}
   AND {condition}
 ORDER BY {order_by}
 LIMIT {NEIGHBOR_LIMIT}
"""


PREV_SQL: Dict[NeighborOrder, str] = {
    order: _neighbor_sql(_before(order), _order_by(order, "DESC")) for order in NeighborOrder
}
NEXT_SQL: Dict[NeighborOrder, str] = {
    order: _neighbor_sql(_after(order), _order_by(order, "ASC")) for order in NeighborOrder
}


class KeysetNavigator:
    def __init__(self, executor: QueryExecutor):
        self.executor = executor

    async def neighbors(
        self,
        album_id: int,
        file_id: int,
        sort: Optional[SortKey] = None,
        ctx: Optional[QueryContext] = None,
    ) -> Result[Dict[str, Any]]:
        """
        Up to three files on each side of `file_id` inside `album_id`.

        Returns:
            Result with {"file", "prev", "next", "order"}; NOT_FOUND when the
            file is unknown, not in the album, or not eligible.
        """
        ctx = ensure_context(ctx)
        order = neighbor_order_for(sort)

        target_res = await self.executor.query_one(
            ctx, FILE_IN_ALBUM_SQL, (int(album_id), int(file_id)), op="neighbor_target"
        )
        if not target_res.ok:
            return target_res.forward()
        target = target_res.data
        if not target:
            return Result.Err(ErrorCode.NOT_FOUND, f"No such file in album {album_id}: {file_id}")

        col = _COLUMN[order]
        params = {
            "album_id": int(album_id),
            "file_id": int(file_id),
            "k": target.get(col) if col else None,
        }

        prev_res = await self.executor.query(ctx, PREV_SQL[order], params, op=f"prev_{order.value}")
        if not prev_res.ok:
            return prev_res.forward()
        next_res = await self.executor.query(ctx, NEXT_SQL[order], params, op=f"next_{order.value}")
        if not next_res.ok:
            return next_res.forward()

        prev: List[Dict[str, Any]] = [shape_file(row, int(album_id)) for row in reversed(prev_res.data or [])]
        nxt: List[Dict[str, Any]] = [shape_file(row, int(album_id)) for row in (next_res.data or [])]
        return Result.Ok(
            {
                "file": shape_file(target, int(album_id)),
                "prev": prev,
                "next": nxt,
                "order": order.value,
            }
        )

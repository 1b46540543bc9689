"""
Page/size parsing and page-count arithmetic.

Request parameters are untrusted strings. They never raise: anything that
does not parse falls back to a default.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ...config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE

_INT_RE = re.compile(r"^[+-]?\d+$")

PAGE_SIZE_COOKIE = "defaultPageSize"


def atoi_default(value: Any, default: int) -> int:
    """Strict decimal integer parse; anything else (None, '', '1.5', ' 2') yields `default`."""
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    text = str(value) if value is not None else ""
    if not _INT_RE.match(text):
        return default
    return int(text)


@dataclass(frozen=True)
class PageParams:
    page: int
    size: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size


def parse_page_params(
    raw_page: Any,
    raw_size: Any,
    *,
    default_size: int = DEFAULT_PAGE_SIZE,
    max_size: int = MAX_PAGE_SIZE,
) -> PageParams:
    """
    Clamp `page` to >= 1 and `size` to [1, max_size].

    An out-of-range size is replaced by `default_size`, not clamped to the bound.
    """
    page = atoi_default(raw_page, 1)
    if page < 1:
        page = 1
    size = atoi_default(raw_size, default_size)
    if size < 1 or size > max_size:
        size = default_size
    return PageParams(page=page, size=size)


def resolve_default_size(remembered: Optional[str], default: int = DEFAULT_PAGE_SIZE, max_size: int = MAX_PAGE_SIZE) -> int:
    """Default size from a remembered client preference, if it is a usable value."""
    size = atoi_default(remembered, default)
    if size < 1 or size > max_size:
        return default
    return size


def page_count(total: int, size: int, default_size: int = DEFAULT_PAGE_SIZE) -> int:
    """ceil(total / size), with total <= 0 treated as 0 and size <= 0 as `default_size`."""
    total = max(0, int(total or 0))
    size = int(size or 0)
    if size <= 0:
        size = default_size
    return (total + size - 1) // size


@dataclass(frozen=True)
class PageWindow:
    """Pagination facts for one rendered page. `has_next` derives from the total, never from row counts."""

    page: int
    size: int
    total: int
    page_count: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.size

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    @property
    def has_next(self) -> bool:
        return self.page < self.page_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "page": self.page,
            "size": self.size,
            "total": self.total,
            "page_count": self.page_count,
            "has_prev": self.has_prev,
            "has_next": self.has_next,
        }


def page_window(params: PageParams, total: int) -> PageWindow:
    total = max(0, int(total or 0))
    return PageWindow(page=params.page, size=params.size, total=total, page_count=page_count(total, params.size))

"""
Sort-key allow-lists per listing and remembered-preference resolution.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

# Client preferences expire after 6 hours.
SORT_PREFERENCE_MAX_AGE_S = 6 * 3600


class SortKey(str, Enum):
    FETCHED = "fetched"
    UPLOADED = "uploaded"
    BYTES = "bytes"
    RANK = "rank"


class Listing(str, Enum):
    GALLERIES = "galleries"
    FILES = "files"
    SEARCH_GALLERIES = "search_galleries"
    SEARCH_FILES = "search_files"


@dataclass(frozen=True)
class ListingSorts:
    allowed: Tuple[SortKey, ...]
    default: SortKey
    cookie: str


LISTING_SORTS: Dict[Listing, ListingSorts] = {
    Listing.GALLERIES: ListingSorts(
        (SortKey.FETCHED, SortKey.UPLOADED), SortKey.FETCHED, "defaultSortGalleries"
    ),
    Listing.FILES: ListingSorts(
        (SortKey.FETCHED, SortKey.UPLOADED, SortKey.BYTES), SortKey.FETCHED, "defaultSortFiles"
    ),
    Listing.SEARCH_GALLERIES: ListingSorts(
        (SortKey.RANK, SortKey.FETCHED, SortKey.UPLOADED), SortKey.RANK, "defaultSortSearchGalleries"
    ),
    Listing.SEARCH_FILES: ListingSorts(
        (SortKey.RANK, SortKey.FETCHED, SortKey.UPLOADED, SortKey.BYTES), SortKey.RANK, "defaultSortSearchFiles"
    ),
}


def normalize_sort(raw: Any, listing: Listing) -> Optional[SortKey]:
    """Return the sort key when `raw` is in the listing's allow-list, else None."""
    if raw is None:
        return None
    if isinstance(raw, SortKey):
        candidate: Optional[SortKey] = raw
    else:
        try:
            candidate = SortKey(str(raw).strip().lower())
        except ValueError:
            return None
    if candidate not in LISTING_SORTS[listing].allowed:
        return None
    return candidate


@dataclass(frozen=True)
class SortChoice:
    """
    Resolved sort for one request.

    `remember` is set when the request carried a valid sort that differs from
    the remembered preference; the caller should persist it.
    """

    key: SortKey
    requested: Optional[SortKey]
    remember: bool


def resolve_sort(raw: Any, listing: Listing, remembered: Any = None) -> SortChoice:
    """
    Pick the sort for `listing`: valid request value, else valid remembered value, else the listing default.

    Invalid values (request or remembered) are ignored silently.
    """
    requested = normalize_sort(raw, listing)
    preferred = normalize_sort(remembered, listing)
    remember = requested is not None and requested != preferred
    key = requested or preferred or LISTING_SORTS[listing].default
    return SortChoice(key=key, requested=requested, remember=remember)


def sort_cookie_name(listing: Listing) -> str:
    return LISTING_SORTS[listing].cookie

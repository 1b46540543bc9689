"""Pagination & sort planning."""
from .pagination import (
    PAGE_SIZE_COOKIE,
    PageParams,
    PageWindow,
    atoi_default,
    page_count,
    page_window,
    parse_page_params,
    resolve_default_size,
)
from .sorting import (
    LISTING_SORTS,
    SORT_PREFERENCE_MAX_AGE_S,
    Listing,
    SortChoice,
    SortKey,
    normalize_sort,
    resolve_sort,
    sort_cookie_name,
)

__all__ = [
    "PAGE_SIZE_COOKIE",
    "PageParams",
    "PageWindow",
    "atoi_default",
    "page_count",
    "page_window",
    "parse_page_params",
    "resolve_default_size",
    "LISTING_SORTS",
    "SORT_PREFERENCE_MAX_AGE_S",
    "Listing",
    "SortChoice",
    "SortKey",
    "normalize_sort",
    "resolve_sort",
    "sort_cookie_name",
]

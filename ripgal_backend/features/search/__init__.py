"""Full-text search with a TTL'd total-hit cache."""
from .hit_cache import SearchHitCache, query_fingerprint
from .queries import AlbumSearchOrder, FileSearchOrder, album_search_order_for, file_search_order_for
from .searcher import COMBINED_LIMIT, CatalogSearcher

__all__ = [
    "SearchHitCache",
    "query_fingerprint",
    "AlbumSearchOrder",
    "FileSearchOrder",
    "album_search_order_for",
    "file_search_order_for",
    "COMBINED_LIMIT",
    "CatalogSearcher",
]

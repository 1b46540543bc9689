"""
Route handlers.
"""
from .catalog import register_catalog_routes
from .health import register_health_routes
from .media import register_media_routes, restore_media_headers
from .random_pick import register_random_routes
from .search import register_search_routes

__all__ = [
    "register_catalog_routes",
    "register_health_routes",
    "register_media_routes",
    "restore_media_headers",
    "register_random_routes",
    "register_search_routes",
]

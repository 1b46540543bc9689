"""Catalog browsing: album/file listings, single-item lookups, tags."""
from .queries import AlbumOrder, FileOrder, album_order_for, file_order_for, shape_album, shape_file
from .service import CatalogBrowser
from .thumbs import attach_thumbnails
from .tags import TagBrowser

__all__ = [
    "AlbumOrder",
    "FileOrder",
    "album_order_for",
    "file_order_for",
    "shape_album",
    "shape_file",
    "CatalogBrowser",
    "attach_thumbnails",
    "TagBrowser",
]

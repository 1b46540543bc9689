"""Media path resolution and conditional serving headers."""
from .known_files import KnownFiles, aload_known_files, load_known_files
from .locator import MediaLocator, filesystem_safe, sanitized_filename
from .serving import MEDIA_CACHE_CONTROL, is_not_modified, media_etag, media_headers

__all__ = [
    "KnownFiles",
    "aload_known_files",
    "load_known_files",
    "MediaLocator",
    "filesystem_safe",
    "sanitized_filename",
    "MEDIA_CACHE_CONTROL",
    "is_not_modified",
    "media_etag",
    "media_headers",
]

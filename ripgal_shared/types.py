"""
Shared enums and constants for the catalog engine.
"""
from enum import Enum
from typing import Final


class ErrorCode(str, Enum):
    """Standardized error codes (string enum)."""

    # Client / validation
    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"

    # Request lifecycle
    CANCELLED = "CANCELLED"
    TIMEOUT = "TIMEOUT"

    # Storage
    DB_ERROR = "DB_ERROR"
    CACHE_ERROR = "CACHE_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class EntityKind(str, Enum):
    """Searchable entity kinds; values double as the cache `table_name`."""

    ALBUM = "album"
    FILE = "remote_file"
    TAG = "tag"


# Error codes that map to a silent, body-less abort at the HTTP layer.
SILENT_CODES: Final[frozenset[str]] = frozenset({ErrorCode.CANCELLED.value})

# HTTP status per error code (route layer only).
HTTP_STATUS_BY_CODE: Final[dict[str, int]] = {
    ErrorCode.INVALID_INPUT.value: 400,
    ErrorCode.NOT_FOUND.value: 404,
    ErrorCode.TIMEOUT.value: 504,
    ErrorCode.DB_ERROR.value: 500,
    ErrorCode.CACHE_ERROR.value: 500,
    ErrorCode.SERVICE_UNAVAILABLE.value: 503,
}

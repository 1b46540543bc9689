"""Shared utilities for the ripgal catalog engine."""
from .errors import sanitize_error_message
from .log import get_logger, log_structured, log_success, request_id_var
from .result import Result
from .time import http_date, monotonic_ms, ms, timer
from .types import HTTP_STATUS_BY_CODE, SILENT_CODES, EntityKind, ErrorCode

__all__ = [
    "Result",
    "get_logger",
    "log_success",
    "log_structured",
    "request_id_var",
    "ms",
    "monotonic_ms",
    "http_date",
    "timer",
    "ErrorCode",
    "EntityKind",
    "SILENT_CODES",
    "HTTP_STATUS_BY_CODE",
    "sanitize_error_message",
]

"""Backend-facing alias for shared utilities."""

from __future__ import annotations

from ripgal_shared import (
    HTTP_STATUS_BY_CODE,
    SILENT_CODES,
    EntityKind,
    ErrorCode,
    Result,
    get_logger,
    http_date,
    log_structured,
    log_success,
    monotonic_ms,
    ms,
    request_id_var,
    sanitize_error_message,
    timer,
)

__all__ = [
    "Result",
    "ErrorCode",
    "EntityKind",
    "SILENT_CODES",
    "HTTP_STATUS_BY_CODE",
    "get_logger",
    "log_success",
    "log_structured",
    "request_id_var",
    "sanitize_error_message",
    "ms",
    "monotonic_ms",
    "http_date",
    "timer",
]

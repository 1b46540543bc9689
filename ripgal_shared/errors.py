"""
Helpers for sanitizing error messages before they reach clients.
"""
from __future__ import annotations

import os
import re
from typing import Any

_WINDOWS_PATH_RE = re.compile(r"[A-Za-z]:\\[^\s]+")
_UNIX_PATH_RE = re.compile(r"(?<![A-Za-z0-9:/?&=#%])/(?!/)[^\s#?]+")


def _mask_paths(value: str) -> str:
    cleaned = _WINDOWS_PATH_RE.sub("[path]", value)
    return _UNIX_PATH_RE.sub("[path]", cleaned)


def sanitize_error_message(exc: Any, fallback: str) -> str:
    """
    Build a client-safe error message.

    Filesystem paths are masked and the message is flattened to one line
    and capped at 200 characters. Storage messages such as
    ``fts5: syntax error near "AND"`` pass through unchanged.
    """
    if not fallback:
        fallback = "An error occurred"
    if exc is None:
        return fallback
    raw = str(exc)
    if not raw:
        return fallback

    sanitized = _mask_paths(raw.replace(os.getcwd(), "[cwd]"))
    sanitized = " ".join(sanitized.splitlines()).strip()
    if sanitized:
        return f"{fallback}: {sanitized[:200]}"
    return fallback

"""
Conditional-request headers for media files.
"""

from __future__ import annotations

import os
from email.utils import parsedate_to_datetime
from typing import Dict, Mapping

from ...shared import http_date

MEDIA_CACHE_CONTROL = "public, max-age=86400"


def media_etag(st: os.stat_result) -> str:
    return f'"{int(st.st_mtime):x}-{int(st.st_size):x}"'


def media_headers(st: os.stat_result) -> Dict[str, str]:
    return {
        "ETag": media_etag(st),
        "Last-Modified": http_date(st.st_mtime),
        "Cache-Control": MEDIA_CACHE_CONTROL,
    }


def is_not_modified(request_headers: Mapping[str, str], st: os.stat_result) -> bool:
    """
    True when the client's copy is current.

    `If-None-Match` wins when it contains our ETag; otherwise `If-Modified-Since`
    matches when the file is not newer than the given date (second precision).
    Unparseable dates are ignored.
    """
    etag = media_etag(st)
    match = request_headers.get("If-None-Match") or ""
    if match and etag in match:
        return True
    since = request_headers.get("If-Modified-Since") or ""
    if since:
        try:
            ts = parsedate_to_datetime(since).timestamp()
        except (TypeError, ValueError, IndexError):
            return False
        return int(st.st_mtime) <= int(ts)
    return False

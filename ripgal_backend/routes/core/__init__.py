"""
Core utilities for route handlers.
"""
from .request import REQUEST_CTX_KEY, ListingPrefs, _listing_prefs, _path_int, _query_flag, _query_str, _request_context
from .response import _json_response, _with_perf
from .services import APPKEY_CONFIG, APPKEY_SERVICES, _require_services, install_services

__all__ = [
    "_json_response",
    "_with_perf",
    "_require_services",
    "install_services",
    "APPKEY_CONFIG",
    "APPKEY_SERVICES",
    "REQUEST_CTX_KEY",
    "ListingPrefs",
    "_listing_prefs",
    "_path_int",
    "_query_flag",
    "_query_str",
    "_request_context",
]

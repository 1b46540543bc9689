"""
Time utilities for timestamps and performance measurement.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from email.utils import formatdate


def ms() -> int:
    """Get current timestamp in milliseconds (int)."""
    return int(time.time() * 1000)


def monotonic_ms() -> float:
    return time.perf_counter() * 1000.0


def http_date(ts: float) -> str:
    """Format an epoch timestamp as an RFC 7231 HTTP date."""
    return formatdate(ts, usegmt=True)


@contextmanager
def timer(label: str, logger: logging.Logger) -> Iterator[None]:
    """
    Context manager for timing operations at debug level.

    Usage:
        with timer("known files load", logger):
            load(path)
    """
    start = monotonic_ms()
    try:
        yield
    finally:
        logger.debug("%s took %.1fms", label, monotonic_ms() - start)

"""
Known-files table loaded from the downloader's log.

Each log line is a path (relative to the log's directory, or absolute) of a
downloaded file. The table maps a base filename to every recorded location.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Dict, List, Optional

from ...adapters.db import QueryContext, cancelled_result
from ...shared import Result, get_logger, log_success, timer

logger = get_logger(__name__)

KnownFiles = Dict[str, List[str]]


def _entry_target(line: str, log_dir: str, root: str) -> str:
    if os.path.isabs(line):
        return os.path.normpath(line)
    target = os.path.abspath(os.path.join(log_dir, line))
    return os.path.relpath(target, os.path.abspath(root))


def load_known_files(
    log_path: str | Path,
    root: str | Path | None = None,
    ctx: Optional[QueryContext] = None,
) -> Result[KnownFiles]:
    """
    Parse the download log.

    Blank lines and `#` comments are skipped. Relative entries are stored
    relative to `root` (default: the log's directory); absolute ones as-is.
    A missing log is not an error: it yields an empty table.
    """
    path = Path(log_path)
    log_dir = os.fspath(path.parent)
    base_root = os.fspath(Path(root) if root is not None else path.parent)
    known: KnownFiles = {}

    logger.info("Loading known files from %s", path)
    try:
        handle = open(path, "r", encoding="utf-8", errors="replace")
    except FileNotFoundError:
        logger.warning("Known-files log not found: %s", path)
        return Result.Ok(known)
    except OSError as exc:
        logger.warning("Known-files log unreadable (%s): %s", path, exc)
        return Result.Ok(known)

    with timer("known files load", logger), handle:
        for raw in handle:
            if ctx is not None and ctx.is_cancelled():
                return cancelled_result("known files load")
            line = raw.strip()
            if not line or line.startswith("#"):
                continue
            try:
                target = _entry_target(line, log_dir, base_root)
            except ValueError as exc:
                logger.warning("Not able to resolve a clean relative path for %s: %s", line, exc)
                continue
            known.setdefault(os.path.basename(line), []).append(target)

    log_success(logger, f"Known-files log loaded {len(known)} filenames")
    return Result.Ok(known)


async def aload_known_files(
    log_path: str | Path,
    root: str | Path | None = None,
    ctx: Optional[QueryContext] = None,
) -> Result[KnownFiles]:
    """`load_known_files` on a worker thread."""
    return await asyncio.to_thread(load_known_files, log_path, root, ctx)

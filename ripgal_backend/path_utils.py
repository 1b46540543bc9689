"""
Path joining and containment helpers for media lookups.
"""

from __future__ import annotations

import os
from pathlib import Path


def is_within_root(candidate: str | os.PathLike, root: str | os.PathLike) -> bool:
    """Lexical containment check on absolute, normalized paths (symlinks are not followed)."""
    cand = os.path.normpath(os.path.abspath(os.fspath(candidate)))
    base = os.path.normpath(os.path.abspath(os.fspath(root)))
    try:
        common = os.path.commonpath([cand, base])
    except ValueError:
        return False
    return os.path.normcase(common) == os.path.normcase(base)


def clean_join(root: str | os.PathLike, *elems: str | os.PathLike) -> Path:
    """
    Join `elems`, discarding everything before the last absolute element, and
    normalize the result.

    A result outside `root` is replaced by `root` itself, which is a directory
    and so never served as a file.
    """
    parts = [os.fspath(e) for e in elems if os.fspath(e) != ""]
    last_abs = 0
    for i, part in enumerate(parts):
        if os.path.isabs(part):
            last_abs = i
    joined = os.path.join(*parts[last_abs:]) if parts else "."
    absolute = os.path.normpath(os.path.abspath(joined))
    base = os.path.normpath(os.path.abspath(os.fspath(root)))
    if not is_within_root(absolute, base):
        return Path(base)
    return Path(absolute)

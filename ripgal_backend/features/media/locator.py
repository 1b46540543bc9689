"""
Media path resolution.

A request names a file by (source host, album gid, filename), by (host,
filename), or by filename alone. Candidates are tried in order and the first
regular file wins:

1. canonical `{media_root}/{host}_{gid}/{filename}` (or `{media_root}/{host}/{filename}`)
2. the same path with gid and filename mangled the way the downloader names
   things on disk, when mangling changes anything
3. every known-files entry for the filename, under the download-log root

Every candidate is confined to the media root.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Dict, List, Optional

from ...path_utils import clean_join
from ...shared import get_logger

logger = get_logger(__name__)

_FS_UNSAFE_RE = re.compile(r"[^a-zA-Z0-9\-.,_ ]")
_FILENAME_UNSAFE_RE = re.compile(r'[\\:*?"<>|]')

MANGLE_MAX_LEN = 100


def filesystem_safe(value: str) -> str:
    """
    Downloader's directory-name mangling for album gids.

    Strips unsafe characters and surrounding spaces; names longer than 100
    characters are cut to 99, matching what ends up on disk.
    """
    value = _FS_UNSAFE_RE.sub("", value).strip()
    if len(value) > MANGLE_MAX_LEN:
        value = value[: MANGLE_MAX_LEN - 1]
    return value


def sanitized_filename(filename: str) -> str:
    return _FILENAME_UNSAFE_RE.sub("_", filename)


class MediaLocator:
    def __init__(
        self,
        media_root: str | Path,
        known_files: Optional[Dict[str, List[str]]] = None,
        df_log_root: str | Path | None = None,
    ):
        self.media_root = Path(os.path.abspath(os.fspath(media_root)))
        self.known_files = known_files or {}
        self.df_log_root = Path(os.path.abspath(os.fspath(df_log_root))) if df_log_root else self.media_root

    def _join(self, *elems: str | Path) -> Path:
        return clean_join(self.media_root, *elems)

    def _known(self, filename: str) -> List[Path]:
        return [self._join(self.df_log_root, entry) for entry in self.known_files.get(filename, [])]

    def candidates(self, host: Optional[str], gid: Optional[str], filename: str) -> List[Path]:
        """Candidate paths in resolution order; duplicates are not removed."""
        if not filename:
            return []
        if not host:
            return self._known(filename)

        out: List[Path] = []
        if gid:
            out.append(self._join(self.media_root, f"{host}_{gid}", filename))
            safe_gid = filesystem_safe(gid)
            safe_name = sanitized_filename(filename)
            if safe_gid != gid or safe_name != filename:
                out.append(self._join(self.media_root, f"{host}_{safe_gid}", safe_name))
        else:
            out.append(self._join(self.media_root, host, filename))
            safe_name = sanitized_filename(filename)
            if safe_name != filename:
                out.append(self._join(self.media_root, host, safe_name))
        out.extend(self._known(filename))
        return out

    def candidates_for_tail(self, tail: str) -> List[Path]:
        """Candidates for a `/media/` URL tail: `host/gid/name`, `host/name` or `name`."""
        parts = str(tail or "").lstrip("/").split("/")
        if len(parts) >= 3:
            return self.candidates(parts[0], parts[1], parts[2])
        if len(parts) == 2:
            return self.candidates(parts[0], None, parts[1])
        if parts and parts[0]:
            return self.candidates(None, None, parts[0])
        return []

    @staticmethod
    def first_regular_file(candidates: List[Path]) -> Optional[Path]:
        for candidate in candidates:
            try:
                if candidate.is_file():
                    return candidate
            except OSError as exc:
                logger.debug("Media candidate not accessible %s: %s", candidate, exc)
        return None

    def resolve(self, host: Optional[str], gid: Optional[str], filename: str) -> Optional[Path]:
        """Absolute path of the first existing candidate, or None."""
        return self.first_regular_file(self.candidates(host, gid, filename))

    def resolve_tail(self, tail: str) -> Optional[Path]:
        return self.first_regular_file(self.candidates_for_tail(tail))

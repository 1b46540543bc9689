import random
import sys
from pathlib import Path

import pytest
import pytest_asyncio

# Tests live at <repo>/tests/, so the repo root is one parent above.
REPO_ROOT = Path(__file__).resolve().parents[1]

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

CATALOG_DDL = """
CREATE TABLE ripper (
    ripper_id INTEGER PRIMARY KEY,
    name      TEXT NOT NULL,
    host      TEXT NOT NULL UNIQUE
);
CREATE TABLE mime_type (
    mime_type_id INTEGER PRIMARY KEY,
    name         TEXT NOT NULL UNIQUE
);
CREATE TABLE album (
    album_id      INTEGER PRIMARY KEY,
    ripper_id     INTEGER NOT NULL REFERENCES ripper(ripper_id),
    gid           TEXT NOT NULL,
    uploader      TEXT,
    title         TEXT,
    description   TEXT,
    created_ts    INTEGER,
    modified_ts   INTEGER,
    last_fetch_ts INTEGER,
    inserted_ts   INTEGER NOT NULL,
    hidden        INTEGER NOT NULL DEFAULT 0,
    removed       INTEGER NOT NULL DEFAULT 0,
    local_rating  INTEGER,
    fetch_count   INTEGER NOT NULL DEFAULT 0,
    UNIQUE (ripper_id, gid)
);
CREATE TABLE remote_file (
    remote_file_id INTEGER PRIMARY KEY,
    ripper_id      INTEGER NOT NULL REFERENCES ripper(ripper_id),
    urlid          TEXT NOT NULL,
    filename       TEXT,
    mime_type_id   INTEGER REFERENCES mime_type(mime_type_id),
    title          TEXT,
    description    TEXT,
    uploaded_ts    INTEGER,
    inserted_ts    INTEGER NOT NULL,
    uploader       TEXT,
    hidden         INTEGER NOT NULL DEFAULT 0,
    removed        INTEGER NOT NULL DEFAULT 0,
    bytes          INTEGER,
    local_rating   INTEGER,
    fetched        INTEGER NOT NULL DEFAULT 0,
    ignored        INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE map_album_remote_file (
    album_id       INTEGER NOT NULL,
    remote_file_id INTEGER NOT NULL,
    PRIMARY KEY (album_id, remote_file_id)
) WITHOUT ROWID;
CREATE TABLE tag (
    tag_id INTEGER PRIMARY KEY,
    name   TEXT NOT NULL UNIQUE,
    local  INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE map_album_tag (
    album_id INTEGER NOT NULL,
    tag_id   INTEGER NOT NULL,
    PRIMARY KEY (album_id, tag_id)
) WITHOUT ROWID;
CREATE TABLE map_remote_file_tag (
    remote_file_id INTEGER NOT NULL,
    tag_id         INTEGER NOT NULL,
    PRIMARY KEY (remote_file_id, tag_id)
) WITHOUT ROWID;
CREATE VIRTUAL TABLE album_fts5 USING fts5(title, description);
CREATE VIRTUAL TABLE remote_file_fts5 USING fts5(title, description);
CREATE VIRTUAL TABLE tag_fts5 USING fts5(name);
"""

# Album 1 files 1..10 are eligible; 11 is not fetched, 12 is ignored.
ALBUM1_UPLOADED = [None, 300, 100, None, 200, 200, 500, None, 100, 400]
ALBUM1_BYTES = [50, None, 10, 10, None, 30, 20, 10, None, 40]
BROWSE_ALBUMS = 12
EMPTY_ALBUM_ID = 13
LOOSE_FILE_ID = 100


def _q(value):
    if value is None:
        return "NULL"
    if isinstance(value, str):
        return "'" + value.replace("'", "''") + "'"
    return str(int(value))


def _insert(table, **row):
    cols = ", ".join(row)
    vals = ", ".join(_q(v) for v in row.values())
    return f"INSERT INTO {table} ({cols}) VALUES ({vals});"


def _file(file_id, *, title, uploaded=None, size=None, inserted=1000, fetched=1, ignored=0, ripper_id=1):
    return [
        _insert(
            "remote_file",
            remote_file_id=file_id,
            ripper_id=ripper_id,
            urlid=f"u{file_id}",
            filename=f"file{file_id}.jpg",
            mime_type_id=1,
            title=title,
            description=None,
            uploaded_ts=uploaded,
            inserted_ts=inserted,
            bytes=size,
            fetched=fetched,
            ignored=ignored,
        ),
        _insert("remote_file_fts5", rowid=file_id, title=title, description=""),
    ]


def catalog_seed_sql() -> str:
    """
    Small deterministic catalog.

    - albums 1..12 on imgur.com (odd ids titled "cats", even ids "dogs"), each with eligible files
    - album 13 "cats empty" whose only file is not fetched
    - album 1 holds files 1..12 with NULLs and ties in uploaded_ts/bytes
    - file 100 is eligible but belongs to no album
    """
    out = [
        _insert("ripper", ripper_id=1, name="Imgur", host="imgur.com"),
        _insert("ripper", ripper_id=2, name="Reddit", host="reddit.com"),
        _insert("mime_type", mime_type_id=1, name="image/jpeg"),
        _insert("mime_type", mime_type_id=2, name="video/mp4"),
    ]
    for album_id in range(1, BROWSE_ALBUMS + 2):
        if album_id == EMPTY_ALBUM_ID:
            title = "cats empty"
        else:
            title = f"{'cats' if album_id % 2 else 'dogs'} album {album_id}"
        out.append(
            _insert(
                "album",
                album_id=album_id,
                ripper_id=1,
                gid=f"g{album_id}",
                title=title,
                created_ts=1000 + album_id,
                last_fetch_ts=5000 - album_id * 10,
                inserted_ts=100 + album_id,
                fetch_count=1,
            )
        )
        out.append(_insert("album_fts5", rowid=album_id, title=title, description=""))

    for i in range(1, 11):
        out += _file(i, title=f"cat picture {i}", uploaded=ALBUM1_UPLOADED[i - 1], size=ALBUM1_BYTES[i - 1], inserted=1000 + i % 4)
    out += _file(11, title="cat unfetched", fetched=0)
    out += _file(12, title="cat ignored", ignored=1)
    for i in range(1, 13):
        out.append(_insert("map_album_remote_file", album_id=1, remote_file_id=i))

    next_id = 20
    for album_id in range(2, BROWSE_ALBUMS + 1):
        for _ in range(2):
            out += _file(next_id, title=f"dog snapshot {next_id}", size=next_id, inserted=2000 + next_id)
            out.append(_insert("map_album_remote_file", album_id=album_id, remote_file_id=next_id))
            next_id += 1
    out += _file(90, title="cat hidden away", fetched=0)
    out.append(_insert("map_album_remote_file", album_id=EMPTY_ALBUM_ID, remote_file_id=90))
    out += _file(LOOSE_FILE_ID, title="loose cat", ripper_id=2)
    # File 1 also belongs to album 3.
    out.append(_insert("map_album_remote_file", album_id=3, remote_file_id=1))

    for tag_id, name, local in ((1, "cat", 0), (2, "dog", 0), (3, "catnip", 1), (4, "cathedral", 0)):
        out.append(_insert("tag", tag_id=tag_id, name=name, local=local))
        out.append(_insert("tag_fts5", rowid=tag_id, name=name))
    for file_id in (1, 2, 3):
        out.append(_insert("map_remote_file_tag", remote_file_id=file_id, tag_id=1))
    out.append(_insert("map_remote_file_tag", remote_file_id=1, tag_id=4))
    out.append(_insert("map_remote_file_tag", remote_file_id=20, tag_id=2))
    out.append(_insert("map_album_tag", album_id=1, tag_id=1))
    out.append(_insert("map_album_tag", album_id=3, tag_id=1))
    out.append(_insert("map_album_tag", album_id=2, tag_id=2))
    return "\n".join(out)


async def build_catalog(path: Path) -> Path:
    from ripgal_backend.adapters.db import Sqlite

    db = Sqlite(path, wal=False, name="seed")
    try:
        res = await db.aexecutescript(CATALOG_DDL + catalog_seed_sql())
        assert res.ok, res.error
    finally:
        await db.aclose()
    return path


@pytest_asyncio.fixture
async def catalog_path(tmp_path):
    return await build_catalog(tmp_path / "ripme.sqlite")


@pytest.fixture
def media_root(tmp_path):
    root = tmp_path / "rips"
    root.mkdir()
    return root


@pytest_asyncio.fixture
async def engine_config(tmp_path, catalog_path, media_root):
    from ripgal_backend.config import EngineConfig

    return EngineConfig.build(
        catalog_path,
        media_root,
        cache_db=tmp_path / "cache" / "ripgal.cache.sqlite",
        slow_sql_ms=-1,
    )


@pytest_asyncio.fixture
async def services(engine_config):
    from ripgal_backend.deps import build_services, dispose_services

    svc_res = await build_services(engine_config, rng=random.Random(1234))
    assert svc_res.ok, svc_res.error
    svc = svc_res.data
    try:
        yield svc
    finally:
        await dispose_services(svc)

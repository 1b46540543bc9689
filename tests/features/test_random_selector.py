import random
from collections import Counter

import pytest
import pytest_asyncio

from ripgal_backend.adapters.db import Sqlite
from ripgal_backend.deps import build_services, dispose_services
from ripgal_backend.features.random import PageSource, pick_other_page
from ripgal_shared import EntityKind


def test_pick_other_page_single_page():
    rng = random.Random(0)
    assert pick_other_page(1, 0, rng) == 1
    assert pick_other_page(1, 1, rng) == 1


def test_pick_other_page_never_returns_current():
    rng = random.Random(7)
    for pages in range(2, 12):
        for current in range(1, pages + 1):
            for _ in range(50):
                page = pick_other_page(current, pages, rng)
                assert page != current
                assert 1 <= page <= pages


def test_pick_other_page_is_roughly_uniform():
    rng = random.Random(42)
    draws = Counter(pick_other_page(3, 5, rng) for _ in range(8000))
    assert set(draws) == {1, 2, 4, 5}
    for count in draws.values():
        assert 1700 < count < 2300


@pytest.mark.asyncio
async def test_random_album(services):
    for _ in range(20):
        res = await services["random"].random_album()
        assert res.ok, res.error
        assert res.data["host"] == "imgur.com"
        assert res.data["gid"] == f"g{res.data['album_id']}"


@pytest.mark.asyncio
async def test_random_file_is_eligible(services):
    browser = services["browser"]
    for _ in range(20):
        res = await services["random"].random_file()
        assert res.ok, res.error
        pick = res.data
        found = await browser.get_file(pick["host"], pick["file_id"])
        assert found.ok, pick
        if pick["file_id"] == 100:
            assert pick["gid"] is None


@pytest.mark.asyncio
async def test_random_other_page_sources(services):
    selector = services["random"]

    browse = await selector.random_other_page(2, 5, PageSource.browse())
    assert browse.ok
    assert browse.data["page_count"] == 3
    assert browse.data["page"] in (1, 3)

    album = await selector.random_other_page(1, 4, PageSource.album(1))
    assert album.data["page_count"] == 3
    assert album.data["page"] in (2, 3)

    single = await selector.random_other_page(1, 50, PageSource.album(1))
    assert single.data == {"page": 1, "page_count": 1}

    search = await selector.random_other_page(1, 2, PageSource.search(EntityKind.ALBUM, "cats"))
    assert search.data["page_count"] == 3
    assert search.data["page"] in (2, 3)


EMPTY_ALBUM_ID = 13

TRAILING_ALBUM_SQL = """
INSERT INTO album (album_id, ripper_id, gid, title, created_ts, last_fetch_ts, inserted_ts, fetch_count)
VALUES (14, 1, 'g14', 'dogs album 14', 1014, 4860, 114, 1);
INSERT INTO remote_file (remote_file_id, ripper_id, urlid, filename, mime_type_id, title, uploaded_ts, inserted_ts, bytes, fetched, ignored)
VALUES (91, 1, 'u91', 'file91.jpg', 1, 'dog trailing', NULL, 1000, 91, 1, 0);
INSERT INTO map_album_remote_file (album_id, remote_file_id) VALUES (14, 91);
"""


@pytest_asyncio.fixture
async def trailing_services(engine_config, catalog_path):
    # Album 13 (no eligible file) now sits below the highest album id.
    db = Sqlite(catalog_path, wal=False, name="seed")
    try:
        res = await db.aexecutescript(TRAILING_ALBUM_SQL)
        assert res.ok, res.error
    finally:
        await db.aclose()
    svc_res = await build_services(engine_config, rng=random.Random(7))
    assert svc_res.ok, svc_res.error
    try:
        yield svc_res.data
    finally:
        await dispose_services(svc_res.data)


@pytest.mark.asyncio
async def test_random_album_skips_albums_without_eligible_files(trailing_services):
    empty = await trailing_services["browser"].count_album_files(EMPTY_ALBUM_ID)
    assert empty.ok
    assert empty.data["total"] == 0

    picked = Counter()
    for _ in range(300):
        res = await trailing_services["random"].random_album()
        assert res.ok, res.error
        picked[res.data["album_id"]] += 1
    assert EMPTY_ALBUM_ID not in picked
    assert 14 in picked

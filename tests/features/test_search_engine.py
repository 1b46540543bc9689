import asyncio

import pytest

from ripgal_backend.features.paging import PageParams, SortKey
from ripgal_backend.features.search import SearchHitCache
from ripgal_backend.features.search.hit_cache import query_fingerprint
from ripgal_shared import EntityKind, ErrorCode, Result


class _Counting:
    """Wraps `CatalogSearcher.count_hits` and records each call."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = []

    async def __call__(self, kind, query, ctx=None):
        self.calls.append((EntityKind(kind), query))
        return await self.inner(kind, query, ctx)


def test_query_fingerprint_is_stable_sha256():
    assert query_fingerprint("cats") == query_fingerprint("cats")
    assert query_fingerprint("cats") != query_fingerprint("cats ")
    assert len(query_fingerprint("cats")) == 64


@pytest.mark.asyncio
async def test_hit_counts(services):
    search = services["search"]
    albums = await search.count_hits(EntityKind.ALBUM, "cats")
    assert albums.data == 6  # album 13 matches but has no eligible file
    files = await search.count_hits(EntityKind.FILE, "cat")
    assert files.data == 11
    tags = await search.search_tag_hits("cat*")
    assert tags.data == 2  # local tag "catnip" is excluded


@pytest.mark.asyncio
async def test_search_hits_served_from_cache(services, monkeypatch):
    search = services["search"]
    counter = _Counting(search.count_hits)
    monkeypatch.setattr(search, "count_hits", counter)

    first = await search.search_hits(EntityKind.ALBUM, "cats")
    second = await search.search_hits(EntityKind.ALBUM, "cats")
    assert first.data == second.data == 6
    assert first.meta["cached"] is False
    assert second.meta["cached"] is True
    assert counter.calls == [(EntityKind.ALBUM, "cats")]

    # Same text, other entity kind: separate cache key.
    files = await search.search_hits(EntityKind.FILE, "cats")
    assert files.meta["cached"] is False
    assert len(counter.calls) == 2


@pytest.mark.asyncio
async def test_force_evict_recounts(services, monkeypatch):
    search = services["search"]
    counter = _Counting(search.count_hits)
    monkeypatch.setattr(search, "count_hits", counter)

    await search.search_hits(EntityKind.FILE, "cat")
    refreshed = await search.search_hits(EntityKind.FILE, "cat", force_evict=True)
    assert refreshed.ok
    assert refreshed.data == 11
    assert refreshed.meta["cached"] is False
    assert len(counter.calls) == 2

    again = await search.search_hits(EntityKind.FILE, "cat")
    assert again.meta["cached"] is True
    assert len(counter.calls) == 2


@pytest.mark.asyncio
async def test_tag_hits_are_never_cached(services, monkeypatch):
    search = services["search"]
    counter = _Counting(search.count_hits)
    monkeypatch.setattr(search, "count_hits", counter)

    await search.search_hits(EntityKind.TAG, "cat*")
    await search.search_hits(EntityKind.TAG, "cat*")
    assert counter.calls == [(EntityKind.TAG, "cat*"), (EntityKind.TAG, "cat*")]


@pytest.mark.asyncio
async def test_cache_rows_expire_after_ttl(services):
    clock = {"now": 1_000_000}
    cache = SearchHitCache(services["search"].cache.executor, ttl_ms=1000, clock=lambda: clock["now"])

    assert (await cache.lookup(EntityKind.ALBUM, "ttl")).data is None
    assert (await cache.store(EntityKind.ALBUM, "ttl", 42)).ok
    clock["now"] += 500
    assert (await cache.lookup(EntityKind.ALBUM, "ttl")).data == 42
    clock["now"] += 1000
    assert (await cache.lookup(EntityKind.ALBUM, "ttl")).data is None


@pytest.mark.asyncio
async def test_cache_failure_maps_to_cache_error(services, monkeypatch):
    cache = services["search"].cache

    async def _broken(work):
        return Result.Err(ErrorCode.DB_ERROR, "disk I/O error")

    monkeypatch.setattr(cache.executor.db, "arun_in_transaction", _broken)
    res = await services["search"].search_hits(EntityKind.ALBUM, "cats")
    assert res.code == ErrorCode.CACHE_ERROR.value


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ["", "   ", None])
async def test_blank_query_is_invalid(services, query):
    search = services["search"]
    assert (await search.search_hits(EntityKind.ALBUM, query)).code == ErrorCode.INVALID_INPUT.value
    assert (await search.search_page(EntityKind.FILE, query, 10, 0)).code == ErrorCode.INVALID_INPUT.value
    assert (await search.search_tags(query)).code == ErrorCode.INVALID_INPUT.value
    assert (await search.search_all(query)).code == ErrorCode.INVALID_INPUT.value


@pytest.mark.asyncio
async def test_search_albums_pages(services):
    search = services["search"]
    res = await search.search_albums("cats", PageParams(page=1, size=4))
    assert res.ok, res.error
    assert res.data["sort"] == "rank"
    assert res.data["total"] == 6
    assert res.data["page_count"] == 2
    assert len(res.data["albums"]) == 4
    assert {a["album_id"] for a in res.data["albums"]} <= {1, 3, 5, 7, 9, 11}

    by_fetch = await search.search_albums("cats", PageParams(page=1, size=4), SortKey.FETCHED)
    assert [a["album_id"] for a in by_fetch.data["albums"]] == [11, 9, 7, 5]
    tail = await search.search_albums("cats", PageParams(page=2, size=4), SortKey.FETCHED)
    assert [a["album_id"] for a in tail.data["albums"]] == [3, 1]
    assert tail.data["has_next"] is False


@pytest.mark.asyncio
async def test_search_files_orders(services):
    search = services["search"]
    res = await search.search_files("cat", PageParams(page=1, size=50), SortKey.BYTES)
    assert res.ok, res.error
    ids = [f["file_id"] for f in res.data["files"]]
    assert ids == [1, 10, 6, 7, 8, 4, 3, 100, 9, 5, 2]
    assert res.data["total"] == 11

    ranked = await search.search_files("cat", PageParams(page=1, size=50))
    assert sorted(f["file_id"] for f in ranked.data["files"]) == sorted(ids)
    assert all("score" in f for f in ranked.data["files"])


@pytest.mark.asyncio
async def test_search_page_rejects_tags(services):
    res = await services["search"].search_page(EntityKind.TAG, "cat", 10, 0)
    assert res.code == ErrorCode.INVALID_INPUT.value


@pytest.mark.asyncio
async def test_search_tags_ordered_by_usage(services):
    res = await services["search"].search_tags("cat*")
    assert res.ok
    assert [(t["name"], t["count"]) for t in res.data] == [("cat", 3), ("cathedral", 1)]

    limited = await services["search"].search_tags("cat*", limit=1)
    assert len(limited.data) == 1


@pytest.mark.asyncio
async def test_search_all_combines_entities(services):
    res = await services["search"].search_all("cat*")
    assert res.ok, res.error
    data = res.data
    assert data["albums_total"] == 6
    assert len(data["albums"]) == 6
    assert data["files_total"] == 11
    assert len(data["files"]) == 10
    assert data["tags_total"] == 2
    assert [t["name"] for t in data["tags"]] == ["cat", "cathedral"]


@pytest.mark.asyncio
async def test_concurrent_listing_and_search(services):
    browse, hits, files = await asyncio.gather(
        services["browser"].list_albums(PageParams(page=1, size=5)),
        services["search"].search_hits(EntityKind.ALBUM, "dogs"),
        services["search"].search_files("cat", PageParams(page=1, size=5)),
    )
    assert browse.ok and hits.ok and files.ok
    assert hits.data == 6
    assert len(browse.data["albums"]) == 5
    assert files.data["total"] == 11


@pytest.mark.asyncio
@pytest.mark.parametrize("query", ['"unterminated', "AND OR", "((("])
async def test_malformed_fts_query_is_db_error_and_not_cached(services, query):
    search = services["search"]

    hits = await search.search_hits(EntityKind.ALBUM, query)
    assert not hits.ok
    assert hits.code == ErrorCode.DB_ERROR.value

    page = await search.search_albums(query, PageParams(page=1, size=4))
    assert not page.ok
    assert page.code == ErrorCode.DB_ERROR.value

    tags = await search.search_tags(query)
    assert not tags.ok
    assert tags.code == ErrorCode.DB_ERROR.value

    cached = await services["search"].cache.executor.scalar(None, "SELECT COUNT(*) FROM search_hits")
    assert cached.ok
    assert cached.data == 0

import asyncio
import os

import pytest
import pytest_asyncio
from aiohttp import ClientTimeout, web
from aiohttp.test_utils import TestClient, TestServer, make_mocked_request

from ripgal_backend.config import EngineConfig
from ripgal_backend.features.media import media_etag
from ripgal_backend.routes import create_app
from ripgal_backend.routes.core import _json_response
from ripgal_shared import ErrorCode, Result


@pytest_asyncio.fixture
async def client(engine_config):
    app = create_app(engine_config)
    client = TestClient(TestServer(app))
    await client.start_server()
    try:
        yield client
    finally:
        await client.close()


def test_json_response_status_mapping():
    cases = [
        (Result.Ok({"a": 1}), 200),
        (Result.Err(ErrorCode.INVALID_INPUT, "bad"), 400),
        (Result.Err(ErrorCode.NOT_FOUND, "missing"), 404),
        (Result.Err(ErrorCode.DB_ERROR, "boom"), 500),
        (Result.Err(ErrorCode.CACHE_ERROR, "boom"), 500),
        (Result.Err(ErrorCode.SERVICE_UNAVAILABLE, "down"), 503),
        (Result.Err("SOMETHING_ELSE", "??"), 500),
    ]
    for result, status in cases:
        assert _json_response(result).status == status


def test_json_response_cancelled_drops_request():
    with pytest.raises(asyncio.CancelledError):
        _json_response(Result.Err(ErrorCode.CANCELLED, "client went away"))


def test_json_response_sanitizes_non_finite_floats():
    resp = _json_response(Result.Ok({"score": float("nan"), "rows": [float("inf"), 1.5]}))
    assert b"NaN" not in resp.body
    assert b"Infinity" not in resp.body


@pytest.mark.asyncio
async def test_handlers_report_missing_services(monkeypatch):
    import ripgal_backend.routes.handlers.catalog as catalog_mod

    def _mock_require_services(request):
        return None, Result.Err(ErrorCode.SERVICE_UNAVAILABLE, "Services are unavailable")

    monkeypatch.setattr(catalog_mod, "_require_services", _mock_require_services)

    routes = web.RouteTableDef()
    catalog_mod.register_catalog_routes(routes)
    app = web.Application()
    app.add_routes(routes)

    req = make_mocked_request("GET", "/api/galleries", app=app)
    match = await app.router.resolve(req)
    resp = await match.handler(req)
    assert resp.status == 503


@pytest.mark.asyncio
async def test_app_without_catalog_is_unavailable(tmp_path):
    config = EngineConfig.build(tmp_path / "missing.sqlite", tmp_path / "rips", cache_db=tmp_path / "cache.sqlite")
    client = TestClient(TestServer(create_app(config)))
    await client.start_server()
    try:
        resp = await client.get("/api/galleries")
        assert resp.status == 503
        payload = await resp.json()
        assert payload["ok"] is False
        assert payload["code"] == "SERVICE_UNAVAILABLE"
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_healthz(client):
    resp = await client.get("/healthz")
    assert resp.status == 200
    payload = await resp.json()
    assert payload["data"]["status"] == "ok"
    assert resp.headers.get("X-Request-ID")


@pytest.mark.asyncio
async def test_galleries_listing_and_cookies(client):
    resp = await client.get("/api/galleries", params={"size": "5", "sort": "uploaded"})
    assert resp.status == 200
    payload = await resp.json()
    assert payload["ok"] is True
    data = payload["data"]
    assert [a["album_id"] for a in data["albums"]] == [12, 11, 10, 9]
    assert data["sort"] == "uploaded"
    assert data["page_count"] == 3
    assert payload["meta"]["perf"]["sql_count"] > 0
    assert resp.cookies["defaultPageSize"].value == "5"
    assert resp.cookies["defaultSortGalleries"].value == "uploaded"

    # Remembered preferences apply when the request carries none.
    again = await client.get("/api/galleries")
    data = (await again.json())["data"]
    assert data["size"] == 5
    assert data["sort"] == "uploaded"
    assert "defaultPageSize" not in again.cookies


@pytest.mark.asyncio
async def test_gallery_page_and_file_neighbors(client):
    resp = await client.get("/api/gallery/imgur.com/g1", params={"size": "3"})
    assert resp.status == 200
    data = (await resp.json())["data"]
    assert data["album"]["gid"] == "g1"
    assert data["page_count"] == 4

    resp = await client.get("/api/gallery/imgur.com/g1/8", params={"sort": "uploaded"})
    assert resp.status == 200
    data = (await resp.json())["data"]
    assert [f["file_id"] for f in data["prev"]] == [1, 4]
    assert data["album"]["album_id"] == 1

    missing = await client.get("/api/gallery/imgur.com/nope")
    assert missing.status == 404
    assert (await missing.json())["code"] == "NOT_FOUND"

    bad = await client.get("/api/gallery/imgur.com/g1/abc")
    assert bad.status == 400


@pytest.mark.asyncio
async def test_file_page(client):
    resp = await client.get("/api/file/imgur.com/1")
    assert resp.status == 200
    data = (await resp.json())["data"]
    assert data["file"]["file_id"] == 1
    assert [t["name"] for t in data["tags"]] == ["cat", "cathedral"]
    assert [a["album_id"] for a in data["albums"]] == [1, 3]

    galleries = await client.get("/api/file/imgur.com/1/galleries")
    assert [a["album_id"] for a in (await galleries.json())["data"]] == [1, 3]

    hidden = await client.get("/api/file/imgur.com/11")
    assert hidden.status == 404


@pytest.mark.asyncio
async def test_tag_routes(client):
    resp = await client.get("/api/tags")
    data = (await resp.json())["data"]
    assert data["file_tags"][0]["name"] == "cat"

    resp = await client.get("/api/tag/dog")
    data = (await resp.json())["data"]
    assert [a["album_id"] for a in data["albums"]] == [2]
    assert [f["file_id"] for f in data["files"]] == [20]


@pytest.mark.asyncio
async def test_search_routes(client):
    resp = await client.get("/api/search/galleries", params={"q": "cats", "size": "4"})
    payload = await resp.json()
    assert resp.status == 200
    assert payload["data"]["total"] == 6
    assert payload["data"]["query"] == "cats"

    resp = await client.get("/api/search/files", params={"q": "cat", "sort": "bytes", "refresh": "1"})
    data = (await resp.json())["data"]
    assert data["files"][0]["file_id"] == 1
    assert resp.cookies["defaultSortSearchFiles"].value == "bytes"

    resp = await client.get("/api/search/tags", params={"q": "cat*"})
    data = (await resp.json())["data"]
    assert data["total"] == 2

    resp = await client.get("/api/search", params={"q": "cat*"})
    data = (await resp.json())["data"]
    assert data["files_total"] == 11

    blank = await client.get("/api/search/galleries", params={"q": "  "})
    assert blank.status == 400
    assert (await blank.json())["code"] == "INVALID_INPUT"


@pytest.mark.asyncio
async def test_random_routes(client):
    resp = await client.get("/api/random/gallery")
    data = (await resp.json())["data"]
    assert data["host"] == "imgur.com"

    resp = await client.get("/api/random/file")
    assert resp.status == 200

    resp = await client.get("/api/random/page", params={"listing": "galleries", "page": "1", "size": "5"})
    data = (await resp.json())["data"]
    assert data["page_count"] == 3
    assert data["page"] in (2, 3)

    resp = await client.get(
        "/api/random/page", params={"listing": "files", "host": "imgur.com", "gid": "g1", "page": "2", "size": "4"}
    )
    data = (await resp.json())["data"]
    assert data["page"] in (1, 3)

    resp = await client.get("/api/random/page", params={"listing": "search_galleries", "q": "cats", "size": "2"})
    assert (await resp.json())["data"]["page_count"] == 3

    bad = await client.get("/api/random/page", params={"listing": "bogus"})
    assert bad.status == 400


@pytest.mark.asyncio
async def test_media_serving_and_revalidation(client, media_root):
    path = media_root / "imgur.com_g1" / "file1.jpg"
    path.parent.mkdir(parents=True)
    path.write_bytes(b"0123456789")
    os.utime(path, (1_700_000_000, 1_700_000_000))
    etag = media_etag(os.stat(path))

    resp = await client.get("/media/imgur.com/g1/file1.jpg")
    assert resp.status == 200
    assert await resp.read() == b"0123456789"
    assert resp.headers["ETag"] == etag
    assert "max-age" in resp.headers["Cache-Control"]

    cached = await client.get("/media/imgur.com/g1/file1.jpg", headers={"If-None-Match": etag})
    assert cached.status == 304

    since = await client.get(
        "/media/imgur.com/g1/file1.jpg", headers={"If-Modified-Since": resp.headers["Last-Modified"]}
    )
    assert since.status == 304

    ranged = await client.get("/media/imgur.com/g1/file1.jpg", headers={"Range": "bytes=2-4"})
    assert ranged.status == 206
    assert await ranged.read() == b"234"

    missing = await client.get("/media/imgur.com/g1/other.jpg")
    assert missing.status == 404


@pytest.mark.asyncio
async def test_dropped_client_stops_query_sequence(client, monkeypatch):
    from ripgal_backend.features.browser import CatalogBrowser

    seen = {"queries": 0, "ctx": None}

    async def _endless_list_albums(self, params, sort=None, ctx=None):
        seen["ctx"] = ctx
        while True:
            res = await self.executor.query(ctx, "SELECT album_id FROM album LIMIT 1")
            if not res.ok:
                return res
            seen["queries"] += 1
            await asyncio.sleep(0.02)

    monkeypatch.setattr(CatalogBrowser, "list_albums", _endless_list_albums)

    with pytest.raises(asyncio.TimeoutError):
        await client.get("/api/galleries", timeout=ClientTimeout(total=0.3))

    await asyncio.sleep(0.2)
    stopped_at = seen["queries"]
    await asyncio.sleep(0.3)
    assert stopped_at > 0
    assert seen["queries"] == stopped_at
    assert seen["ctx"].is_cancelled()

# File: tests/test_engine.py
"""Wiring of database, HTTP session and crawler; JSON report output."""
import asyncio
import json

import pytest
from aiohttp import web

import catalog_scout.engine as engine_module
from catalog_scout.aggregator import CrawlRunSummary
from catalog_scout.engine import Engine, catalog_list, invalidate, lookup, search, start_crawl
from catalog_scout.models import CatalogRecord, DetailRecord
from catalog_scout.report import render_json
from catalog_scout.storage import Database, FreshnessCache
from conftest import _serve_app, catalog_html, child_html, detail_html


def small_site() -> web.Application:
    app = web.Application()

    async def handle_catalog(request):
        slugs = ["one-piece"] if request.query.get("page") == "1" else []
        return web.Response(text=catalog_html(slugs), content_type="text/html")

    async def handle_detail(request):
        return web.Response(text=detail_html("One Piece", ["one-piece-episode-1"]), content_type="text/html")

    async def handle_child(request):
        html = child_html("One Piece Episode 1", [("SOKUJA - 720p", "https://v.example/1")])
        return web.Response(text=html, content_type="text/html")

    app.router.add_get("/anime/", handle_catalog)
    app.router.add_get("/anime/{slug}/", handle_detail)
    app.router.add_get("/{slug}/", handle_child)
    return app


@pytest.mark.asyncio()
async def test_start_crawl_then_lookup_from_store(unused_tcp_port, make_config, tmp_path):
    db_path = str(tmp_path / "catalog.db")
    async for base in _serve_app(small_site(), unused_tcp_port):
        cfg = make_config(base, storage={"database": db_path})
        summary = await start_crawl(cfg)
        detail = await lookup(cfg, "detail:one-piece")
        sources = await lookup(cfg, "child:one-piece-episode-1", ttl=60)

    assert summary.items == 1
    assert summary.leaf_records == 1
    assert summary.errors == []
    assert detail.title == "One Piece"
    assert [s.url for s in sources] == ["https://v.example/1"]

    assert await invalidate(cfg, "detail:one-piece") == 1
    assert await invalidate(cfg) == 1
    async with Database(db_path) as db:
        assert await FreshnessCache(db).get_last_refreshed("child:one-piece-episode-1") is None


def test_engine_facade_invalidate(make_config, tmp_path):
    cfg = make_config("http://localhost:1", storage={"database": str(tmp_path / "catalog.db")})
    engine = Engine(cfg)
    assert engine.invalidate("detail:missing") == 0
    assert engine.invalidate() == 0


def test_engine_start_crawl_timeout(monkeypatch, make_config):
    async def slow(cfg):
        await asyncio.sleep(1)
        return CrawlRunSummary()

    monkeypatch.setattr(engine_module, "start_crawl", slow)
    engine = Engine(make_config("http://localhost:1"))
    with pytest.raises(asyncio.TimeoutError):
        engine.start_crawl(timeout=0.1)


def test_engine_start_crawl_returns_summary(monkeypatch, make_config):
    async def quick(cfg):
        return CrawlRunSummary(items=4).finish()

    monkeypatch.setattr(engine_module, "start_crawl", quick)
    assert Engine(make_config("http://localhost:1")).start_crawl().items == 4


def test_engine_lookup_and_search_delegate(monkeypatch, make_config):
    calls = []

    async def fake_lookup(cfg, key, ttl=None):
        calls.append((key, ttl))
        return DetailRecord(title="One Piece")

    async def fake_search(cfg, query):
        calls.append((query, None))
        return [CatalogRecord.from_url("https://example.com/anime/one-piece/", "One Piece")]

    monkeypatch.setattr(engine_module, "lookup", fake_lookup)
    monkeypatch.setattr(engine_module, "search", fake_search)
    engine = Engine(make_config("http://localhost:1"))

    assert engine.lookup("detail:one-piece", ttl=5).title == "One Piece"
    assert engine.search("one piece")[0].slug == "one-piece"
    assert calls == [("detail:one-piece", 5), ("one piece", None)]


@pytest.mark.asyncio()
async def test_search_and_catalog_list_against_site(unused_tcp_port, make_config, tmp_path):
    app = web.Application()
    seen = []

    async def handle_home(request):
        seen.append(request.query.get("s"))
        return web.Response(text=catalog_html(["naruto"]), content_type="text/html")

    async def handle_catalog(request):
        seen.append(request.query.get("status"))
        return web.Response(text=catalog_html(["bleach"]), content_type="text/html")

    app.router.add_get("/", handle_home)
    app.router.add_get("/anime/", handle_catalog)

    async for base in _serve_app(app, unused_tcp_port):
        cfg = make_config(base, storage={"database": str(tmp_path / "catalog.db")})
        found = await search(cfg, "naruto")
        listed = await catalog_list(cfg, 1, status="Completed")

    assert [r.slug for r in found] == ["naruto"]
    assert [r.slug for r in listed] == ["bleach"]
    assert seen == ["naruto", "Completed"]


def test_engine_load_config(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("base_url: https://example.com\nmax_pages: 2\n", encoding="utf-8")
    assert Engine.load_config(str(path)).max_pages == 2


def test_render_json(tmp_path):
    summary = CrawlRunSummary(pages_processed=1, errors=["Failed to fetch page 2: boom"]).finish()
    out = render_json(summary, tmp_path / "nested" / "summary.json")
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["pages_processed"] == 1
    assert data["errors"] == ["Failed to fetch page 2: boom"]
    assert data["started_at"] <= data["finished_at"]

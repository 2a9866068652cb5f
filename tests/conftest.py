# File: tests/conftest.py
from __future__ import annotations

import base64
import random
from collections.abc import AsyncIterator
from typing import List

import pytest
import pytest_asyncio
from aiohttp import web

from catalog_scout.config import FetchConfig, ScoutConfig
from catalog_scout.storage import CatalogStore, Database, FreshnessCache


async def _serve_app(app: web.Application, port: int) -> AsyncIterator[str]:
    """Start *app* on *port*, yield base URL, ensure cleanup."""
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "localhost", port)
    await site.start()
    try:
        yield f"http://localhost:{port}"
    finally:
        await runner.cleanup()


class SleepRecorder:
    """Stand-in for asyncio.sleep: records requested delays, returns at once."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


class FakeClock:
    """Manually advanced wall clock for freshness tests."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def fast_fetch_config() -> FetchConfig:
    """
    FetchConfig without pauses: every delay is routed through SleepRecorder anyway.
    """
    return FetchConfig(
        min_delay=0.0,
        max_delay=0.0,
        max_retries=3,
        backoff_base=0.0,
        backoff_jitter=0.0,
        timeout=5.0,
        connect_timeout=2.0,
    )


@pytest.fixture()
def make_config(fast_fetch_config):
    """Factory: ScoutConfig pointed at a test server."""

    def _make(base_url: str, **overrides) -> ScoutConfig:
        data = {
            "base_url": base_url,
            "max_pages": 10,
            "catalog_path": "/anime/?page={page}",
            "fetch": fast_fetch_config,
        }
        data.update(overrides)
        return ScoutConfig(**data)

    return _make


@pytest.fixture()
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture()
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def database() -> AsyncIterator[Database]:
    async with Database(":memory:") as db:
        yield db


@pytest_asyncio.fixture
async def store(database: Database) -> CatalogStore:
    return CatalogStore(database)


@pytest_asyncio.fixture
async def cache(database: Database, clock: FakeClock) -> FreshnessCache:
    return FreshnessCache(database, clock=clock)


# --------------------------------------------------------------------------- #
#                        HTML builders for the fake site                      #
# --------------------------------------------------------------------------- #


def catalog_html(slugs) -> str:
    """Listing page with one ``article.bs`` card per slug."""
    cards = "".join(
        f"""
        <article class="bs">
          <div class="bsx">
            <a href="/anime/{slug}/" itemprop="url" title="{slug}">
              <div class="limit">
                <div class="typez TV">TV</div>
                <div class="status">Ongoing</div>
                <span class="epx">Ep 12</span>
                <img class="ts-post-image" src="https://img.example/{slug}.jpg"/>
              </div>
              <div class="tt"><h2 itemprop="headline">{slug.replace('-', ' ').title()}</h2></div>
            </a>
          </div>
        </article>"""
        for slug in slugs
    )
    return f'<html><body><div class="listupd">{cards}</div></body></html>'


def detail_html(title: str, child_slugs=()) -> str:
    """Item page; an empty *title* renders a page without an entry title."""
    heading = f'<h1 class="entry-title">{title}</h1>' if title else ""
    items = "".join(
        f"""
        <li><a href="/{slug}/">
          <div class="epl-num">{n}</div>
          <div class="epl-title">{title} Episode {n}</div>
          <div class="epl-date">January {n}, 2024</div>
        </a></li>"""
        for n, slug in enumerate(child_slugs, start=1)
    )
    return f"""
    <html><body>
      <div class="thumb"><img src="https://img.example/poster.jpg"/></div>
      {heading}
      <span class="alter">Alt Title</span>
      <meta itemprop="ratingValue" content="8.7"/>
      <a class="trailerbutton" href="https://youtube.example/watch?v=1">Trailer</a>
      <div class="spe">
        <span><b>Status:</b> Ongoing</span>
        <span><b>Studio:</b> Toei Animation</span>
        <span><b>Released:</b> 1999</span>
        <span><b>Duration:</b> 24 min.</span>
        <span><b>Season:</b> Fall 1999</span>
        <span><b>Type:</b> TV</span>
        <span><b>Episodes:</b> {len(child_slugs)}</span>
        <span><b>Director:</b> Konosuke Uda</span>
      </div>
      <a class="casts" href="#">Mayumi Tanaka</a>
      <div class="genxed"><a href="#">Action</a><a href="#">Adventure</a><a href="#">Action</a></div>
      <div class="desc">A boy sets out to sea.</div>
      <div class="eplister"><ul>{items}</ul></div>
    </body></html>"""


def mirror_value(src: str) -> str:
    snippet = f'<iframe src="{src}" frameborder="0" allowfullscreen></iframe>'
    return base64.b64encode(snippet.encode("utf-8")).decode("ascii")


def child_html(title: str, mirrors=()) -> str:
    """Child page; *mirrors* is a sequence of (label, src) pairs."""
    heading = f'<h1 class="entry-title">{title}</h1>' if title else ""
    options = "".join(
        f'<option value="{mirror_value(src)}">{label}</option>' for label, src in mirrors
    )
    return f"""
    <html><body>
      {heading}
      <div id="embed_holder"><video><source src="https://cdn.example/default.mp4"/></video></div>
      <select class="mirror"><option value="">Select Video Server</option>{options}</select>
    </body></html>"""


def home_html(updates=(), completed=()) -> str:
    """Home page: one ``article.seventh`` per (child_slug, item_slug) pair,
    one ``article.stylesix`` per completed item slug."""
    seventh = "".join(
        f"""
        <article class="seventh">
          <a href="/{child}/" itemprop="url">
            <img class="ts-post-image" src="https://img.example/{child}.jpg"/>
            <div class="epin">{n}</div>
            <span class="type">TV</span>
          </a>
          <h2 itemprop="headline"><a href="/{child}/">{item.title()} Episode {n}</a></h2>
          <div class="sosev">
            <span><a href="/anime/{item}/">{item.title()}</a></span>
            <span>2 hours ago</span>
            <span class="status">Ongoing</span>
          </div>
        </article>"""
        for n, (child, item) in enumerate(updates, start=1)
    )
    sixth = "".join(
        f"""
        <article class="stylesix">
          <a href="/anime/{slug}/" itemprop="url"><img class="ts-post-image" src="https://img.example/{slug}.jpg"/></a>
          <h2 itemprop="headline"><a href="/anime/{slug}/">{slug.title()}</a></h2>
          <div class="typez">TV</div>
          <span class="epx">12 Eps</span>
          <span class="scr">8.50</span>
          <a rel="tag" href="#">Action</a><a rel="tag" href="#">Drama</a>
          <ul>
            <li><b>Status:</b> Completed</li>
            <li><b>Posted by:</b> admin</li>
            <li><b>Posted on:</b> 12:30 January 1, 2024</li>
            <li>Series: <a href="/anime/{slug}/">{slug.title()}</a></li>
          </ul>
        </article>"""
        for slug in completed
    )
    return f"<html><body><div class='latest'>{seventh}</div><div class='done'>{sixth}</div></body></html>"

# File: tests/test_fetcher.py
"""Fetch client: pacing, identity headers, retry policy against a local aiohttp app."""
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Dict, List

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web

from catalog_scout.config import FetchConfig
from catalog_scout.crawler.fetcher import Fetcher, backoff_delay
from catalog_scout.crawler.identity import IDENTITY_POOL
from catalog_scout.errors import HttpStatusError, NetworkError, RateLimitedError
from conftest import _serve_app


def scripted_app(statuses: List[int], hits: Dict[str, int], seen_headers: List[Dict[str, str]]):
    """App whose /page answers with *statuses* in order, then keeps the last one."""
    app = web.Application()

    async def handle_page(request: web.Request):
        n = hits["n"]
        hits["n"] += 1
        seen_headers.append({k.lower(): v for k, v in request.headers.items()})
        status = statuses[min(n, len(statuses) - 1)]
        if status == 200:
            return web.Response(text="<h1>ok</h1>", content_type="text/html")
        return web.Response(status=status, text="nope")

    async def handle_slow(_):
        hits["n"] += 1
        await asyncio.sleep(1.0)
        return web.Response(text="late")

    app.router.add_get("/page", handle_page)
    app.router.add_get("/slow", handle_slow)
    return app


@pytest.fixture()
def hits() -> Dict[str, int]:
    return {"n": 0}


@pytest.fixture()
def seen_headers() -> List[Dict[str, str]]:
    return []


@pytest_asyncio.fixture
async def session() -> AsyncIterator[aiohttp.ClientSession]:
    async with aiohttp.ClientSession() as s:
        yield s


def make_fetcher(session, sleep_recorder, rng, **overrides) -> Fetcher:
    fields = dict(min_delay=0.0, max_delay=0.0, backoff_base=1.0, backoff_jitter=0.0, timeout=5.0)
    fields.update(overrides)
    return Fetcher(session, FetchConfig(**fields), sleep=sleep_recorder, rng=rng)


# --------------------------------------------------------------------------- #
#                                 Retry policy                                #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_retry_recovers_after_server_errors(
    unused_tcp_port, session, sleep_recorder, rng, hits, seen_headers
):
    app = scripted_app([503, 503, 200], hits, seen_headers)
    async for base in _serve_app(app, unused_tcp_port):
        fetcher = make_fetcher(session, sleep_recorder, rng, max_retries=3)
        result = await fetcher.fetch(f"{base}/page")

    assert result.status == 200
    assert "ok" in result.body
    assert hits["n"] == 3
    # first request has no pacing delay; two backoff sleeps: 1*2**1, 1*2**2
    assert sleep_recorder.calls == [2.0, 4.0]


@pytest.mark.asyncio()
async def test_retry_exhaustion_raises_last_error(
    unused_tcp_port, session, sleep_recorder, rng, hits, seen_headers
):
    app = scripted_app([500], hits, seen_headers)
    async for base in _serve_app(app, unused_tcp_port):
        fetcher = make_fetcher(session, sleep_recorder, rng, max_retries=2)
        with pytest.raises(HttpStatusError) as info:
            await fetcher.fetch(f"{base}/page")

    assert info.value.status == 500
    assert hits["n"] == 2


@pytest.mark.asyncio()
async def test_rate_limit_is_retried(unused_tcp_port, session, sleep_recorder, rng, hits, seen_headers):
    app = scripted_app([429, 429, 200], hits, seen_headers)
    async for base in _serve_app(app, unused_tcp_port):
        fetcher = make_fetcher(session, sleep_recorder, rng, max_retries=3)
        result = await fetcher.fetch(f"{base}/page")

    assert result.status == 200
    assert hits["n"] == 3


@pytest.mark.asyncio()
async def test_rate_limit_exhaustion(unused_tcp_port, session, sleep_recorder, rng, hits, seen_headers):
    app = scripted_app([429], hits, seen_headers)
    async for base in _serve_app(app, unused_tcp_port):
        fetcher = make_fetcher(session, sleep_recorder, rng, max_retries=2)
        with pytest.raises(RateLimitedError):
            await fetcher.fetch(f"{base}/page")

    assert hits["n"] == 2


@pytest.mark.asyncio()
@pytest.mark.parametrize("status", [400, 403, 404])
async def test_client_errors_are_not_retried(
    unused_tcp_port, session, sleep_recorder, rng, hits, seen_headers, status
):
    app = scripted_app([status, 200], hits, seen_headers)
    async for base in _serve_app(app, unused_tcp_port):
        fetcher = make_fetcher(session, sleep_recorder, rng, max_retries=3)
        with pytest.raises(HttpStatusError) as info:
            await fetcher.fetch(f"{base}/page")

    assert info.value.status == status
    assert not info.value.retryable
    assert hits["n"] == 1
    assert sleep_recorder.calls == []


@pytest.mark.asyncio()
async def test_connection_refused_is_not_retried(unused_tcp_port, sleep_recorder, rng):
    attempts = {"n": 0}

    async def on_request_start(_session, _ctx, _params):
        attempts["n"] += 1

    trace = aiohttp.TraceConfig()
    trace.on_request_start.append(on_request_start)

    async with aiohttp.ClientSession(trace_configs=[trace]) as session:
        fetcher = make_fetcher(session, sleep_recorder, rng, max_retries=3)
        # nothing listens on the port
        with pytest.raises(NetworkError):
            await fetcher.fetch(f"http://localhost:{unused_tcp_port}/page")

    assert attempts["n"] == 1
    assert sleep_recorder.calls == []


@pytest.mark.asyncio()
async def test_timeout_is_network_error(unused_tcp_port, session, sleep_recorder, rng, hits, seen_headers):
    app = scripted_app([200], hits, seen_headers)
    async for base in _serve_app(app, unused_tcp_port):
        fetcher = make_fetcher(session, sleep_recorder, rng, max_retries=3, timeout=0.2, connect_timeout=0.2)
        with pytest.raises(NetworkError) as info:
            await fetcher.fetch(f"{base}/slow")

    assert "timeout" in info.value.reason
    assert hits["n"] == 1


# --------------------------------------------------------------------------- #
#                            Pacing and identities                            #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_pacing_skips_first_request_only(
    unused_tcp_port, session, sleep_recorder, rng, hits, seen_headers
):
    app = scripted_app([200], hits, seen_headers)
    async for base in _serve_app(app, unused_tcp_port):
        fetcher = make_fetcher(session, sleep_recorder, rng, min_delay=1.0, max_delay=3.0)
        for _ in range(3):
            await fetcher.fetch(f"{base}/page")

        assert fetcher.request_count == 3
        assert len(sleep_recorder.calls) == 2
        assert all(1.0 <= d <= 3.0 for d in sleep_recorder.calls)

        fetcher.reset_counter()
        await fetcher.fetch(f"{base}/page")
        assert len(sleep_recorder.calls) == 2

        await fetcher.fetch_no_delay(f"{base}/page")
        assert len(sleep_recorder.calls) == 2
        assert fetcher.request_count == 1


@pytest.mark.asyncio()
async def test_fetch_no_delay_is_single_attempt(
    unused_tcp_port, session, sleep_recorder, rng, hits, seen_headers
):
    app = scripted_app([503, 200], hits, seen_headers)
    async for base in _serve_app(app, unused_tcp_port):
        fetcher = make_fetcher(session, sleep_recorder, rng, max_retries=3)
        with pytest.raises(HttpStatusError):
            await fetcher.fetch_no_delay(f"{base}/page")

    assert hits["n"] == 1


@pytest.mark.asyncio()
async def test_fixed_identity_without_rotation(
    unused_tcp_port, session, sleep_recorder, rng, hits, seen_headers
):
    app = scripted_app([200], hits, seen_headers)
    async for base in _serve_app(app, unused_tcp_port):
        fetcher = make_fetcher(session, sleep_recorder, rng, rotate_user_agent=False)
        for _ in range(3):
            await fetcher.fetch(f"{base}/page")

    assert {h["user-agent"] for h in seen_headers} == {IDENTITY_POOL[0].user_agent}
    assert all("sec-ch-ua" in h for h in seen_headers)


@pytest.mark.asyncio()
async def test_rotated_identities_send_matching_client_hints(
    unused_tcp_port, session, sleep_recorder, rng, hits, seen_headers
):
    app = scripted_app([200], hits, seen_headers)
    async for base in _serve_app(app, unused_tcp_port):
        fetcher = make_fetcher(session, sleep_recorder, rng, rotate_user_agent=True)
        for _ in range(30):
            await fetcher.fetch(f"{base}/page")

    agents = {h["user-agent"] for h in seen_headers}
    assert len(agents) > 1
    for headers in seen_headers:
        ua = headers["user-agent"]
        chromium = "Chrome/" in ua
        assert ("sec-ch-ua" in headers) == chromium
        assert headers["accept-language"].startswith("en-US")


def test_identity_pool_hints_by_family():
    for identity in IDENTITY_POOL:
        hints = dict(identity.client_hints)
        if identity.family in ("chrome", "edge"):
            assert set(hints) == {"Sec-Ch-Ua", "Sec-Ch-Ua-Mobile", "Sec-Ch-Ua-Platform"}
        else:
            assert hints == {}


@pytest.mark.parametrize(
    "attempt,base,jitter,expected",
    [
        (0, 1.0, 0.0, 1.0),
        (1, 1.0, 0.0, 2.0),
        (2, 1.0, 0.5, 4.5),
        (3, 0.5, 0.0, 4.0),
    ],
)
def test_backoff_delay(attempt, base, jitter, expected):
    assert backoff_delay(attempt, base, jitter) == expected

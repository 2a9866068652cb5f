# catalog_scout/crawler/fetcher.py
"""
Fetcher module: single HTTP GETs with human-like pacing, rotated browser
identities and exponential backoff for transient failures.
"""
from __future__ import annotations

import asyncio
import random
from typing import Awaitable, Callable, Optional

from aiohttp import ClientConnectionError, ClientError, ClientSession, ClientTimeout

from catalog_scout.config import FetchConfig
from catalog_scout.crawler.identity import pick_identity
from catalog_scout.crawler.models import FetchResult
from catalog_scout.errors import FetchError, HttpStatusError, NetworkError, RateLimitedError
from catalog_scout.logger import logger

SleepFunc = Callable[[float], Awaitable[None]]

__all__ = ["Fetcher", "backoff_delay"]


def backoff_delay(attempt: int, base: float, jitter: float = 0.0) -> float:
    """Delay before retry number *attempt*: ``base * 2**attempt + jitter``."""
    return base * (2 ** attempt) + jitter


class Fetcher:
    """Fetches pages one at a time; shared by every call site of a crawl session.

    Only ``RateLimitedError`` and ``HttpStatusError`` with status 429 or 5xx
    are retried, for at most ``config.max_retries`` attempts in total.
    Transport errors and other statuses are raised immediately.
    """

    def __init__(
        self,
        session: ClientSession,
        config: FetchConfig,
        *,
        sleep: SleepFunc = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.session = session
        self.config = config
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._timeout = ClientTimeout(total=config.timeout, connect=config.connect_timeout)
        self._request_count = 0

    @property
    def request_count(self) -> int:
        return self._request_count

    def reset_counter(self) -> None:
        """Start a fresh session: the next request goes out without a pause."""
        self._request_count = 0

    async def fetch(self, url: str) -> FetchResult:
        """Fetch *url* with pacing and retries. Raises :class:`FetchError`."""
        count = self._request_count
        self._request_count += 1
        if count > 0:
            await self._sleep(self._rng.uniform(self.config.min_delay, self.config.max_delay))

        last_error: Optional[FetchError] = None
        for attempt in range(self.config.max_retries):
            if attempt > 0:
                jitter = self._rng.uniform(0, self.config.backoff_jitter)
                delay = backoff_delay(attempt, self.config.backoff_base, jitter)
                logger.debug("Retry %d/%d for %s after %.2f s", attempt + 1, self.config.max_retries, url, delay)
                await self._sleep(delay)
            try:
                return await self._do_fetch(url)
            except FetchError as exc:
                if not exc.retryable:
                    raise
                logger.warning("%s on attempt %d for %s", exc, attempt + 1, url)
                last_error = exc

        raise last_error or NetworkError("max retries exceeded")

    async def fetch_no_delay(self, url: str) -> FetchResult:
        """Single attempt without pacing, for callers that manage their own."""
        return await self._do_fetch(url)

    async def _do_fetch(self, url: str) -> FetchResult:
        identity = pick_identity(self.config.rotate_user_agent, self._rng)
        logger.debug("GET %s as %s", url, identity.family)
        try:
            async with self.session.get(
                url, headers=identity.headers(), timeout=self._timeout, raise_for_status=False
            ) as resp:
                status = resp.status
                if status == 429:
                    raise RateLimitedError()
                if not 200 <= status < 300:
                    raise HttpStatusError(status)
                body = await resp.text(errors="replace")
        except asyncio.TimeoutError as exc:
            raise NetworkError("connection timeout") from exc
        except ClientConnectionError as exc:
            raise NetworkError(str(exc) or type(exc).__name__) from exc
        except ClientError as exc:
            raise NetworkError(f"failed to read response: {exc}") from exc
        return FetchResult(url=url, body=body, status=status)

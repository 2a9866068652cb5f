# catalog_scout/crawler/identity.py
"""
Browser identity profiles used by the fetcher.

A profile bundles a User-Agent with the client-hint headers that browser
family actually sends. Chromium browsers (Chrome, Edge) send ``Sec-Ch-Ua*``;
Firefox and Safari send none, so their profiles carry an empty hint set.
"""
from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

__all__ = ("BrowserIdentity", "IDENTITY_POOL", "pick_identity", "NAVIGATION_HEADERS")

NAVIGATION_HEADERS: Dict[str, str] = {
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,image/apng,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.9,id;q=0.8",
    "Accept-Encoding": "gzip, deflate",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Upgrade-Insecure-Requests": "1",
}


@dataclass(frozen=True, slots=True)
class BrowserIdentity:
    family: str
    user_agent: str
    client_hints: Tuple[Tuple[str, str], ...] = ()

    def headers(self) -> Dict[str, str]:
        """Full request header set for this identity."""
        headers = dict(NAVIGATION_HEADERS)
        headers["User-Agent"] = self.user_agent
        headers.update(self.client_hints)
        return headers


def _chromium_hints(brand: str, version: str, platform: str) -> Tuple[Tuple[str, str], ...]:
    return (
        ("Sec-Ch-Ua", f'"Not_A Brand";v="8", "Chromium";v="{version}", "{brand}";v="{version}"'),
        ("Sec-Ch-Ua-Mobile", "?0"),
        ("Sec-Ch-Ua-Platform", f'"{platform}"'),
    )


IDENTITY_POOL: Sequence[BrowserIdentity] = (
    BrowserIdentity(
        family="chrome",
        user_agent=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        client_hints=_chromium_hints("Google Chrome", "120", "Windows"),
    ),
    BrowserIdentity(
        family="chrome",
        user_agent=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36"
        ),
        client_hints=_chromium_hints("Google Chrome", "119", "Windows"),
    ),
    BrowserIdentity(
        family="chrome",
        user_agent=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        client_hints=_chromium_hints("Google Chrome", "120", "macOS"),
    ),
    BrowserIdentity(
        family="edge",
        user_agent=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36 Edg/120.0.0.0"
        ),
        client_hints=_chromium_hints("Microsoft Edge", "120", "Windows"),
    ),
    BrowserIdentity(
        family="firefox",
        user_agent="Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
    ),
    BrowserIdentity(
        family="firefox",
        user_agent="Mozilla/5.0 (Macintosh; Intel Mac OS X 10.15; rv:121.0) Gecko/20100101 Firefox/121.0",
    ),
    BrowserIdentity(
        family="safari",
        user_agent=(
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 "
            "(KHTML, like Gecko) Version/17.2 Safari/605.1.15"
        ),
    ),
)


def pick_identity(rotate: bool, rng: Optional[random.Random] = None) -> BrowserIdentity:
    """Random profile when *rotate* is set, otherwise always the first one."""
    if not rotate:
        return IDENTITY_POOL[0]
    return (rng or random).choice(IDENTITY_POOL)

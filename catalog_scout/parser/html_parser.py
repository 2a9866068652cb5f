# === FILE: catalog_scout/parser/html_parser.py ===
"""HTML extraction rules for the catalog site.

The crawler treats parsing as a pure function that never fails: every
missing element becomes ``""`` or ``[]``. A detail page with an empty
title is how "not found" is signalled to the caller, so nothing here
raises on malformed markup.

Page kinds understood:

* catalog listing, search results and filtered listings: ``article.bs``
  cards (inside ``div.listupd`` when present);
* home page: ``article.seventh`` (latest updates) and ``article.stylesix``
  (recently completed) cards;
* detail page: ``h1.entry-title``, the ``div.spe`` info block, genres,
  casts, synopsis and the ordered child list in ``div.eplister``;
* child page: ``h1.entry-title``, the default player and the mirror
  ``<select>`` whose option values are base64-encoded embed snippets.
"""
from __future__ import annotations

import base64
import binascii
import re
from collections.abc import Sequence
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup
from bs4.element import Tag

from catalog_scout.models import (
    CatalogRecord,
    ChildItem,
    ChildPage,
    CompletedRecord,
    DetailRecord,
    LeafRecord,
    UpdateRecord,
)
from catalog_scout.utils import absolute_url, extract_slug_from_url, is_valid_url, remove_duplicates

__all__: Sequence[str] = (
    "HtmlCatalogParser",
    "parse_catalog_page",
    "parse_detail",
    "parse_child_page",
    "parse_search_results",
    "parse_updates",
    "parse_completed",
)

_QUALITY_RE = re.compile(r"\b(2160|1440|1080|720|480|360|240)p\b", re.IGNORECASE)

# Labels inside div.spe, matched against the lower-cased text before the colon.
_INFO_FIELDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("status", ("status",)),
    ("studio", ("studio",)),
    ("release_date", ("tanggal rilis", "released", "release")),
    ("duration", ("durasi", "duration")),
    ("season", ("season",)),
    ("category", ("tipe", "type")),
    ("total_children", ("total episode", "episodes")),
    ("director", ("sutradara", "director")),
)


def _soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _text(node: Optional[Tag]) -> str:
    return node.get_text(" ", strip=True) if node is not None else ""


def _attr(node: Optional[Tag], *names: str) -> str:
    if node is None:
        return ""
    for name in names:
        value = node.get(name)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


# ---------------------------------------------------------------------------
# Catalog listing
# ---------------------------------------------------------------------------


def parse_catalog_page(html: str, base_url: str = "") -> List[CatalogRecord]:
    """Summary records of one listing page, in page order. Empty list = end of catalog.

    Search result pages and filtered listings use the same ``article.bs`` cards.
    """
    soup = _soup(html)
    container = soup.select_one("div.listupd") or soup
    records: List[CatalogRecord] = []
    for article in container.select("article.bs"):
        link = article.select_one('a[itemprop="url"]') or article.find("a", href=True)
        record = CatalogRecord.from_url(
            absolute_url(base_url, _attr(link, "href")),
            _text(article.select_one('h2[itemprop="headline"]')) or _attr(link, "title"),
            thumbnail=_attr(article.select_one("img.ts-post-image"), "src", "data-src"),
            status=_text(article.select_one("div.status")),
            category=_text(article.select_one("div.typez")),
            secondary_status=_text(article.select_one("span.epx")),
        )
        if record.slug:
            records.append(record)
    return records


parse_search_results = parse_catalog_page


# ---------------------------------------------------------------------------
# Home page lists
# ---------------------------------------------------------------------------


def parse_updates(html: str, base_url: str = "") -> List[UpdateRecord]:
    """``article.seventh`` cards: newest child releases, newest first."""
    updates: List[UpdateRecord] = []
    for article in _soup(html).select("article.seventh"):
        url = absolute_url(base_url, _attr(article.select_one('a[itemprop="url"]'), "href"))
        if not url:
            continue
        series = article.select_one("div.sosev span a")
        series_url = absolute_url(base_url, _attr(series, "href"))
        # the release date sits in the span without a link
        release_info = next(
            (t for t in (_text(s) for s in article.select("div.sosev span") if s.find("a") is None) if t),
            "",
        )
        updates.append(
            UpdateRecord(
                title=_text(article.select_one('h2[itemprop="headline"] a')),
                url=url,
                slug=extract_slug_from_url(series_url),
                thumbnail=_attr(article.select_one("img.ts-post-image"), "src", "data-src"),
                number=_text(article.select_one("div.epin")),
                category=_text(article.select_one("span.type")),
                series_title=_text(series),
                series_url=series_url,
                status=_text(article.select_one("span.status")),
                release_info=release_info,
            )
        )
    return updates


_COMPLETED_FIELDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("status", ("status",)),
    ("posted_by", ("dipos oleh", "posted by")),
    ("posted_at", ("dipos pada", "posted at", "posted on")),
)


def parse_completed(html: str, base_url: str = "") -> List[CompletedRecord]:
    """``article.stylesix`` cards: recently completed items."""
    completed: List[CompletedRecord] = []
    for article in _soup(html).select("article.stylesix"):
        url = absolute_url(base_url, _attr(article.select_one('a[itemprop="url"]'), "href"))
        if not url:
            continue
        info: dict[str, str] = {}
        series_title = series_url = ""
        for li in article.select("li"):
            label, sep, value = _text(li).partition(":")
            label = label.strip().lower()
            for field_name, keys in _COMPLETED_FIELDS:
                if sep and field_name not in info and label in keys:
                    info[field_name] = value.strip()
            link = li.find("a", href=True)
            href = _attr(link, "href")
            if not series_url and "/anime/" in href:
                series_title, series_url = _text(link), absolute_url(base_url, href)
        completed.append(
            CompletedRecord(
                title=_text(article.select_one('h2[itemprop="headline"] a')),
                url=url,
                slug=extract_slug_from_url(url),
                thumbnail=_attr(article.select_one("img.ts-post-image"), "src", "data-src"),
                category=_text(article.select_one("div.typez")),
                child_count=_text(article.select_one("span.epx")),
                rating=_text(article.select_one("span.scr")),
                genres=remove_duplicates([t for t in (_text(a) for a in article.select('a[rel="tag"]')) if t]),
                series_title=series_title,
                series_url=series_url,
                **info,
            )
        )
    return completed


# ---------------------------------------------------------------------------
# Detail page
# ---------------------------------------------------------------------------


def _info_block(soup: BeautifulSoup) -> dict[str, str]:
    info: dict[str, str] = {}
    for span in soup.select("div.spe span"):
        label, sep, value = _text(span).partition(":")
        if not sep:
            continue
        label = label.strip().lower()
        for field_name, keys in _INFO_FIELDS:
            if field_name not in info and any(k in label for k in keys):
                info[field_name] = value.strip()
                break
    return info


def _children(soup: BeautifulSoup, base_url: str) -> List[ChildItem]:
    children: List[ChildItem] = []
    for li in soup.select("div.eplister ul li"):
        url = absolute_url(base_url, _attr(li.find("a", href=True), "href"))
        if not url:
            continue
        children.append(
            ChildItem(
                slug=extract_slug_from_url(url),
                number=_text(li.select_one("div.epl-num")),
                title=_text(li.select_one("div.epl-title")),
                url=url,
                release_date=_text(li.select_one("div.epl-date")),
            )
        )
    return children


def parse_detail(html: str, base_url: str = "") -> DetailRecord:
    """Full detail record; ``title == ""`` when the page is not an item page."""
    soup = _soup(html)
    info = _info_block(soup)
    return DetailRecord(
        title=_text(soup.select_one("h1.entry-title")),
        alternate_titles=_text(soup.select_one("span.alter")),
        poster=_attr(soup.select_one("div.thumb img"), "src", "data-src"),
        rating=_attr(soup.select_one('meta[itemprop="ratingValue"]'), "content"),
        trailer_url=_attr(soup.select_one("a.trailerbutton"), "href"),
        casts=remove_duplicates([t for t in (_text(a) for a in soup.select("a.casts")) if t]),
        genres=remove_duplicates([t for t in (_text(a) for a in soup.select("div.genxed a")) if t]),
        synopsis=_text(soup.select_one("div.desc")),
        children=_children(soup, base_url),
        **info,
    )


# ---------------------------------------------------------------------------
# Child page
# ---------------------------------------------------------------------------


def _split_server_quality(label: str) -> Tuple[str, str]:
    """``"SOKUJA - 720p"`` / ``"SOKUJA 720p"`` / ``"SOKUJA"`` -> (server, quality)."""
    label = label.strip()
    server, sep, quality = label.partition(" - ")
    if sep:
        return server.strip(), quality.strip()
    match = _QUALITY_RE.search(label)
    if match:
        server = label[: match.start()].strip()
        return (server or label), label[match.start():].strip()
    return label, ""


def _decode_mirror(value: str) -> str:
    """Video URL embedded in a base64 ``<option value>``; ``""`` if undecodable."""
    try:
        fragment = base64.b64decode(value, validate=False).decode("utf-8", errors="replace")
    except (binascii.Error, ValueError):
        return ""
    embed = _soup(fragment)
    for tag in embed.find_all(["iframe", "source", "video"]):
        src = _attr(tag, "src", "data-src")
        if src:
            return src
    return ""


def parse_child_page(html: str) -> ChildPage:
    soup = _soup(html)
    sources: List[LeafRecord] = []
    for option in soup.select("select.mirror option"):
        value = _attr(option, "value")
        if not value:
            continue
        url = _decode_mirror(value)
        if url.startswith("//"):
            url = "https:" + url
        if not is_valid_url(url):
            continue
        server, quality = _split_server_quality(_text(option))
        sources.append(LeafRecord(server=server, quality=quality, url=url))
    return ChildPage(
        title=_text(soup.select_one("h1.entry-title")),
        default_source=_attr(soup.select_one("div#embed_holder video source"), "src"),
        sources=sources,
    )


class HtmlCatalogParser:
    """Default parser collaborator handed to the crawler."""

    def parse_catalog_page(self, html: str, base_url: str = "") -> List[CatalogRecord]:
        return parse_catalog_page(html, base_url)

    def parse_detail(self, html: str, base_url: str = "") -> DetailRecord:
        return parse_detail(html, base_url)

    def parse_child_page(self, html: str) -> ChildPage:
        return parse_child_page(html)

    def parse_updates(self, html: str, base_url: str = "") -> List[UpdateRecord]:
        return parse_updates(html, base_url)

    def parse_completed(self, html: str, base_url: str = "") -> List[CompletedRecord]:
        return parse_completed(html, base_url)

# === FILE: catalog_scout/crawler/crawler.py ===
"""
Crawl orchestrator: catalog page → item detail → child sub-resource.

Two entry points share the fetcher, the store and the freshness cache:

* :meth:`CatalogCrawler.run_once` walks the whole catalog sequentially and
  folds every unit of work into a :class:`CrawlRunSummary`. A failed page,
  item or child is recorded and skipped; only an empty catalog page or the
  ``max_pages`` bound ends the run.
* :meth:`CatalogCrawler.fetch_or_refresh` serves one cache key (a detail,
  a child's mirrors or one of the home page lists), from the store while
  the cache entry is fresh, otherwise live from the site.

:meth:`CatalogCrawler.search` and :meth:`CatalogCrawler.catalog_list` always
go to the site and store nothing.

There is no lock around the stale-check-then-fetch sequence: two callers
asking for the same stale key may both fetch it, the last upsert wins.
"""
from __future__ import annotations

from typing import AsyncIterator, Awaitable, List, Optional, Protocol, Union

from catalog_scout import endpoints
from catalog_scout.aggregator import CrawlRunSummary, StepResult
from catalog_scout.config import ScoutConfig
from catalog_scout.crawler.fetcher import Fetcher
from catalog_scout.errors import FetchError, NotFoundError, StoreError
from catalog_scout.logger import logger
from catalog_scout.models import (
    CatalogRecord,
    ChildItem,
    ChildPage,
    CompletedRecord,
    DetailRecord,
    LeafRecord,
    UpdateRecord,
)
from catalog_scout.parser.html_parser import HtmlCatalogParser
from catalog_scout.storage.cache import (
    COMPLETED_KEY,
    DEFAULT_CACHE_TTL,
    UPDATES_KEY,
    FreshnessCache,
    child_key,
    detail_key,
)
from catalog_scout.storage.repository import CatalogStore

__all__ = ("CatalogCrawler", "CatalogParser")


class CatalogParser(Protocol):
    """Pure extraction functions; implementations must never raise."""

    def parse_catalog_page(self, html: str, base_url: str = "") -> List[CatalogRecord]: ...

    def parse_detail(self, html: str, base_url: str = "") -> DetailRecord: ...

    def parse_child_page(self, html: str) -> ChildPage: ...

    def parse_updates(self, html: str, base_url: str = "") -> List[UpdateRecord]: ...

    def parse_completed(self, html: str, base_url: str = "") -> List[CompletedRecord]: ...


class CatalogCrawler:
    """Sequential catalog crawler with a cached single-record path."""

    def __init__(
        self,
        config: ScoutConfig,
        fetcher: Fetcher,
        store: CatalogStore,
        cache: FreshnessCache,
        parser: Optional[CatalogParser] = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.store = store
        self.cache = cache
        self.parser: CatalogParser = parser or HtmlCatalogParser()

    # ------------------------------------------------------------------ #
    # Bulk traversal                                                     #
    # ------------------------------------------------------------------ #

    async def run_once(self) -> CrawlRunSummary:
        """Crawl every catalog page once; never raises for a single-unit failure."""
        summary = CrawlRunSummary()
        self.fetcher.reset_counter()
        logger.info("Старт обхода: %s (max_pages=%d)", self.config.base_url, self.config.max_pages)

        page = 1
        while page <= self.config.max_pages:
            logger.info("Crawling page %d", page)
            try:
                result = await self.fetcher.fetch(endpoints.catalog_page_url(self.config, page))
            except FetchError as exc:
                message = f"Failed to fetch page {page}: {exc}"
                logger.error(message)
                summary.apply(StepResult.failed(message))
                page += 1
                continue

            records = self.parser.parse_catalog_page(result.body, result.url)
            summary.apply(StepResult(pages_processed=1))
            if not records:
                logger.info("No more items found on page %d, stopping", page)
                break

            summary.apply(await self._save_catalog_batch(page, records))
            for record in records:
                async for step in self._crawl_item(record):
                    summary.apply(step)
            page += 1
        else:
            logger.info("Reached page limit (%d), stopping", self.config.max_pages)

        summary.finish()
        logger.info(
            "Обход завершён: %d items, %d children, %d leaf records, %d pages, %d errors за %.2f с",
            summary.items,
            summary.children,
            summary.leaf_records,
            summary.pages_processed,
            len(summary.errors),
            summary.duration,
        )
        return summary

    async def _save_catalog_batch(self, page: int, records: List[CatalogRecord]) -> StepResult:
        try:
            saved = await self.store.upsert_catalog_batch(records)
        except StoreError as exc:
            message = f"Failed to save catalog batch on page {page}: {exc}"
            logger.error(message)
            return StepResult.failed(message)
        return StepResult(catalog_records=saved)

    async def _crawl_item(self, record: CatalogRecord) -> AsyncIterator[StepResult]:
        slug = record.slug
        try:
            result = await self.fetcher.fetch(endpoints.detail_url(self.config, slug))
        except FetchError as exc:
            message = f"Failed to fetch detail for {slug}: {exc}"
            logger.warning(message)
            yield StepResult.failed(message)
            return

        detail = self.parser.parse_detail(result.body, result.url)
        if detail.is_empty:
            logger.warning("Empty detail for slug: %s", slug)
            return

        try:
            await self.store.upsert_detail_with_children(slug, detail)
        except StoreError as exc:
            message = f"Failed to save detail for {slug}: {exc}"
            logger.warning(message)
            yield StepResult.failed(message)
        else:
            await self._mark_refreshed(detail_key(slug))
            yield StepResult(items=1, children=len(detail.children))

        for child in detail.children:
            yield await self._crawl_child(child)

    async def _crawl_child(self, child: ChildItem) -> StepResult:
        try:
            result = await self.fetcher.fetch(endpoints.child_url(self.config, child.slug))
        except FetchError as exc:
            message = f"Failed to fetch child {child.slug}: {exc}"
            logger.warning(message)
            return StepResult.failed(message)

        page = self.parser.parse_child_page(result.body)
        if not page.sources:
            return StepResult()
        try:
            saved = await self.store.replace_children_of(child.url, page.sources)
        except StoreError as exc:
            message = f"Failed to save leaf records for {child.slug}: {exc}"
            logger.warning(message)
            return StepResult.failed(message)
        await self._mark_refreshed(child_key(child.slug))
        return StepResult(leaf_records=saved)

    # ------------------------------------------------------------------ #
    # Single-key cached path                                             #
    # ------------------------------------------------------------------ #

    async def fetch_or_refresh(
        self, cache_key: str, ttl: float = DEFAULT_CACHE_TTL
    ) -> Union[DetailRecord, List[LeafRecord], List[UpdateRecord], List[CompletedRecord]]:
        """Dispatch ``detail:<slug>``, ``child:<slug>``, ``updates`` and ``completed``.

        Raises :class:`NotFoundError` for an empty page and
        :class:`FetchError` when a live fetch fails.
        """
        if cache_key == UPDATES_KEY:
            return await self.get_updates(ttl)
        if cache_key == COMPLETED_KEY:
            return await self.get_completed(ttl)
        kind, _, slug = cache_key.partition(":")
        if slug and kind == "detail":
            return await self.get_detail(slug, ttl)
        if slug and kind == "child":
            return await self.get_child_sources(slug, ttl)
        raise ValueError(f"Unsupported cache key: {cache_key!r}")

    async def get_detail(self, slug: str, ttl: float = DEFAULT_CACHE_TTL) -> DetailRecord:
        key = detail_key(slug)
        if await self._is_fresh(key, ttl):
            stored = await self._read_stored(key, self.store.get_detail(slug))
            if stored is not None and not stored.is_empty:
                logger.info("Returning cached %s", key)
                return stored
            logger.info("Cache valid but store empty for %s, fetching fresh data", key)

        result = await self.fetcher.fetch(endpoints.detail_url(self.config, slug))
        detail = self.parser.parse_detail(result.body, result.url)
        if detail.is_empty:
            raise NotFoundError(key)
        await self._persist(key, self.store.upsert_detail_with_children(slug, detail))
        return detail

    async def get_child_sources(self, slug: str, ttl: float = DEFAULT_CACHE_TTL) -> List[LeafRecord]:
        key = child_key(slug)
        url = await self._child_url(slug)
        if await self._is_fresh(key, ttl):
            stored = await self._read_stored(key, self.store.get_leaf_records(url))
            if stored:
                logger.info("Returning cached %s", key)
                return stored
            logger.info("Cache valid but store empty for %s, fetching fresh data", key)

        result = await self.fetcher.fetch(url)
        page = self.parser.parse_child_page(result.body)
        if page.is_empty:
            raise NotFoundError(key)
        if page.sources:
            await self._persist(key, self.store.replace_children_of(url, page.sources))
        return page.sources

    async def _child_url(self, slug: str) -> str:
        """Leaf records hang off the child's URL: the stored one if the child is known."""
        child = await self._read_stored(child_key(slug), self.store.get_child(slug))
        if child is not None:
            return child.url
        return endpoints.child_url(self.config, slug)

    async def get_updates(self, ttl: float = DEFAULT_CACHE_TTL) -> List[UpdateRecord]:
        """Latest releases from the home page."""
        if await self._is_fresh(UPDATES_KEY, ttl):
            stored = await self._read_stored(UPDATES_KEY, self.store.get_updates())
            if stored:
                logger.info("Returning cached %s", UPDATES_KEY)
                return stored
            logger.info("Cache valid but store empty for %s, fetching fresh data", UPDATES_KEY)

        result = await self.fetcher.fetch(endpoints.home_url(self.config))
        updates = self.parser.parse_updates(result.body, result.url)
        logger.info("Parsed %d updates", len(updates))
        # an empty parse must not wipe the previous snapshot
        if updates:
            await self._persist(UPDATES_KEY, self.store.replace_updates(updates))
        return updates

    async def get_completed(self, ttl: float = DEFAULT_CACHE_TTL) -> List[CompletedRecord]:
        """Recently completed items from the home page."""
        if await self._is_fresh(COMPLETED_KEY, ttl):
            stored = await self._read_stored(COMPLETED_KEY, self.store.get_completed())
            if stored:
                logger.info("Returning cached %s", COMPLETED_KEY)
                return stored
            logger.info("Cache valid but store empty for %s, fetching fresh data", COMPLETED_KEY)

        result = await self.fetcher.fetch(endpoints.home_url(self.config))
        completed = self.parser.parse_completed(result.body, result.url)
        logger.info("Parsed %d completed", len(completed))
        if completed:
            await self._persist(COMPLETED_KEY, self.store.replace_completed(completed))
        return completed

    # ------------------------------------------------------------------ #
    # Live lookups (never cached)                                        #
    # ------------------------------------------------------------------ #

    async def search(self, query: str) -> List[CatalogRecord]:
        keyword = query.strip()
        if not keyword:
            raise ValueError("Search query is required")
        logger.info("Searching for: %s", keyword)
        result = await self.fetcher.fetch(endpoints.search_url(self.config, keyword))
        return self.parser.parse_catalog_page(result.body, result.url)

    async def catalog_list(
        self, page: int = 1, status: str = "", category: str = "", order: str = ""
    ) -> List[CatalogRecord]:
        """One page of the filtered catalog listing; bad filter values raise ValueError."""
        url = endpoints.list_url(self.config, page, status=status, category=category, order=order)
        logger.info("Fetching catalog list: page=%d, type=%s, status=%s, order=%s", page, category, status, order)
        result = await self.fetcher.fetch(url)
        return self.parser.parse_catalog_page(result.body, result.url)

    async def _is_fresh(self, key: str, ttl: float) -> bool:
        try:
            return await self.cache.is_fresh(key, ttl)
        except StoreError as exc:
            logger.error("Failed to check cache validity for %s: %s", key, exc)
            return False

    async def _read_stored(self, key: str, read: Awaitable):
        try:
            return await read
        except StoreError as exc:
            logger.error("Failed to read cached %s: %s", key, exc)
            return None

    async def _persist(self, key: str, write: Awaitable) -> None:
        """Run *write*; mark *key* refreshed only if the write landed."""
        try:
            await write
        except StoreError as exc:
            logger.error("Failed to save %s: %s", key, exc)
            return
        await self._mark_refreshed(key)

    async def _mark_refreshed(self, key: str) -> None:
        try:
            await self.cache.mark_refreshed(key)
        except StoreError as exc:
            logger.error("Failed to update cache timestamp for %s: %s", key, exc)

# File: catalog_scout/engine.py
"""catalog_scout.engine: Orchestration layer: сборка HTTP-сессии, базы и краулера."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Union

from aiohttp import ClientSession, ClientTimeout

from catalog_scout.aggregator import CrawlRunSummary
from catalog_scout.config import ScoutConfig, load_config
from catalog_scout.crawler.crawler import CatalogCrawler
from catalog_scout.crawler.fetcher import Fetcher
from catalog_scout.logger import logger
from catalog_scout.models import CatalogRecord, CompletedRecord, DetailRecord, LeafRecord, UpdateRecord
from catalog_scout.storage import CatalogStore, Database, FreshnessCache

__all__ = ["Engine", "open_crawler", "start_crawl", "lookup", "invalidate", "search", "catalog_list"]


@asynccontextmanager
async def open_crawler(cfg: ScoutConfig) -> AsyncIterator[CatalogCrawler]:
    """Открывает базу и HTTP-сессию, отдаёт готовый CatalogCrawler и закрывает всё на выходе."""
    timeout = ClientTimeout(total=cfg.fetch.timeout, connect=cfg.fetch.connect_timeout)
    async with Database(cfg.storage.database, busy_timeout=cfg.storage.busy_timeout) as db:
        async with ClientSession(timeout=timeout, raise_for_status=False) as session:
            fetcher = Fetcher(session, cfg.fetch)
            yield CatalogCrawler(cfg, fetcher, CatalogStore(db), FreshnessCache(db))


async def start_crawl(cfg: ScoutConfig) -> CrawlRunSummary:
    """Один полный проход по каталогу."""
    async with open_crawler(cfg) as crawler:
        return await crawler.run_once()


async def lookup(
    cfg: ScoutConfig, cache_key: str, ttl: Optional[float] = None
) -> Union[DetailRecord, List[LeafRecord], List[UpdateRecord], List[CompletedRecord]]:
    """Запись по ключу кэша (``detail:<slug>``, ``child:<slug>``, ``updates``, ``completed``)."""
    async with open_crawler(cfg) as crawler:
        return await crawler.fetch_or_refresh(cache_key, cfg.cache_ttl if ttl is None else ttl)


async def invalidate(cfg: ScoutConfig, cache_key: Optional[str] = None) -> int:
    """Сбрасывает одну запись кэша (или все при cache_key=None); возвращает число удалённых."""
    async with Database(cfg.storage.database, busy_timeout=cfg.storage.busy_timeout) as db:
        cache = FreshnessCache(db)
        if cache_key is None:
            return await cache.invalidate_all()
        return int(await cache.invalidate(cache_key))


async def search(cfg: ScoutConfig, query: str) -> List[CatalogRecord]:
    """Живой поиск по сайту, без кэша."""
    async with open_crawler(cfg) as crawler:
        return await crawler.search(query)


async def catalog_list(
    cfg: ScoutConfig, page: int = 1, status: str = "", category: str = "", order: str = ""
) -> List[CatalogRecord]:
    """Одна страница каталога с фильтрами, без кэша."""
    async with open_crawler(cfg) as crawler:
        return await crawler.catalog_list(page, status=status, category=category, order=order)


class Engine:
    """Фасад для CLI и тестов: загрузка конфига и синхронный запуск обхода."""

    @staticmethod
    def load_config(path: Optional[str]) -> ScoutConfig:
        """Загружает конфиг из YAML/JSON."""
        return load_config(path)

    def __init__(self, config: ScoutConfig) -> None:
        self.config = config

    def start_crawl(self, timeout: Optional[float] = None) -> CrawlRunSummary:
        """Запускает обход с необязательным общим таймаутом и возвращает итоги."""
        logger.info("Starting crawl…")
        try:
            return asyncio.run(asyncio.wait_for(start_crawl(self.config), timeout=timeout))
        except asyncio.TimeoutError:
            logger.error("Crawl did not finish within %s seconds", timeout)
            raise
        except Exception as exc:
            logger.error("Crawl failed: %s", exc)
            raise

    def lookup(self, cache_key: str, ttl: Optional[float] = None):
        """Синхронная обёртка над :func:`lookup`."""
        return asyncio.run(lookup(self.config, cache_key, ttl))

    def search(self, query: str) -> List[CatalogRecord]:
        return asyncio.run(search(self.config, query))

    def invalidate(self, cache_key: Optional[str] = None) -> int:
        return asyncio.run(invalidate(self.config, cache_key))

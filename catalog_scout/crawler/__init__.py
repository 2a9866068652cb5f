"""catalog_scout.crawler: HTTP-клиент и оркестратор обхода каталога."""

from catalog_scout.crawler.crawler import CatalogCrawler, CatalogParser
from catalog_scout.crawler.fetcher import Fetcher, backoff_delay
from catalog_scout.crawler.models import FetchResult

__all__ = ["CatalogCrawler", "CatalogParser", "Fetcher", "FetchResult", "backoff_delay"]

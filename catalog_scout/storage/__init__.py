# File: catalog_scout/storage/__init__.py
"""catalog_scout.storage: SQLite-хранилище записей каталога и метаданных кэша."""

from catalog_scout.storage.cache import (
    COMPLETED_KEY,
    DEFAULT_CACHE_TTL,
    UPDATES_KEY,
    FreshnessCache,
    child_key,
    detail_key,
)
from catalog_scout.storage.database import Database
from catalog_scout.storage.repository import CatalogStore

__all__ = [
    "Database",
    "CatalogStore",
    "FreshnessCache",
    "DEFAULT_CACHE_TTL",
    "UPDATES_KEY",
    "COMPLETED_KEY",
    "detail_key",
    "child_key",
]

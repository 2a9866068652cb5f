# catalog_scout/storage/database.py
"""
SQLite access for CatalogScout.

One :mod:`aiosqlite` connection is shared by the store and the freshness
cache. All access goes through an :class:`asyncio.Lock`, so a reader can
never observe a transaction that has not been committed yet.
"""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import aiosqlite

from catalog_scout.errors import StoreError
from catalog_scout.logger import logger

__all__ = ["Database"]

_SCHEMA = """
CREATE TABLE IF NOT EXISTS catalog_records (
    slug TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    url TEXT NOT NULL,
    thumbnail TEXT,
    status TEXT,
    category TEXT,
    secondary_status TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_catalog_records_status ON catalog_records(status);
CREATE INDEX IF NOT EXISTS idx_catalog_records_category ON catalog_records(category);

CREATE TABLE IF NOT EXISTS details (
    slug TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    alternate_titles TEXT,
    poster TEXT,
    rating TEXT,
    trailer_url TEXT,
    status TEXT,
    studio TEXT,
    release_date TEXT,
    duration TEXT,
    season TEXT,
    category TEXT,
    total_children TEXT,
    director TEXT,
    casts TEXT NOT NULL DEFAULT '[]',
    genres TEXT NOT NULL DEFAULT '[]',
    synopsis TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS children (
    url TEXT PRIMARY KEY,
    parent_slug TEXT NOT NULL REFERENCES details(slug) ON DELETE CASCADE,
    slug TEXT NOT NULL,
    position INTEGER NOT NULL,
    number TEXT,
    title TEXT,
    release_date TEXT,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_children_parent ON children(parent_slug, position);
CREATE INDEX IF NOT EXISTS idx_children_slug ON children(slug);

CREATE TABLE IF NOT EXISTS leaf_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    parent_key TEXT NOT NULL,
    position INTEGER NOT NULL,
    server TEXT,
    quality TEXT,
    url TEXT NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
CREATE INDEX IF NOT EXISTS idx_leaf_records_parent ON leaf_records(parent_key, position);

CREATE TABLE IF NOT EXISTS update_records (
    url TEXT PRIMARY KEY,
    position INTEGER NOT NULL,
    slug TEXT,
    title TEXT NOT NULL,
    thumbnail TEXT,
    number TEXT,
    category TEXT,
    series_title TEXT,
    series_url TEXT,
    status TEXT,
    release_info TEXT,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS completed_records (
    url TEXT PRIMARY KEY,
    position INTEGER NOT NULL,
    slug TEXT,
    title TEXT NOT NULL,
    thumbnail TEXT,
    category TEXT,
    child_count TEXT,
    status TEXT,
    posted_by TEXT,
    posted_at TEXT,
    series_title TEXT,
    series_url TEXT,
    genres TEXT NOT NULL DEFAULT '[]',
    rating TEXT,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS cache_metadata (
    cache_key TEXT PRIMARY KEY,
    last_fetched REAL NOT NULL,
    created_at TEXT DEFAULT CURRENT_TIMESTAMP
);
"""


class Database:
    """Owns the connection; use as ``async with Database(path) as db``."""

    def __init__(self, path: str = ":memory:", busy_timeout: float = 30.0) -> None:
        self.path = path
        self.busy_timeout = busy_timeout
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def __aenter__(self) -> Database:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def connect(self) -> None:
        if self._conn is not None:
            return
        try:
            # isolation_level=None: transactions are opened explicitly in transaction()
            self._conn = await aiosqlite.connect(self.path, timeout=self.busy_timeout, isolation_level=None)
            self._conn.row_factory = aiosqlite.Row
            await self._conn.execute("PRAGMA foreign_keys = ON;")
            if self.path != ":memory:":
                await self._conn.execute("PRAGMA journal_mode = WAL;")
            await self._conn.executescript(_SCHEMA)
        except aiosqlite.Error as exc:
            # __aexit__ never runs after a failed __aenter__; the worker thread must be stopped here
            if self._conn is not None:
                await self._conn.close()
                self._conn = None
            raise StoreError(f"Failed to open database {self.path}: {exc}") from exc
        logger.debug("Database ready: %s", self.path)

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def health_check(self) -> bool:
        async with self.reading() as conn:
            cursor = await conn.execute("SELECT 1")
            row = await cursor.fetchone()
        return row is not None and row[0] == 1

    def _require(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StoreError("Database is not connected")
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Exclusive write unit: commit on success, roll back on any exception."""
        async with self._lock:
            conn = self._require()
            try:
                await conn.execute("BEGIN IMMEDIATE;")
            except aiosqlite.Error as exc:
                raise StoreError(f"Failed to begin transaction: {exc}") from exc
            try:
                yield conn
            except aiosqlite.Error as exc:
                await conn.rollback()
                raise StoreError(str(exc)) from exc
            except BaseException:
                await conn.rollback()
                raise
            else:
                try:
                    await conn.commit()
                except aiosqlite.Error as exc:
                    await conn.rollback()
                    raise StoreError(f"Failed to commit: {exc}") from exc

    @asynccontextmanager
    async def reading(self) -> AsyncIterator[aiosqlite.Connection]:
        """Serialized read access outside of any open write transaction."""
        async with self._lock:
            conn = self._require()
            try:
                yield conn
            except aiosqlite.Error as exc:
                raise StoreError(str(exc)) from exc

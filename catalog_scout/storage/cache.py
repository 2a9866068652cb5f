# catalog_scout/storage/cache.py
"""
Freshness cache: per-key "last fetched" timestamps.

Staleness is computed on read; entries are never expired by deletion.
"""
from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Union

from catalog_scout.storage.database import Database

__all__ = [
    "FreshnessCache",
    "DEFAULT_CACHE_TTL",
    "UPDATES_KEY",
    "COMPLETED_KEY",
    "detail_key",
    "child_key",
]

#: Standard TTL of the single-item cached path, in seconds (one hour).
DEFAULT_CACHE_TTL: float = 3600.0

UPDATES_KEY = "updates"
COMPLETED_KEY = "completed"

_AgeT = Union[float, int, timedelta]


def detail_key(slug: str) -> str:
    return f"detail:{slug}"


def child_key(slug: str) -> str:
    return f"child:{slug}"


def _seconds(max_age: _AgeT) -> float:
    if isinstance(max_age, timedelta):
        return max_age.total_seconds()
    return float(max_age)


class FreshnessCache:
    """Timestamp store backed by the ``cache_metadata`` table."""

    def __init__(self, database: Database, clock: Callable[[], float] = time.time) -> None:
        self.database = database
        self._clock = clock

    async def is_fresh(self, key: str, max_age: _AgeT) -> bool:
        """True iff *key* was refreshed less than *max_age* ago."""
        last = await self._last_fetched(key)
        if last is None:
            return False
        return self._clock() - last < _seconds(max_age)

    async def mark_refreshed(self, key: str) -> None:
        # MAX() keeps last_fetched non-decreasing if the clock steps back
        async with self.database.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO cache_metadata (cache_key, last_fetched)
                VALUES (?, ?)
                ON CONFLICT(cache_key) DO UPDATE SET
                    last_fetched = MAX(cache_metadata.last_fetched, excluded.last_fetched)
                """,
                (key, self._clock()),
            )

    async def get_last_refreshed(self, key: str) -> Optional[datetime]:
        last = await self._last_fetched(key)
        if last is None:
            return None
        return datetime.fromtimestamp(last, tz=timezone.utc)

    async def invalidate(self, key: str) -> bool:
        """Drop one entry; returns whether it existed."""
        async with self.database.transaction() as conn:
            cursor = await conn.execute("DELETE FROM cache_metadata WHERE cache_key = ?", (key,))
            return cursor.rowcount > 0

    async def invalidate_all(self) -> int:
        async with self.database.transaction() as conn:
            cursor = await conn.execute("DELETE FROM cache_metadata")
            return cursor.rowcount

    async def _last_fetched(self, key: str) -> Optional[float]:
        async with self.database.reading() as conn:
            cursor = await conn.execute(
                "SELECT last_fetched FROM cache_metadata WHERE cache_key = ?", (key,)
            )
            row = await cursor.fetchone()
        return None if row is None else float(row["last_fetched"])

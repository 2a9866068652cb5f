# catalog_scout/storage/repository.py
"""
Persistence contract for catalog data.

* Catalog records and details are upserted by their natural key (slug).
* A detail and its children are written in one transaction.
* Leaf records have no stable identity and are fully replaced per parent.
* The home page lists (latest updates, recently completed) are snapshots:
  each save replaces the stored list.
"""
from __future__ import annotations

import json
from typing import Iterable, List, Optional, Sequence

import aiosqlite

from catalog_scout.models import (
    CatalogRecord,
    ChildItem,
    CompletedRecord,
    DetailRecord,
    LeafRecord,
    UpdateRecord,
)
from catalog_scout.storage.database import Database

__all__ = ["CatalogStore"]

_UPSERT_CATALOG = """
INSERT INTO catalog_records (
    slug, title, url, thumbnail, status, category, secondary_status, updated_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
ON CONFLICT(slug) DO UPDATE SET
    title = excluded.title,
    url = excluded.url,
    thumbnail = excluded.thumbnail,
    status = excluded.status,
    category = excluded.category,
    secondary_status = excluded.secondary_status,
    updated_at = CURRENT_TIMESTAMP
"""

_UPSERT_DETAIL = """
INSERT INTO details (
    slug, title, alternate_titles, poster, rating, trailer_url, status, studio,
    release_date, duration, season, category, total_children, director,
    casts, genres, synopsis, updated_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
ON CONFLICT(slug) DO UPDATE SET
    title = excluded.title,
    alternate_titles = excluded.alternate_titles,
    poster = excluded.poster,
    rating = excluded.rating,
    trailer_url = excluded.trailer_url,
    status = excluded.status,
    studio = excluded.studio,
    release_date = excluded.release_date,
    duration = excluded.duration,
    season = excluded.season,
    category = excluded.category,
    total_children = excluded.total_children,
    director = excluded.director,
    casts = excluded.casts,
    genres = excluded.genres,
    synopsis = excluded.synopsis,
    updated_at = CURRENT_TIMESTAMP
"""

_UPSERT_CHILD = """
INSERT INTO children (url, parent_slug, slug, position, number, title, release_date, updated_at)
VALUES (?, ?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
ON CONFLICT(url) DO UPDATE SET
    parent_slug = excluded.parent_slug,
    slug = excluded.slug,
    position = excluded.position,
    number = excluded.number,
    title = excluded.title,
    release_date = excluded.release_date,
    updated_at = CURRENT_TIMESTAMP
"""


def _catalog_from_row(row: aiosqlite.Row) -> CatalogRecord:
    return CatalogRecord(
        slug=row["slug"],
        title=row["title"],
        url=row["url"],
        thumbnail=row["thumbnail"] or "",
        status=row["status"] or "",
        category=row["category"] or "",
        secondary_status=row["secondary_status"] or "",
    )


def _child_from_row(row: aiosqlite.Row) -> ChildItem:
    return ChildItem(
        slug=row["slug"],
        number=row["number"] or "",
        title=row["title"] or "",
        url=row["url"],
        release_date=row["release_date"] or "",
    )


class CatalogStore:
    """Idempotent reads and writes over the catalog tables."""

    def __init__(self, database: Database) -> None:
        self.database = database

    # ------------------------------------------------------------------ #
    # Catalog records                                                    #
    # ------------------------------------------------------------------ #

    async def upsert_catalog_batch(self, records: Sequence[CatalogRecord]) -> int:
        """Upsert all *records* in one transaction; all land or none do."""
        if not records:
            return 0
        async with self.database.transaction() as conn:
            await conn.executemany(
                _UPSERT_CATALOG,
                [
                    (r.slug, r.title, r.url, r.thumbnail, r.status, r.category, r.secondary_status)
                    for r in records
                ],
            )
        return len(records)

    async def get_catalog_record(self, slug: str) -> Optional[CatalogRecord]:
        async with self.database.reading() as conn:
            cursor = await conn.execute("SELECT * FROM catalog_records WHERE slug = ?", (slug,))
            row = await cursor.fetchone()
        return None if row is None else _catalog_from_row(row)

    async def list_catalog_records(self) -> List[CatalogRecord]:
        async with self.database.reading() as conn:
            cursor = await conn.execute(
                "SELECT * FROM catalog_records ORDER BY updated_at DESC, slug"
            )
            rows = await cursor.fetchall()
        return [_catalog_from_row(r) for r in rows]

    async def count_catalog_records(self) -> int:
        async with self.database.reading() as conn:
            cursor = await conn.execute("SELECT COUNT(*) AS n FROM catalog_records")
            row = await cursor.fetchone()
        return int(row["n"])

    async def delete_catalog_record(self, slug: str) -> bool:
        async with self.database.transaction() as conn:
            cursor = await conn.execute("DELETE FROM catalog_records WHERE slug = ?", (slug,))
            return cursor.rowcount > 0

    async def delete_all_catalog_records(self) -> int:
        async with self.database.transaction() as conn:
            cursor = await conn.execute("DELETE FROM catalog_records")
            return cursor.rowcount

    # ------------------------------------------------------------------ #
    # Details and their children                                         #
    # ------------------------------------------------------------------ #

    async def upsert_detail_with_children(self, slug: str, detail: DetailRecord) -> None:
        """Write the detail and its ordered children as one atomic unit."""
        async with self.database.transaction() as conn:
            await conn.execute(
                _UPSERT_DETAIL,
                (
                    slug,
                    detail.title,
                    detail.alternate_titles,
                    detail.poster,
                    detail.rating,
                    detail.trailer_url,
                    detail.status,
                    detail.studio,
                    detail.release_date,
                    detail.duration,
                    detail.season,
                    detail.category,
                    detail.total_children,
                    detail.director,
                    json.dumps(detail.casts, ensure_ascii=False),
                    json.dumps(detail.genres, ensure_ascii=False),
                    detail.synopsis,
                ),
            )
            await self._drop_stale_children(conn, slug, [c.url for c in detail.children])
            await conn.executemany(
                _UPSERT_CHILD,
                [
                    (c.url, slug, c.slug, position, c.number, c.title, c.release_date)
                    for position, c in enumerate(detail.children)
                ],
            )

    @staticmethod
    async def _drop_stale_children(conn: aiosqlite.Connection, parent_slug: str, keep: List[str]) -> None:
        """Remove children (and their leaf records) no longer listed on the detail page."""
        stale = "SELECT url FROM children WHERE parent_slug = ?"
        params: List[str] = [parent_slug]
        if keep:
            stale += f" AND url NOT IN ({', '.join('?' * len(keep))})"
            params.extend(keep)
        await conn.execute(f"DELETE FROM leaf_records WHERE parent_key IN ({stale})", params)
        await conn.execute(f"DELETE FROM children WHERE url IN ({stale})", params)

    async def get_detail(self, slug: str) -> Optional[DetailRecord]:
        """Stored detail with its children in page order, or None."""
        async with self.database.reading() as conn:
            cursor = await conn.execute("SELECT * FROM details WHERE slug = ?", (slug,))
            row = await cursor.fetchone()
            if row is None:
                return None
            children = await self._select_children(conn, slug)
        return DetailRecord(
            title=row["title"],
            alternate_titles=row["alternate_titles"] or "",
            poster=row["poster"] or "",
            rating=row["rating"] or "",
            trailer_url=row["trailer_url"] or "",
            status=row["status"] or "",
            studio=row["studio"] or "",
            release_date=row["release_date"] or "",
            duration=row["duration"] or "",
            season=row["season"] or "",
            category=row["category"] or "",
            total_children=row["total_children"] or "",
            director=row["director"] or "",
            casts=json.loads(row["casts"]),
            genres=json.loads(row["genres"]),
            synopsis=row["synopsis"] or "",
            children=children,
        )

    async def get_children(self, parent_slug: str) -> List[ChildItem]:
        async with self.database.reading() as conn:
            return await self._select_children(conn, parent_slug)

    async def get_child(self, slug: str) -> Optional[ChildItem]:
        async with self.database.reading() as conn:
            cursor = await conn.execute("SELECT * FROM children WHERE slug = ? LIMIT 1", (slug,))
            row = await cursor.fetchone()
        return None if row is None else _child_from_row(row)

    async def delete_detail(self, slug: str) -> bool:
        """Delete a detail; its children go with it (ON DELETE CASCADE)."""
        async with self.database.transaction() as conn:
            cursor = await conn.execute("DELETE FROM details WHERE slug = ?", (slug,))
            return cursor.rowcount > 0

    @staticmethod
    async def _select_children(conn: aiosqlite.Connection, parent_slug: str) -> List[ChildItem]:
        cursor = await conn.execute(
            "SELECT * FROM children WHERE parent_slug = ? ORDER BY position", (parent_slug,)
        )
        return [_child_from_row(r) for r in await cursor.fetchall()]

    # ------------------------------------------------------------------ #
    # Leaf records                                                       #
    # ------------------------------------------------------------------ #

    async def replace_children_of(self, parent_key: str, leaf_records: Iterable[LeafRecord]) -> int:
        """Delete every leaf of *parent_key* and insert *leaf_records* instead."""
        rows = [
            (parent_key, position, leaf.server, leaf.quality, leaf.url)
            for position, leaf in enumerate(leaf_records)
        ]
        async with self.database.transaction() as conn:
            await conn.execute("DELETE FROM leaf_records WHERE parent_key = ?", (parent_key,))
            await conn.executemany(
                "INSERT INTO leaf_records (parent_key, position, server, quality, url) "
                "VALUES (?, ?, ?, ?, ?)",
                rows,
            )
        return len(rows)

    async def get_leaf_records(self, parent_key: str) -> List[LeafRecord]:
        async with self.database.reading() as conn:
            cursor = await conn.execute(
                "SELECT server, quality, url FROM leaf_records WHERE parent_key = ? ORDER BY position",
                (parent_key,),
            )
            rows = await cursor.fetchall()
        return [LeafRecord(server=r["server"] or "", quality=r["quality"] or "", url=r["url"]) for r in rows]

    async def delete_leaf_records(self, parent_key: str) -> int:
        async with self.database.transaction() as conn:
            cursor = await conn.execute("DELETE FROM leaf_records WHERE parent_key = ?", (parent_key,))
            return cursor.rowcount

    # ------------------------------------------------------------------ #
    # Home page lists                                                    #
    # ------------------------------------------------------------------ #

    async def replace_updates(self, records: Sequence[UpdateRecord]) -> int:
        rows = [
            (
                r.url, position, r.slug, r.title, r.thumbnail, r.number, r.category,
                r.series_title, r.series_url, r.status, r.release_info,
            )
            for position, r in enumerate(records)
        ]
        async with self.database.transaction() as conn:
            await conn.execute("DELETE FROM update_records")
            await conn.executemany(
                "INSERT OR REPLACE INTO update_records (url, position, slug, title, thumbnail, number, "
                "category, series_title, series_url, status, release_info) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                rows,
            )
        return len(rows)

    async def get_updates(self) -> List[UpdateRecord]:
        async with self.database.reading() as conn:
            cursor = await conn.execute("SELECT * FROM update_records ORDER BY position")
            rows = await cursor.fetchall()
        return [
            UpdateRecord(
                title=r["title"],
                url=r["url"],
                slug=r["slug"] or "",
                thumbnail=r["thumbnail"] or "",
                number=r["number"] or "",
                category=r["category"] or "",
                series_title=r["series_title"] or "",
                series_url=r["series_url"] or "",
                status=r["status"] or "",
                release_info=r["release_info"] or "",
            )
            for r in rows
        ]

    async def replace_completed(self, records: Sequence[CompletedRecord]) -> int:
        rows = [
            (
                r.url, position, r.slug, r.title, r.thumbnail, r.category, r.child_count, r.status,
                r.posted_by, r.posted_at, r.series_title, r.series_url,
                json.dumps(r.genres, ensure_ascii=False), r.rating,
            )
            for position, r in enumerate(records)
        ]
        async with self.database.transaction() as conn:
            await conn.execute("DELETE FROM completed_records")
            await conn.executemany(
                "INSERT OR REPLACE INTO completed_records (url, position, slug, title, thumbnail, category, "
                "child_count, status, posted_by, posted_at, series_title, series_url, genres, rating) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                rows,
            )
        return len(rows)

    async def get_completed(self) -> List[CompletedRecord]:
        async with self.database.reading() as conn:
            cursor = await conn.execute("SELECT * FROM completed_records ORDER BY position")
            rows = await cursor.fetchall()
        return [
            CompletedRecord(
                title=r["title"],
                url=r["url"],
                slug=r["slug"] or "",
                thumbnail=r["thumbnail"] or "",
                category=r["category"] or "",
                child_count=r["child_count"] or "",
                status=r["status"] or "",
                posted_by=r["posted_by"] or "",
                posted_at=r["posted_at"] or "",
                series_title=r["series_title"] or "",
                series_url=r["series_url"] or "",
                genres=json.loads(r["genres"]),
                rating=r["rating"] or "",
            )
            for r in rows
        ]

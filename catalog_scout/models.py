"""
Data models for catalog records.

Every field the parser cannot find is an empty string or an empty list,
never ``None``.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List

from catalog_scout.utils import extract_slug_from_url

__all__ = [
    "CatalogRecord",
    "ChildItem",
    "DetailRecord",
    "LeafRecord",
    "ChildPage",
    "UpdateRecord",
    "CompletedRecord",
]


@dataclass(slots=True)
class CatalogRecord:
    """One summary entry from a catalog listing page."""

    slug: str
    title: str
    url: str
    thumbnail: str = ""
    status: str = ""
    category: str = ""
    secondary_status: str = ""

    @classmethod
    def from_url(cls, url: str, title: str, **fields: str) -> CatalogRecord:
        return cls(slug=extract_slug_from_url(url), title=title, url=url, **fields)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class ChildItem:
    """An entry of a detail page's ordered child list."""

    slug: str
    number: str
    title: str
    url: str
    release_date: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class DetailRecord:
    """Full description of one catalog item together with its children."""

    title: str
    alternate_titles: str = ""
    poster: str = ""
    rating: str = ""
    trailer_url: str = ""
    status: str = ""
    studio: str = ""
    release_date: str = ""
    duration: str = ""
    season: str = ""
    category: str = ""
    total_children: str = ""
    director: str = ""
    casts: List[str] = field(default_factory=list)
    genres: List[str] = field(default_factory=list)
    synopsis: str = ""
    children: List[ChildItem] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """An empty title is the parser's "not found" signal."""
        return not self.title.strip()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class LeafRecord:
    """A mirror of a child item's content; owned by exactly one child."""

    server: str
    quality: str
    url: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class ChildPage:
    """Parsed sub-resource page of a child item."""

    title: str = ""
    default_source: str = ""
    sources: List[LeafRecord] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.title.strip() and not self.sources


@dataclass(slots=True)
class UpdateRecord:
    """A "latest release" card of the home page: one new child of some item.

    ``url`` points at the child page, ``slug`` at the parent item
    (derived from ``series_url``).
    """

    title: str
    url: str
    slug: str = ""
    thumbnail: str = ""
    number: str = ""
    category: str = ""
    series_title: str = ""
    series_url: str = ""
    status: str = ""
    release_info: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class CompletedRecord:
    """A "recently completed" card of the home page."""

    title: str
    url: str
    slug: str = ""
    thumbnail: str = ""
    category: str = ""
    child_count: str = ""
    status: str = ""
    posted_by: str = ""
    posted_at: str = ""
    series_title: str = ""
    series_url: str = ""
    genres: List[str] = field(default_factory=list)
    rating: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

"""URL builders for the page kinds of the source site."""
from __future__ import annotations

from typing import Tuple
from urllib.parse import quote, quote_plus

from catalog_scout.config import ScoutConfig

__all__ = [
    "CATEGORY_FILTERS",
    "STATUS_FILTERS",
    "ORDER_FILTERS",
    "catalog_page_url",
    "detail_url",
    "child_url",
    "home_url",
    "search_url",
    "list_url",
]

# Values the site's filtered listing accepts; "" means "any".
CATEGORY_FILTERS: Tuple[str, ...] = ("", "TV", "OVA", "Movie", "Live Action", "Special", "BD", "ONA", "Music")
STATUS_FILTERS: Tuple[str, ...] = ("", "Ongoing", "Completed", "Upcoming", "Hiatus")
ORDER_FILTERS: Tuple[str, ...] = ("", "title", "titlereverse", "update", "latest", "popular", "rating")


def _base(cfg: ScoutConfig) -> str:
    return str(cfg.base_url).rstrip("/")


def catalog_page_url(cfg: ScoutConfig, page: int) -> str:
    return _base(cfg) + cfg.catalog_path.format(page=page)


def detail_url(cfg: ScoutConfig, slug: str) -> str:
    return _base(cfg) + cfg.detail_path.format(slug=quote(slug, safe=""))


def child_url(cfg: ScoutConfig, slug: str) -> str:
    return _base(cfg) + cfg.child_path.format(slug=quote(slug, safe=""))


def home_url(cfg: ScoutConfig) -> str:
    return _base(cfg) + cfg.home_path


def search_url(cfg: ScoutConfig, query: str) -> str:
    return _base(cfg) + cfg.search_path.format(query=quote_plus(query))


def list_url(cfg: ScoutConfig, page: int = 1, status: str = "", category: str = "", order: str = "") -> str:
    """Filtered catalog listing; unknown filter values raise ValueError."""
    for name, value, allowed in (
        ("status", status, STATUS_FILTERS),
        ("type", category, CATEGORY_FILTERS),
        ("order", order, ORDER_FILTERS),
    ):
        if value not in allowed:
            raise ValueError(f"Unknown {name} filter: {value!r}")
    return _base(cfg) + cfg.list_path.format(
        page=page, status=quote_plus(status), type=quote_plus(category), order=quote_plus(order)
    )

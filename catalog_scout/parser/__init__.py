"""catalog_scout.parser: правила извлечения записей из HTML страниц каталога."""

from catalog_scout.parser.html_parser import (
    HtmlCatalogParser,
    parse_catalog_page,
    parse_child_page,
    parse_completed,
    parse_detail,
    parse_search_results,
    parse_updates,
)

__all__ = [
    "HtmlCatalogParser",
    "parse_catalog_page",
    "parse_detail",
    "parse_child_page",
    "parse_search_results",
    "parse_updates",
    "parse_completed",
]

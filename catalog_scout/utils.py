# File: catalog_scout/utils.py
"""catalog_scout.utils: Утилитарные функции для обработки URL и slug-ключей."""

from __future__ import annotations

from typing import Collection, List, Sequence
from urllib.parse import urljoin, urlparse

from catalog_scout.logger import logger

__all__: Sequence[str] = (
    "extract_slug_from_url",
    "absolute_url",
    "is_valid_url",
    "remove_duplicates",
)


def extract_slug_from_url(url: str) -> str:
    """Возвращает последний сегмент пути URL: ``.../anime/one-piece/`` -> ``one-piece``."""
    path = urlparse(url).path if "://" in url else url
    return path.rstrip("/").rsplit("/", 1)[-1]


def absolute_url(base_url: str, href: str) -> str:
    """Превращает относительную ссылку в абсолютную относительно base_url."""
    href = href.strip()
    if not href or not base_url:
        return href
    return urljoin(base_url, href)


def is_valid_url(url: str) -> bool:
    """Проверяет, что URL использует http(s) и содержит домен."""
    parsed = urlparse(url)
    valid = parsed.scheme in ("http", "https") and bool(parsed.netloc)
    logger.debug("URL valid: %s -> %s", url, valid)
    return valid


def remove_duplicates(urls: Collection[str]) -> List[str]:
    """Удаляет дубликаты из списка, сохраняя порядок."""
    unique = list(dict.fromkeys(urls))
    removed = len(urls) - len(unique)
    if removed:
        logger.debug("Removed %d duplicate entries", removed)
    return unique

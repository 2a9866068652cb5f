# catalog_scout/crawler/models.py
"""
Data models for the CatalogScout fetch client.
"""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class FetchResult:
    """Holds the requested URL, response status and decoded HTML body."""

    url: str
    body: str
    status: int

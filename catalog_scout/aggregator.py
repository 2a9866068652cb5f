# File: catalog_scout/aggregator.py
"""catalog_scout.aggregator: Итоги одного прогона обхода каталога.

Каждый шаг обхода возвращает :class:`StepResult` (приращения счётчиков и,
возможно, описание ошибки); :class:`CrawlRunSummary` сворачивает их по порядку.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


@dataclass(slots=True, frozen=True)
class StepResult:
    """Результат одного шага: успех с приращениями или ошибка с описанием."""

    pages_processed: int = 0
    catalog_records: int = 0
    items: int = 0
    children: int = 0
    leaf_records: int = 0
    error: Optional[str] = None

    @classmethod
    def failed(cls, message: str) -> StepResult:
        return cls(error=message)


@dataclass(slots=True)
class CrawlRunSummary:
    """Счётчики и упорядоченный список ошибок одного запуска; не сохраняется в БД."""

    pages_processed: int = 0
    catalog_records: int = 0
    items: int = 0
    children: int = 0
    leaf_records: int = 0
    errors: List[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: Optional[datetime] = None

    def apply(self, step: StepResult) -> CrawlRunSummary:
        """Добавляет результат шага к итогам и возвращает self."""
        self.pages_processed += step.pages_processed
        self.catalog_records += step.catalog_records
        self.items += step.items
        self.children += step.children
        self.leaf_records += step.leaf_records
        if step.error is not None:
            self.errors.append(step.error)
        return self

    def finish(self) -> CrawlRunSummary:
        self.finished_at = datetime.now(timezone.utc)
        return self

    @property
    def duration(self) -> float:
        end = self.finished_at or datetime.now(timezone.utc)
        return (end - self.started_at).total_seconds()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["finished_at"] = self.finished_at.isoformat() if self.finished_at else None
        return data

    def json(self, *, pretty: bool = False) -> str:
        """Возвращает JSON-представление итогов."""
        return json.dumps(self.to_dict(), ensure_ascii=False, indent=2 if pretty else None)


__all__ = ["StepResult", "CrawlRunSummary"]

# File: catalog_scout/report/__init__.py
"""catalog_scout.report: Сохранение итогов обхода, используется CLI и тестами."""

from catalog_scout.report.json_report import render_json

__all__ = ["render_json"]

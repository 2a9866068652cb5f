# catalog_scout/report/json_report.py

"""
Генерация JSON-отчёта для проекта CatalogScout.

Сериализация итогов прогона (CrawlRunSummary) в файл.
"""
import json
from pathlib import Path

from catalog_scout.aggregator import CrawlRunSummary


def render_json(summary: CrawlRunSummary, output_path: Path | str, *, pretty: bool = True) -> Path:
    """
    Сохраняет итоги summary в формате JSON по указанному пути.

    :param summary: объект CrawlRunSummary с итогами обхода
    :param output_path: путь к JSON-файлу
    :param pretty: отступ 2 пробела (по умолчанию включён)
    :return: Path сохранённого файла

    Пример:
    ```python
    from catalog_scout.report.json_report import render_json
    report_path = render_json(summary, 'reports/crawl.json')
    print(f"JSON report saved to: {report_path}")
    ```
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open('w', encoding='utf-8') as f:
        json.dump(summary.to_dict(), f, ensure_ascii=False, indent=2 if pretty else None)

    return output

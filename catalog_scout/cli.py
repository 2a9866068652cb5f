# === FILE: catalog_scout/cli.py ===
#!/usr/bin/env python3
"""
Точка входа для запуска CatalogScout через командную строку.

Команды:
  crawl       Один полный проход по каталогу, вывести/сохранить итоги
  lookup      Получить запись по ключу кэша (detail:<slug>, child:<slug>, updates, completed)
  search      Живой поиск по сайту
  list        Страница каталога с фильтрами (status, type, order)
  invalidate  Сбросить метку свежести (одну или все)
  config      Показать текущую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml)
  --limit INT         Макс. число страниц каталога (override max_pages)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...; env CATALOG_SCOUT_LOG_LEVEL)
  --log-file PATH     Файл для логов (stderr, если не указан)
  --log-format FORMAT Формат логирования (e.g. "%(asctime)s %(levelname)s %(message)s")

Команда crawl опции:
  --json PATH          Сохранить итоги прогона в JSON-файл
  --pretty             Преформатировать JSON-вывод (отступ 2)
  --crawl-timeout SEC  Таймаут всего прохода (секунд)

Дополнительно:
  --version, -v       Показать версию CatalogScout

Пример:
  catalog-scout --limit 5 crawl --json reports/crawl.json
  catalog-scout lookup detail:one-piece --pretty
  catalog-scout list --status Completed --order update
"""
import sys
import asyncio
import json
from pathlib import Path

import click

from catalog_scout import __version__
from catalog_scout.config import load_config
from catalog_scout.endpoints import CATEGORY_FILTERS, ORDER_FILTERS, STATUS_FILTERS
from catalog_scout.engine import catalog_list, invalidate, lookup, search, start_crawl
from catalog_scout.errors import FetchError, NotFoundError, StoreError
from catalog_scout.logger import init_logging
from catalog_scout.report.json_report import render_json

CONTEXT_SETTINGS = dict(help_option_names=["--help"])

def print_error(message: str, code: int = 1):
    click.secho(message, fg='red', err=True)
    sys.exit(code)

def echo_json(value, pretty: bool = False):
    data = [v.to_dict() for v in value] if isinstance(value, list) else value.to_dict()
    click.echo(json.dumps(data, ensure_ascii=False, indent=2 if pretty else None))

@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='CatalogScout, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default='configs/default.yaml',
    show_default=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--limit', '-l', 'limit',
    type=click.IntRange(min=1),
    default=None,
    help='Макс. число страниц каталога (override max_pages)'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    envvar='CATALOG_SCOUT_LOG_LEVEL',
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stderr, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, limit, log_level, log_file, log_format):
    """Группа команд CatalogScout CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    if limit is not None:
        cfg = cfg.model_copy(update={'max_pages': limit})
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg

@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить итоги прогона в JSON-файл'
)
@click.option(
    '--pretty', is_flag=True,
    help='Преформатировать JSON-вывод (отступ 2)'
)
@click.option(
    '--crawl-timeout', 'crawl_timeout',
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help='Таймаут всего прохода (секунд)'
)
@click.pass_context
def crawl(ctx, json_output, pretty, crawl_timeout):
    """Один полный проход по каталогу."""
    cfg = ctx.obj['config']
    click.echo(f'Starting crawl of {cfg.base_url}', err=True)
    try:
        if crawl_timeout is not None:
            summary = asyncio.run(
                asyncio.wait_for(start_crawl(cfg), timeout=crawl_timeout)
            )
        else:
            summary = asyncio.run(start_crawl(cfg))
    except asyncio.TimeoutError:
        print_error(f'Обход не завершён за {crawl_timeout} секунд')
    except Exception as e:
        print_error(f'Ошибка при обходе: {e}')

    if not json_output:
        click.echo(summary.json(pretty=pretty))
        return

    try:
        saved = render_json(summary, json_output, pretty=pretty)
        click.echo(f'JSON report: {saved}')
    except OSError as e:
        print_error(f'Ошибка при сохранении JSON: {e}')

@cli.command('lookup', context_settings=CONTEXT_SETTINGS)
@click.argument('cache_key')
@click.option(
    '--ttl', type=click.FloatRange(min=0, min_open=True), default=None,
    help='Срок свежести кэша в секундах (по умолчанию cache_ttl из конфига)'
)
@click.option(
    '--pretty', is_flag=True,
    help='Преформатировать JSON-вывод (отступ 2)'
)
@click.pass_context
def lookup_cmd(ctx, cache_key, ttl, pretty):
    """Запись по ключу: из базы, пока кэш свежий, иначе с сайта."""
    cfg = ctx.obj['config']
    try:
        value = asyncio.run(lookup(cfg, cache_key, ttl))
    except NotFoundError as e:
        print_error(str(e), code=2)
    except ValueError as e:
        print_error(f'Неверный ключ: {e}')
    except (FetchError, StoreError) as e:
        print_error(f'Ошибка при получении {cache_key}: {e}')

    echo_json(value, pretty)

@cli.command('search', context_settings=CONTEXT_SETTINGS)
@click.argument('query')
@click.option('--pretty', is_flag=True, help='Преформатировать JSON-вывод (отступ 2)')
@click.pass_context
def search_cmd(ctx, query, pretty):
    """Поиск по сайту (всегда живой запрос)."""
    if not query.strip():
        print_error('Пустой поисковый запрос', code=2)
    cfg = ctx.obj['config']
    try:
        results = asyncio.run(search(cfg, query))
    except (FetchError, StoreError) as e:
        print_error(f'Ошибка поиска: {e}')
    echo_json(results, pretty)

@cli.command('list', context_settings=CONTEXT_SETTINGS)
@click.option('--page', '-p', type=click.IntRange(min=1), default=1, show_default=True)
@click.option('--status', type=click.Choice(STATUS_FILTERS[1:]), default=None)
@click.option('--type', 'category', type=click.Choice(CATEGORY_FILTERS[1:]), default=None)
@click.option('--order', type=click.Choice(ORDER_FILTERS[1:]), default=None)
@click.option('--pretty', is_flag=True, help='Преформатировать JSON-вывод (отступ 2)')
@click.pass_context
def list_cmd(ctx, page, status, category, order, pretty):
    """Страница каталога с фильтрами (всегда живой запрос)."""
    cfg = ctx.obj['config']
    try:
        records = asyncio.run(
            catalog_list(cfg, page, status=status or '', category=category or '', order=order or '')
        )
    except (FetchError, StoreError) as e:
        print_error(f'Ошибка при получении страницы {page}: {e}')
    echo_json(records, pretty)

@cli.command('invalidate', context_settings=CONTEXT_SETTINGS)
@click.argument('cache_key', required=False)
@click.option('--all', 'drop_all', is_flag=True, help='Сбросить все метки свежести')
@click.pass_context
def invalidate_cmd(ctx, cache_key, drop_all):
    """Сбросить метку свежести, чтобы следующий lookup сходил на сайт."""
    if bool(cache_key) == drop_all:
        print_error('Укажите либо CACHE_KEY, либо --all')
    cfg = ctx.obj['config']
    try:
        removed = asyncio.run(invalidate(cfg, None if drop_all else cache_key))
    except StoreError as e:
        print_error(f'Ошибка базы данных: {e}')
    click.echo(f'Invalidated: {removed}')

@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))

# expose these names at module level for test monkey-patching
cli.start_crawl = start_crawl
cli.lookup = lookup
cli.invalidate = invalidate
cli.search = search
cli.catalog_list = catalog_list
cli.render_json = render_json

if __name__ == "__main__":
    cli()

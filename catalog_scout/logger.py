# === FILE: catalog_scout/logger.py ===
"""Логирование CatalogScout.

Весь пакет пишет в один логгер ``CatalogScout``::

    from catalog_scout.logger import logger
    logger.info("Crawling page %d", page)

* Поток вывода: stderr. stdout занят JSON-выводом команд CLI.
* Файл (``--log-file``) пишется с ротацией по 5 МБ, три архива.
* Уровень по умолчанию берётся из ``CATALOG_SCOUT_LOG_LEVEL`` (иначе INFO);
  CLI переопределяет его через ``--log-level``.
* Болтливые сторонние логгеры (aiosqlite логирует каждый запрос на DEBUG)
  приглушаются до WARNING, пока сам пакет не переведён в DEBUG.
"""
from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Optional, Tuple, Union

_DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_LOGGER_NAME: Final[str] = "CatalogScout"
_LEVEL_ENV: Final[str] = "CATALOG_SCOUT_LOG_LEVEL"
_NOISY_LOGGERS: Final[Tuple[str, ...]] = ("aiosqlite", "asyncio", "charset_normalizer")

_LevelT = Union[int, str]


def _console_handler(fmt: str) -> logging.StreamHandler:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def _rotating_file_handler(file: Path | str, fmt: str) -> RotatingFileHandler:
    Path(file).parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=str(file),
        maxBytes=5 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def _quiet_third_party(level: int) -> None:
    noisy_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)


def default_level() -> str:
    """Уровень из ``CATALOG_SCOUT_LOG_LEVEL``; неизвестное значение даёт INFO."""
    value = os.environ.get(_LEVEL_ENV, "").strip().upper()
    return value if value in logging.getLevelNamesMapping() else "INFO"


def configure(
    *,
    level: Optional[_LevelT] = None,
    log_file: str | Path | None = None,
    log_format: str = _DEFAULT_FORMAT,
    replace_handlers: bool = True,
) -> logging.Logger:
    """Настраивает логгер ``CatalogScout`` и возвращает его.

    ``level=None`` означает :func:`default_level`. При
    ``replace_handlers=False`` новые обработчики добавляются к старым.
    """
    lg = logging.getLogger(_LOGGER_NAME)
    lg.setLevel(default_level() if level is None else level)

    if replace_handlers:
        for handler in list(lg.handlers):
            lg.removeHandler(handler)
            handler.close()

    lg.addHandler(_console_handler(log_format))
    if log_file is not None:
        lg.addHandler(_rotating_file_handler(log_file, log_format))

    lg.propagate = False
    _quiet_third_party(lg.level)
    return lg


def init_logging(
    level: Optional[_LevelT] = None,
    log_file: str | Path | None = None,
    log_format: str = _DEFAULT_FORMAT,
) -> logging.Logger:
    """Вызов из CLI: один раз на запуск, старые обработчики снимаются."""
    return configure(level=level, log_file=log_file, log_format=log_format, replace_handlers=True)


logger: logging.Logger = init_logging()

__all__ = ["logger", "configure", "init_logging", "default_level"]

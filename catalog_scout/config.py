# === FILE: catalog_scout/config.py ===
"""
Модуль для загрузки и валидации конфигурации CatalogScout.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    HttpUrl,
    ValidationError,
    field_validator,
    model_validator,
)


class FetchConfig(BaseModel):
    """Настройки HTTP-клиента: паузы между запросами, ретраи, таймауты."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    min_delay: float = Field(1.0, ge=0, description="Минимальная пауза между запросами (секунд).")
    max_delay: float = Field(3.0, ge=0, description="Максимальная пауза между запросами (секунд).")
    rotate_user_agent: bool = Field(True, description="Случайный браузерный профиль на каждый запрос.")
    max_retries: int = Field(3, ge=1, description="Максимум попыток на один URL (включая первую).")
    backoff_base: float = Field(1.0, ge=0, description="База экспоненциальной задержки (секунд).")
    backoff_jitter: float = Field(0.5, ge=0, description="Верхняя граница случайной добавки к задержке.")
    timeout: float = Field(30.0, gt=0, description="Общий таймаут одного запроса (секунд).")
    connect_timeout: float = Field(10.0, gt=0, description="Таймаут установки соединения (секунд).")

    @model_validator(mode="after")
    def _check_delay_window(self) -> FetchConfig:
        if self.max_delay < self.min_delay:
            raise ValueError("max_delay must be greater than or equal to min_delay")
        return self


class StorageConfig(BaseModel):
    """Путь к базе SQLite и таймаут ожидания блокировки."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    database: str = Field("catalog.db", min_length=1, description="Файл SQLite или ':memory:'.")
    busy_timeout: float = Field(30.0, gt=0, description="Ожидание блокировки базы (секунд).")


class ScoutConfig(BaseModel):
    """Конфигурация обхода каталога."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: HttpUrl = Field(..., description="Корневой URL сайта-источника.")
    max_pages: int = Field(1000, ge=1, description="Жесткий лимит по числу страниц каталога.")
    cache_ttl: float = Field(3600.0, gt=0, description="Срок свежести кэша (секунд).")
    catalog_path: str = Field(
        "/anime/?page={page}&status=&type=&order=",
        description="Шаблон пути страницы каталога.",
    )
    detail_path: str = Field("/anime/{slug}/", description="Шаблон пути страницы записи.")
    child_path: str = Field("/{slug}/", description="Шаблон пути дочерней страницы.")
    home_path: str = Field("/", description="Главная страница: свежие обновления и завершённые.")
    search_path: str = Field("/?s={query}", description="Шаблон пути поиска.")
    list_path: str = Field(
        "/anime/?page={page}&status={status}&type={type}&order={order}",
        description="Шаблон пути каталога с фильтрами.",
    )
    fetch: FetchConfig = Field(default_factory=FetchConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @field_validator("base_url", mode="before")
    def _strip_trailing_slash(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    @field_validator("catalog_path")
    def _check_page_placeholder(cls, v: str) -> str:
        if "{page}" not in v:
            raise ValueError("catalog_path must contain a {page} placeholder")
        return v

    @field_validator("detail_path", "child_path")
    def _check_slug_placeholder(cls, v: str) -> str:
        if "{slug}" not in v:
            raise ValueError("path template must contain a {slug} placeholder")
        return v

    @field_validator("search_path")
    def _check_query_placeholder(cls, v: str) -> str:
        if "{query}" not in v:
            raise ValueError("search_path must contain a {query} placeholder")
        return v

    @field_validator("list_path")
    def _check_list_placeholders(cls, v: str) -> str:
        missing = [p for p in ("{page}", "{status}", "{type}", "{order}") if p not in v]
        if missing:
            raise ValueError(f"list_path is missing placeholders: {', '.join(missing)}")
        return v


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> ScoutConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект ScoutConfig.
    При отсутствии файла конфига бросает FileNotFoundError.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(_DEFAULT_CFG))
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    try:
        return ScoutConfig(**data)
    except ValidationError:
        raise


__all__ = ["FetchConfig", "StorageConfig", "ScoutConfig", "load_config"]

# setup.py
from setuptools import setup, find_packages

setup(
    name="catalog_scout",
    version="0.1.0",
    description="Устойчивый обходчик каталога CatalogScout с кэшем свежести и SQLite-хранилищем",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "aiohttp>=3.9",
        "aiosqlite>=0.19",
        "beautifulsoup4>=4.12",
        "click>=8.1",
        "pydantic>=2.5",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "catalog-scout=catalog_scout.cli:cli",
        ],
    },
    python_requires=">=3.11",
)

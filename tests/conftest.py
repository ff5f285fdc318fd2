"""Pytest configuration and fixtures for Permitdex tests.

Provides common fixtures for testing.
"""

from __future__ import annotations

import csv
from collections.abc import Callable
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from permitdex.config import reset_config
from permitdex.db.models import Base
from permitdex.db.store import SQLAlchemyTargetStore
from permitdex.importing.translations import TranslationStore, reset_translation_loader

PALM_TOWER_AR = "برج النخيل"
OASIS_AR = "مجمع الواحة"


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    monkeypatch.delenv("UNTRANSLATED_FALLBACK", raising=False)
    monkeypatch.delenv("IMPORT_CHUNK_SIZE", raising=False)
    reset_config()
    reset_translation_loader()
    yield
    reset_config()
    reset_translation_loader()


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite engine shared by every session of one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def store(session_factory) -> SQLAlchemyTargetStore:
    """Target store over the in-memory database."""
    return SQLAlchemyTargetStore(session_factory)


@pytest.fixture
def translations() -> TranslationStore:
    """Small curated translation set."""
    return TranslationStore({PALM_TOWER_AR: "Palm Tower", OASIS_AR: "Oasis Complex"})


@pytest.fixture
def write_csv(tmp_path: Path) -> Callable[..., Path]:
    """Write a UTF-8 CSV under tmp_path and return its path."""

    def _write(name: str, headers: list[str], rows: list[list[object]]) -> Path:
        path = tmp_path / name
        with open(path, "w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f)
            writer.writerow(headers)
            writer.writerows(rows)
        return path

    return _write

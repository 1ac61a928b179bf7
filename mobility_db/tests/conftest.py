"""Pytest configuration and shared fixtures.

This module provides shared test fixtures for all tests:
- isolated_settings: clean environment and settings cache (autouse)
- sqlite_url: file-backed SQLite database under tmp_path
- engine / runner: engine and MigrationRunner bound to that database
- migrated_engine / session: database upgraded to head, plus an ORM session

Tests run against SQLite so they need no external services.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

# Add the repository root to path for imports
repo_root = Path(__file__).resolve().parent.parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from mobility_db.core.config import get_settings  # noqa: E402
from mobility_db.core.database import create_sync_engine  # noqa: E402
from mobility_db.core.runner import MigrationRunner  # noqa: E402

if TYPE_CHECKING:
    from collections.abc import Generator

    from sqlalchemy import Engine
    from sqlalchemy.orm import Session

_SETTINGS_ENV_VARS = [
    "DATABASE_URL",
    "LOG_LEVEL",
    "LOG_FORMAT",
    "LOG_FILE_PATH",
    "LOG_FILE_MAX_BYTES",
    "LOG_FILE_BACKUP_COUNT",
    "PARTICIPANT_HASH_SALT",
]


@pytest.fixture(autouse=True)
def isolated_settings(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Generator[pytest.MonkeyPatch]:
    """Clear settings-related environment variables and the settings cache."""
    for var in _SETTINGS_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("MOBILITY_DB_ENV_FILE", str(tmp_path / "missing.env"))
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'default.db'}")
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


@pytest.fixture
def restore_root_logging() -> Generator[None]:
    """Restore root logger handlers and level after setup_logging() runs."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def sqlite_url(tmp_path: Path) -> str:
    return f"sqlite:///{tmp_path / 'research.db'}"


@pytest.fixture
def engine(sqlite_url: str) -> Generator[Engine]:
    engine = create_sync_engine(sqlite_url)
    yield engine
    engine.dispose()


@pytest.fixture
def runner(sqlite_url: str) -> MigrationRunner:
    return MigrationRunner(sqlite_url)


@pytest.fixture
def migrated_engine(runner: MigrationRunner, engine: Engine) -> Engine:
    """Engine for a database upgraded to head."""
    runner.upgrade("head")
    return engine


@pytest.fixture
def session(migrated_engine: Engine) -> Generator[Session]:
    from sqlalchemy.orm import Session

    with Session(migrated_engine, expire_on_commit=False) as session:
        yield session

"""Database connectivity for migrations and analytics using SQLAlchemy 2.0.

Migrations always run on a synchronous engine, so async driver suffixes in
configured URLs are stripped before an engine is created.
"""

from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import Engine, create_engine, pool
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from mobility_db.core.config import get_settings

# async driver -> sync dialect default
_ASYNC_DRIVERS = ("+asyncpg", "+aiosqlite", "+aiomysql", "+asyncmy", "+psycopg_async")


def _is_sqlite(url: str) -> bool:
    """Check if the database URL is for SQLite."""
    return url.startswith("sqlite")


def to_sync_url(url: str | None) -> str | None:
    """Convert async database URLs to their sync equivalents.

    Args:
        url: Database URL that may use an async driver.

    Returns:
        URL without the async driver suffix, or None if input was None.
    """
    if url is None:
        return None
    for driver in _ASYNC_DRIVERS:
        if driver in url:
            return url.replace(driver, "", 1)
    return url


def get_database_url() -> str:
    """Get the sync database URL from settings."""
    url = to_sync_url(get_settings().database_url)
    assert url is not None
    return url


def ensure_sqlite_directory(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""
    if not _is_sqlite(url):
        return
    database = make_url(url).database
    if database and database != ":memory:":
        Path(database).parent.mkdir(parents=True, exist_ok=True)


def create_sync_engine(url: str | None = None, echo: bool = False) -> Engine:
    """Create a non-pooled engine suitable for one-shot migration commands.

    Args:
        url: Database URL; defaults to the configured ``database_url``.
        echo: Whether SQLAlchemy should echo emitted SQL.

    Returns:
        Engine: A SQLAlchemy engine using ``NullPool``.
    """
    resolved = to_sync_url(url) if url else get_database_url()
    assert resolved is not None
    ensure_sqlite_directory(resolved)
    return create_engine(resolved, echo=echo, poolclass=pool.NullPool)


@contextmanager
def get_session(engine: Engine) -> Generator[Session]:
    """Get a database session as a context manager.

    Usage:
        with get_session(engine) as session:
            rows = session.execute(select(Model)).scalars().all()

    The session commits on success and rolls back on any exception.
    """
    factory = sessionmaker(engine, expire_on_commit=False, autoflush=False)
    with factory() as session:
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise

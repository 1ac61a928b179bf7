"""Alembic migration environment configuration.

This module configures Alembic to use our SQLAlchemy models and database connection.
Supports SQLite (development and tests), PostgreSQL and MySQL/MariaDB.
"""

from sqlalchemy import engine_from_config, pool

from alembic import context
from mobility_db.core.database import ensure_sqlite_directory, get_database_url, to_sync_url
from mobility_db.core.logging import setup_logging
from mobility_db.models import Base

# This is the Alembic Config object
config = context.config

# Programmatic callers (MigrationRunner, tests) configure logging themselves
if config.attributes.get("configure_logger", True):
    setup_logging()

# Set target metadata from our models
target_metadata = Base.metadata


def get_url() -> str:
    """Get database URL from config or settings.

    Priority:
    1. sqlalchemy.url set on the Alembic config (alembic.ini or MigrationRunner)
    2. DATABASE_URL from settings
    """
    ini_url = to_sync_url(config.get_main_option("sqlalchemy.url"))
    return ini_url if ini_url else get_database_url()


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode.

    This configures the context with just a URL and not an Engine.
    Useful for generating SQL scripts without a database connection.
    """
    context.configure(
        url=get_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Run migrations in 'online' mode.

    Creates an Engine and associates a connection with the context.
    """
    url = get_url()
    ensure_sqlite_directory(url)

    configuration = config.get_section(config.config_ini_section, {})
    configuration["sqlalchemy.url"] = url

    connectable = engine_from_config(
        configuration,
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
        )

        with context.begin_transaction():
            context.run_migrations()

    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()

"""Programmatic access to the Alembic migrations.

The hosting job service (and the ``mobility-db`` CLI) drive migrations
through :class:`MigrationRunner` instead of shelling out to ``alembic``.
The runner builds its Alembic ``Config`` in code, so no ``alembic.ini`` is
needed at runtime.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext as AlembicMigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy.exc import SQLAlchemyError

from mobility_db.core.database import create_sync_engine, get_database_url, to_sync_url
from mobility_db.core.logging import get_logger, sanitize_error
from mobility_db.migrations.helpers import MigrationError

logger = get_logger(__name__)

MIGRATIONS_PATH = Path(__file__).resolve().parent.parent / "migrations"


@dataclass(frozen=True, slots=True)
class RevisionInfo:
    """One entry of the migration history."""

    revision: str
    down_revision: str | None
    description: str
    is_applied: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "revision": self.revision,
            "down_revision": self.down_revision,
            "description": self.description,
            "is_applied": self.is_applied,
        }


class MigrationRunner:
    """Run and inspect migrations against one database.

    Usage:
        runner = MigrationRunner("sqlite:///./data/mobility.db")
        runner.upgrade()
        runner.downgrade("0004")
    """

    def __init__(self, database_url: str | None = None, configure_logger: bool = False) -> None:
        """Initialize the runner.

        Args:
            database_url: Target database; defaults to the configured ``database_url``.
            configure_logger: Whether env.py should (re)configure root logging.
        """
        self.database_url = to_sync_url(database_url) if database_url else get_database_url()
        self.configure_logger = configure_logger

    @property
    def config(self) -> Config:
        """Build a fresh Alembic config pointing at the packaged migrations."""
        config = Config()
        config.set_main_option("script_location", str(MIGRATIONS_PATH))
        # configparser interpolation treats '%' specially
        config.set_main_option("sqlalchemy.url", self.database_url.replace("%", "%%"))
        config.attributes["configure_logger"] = self.configure_logger
        return config

    @property
    def script(self) -> ScriptDirectory:
        return ScriptDirectory.from_config(self.config)

    def upgrade(self, revision: str = "head") -> str | None:
        """Apply migrations up to ``revision``.

        Returns:
            The revision the database is at afterwards.

        Raises:
            SQLAlchemyError: Any schema-operation failure; the run stops at the
                failing revision.
            MigrationError: A pre-flight, verification or rollback check failed.
        """
        before = self.current()
        logger.info(f"Upgrading database from {before or 'base'} to {revision}")
        try:
            command.upgrade(self.config, revision)
        except (SQLAlchemyError, MigrationError) as e:
            logger.error(f"Upgrade to {revision} failed: {sanitize_error(e)}")
            raise
        after = self.current()
        logger.info(f"Database now at {after or 'base'}")
        return after

    def downgrade(self, revision: str = "-1") -> str | None:
        """Revert migrations down to ``revision`` (default: one step).

        Returns:
            The revision the database is at afterwards.
        """
        before = self.current()
        logger.info(f"Downgrading database from {before or 'base'} to {revision}")
        try:
            command.downgrade(self.config, revision)
        except (SQLAlchemyError, MigrationError) as e:
            logger.error(f"Downgrade to {revision} failed: {sanitize_error(e)}")
            raise
        after = self.current()
        logger.info(f"Database now at {after or 'base'}")
        return after

    def current(self) -> str | None:
        """Return the revision currently stamped in the database."""
        engine = create_sync_engine(self.database_url)
        try:
            with engine.connect() as connection:
                return AlembicMigrationContext.configure(connection).get_current_revision()
        finally:
            engine.dispose()

    def heads(self) -> list[str]:
        """Return the head revision(s) of the migration scripts."""
        return list(self.script.get_heads())

    def history(self) -> list[RevisionInfo]:
        """Return every revision, oldest first, with its applied state."""
        script = self.script
        current = self.current()
        applied: set[str] = set()
        if current is not None:
            applied = {rev.revision for rev in script.iterate_revisions(current, "base")}

        revisions = [
            RevisionInfo(
                revision=rev.revision,
                down_revision=rev.down_revision if isinstance(rev.down_revision, str) else None,
                description=(rev.doc or "").strip(),
                is_applied=rev.revision in applied,
            )
            for rev in script.walk_revisions()
        ]
        revisions.reverse()
        return revisions

    def status(self) -> dict[str, Any]:
        """Get current migration status."""
        history = self.history()
        pending = [rev.revision for rev in history if not rev.is_applied]
        return {
            "current": self.current(),
            "heads": self.heads(),
            "applied_count": len(history) - len(pending),
            "pending_count": len(pending),
            "pending_revisions": pending,
            "is_current": not pending,
        }

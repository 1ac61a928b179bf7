"""Migration helper utilities for safe schema operations.

This module provides helper functions for Alembic migrations to ensure:
1. Existence checks before every CREATE, ALTER and DROP
2. Best-effort cleanup of partially created tables
3. Verification steps after migration operations
4. Log-then-propagate error handling throughout the process

Checks go through the SQLAlchemy inspector, so the same helpers work on
SQLite, PostgreSQL and MySQL/MariaDB. When Alembic renders SQL offline
(``--sql``) there is nothing to inspect: the guarded operations emit their
DDL unconditionally and verification is skipped.

Usage in migrations:
    from mobility_db.migrations.helpers import MigrationContext

    def upgrade() -> None:
        with MigrationContext("add_event_county") as ctx:
            ctx.safe_column_add("hntb_event", "event_county", sa.String(64), after="event_lng")
            ctx.verify_column_exists("hntb_event", "event_county")
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import sqlalchemy as sa
from sqlalchemy import inspect, text
from sqlalchemy.engine.mock import MockConnection
from sqlalchemy.exc import (
    IntegrityError,
    OperationalError,
    ProgrammingError,
    SQLAlchemyError,
)

from alembic import op
from mobility_db.core.logging import sanitize_error

if TYPE_CHECKING:
    from collections.abc import Generator, Sequence

    from sqlalchemy.engine import Connection
    from sqlalchemy.sql.type_api import TypeEngine

logger = logging.getLogger("alembic.helpers")

_POSITIONAL_DIALECTS = frozenset({"mysql", "mariadb"})


class MigrationError(Exception):
    """Base exception for migration errors."""

    pass


class PreflightCheckError(MigrationError):
    """Raised when a pre-flight check fails."""

    pass


class VerificationError(MigrationError):
    """Raised when post-migration verification fails."""

    pass


class RollbackError(MigrationError):
    """Raised when a rollback operation fails."""

    pass


def _quote(connection: Connection, identifier: str) -> str:
    return connection.dialect.identifier_preparer.quote(identifier)


def _compile_type(connection: Connection, column_type: TypeEngine[Any] | str) -> str:
    if isinstance(column_type, str):
        return column_type
    return column_type.compile(dialect=connection.dialect)


def is_offline(connection: Connection) -> bool:
    """True when Alembic is rendering SQL (``--sql``) instead of executing it.

    In offline mode the bind is a mock connection that only writes
    statements out, so nothing can be inspected.
    """
    return isinstance(connection, MockConnection)


def _inspect(connection: Connection) -> sa.Inspector:
    if is_offline(connection):
        raise MigrationError("Schema inspection is not available in offline (--sql) mode")
    return inspect(connection)


# =============================================================================
# Pre-flight Check Functions
# =============================================================================


def table_exists(connection: Connection, table_name: str) -> bool:
    """Check if a table exists in the database.

    Args:
        connection: SQLAlchemy connection object.
        table_name: Name of the table to check.

    Returns:
        True if table exists, False otherwise.
    """
    return _inspect(connection).has_table(table_name)


def column_exists(connection: Connection, table_name: str, column_name: str) -> bool:
    """Check if a column exists in a table.

    Args:
        connection: SQLAlchemy connection object.
        table_name: Name of the table.
        column_name: Name of the column to check.

    Returns:
        True if column exists, False if it or the table is missing.
    """
    return column_name in get_column_names(connection, table_name)


def get_column_names(connection: Connection, table_name: str) -> list[str]:
    """Return the table's column names in declaration order (empty if absent)."""
    inspector = _inspect(connection)
    if not inspector.has_table(table_name):
        return []
    return [col["name"] for col in inspector.get_columns(table_name)]


def index_exists(connection: Connection, table_name: str, index_name: str) -> bool:
    """Check if an index exists on a table.

    Args:
        connection: SQLAlchemy connection object.
        table_name: Name of the table the index belongs to.
        index_name: Name of the index to check.

    Returns:
        True if index exists, False otherwise.
    """
    inspector = _inspect(connection)
    if not inspector.has_table(table_name):
        return False
    return any(idx["name"] == index_name for idx in inspector.get_indexes(table_name))


def get_table_row_count(connection: Connection, table_name: str) -> int:
    """Get the exact row count of a table.

    Args:
        connection: SQLAlchemy connection object.
        table_name: Name of the table.

    Returns:
        Number of rows in the table.
    """
    if is_offline(connection):
        raise MigrationError("Row counts are not available in offline (--sql) mode")
    result = connection.execute(
        sa.select(sa.func.count()).select_from(sa.table(table_name))
    )
    return int(result.scalar() or 0)


def get_foreign_key_references(connection: Connection, table_name: str) -> list[dict[str, Any]]:
    """Get all foreign keys that reference a table.

    Args:
        connection: SQLAlchemy connection object.
        table_name: Name of the table to check references for.

    Returns:
        List of dicts with constraint info (table, columns, constraint name).
    """
    inspector = _inspect(connection)
    references = []
    for other_table in inspector.get_table_names():
        if other_table == table_name:
            continue
        for fk in inspector.get_foreign_keys(other_table):
            if fk.get("referred_table") == table_name:
                references.append(
                    {
                        "referencing_table": other_table,
                        "referencing_columns": fk.get("constrained_columns", []),
                        "constraint_name": fk.get("name"),
                    }
                )
    return references


# =============================================================================
# Safe Operation Functions
# =============================================================================


def _drop_partial_table(connection: Connection, table_name: str) -> None:
    """Best-effort removal of a table left behind by a failed CREATE."""
    try:
        if table_exists(connection, table_name):
            connection.execute(text(f"DROP TABLE {_quote(connection, table_name)}"))
            logger.warning(f"Dropped partially created table '{table_name}'")
    except SQLAlchemyError as e:
        logger.warning(
            f"Cleanup of partially created table '{table_name}' failed: {sanitize_error(e)}"
        )


def safe_table_create(
    connection: Connection, table_name: str, *elements: sa.SchemaItem
) -> sa.Table:
    """Create a table (and its indexes) with existence checks and cleanup.

    Args:
        connection: SQLAlchemy connection object.
        table_name: Name of the table to create.
        *elements: Columns, constraints and indexes for the table.

    Returns:
        The ``sa.Table`` that was created.

    Raises:
        PreflightCheckError: If the table already exists. The existing table
            is left untouched.
        SQLAlchemyError: If the CREATE fails; the partially created table is
            dropped best-effort before the error is re-raised.
    """
    logger.info(f"Attempting to create table '{table_name}'")

    table = sa.Table(table_name, sa.MetaData(), *elements)
    if is_offline(connection):
        table.create(connection)
        return table

    if table_exists(connection, table_name):
        raise PreflightCheckError(f"Table '{table_name}' already exists")

    try:
        table.create(connection)
    except SQLAlchemyError as e:
        logger.error(f"Failed to create table '{table_name}': {sanitize_error(e)}")
        _drop_partial_table(connection, table_name)
        raise

    if not table_exists(connection, table_name):
        raise VerificationError(f"Table create verification failed: '{table_name}' not found")

    logger.info(f"Successfully created table '{table_name}'")
    return table


def safe_column_add(
    connection: Connection,
    table_name: str,
    column_name: str,
    column_type: TypeEngine[Any] | str,
    nullable: bool = True,
    default: str | None = None,
    after: str | None = None,
) -> bool:
    """Safely add a column with existence checks.

    Args:
        connection: SQLAlchemy connection object.
        table_name: Name of the table.
        column_name: Name of the column to add.
        column_type: SQLAlchemy type or SQL type string (e.g., 'VARCHAR(64)').
        nullable: Whether the column allows NULL values.
        default: Default value for the column (as SQL expression).
        after: Existing column to place the new one after. Honoured on
            MySQL/MariaDB; other dialects append the column.

    Returns:
        True if the column was added, False if it already existed.

    Raises:
        PreflightCheckError: If the table (or the ``after`` column) doesn't exist.
    """
    logger.info(f"Attempting to add column '{column_name}' to table '{table_name}'")
    offline = is_offline(connection)

    if not offline:
        if not table_exists(connection, table_name):
            raise PreflightCheckError(f"Table '{table_name}' does not exist")

        if column_exists(connection, table_name, column_name):
            logger.info(f"Column '{column_name}' already exists in '{table_name}', skipping")
            return False

    null_constraint = "" if nullable else " NOT NULL"
    default_clause = f" DEFAULT {default}" if default else ""
    position_clause = ""
    if after is not None:
        if not offline and not column_exists(connection, table_name, after):
            raise PreflightCheckError(
                f"Column '{after}' does not exist in '{table_name}', cannot place "
                f"'{column_name}' after it"
            )
        if connection.dialect.name in _POSITIONAL_DIALECTS:
            position_clause = f" AFTER {_quote(connection, after)}"

    connection.execute(
        text(
            f"ALTER TABLE {_quote(connection, table_name)} "
            f"ADD COLUMN {_quote(connection, column_name)} "
            f"{_compile_type(connection, column_type)}"
            f"{default_clause}{null_constraint}{position_clause}"
        )
    )

    if offline:
        return True

    if not column_exists(connection, table_name, column_name):
        raise VerificationError(
            f"Column add verification failed: '{column_name}' not found in '{table_name}'"
        )

    logger.info(f"Successfully added column '{column_name}' to table '{table_name}'")
    return True


def safe_column_drop(connection: Connection, table_name: str, column_name: str) -> bool:
    """Safely drop a column with existence checks.

    Args:
        connection: SQLAlchemy connection object.
        table_name: Name of the table.
        column_name: Name of the column to drop.

    Returns:
        True if the column was dropped, False if it was not present.

    Raises:
        PreflightCheckError: If table doesn't exist.
        RollbackError: If the DROP statement fails.
    """
    logger.info(f"Attempting to drop column '{column_name}' from table '{table_name}'")
    offline = is_offline(connection)

    if not offline:
        if not table_exists(connection, table_name):
            raise PreflightCheckError(f"Table '{table_name}' does not exist")

        if not column_exists(connection, table_name, column_name):
            logger.info(f"Column '{column_name}' doesn't exist in '{table_name}', skipping")
            return False

    try:
        connection.execute(
            text(
                f"ALTER TABLE {_quote(connection, table_name)} "
                f"DROP COLUMN {_quote(connection, column_name)}"
            )
        )
    except SQLAlchemyError as e:
        logger.error(
            f"Failed to drop column '{column_name}' from '{table_name}': {sanitize_error(e)}"
        )
        raise RollbackError(f"Could not drop column '{table_name}.{column_name}'") from e

    if offline:
        return True

    if column_exists(connection, table_name, column_name):
        raise VerificationError(
            f"Column drop verification failed: '{column_name}' still exists in '{table_name}'"
        )

    logger.info(f"Successfully dropped column '{column_name}' from table '{table_name}'")
    return True


def safe_index_create(
    connection: Connection,
    index_name: str,
    table_name: str,
    columns: Sequence[str],
    unique: bool = False,
) -> bool:
    """Safely create an index with existence checks.

    Args:
        connection: SQLAlchemy connection object.
        index_name: Name for the index.
        table_name: Name of the table.
        columns: List of column names for the index.
        unique: Whether to create a unique index.

    Returns:
        True if the index was created, False if it already existed.

    Raises:
        PreflightCheckError: If table doesn't exist.
    """
    logger.info(f"Attempting to create index '{index_name}' on '{table_name}'")
    if is_offline(connection):
        op.create_index(index_name, table_name, list(columns), unique=unique)
        return True

    if not table_exists(connection, table_name):
        raise PreflightCheckError(f"Table '{table_name}' does not exist")

    if index_exists(connection, table_name, index_name):
        logger.info(f"Index '{index_name}' already exists, skipping")
        return False

    table = sa.Table(table_name, sa.MetaData(), autoload_with=connection)
    index = sa.Index(index_name, *(table.c[col] for col in columns), unique=unique)
    index.create(connection)

    if not index_exists(connection, table_name, index_name):
        raise VerificationError(f"Index creation verification failed: '{index_name}' not found")

    logger.info(f"Successfully created index '{index_name}' on '{table_name}'")
    return True


def safe_index_drop(connection: Connection, table_name: str, index_name: str) -> bool:
    """Safely drop an index with existence checks.

    Args:
        connection: SQLAlchemy connection object.
        table_name: Name of the table the index belongs to.
        index_name: Name of the index to drop.

    Returns:
        True if the index was dropped, False if it was not present.
    """
    logger.info(f"Attempting to drop index '{index_name}'")
    if is_offline(connection):
        op.drop_index(index_name, table_name=table_name)
        return True

    if not index_exists(connection, table_name, index_name):
        logger.info(f"Index '{index_name}' doesn't exist, skipping")
        return False

    table = sa.Table(table_name, sa.MetaData(), autoload_with=connection)
    index = next(idx for idx in table.indexes if idx.name == index_name)
    index.drop(connection)

    if index_exists(connection, table_name, index_name):
        raise VerificationError(f"Index drop verification failed: '{index_name}' still exists")

    logger.info(f"Successfully dropped index '{index_name}'")
    return True


def safe_table_drop(connection: Connection, table_name: str, cascade: bool = False) -> bool:
    """Safely drop a table with existence checks.

    Args:
        connection: SQLAlchemy connection object.
        table_name: Name of the table to drop.
        cascade: Whether to cascade drop to dependent objects.

    Returns:
        True if the table was dropped, False if it was not present.

    Raises:
        PreflightCheckError: If table has foreign key references and cascade is False.
        RollbackError: If the DROP statement fails.
    """
    logger.info(f"Attempting to drop table '{table_name}'")
    offline = is_offline(connection)

    if not offline and not table_exists(connection, table_name):
        logger.info(f"Table '{table_name}' doesn't exist, skipping")
        return False

    if not offline and not cascade:
        fk_refs = get_foreign_key_references(connection, table_name)
        if fk_refs:
            ref_tables = [ref["referencing_table"] for ref in fk_refs]
            raise PreflightCheckError(
                f"Table '{table_name}' is referenced by foreign keys from: {ref_tables}. "
                f"Use cascade=True to drop anyway."
            )

    cascade_clause = " CASCADE" if cascade and connection.dialect.name != "sqlite" else ""
    try:
        connection.execute(text(f"DROP TABLE {_quote(connection, table_name)}{cascade_clause}"))
    except SQLAlchemyError as e:
        logger.error(f"Failed to drop table '{table_name}': {sanitize_error(e)}")
        raise RollbackError(f"Could not drop table '{table_name}'") from e

    if offline:
        return True

    if table_exists(connection, table_name):
        raise VerificationError(f"Table drop verification failed: '{table_name}' still exists")

    logger.info(f"Successfully dropped table '{table_name}'")
    return True


# =============================================================================
# Verification Functions
# =============================================================================


def verify_table_exists(connection: Connection, table_name: str) -> None:
    """Verify that a table exists.

    Raises:
        VerificationError: If table does not exist.
    """
    if is_offline(connection):
        return
    if not table_exists(connection, table_name):
        raise VerificationError(f"Verification failed: table '{table_name}' does not exist")


def verify_table_absent(connection: Connection, table_name: str) -> None:
    """Verify that a table has been removed.

    Raises:
        VerificationError: If table still exists.
    """
    if is_offline(connection):
        return
    if table_exists(connection, table_name):
        raise VerificationError(f"Verification failed: table '{table_name}' still exists")


def verify_column_exists(connection: Connection, table_name: str, column_name: str) -> None:
    """Verify that a column exists in a table.

    Raises:
        VerificationError: If column does not exist.
    """
    if is_offline(connection):
        return
    if not column_exists(connection, table_name, column_name):
        raise VerificationError(
            f"Verification failed: column '{column_name}' does not exist in '{table_name}'"
        )


def verify_index_exists(connection: Connection, table_name: str, index_name: str) -> None:
    """Verify that an index exists.

    Raises:
        VerificationError: If index does not exist.
    """
    if is_offline(connection):
        return
    if not index_exists(connection, table_name, index_name):
        raise VerificationError(f"Verification failed: index '{index_name}' does not exist")


def verify_table_schema(
    connection: Connection,
    table_name: str,
    expected_columns: Sequence[str],
) -> None:
    """Verify that a table has the expected columns.

    Args:
        connection: SQLAlchemy connection object.
        table_name: Name of the table.
        expected_columns: List of column names that should exist.

    Raises:
        VerificationError: If any expected column is missing.
    """
    if is_offline(connection):
        return
    present = set(get_column_names(connection, table_name))
    missing_columns = [col for col in expected_columns if col not in present]

    if missing_columns:
        raise VerificationError(
            f"Verification failed: table '{table_name}' is missing columns: {missing_columns}"
        )


# =============================================================================
# Migration Context Manager
# =============================================================================


class MigrationContext:
    """Context manager for logged migration operations.

    This context manager provides:
    1. The Alembic bind (or an explicitly supplied connection)
    2. Error logging on failure; exceptions always propagate
    3. Access to helper functions as methods
    4. Operation tracking for debugging

    Usage:
        def upgrade() -> None:
            with MigrationContext("create_hntb_school_zone") as ctx:
                ctx.safe_table_create("hntb_school_zone", *columns)
                ctx.verify_table_exists("hntb_school_zone")

    Attributes:
        migration_name: Name of the migration for logging.
        connection: SQLAlchemy connection object.
        operations: List of operations performed.
    """

    def __init__(self, migration_name: str, connection: Connection | None = None) -> None:
        """Initialize the migration context.

        Args:
            migration_name: Name of the migration for logging purposes.
            connection: Connection to use instead of the Alembic bind.
        """
        self.migration_name = migration_name
        self.connection: Connection | None = connection
        self.operations: list[str] = []
        self._entered = False

    def __enter__(self) -> MigrationContext:
        if self.connection is None:
            self.connection = op.get_bind()
        self._entered = True
        logger.info(f"Starting migration: {self.migration_name}")
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Exit the context, logging any errors.

        Note:
            Exceptions are not suppressed - Alembic aborts the run.
        """
        if exc_type is not None:
            detail = sanitize_error(exc_val) if isinstance(exc_val, Exception) else exc_val
            logger.error(f"Migration '{self.migration_name}' failed: {exc_type.__name__}: {detail}")
            logger.error(f"Operations completed before failure: {self.operations}")
            return

        logger.info(f"Migration '{self.migration_name}' completed successfully")
        logger.info(f"Operations performed: {self.operations}")

    def _ensure_connection(self) -> Connection:
        """Ensure we have a valid connection.

        Raises:
            RuntimeError: If context was not entered properly.
        """
        if not self._entered or self.connection is None:
            raise RuntimeError(
                "MigrationContext must be used as a context manager (with statement)"
            )
        return self.connection

    def _record_operation(self, operation: str) -> None:
        self.operations.append(operation)

    # Delegate methods to module-level functions
    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists."""
        return table_exists(self._ensure_connection(), table_name)

    def column_exists(self, table_name: str, column_name: str) -> bool:
        """Check if a column exists."""
        return column_exists(self._ensure_connection(), table_name, column_name)

    def index_exists(self, table_name: str, index_name: str) -> bool:
        """Check if an index exists."""
        return index_exists(self._ensure_connection(), table_name, index_name)

    def get_table_row_count(self, table_name: str) -> int:
        """Get row count of a table."""
        return get_table_row_count(self._ensure_connection(), table_name)

    def safe_table_create(self, table_name: str, *elements: sa.SchemaItem) -> sa.Table:
        """Create a table, dropping it again if creation fails part-way."""
        table = safe_table_create(self._ensure_connection(), table_name, *elements)
        self._record_operation(f"create_table: {table_name}")
        return table

    def safe_column_add(
        self,
        table_name: str,
        column_name: str,
        column_type: TypeEngine[Any] | str,
        nullable: bool = True,
        default: str | None = None,
        after: str | None = None,
    ) -> bool:
        """Safely add a column."""
        added = safe_column_add(
            self._ensure_connection(),
            table_name,
            column_name,
            column_type,
            nullable,
            default,
            after,
        )
        if added:
            self._record_operation(f"add_column: {table_name}.{column_name}")
        return added

    def safe_column_drop(self, table_name: str, column_name: str) -> bool:
        """Safely drop a column."""
        dropped = safe_column_drop(self._ensure_connection(), table_name, column_name)
        if dropped:
            self._record_operation(f"drop_column: {table_name}.{column_name}")
        return dropped

    def safe_index_create(
        self,
        index_name: str,
        table_name: str,
        columns: Sequence[str],
        unique: bool = False,
    ) -> bool:
        """Safely create an index."""
        created = safe_index_create(
            self._ensure_connection(), index_name, table_name, columns, unique
        )
        if created:
            self._record_operation(f"create_index: {index_name} on {table_name}")
        return created

    def safe_index_drop(self, table_name: str, index_name: str) -> bool:
        """Safely drop an index."""
        dropped = safe_index_drop(self._ensure_connection(), table_name, index_name)
        if dropped:
            self._record_operation(f"drop_index: {index_name}")
        return dropped

    def safe_table_drop(self, table_name: str, cascade: bool = False) -> bool:
        """Safely drop a table."""
        dropped = safe_table_drop(self._ensure_connection(), table_name, cascade)
        if dropped:
            self._record_operation(f"drop_table: {table_name}")
        return dropped

    def verify_table_exists(self, table_name: str) -> None:
        """Verify a table exists."""
        verify_table_exists(self._ensure_connection(), table_name)
        self._record_operation(f"verify_table: {table_name}")

    def verify_table_absent(self, table_name: str) -> None:
        """Verify a table was removed."""
        verify_table_absent(self._ensure_connection(), table_name)
        self._record_operation(f"verify_absent: {table_name}")

    def verify_column_exists(self, table_name: str, column_name: str) -> None:
        """Verify a column exists."""
        verify_column_exists(self._ensure_connection(), table_name, column_name)
        self._record_operation(f"verify_column: {table_name}.{column_name}")

    def verify_index_exists(self, table_name: str, index_name: str) -> None:
        """Verify an index exists."""
        verify_index_exists(self._ensure_connection(), table_name, index_name)
        self._record_operation(f"verify_index: {index_name}")

    def verify_table_schema(self, table_name: str, expected_columns: Sequence[str]) -> None:
        """Verify a table has expected columns."""
        verify_table_schema(self._ensure_connection(), table_name, expected_columns)
        self._record_operation(f"verify_schema: {table_name}")

    def execute(self, sql: str, params: dict[str, Any] | None = None) -> Any:
        """Execute raw SQL with logging.

        Args:
            sql: SQL statement to execute.
            params: Optional parameters for the SQL statement.

        Returns:
            Result of the SQL execution.
        """
        conn = self._ensure_connection()
        logger.debug(f"Executing SQL: {sql[:100]}...")
        result = conn.execute(text(sql), params or {})
        self._record_operation(f"execute_sql: {sql[:50]}...")
        return result


# =============================================================================
# Transaction Helpers
# =============================================================================


@contextmanager
def logged_operation(operation_name: str, rollback_hint: str | None = None) -> Generator[None]:
    """Context manager for logging migration operations.

    Args:
        operation_name: Name of the operation for logging.
        rollback_hint: Optional hint for how to rollback this operation.

    Raises:
        MigrationError: Re-raises any database exception with additional context.
    """
    logger.info(f"Starting operation: {operation_name}")
    try:
        yield
        logger.info(f"Completed operation: {operation_name}")
    except (IntegrityError, OperationalError, ProgrammingError) as e:
        error_msg = f"Operation '{operation_name}' failed: {sanitize_error(e)}"
        if rollback_hint:
            error_msg += f"\nRollback hint: {rollback_hint}"
        logger.error(error_msg)
        raise MigrationError(error_msg) from e
    except SQLAlchemyError as e:
        error_msg = f"Database error in operation '{operation_name}': {sanitize_error(e)}"
        logger.error(error_msg)
        raise MigrationError(error_msg) from e

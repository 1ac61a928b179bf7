"""Add nullable county labels to trip and event tables.

Revision ID: 0005
Revises: 0004
Create Date: 2026-04-06

Adds ``origin_county`` to hntb_trip and ``event_county`` to hntb_event,
hntb_tow_and_go and hntb_school_zone, each placed after the row's
longitude column on MySQL. The columns are filled later by the county
backfill job; this migration does not touch existing rows.

Every column is added only if absent and dropped only if present, so the
migration can be re-applied after a manual hotfix.
"""

from collections.abc import Sequence

import sqlalchemy as sa

from mobility_db.migrations.helpers import MigrationContext

# revision identifiers, used by Alembic.
revision: str = "0005"
down_revision: str | None = "0004"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# (table, county column, longitude column it follows)
COUNTY_COLUMNS: tuple[tuple[str, str, str], ...] = (
    ("hntb_trip", "origin_county", "origin_lng"),
    ("hntb_event", "event_county", "event_lng"),
    ("hntb_tow_and_go", "event_county", "event_lng"),
    ("hntb_school_zone", "event_county", "event_lng"),
)

COUNTY_LENGTH = 64


def upgrade() -> None:
    """Add each county column unless it already exists."""
    with MigrationContext("add_county_columns") as ctx:
        for table_name, column_name, after in COUNTY_COLUMNS:
            ctx.safe_column_add(
                table_name,
                column_name,
                sa.String(COUNTY_LENGTH),
                nullable=True,
                after=after,
            )
            ctx.verify_column_exists(table_name, column_name)


def downgrade() -> None:
    """Drop each county column that is present."""
    with MigrationContext("drop_county_columns") as ctx:
        for table_name, column_name, _ in reversed(COUNTY_COLUMNS):
            ctx.safe_column_drop(table_name, column_name)

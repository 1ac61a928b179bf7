"""Create hntb_school_zone table for school-zone safety actions.

Revision ID: 0004
Revises: 0003
Create Date: 2026-03-16

Each row is one safety-relevant action logged inside a school zone
(crosswalk use, speeding alert, drop-off, ...). ``action_id`` is assigned
by the event-logging service, so the primary key is a string.
"""

from collections.abc import Sequence

import sqlalchemy as sa

from mobility_db.core.types import coordinate, timestamp
from mobility_db.migrations.helpers import MigrationContext

# revision identifiers, used by Alembic.
revision: str = "0004"
down_revision: str | None = "0003"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

TABLE_NAME = "hntb_school_zone"

EXPECTED_COLUMNS = (
    "action_id",
    "user_id",
    "event_name",
    "event_lat",
    "event_lng",
    "logged_time",
    "created_at",
    "updated_at",
)


def upgrade() -> None:
    """Create hntb_school_zone with a unique index on action_id."""
    with MigrationContext("create_hntb_school_zone") as ctx:
        ctx.safe_table_create(
            TABLE_NAME,
            sa.Column("action_id", sa.String(32), primary_key=True),
            sa.Column("user_id", sa.String(256), nullable=False),
            sa.Column("event_name", sa.String(32), nullable=False),
            sa.Column("event_lat", coordinate(), nullable=False),
            sa.Column("event_lng", coordinate(), nullable=False),
            sa.Column("logged_time", timestamp(), nullable=False),
            sa.Column("created_at", timestamp(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", timestamp(), nullable=False, server_default=sa.func.now()),
            sa.Index("hntb_school_zone_action_id_unique", "action_id", unique=True),
        )
        ctx.verify_table_schema(TABLE_NAME, EXPECTED_COLUMNS)


def downgrade() -> None:
    """Drop hntb_school_zone."""
    with MigrationContext("drop_hntb_school_zone") as ctx:
        ctx.safe_table_drop(TABLE_NAME)
        ctx.verify_table_absent(TABLE_NAME)

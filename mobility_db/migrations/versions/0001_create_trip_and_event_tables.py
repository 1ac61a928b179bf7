"""Create baseline trip and event tables.

Revision ID: 0001
Revises:
Create Date: 2026-03-02

The ingestion service writes raw trips and generic app events into these
two tables. Later revisions add dedicated event tables and county labels
on top of them.
"""

from collections.abc import Sequence

import sqlalchemy as sa

from mobility_db.core.types import coordinate, timestamp
from mobility_db.migrations.helpers import MigrationContext

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column("created_at", timestamp(), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", timestamp(), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    """Create hntb_trip and hntb_event."""
    with MigrationContext("create_trip_and_event_tables") as ctx:
        ctx.safe_table_create(
            "hntb_trip",
            sa.Column("trip_id", sa.String(64), primary_key=True),
            sa.Column("user_id", sa.String(256), nullable=False),
            sa.Column("origin_lat", coordinate(), nullable=False),
            sa.Column("origin_lng", coordinate(), nullable=False),
            sa.Column("destination_lat", coordinate(), nullable=True),
            sa.Column("destination_lng", coordinate(), nullable=True),
            sa.Column("start_time", timestamp(), nullable=False),
            sa.Column("end_time", timestamp(), nullable=True),
            sa.Column("travel_mode", sa.String(32), nullable=True),
            *_audit_columns(),
            sa.Index("idx_hntb_trip_user_id", "user_id"),
        )
        ctx.safe_table_create(
            "hntb_event",
            sa.Column("event_id", sa.String(64), primary_key=True),
            sa.Column("user_id", sa.String(256), nullable=False),
            sa.Column("event_type", sa.String(64), nullable=False),
            sa.Column("event_lat", coordinate(), nullable=False),
            sa.Column("event_lng", coordinate(), nullable=False),
            sa.Column("logged_time", timestamp(), nullable=False),
            *_audit_columns(),
            sa.Index("idx_hntb_event_user_id", "user_id"),
        )


def downgrade() -> None:
    """Drop hntb_event and hntb_trip."""
    with MigrationContext("drop_trip_and_event_tables") as ctx:
        ctx.safe_table_drop("hntb_event")
        ctx.safe_table_drop("hntb_trip")
        ctx.verify_table_absent("hntb_event")
        ctx.verify_table_absent("hntb_trip")

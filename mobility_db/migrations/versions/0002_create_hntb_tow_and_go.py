"""Create hntb_tow_and_go table for emergency assistance requests.

Revision ID: 0002
Revises: 0001
Create Date: 2026-03-09

One row per Tow-and-Go request: who asked, where, when the request was
made and when (if ever) a responder arrived. ``status`` is 1 for a
successful assist and 0 for a failed one. The ingestion service sets
``status`` and ``response_time`` once; rows are otherwise immutable.
"""

from collections.abc import Sequence

import sqlalchemy as sa

from mobility_db.core.types import coordinate, timestamp, tiny_integer, unsigned_integer
from mobility_db.migrations.helpers import MigrationContext

# revision identifiers, used by Alembic.
revision: str = "0002"
down_revision: str | None = "0001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

TABLE_NAME = "hntb_tow_and_go"


def upgrade() -> None:
    """Create hntb_tow_and_go with a unique index on its id."""
    with MigrationContext("create_hntb_tow_and_go") as ctx:
        ctx.safe_table_create(
            TABLE_NAME,
            sa.Column("tow_and_go_id", unsigned_integer(), primary_key=True, autoincrement=True),
            sa.Column("user_id", sa.String(256), nullable=False),
            sa.Column(
                "status",
                tiny_integer(),
                nullable=False,
                comment="1 = success, 0 = failure",
            ),
            sa.Column("event_lat", coordinate(), nullable=False),
            sa.Column("event_lng", coordinate(), nullable=False),
            sa.Column("request_time", timestamp(), nullable=False),
            sa.Column("response_time", timestamp(), nullable=True),
            sa.Column("created_at", timestamp(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", timestamp(), nullable=False, server_default=sa.func.now()),
            sa.Index("hntb_tow_and_go_tow_and_go_id_unique", "tow_and_go_id", unique=True),
        )
        ctx.verify_index_exists(TABLE_NAME, "hntb_tow_and_go_tow_and_go_id_unique")


def downgrade() -> None:
    """Drop hntb_tow_and_go."""
    with MigrationContext("drop_hntb_tow_and_go") as ctx:
        ctx.safe_table_drop(TABLE_NAME)
        ctx.verify_table_absent(TABLE_NAME)

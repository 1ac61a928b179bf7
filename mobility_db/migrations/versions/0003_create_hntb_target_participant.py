"""Create hntb_target_participant registry table.

Revision ID: 0003
Revises: 0002
Create Date: 2026-03-09

Participants included in targeted studies are stored only by a hashed
identifier, never by their app user id.
"""

from collections.abc import Sequence

import sqlalchemy as sa

from mobility_db.core.types import timestamp, unsigned_integer
from mobility_db.migrations.helpers import MigrationContext

# revision identifiers, used by Alembic.
revision: str = "0003"
down_revision: str | None = "0002"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

TABLE_NAME = "hntb_target_participant"


def upgrade() -> None:
    """Create hntb_target_participant with a unique index on its id."""
    with MigrationContext("create_hntb_target_participant") as ctx:
        ctx.safe_table_create(
            TABLE_NAME,
            sa.Column(
                "target_participant_id", unsigned_integer(), primary_key=True, autoincrement=True
            ),
            sa.Column("hash_id", sa.String(256), nullable=False),
            sa.Column("created_at", timestamp(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", timestamp(), nullable=False, server_default=sa.func.now()),
            sa.Index(
                "hntb_target_participant_target_participant_id_unique",
                "target_participant_id",
                unique=True,
            ),
        )


def downgrade() -> None:
    """Drop hntb_target_participant."""
    with MigrationContext("drop_hntb_target_participant") as ctx:
        ctx.safe_table_drop(TABLE_NAME)
        ctx.verify_table_absent(TABLE_NAME)

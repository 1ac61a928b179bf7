"""Targeted-participant registry model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from mobility_db.core.types import timestamp, unsigned_integer

from .base import Base


class TargetParticipant(Base):
    """A participant included in a targeted study, known only by hashed id."""

    __tablename__ = "hntb_target_participant"
    __table_args__ = (
        Index(
            "hntb_target_participant_target_participant_id_unique",
            "target_participant_id",
            unique=True,
        ),
    )

    target_participant_id: Mapped[int] = mapped_column(
        unsigned_integer(), primary_key=True, autoincrement=True
    )
    hash_id: Mapped[str] = mapped_column(String(256), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        timestamp(), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        timestamp(), server_default=func.now(), onupdate=func.now(), nullable=False
    )

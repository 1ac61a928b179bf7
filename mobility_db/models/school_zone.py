"""School-zone safety action model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from mobility_db.core.types import coordinate, timestamp

from .base import Base


class SchoolZoneEvent(Base):
    """A safety-relevant action logged inside a school zone.

    ``event_name`` is a short category such as ``crosswalk_use`` or
    ``speeding_alert``; ``action_id`` comes from the event-logging service.
    """

    __tablename__ = "hntb_school_zone"
    __table_args__ = (Index("hntb_school_zone_action_id_unique", "action_id", unique=True),)

    action_id: Mapped[str] = mapped_column(String(32), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(256), nullable=False)
    event_name: Mapped[str] = mapped_column(String(32), nullable=False)
    event_lat: Mapped[float] = mapped_column(coordinate(), nullable=False)
    event_lng: Mapped[float] = mapped_column(coordinate(), nullable=False)
    event_county: Mapped[str | None] = mapped_column(String(64), nullable=True)
    logged_time: Mapped[datetime] = mapped_column(timestamp(), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        timestamp(), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        timestamp(), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<SchoolZoneEvent(action_id={self.action_id!r}, event_name={self.event_name!r})>"

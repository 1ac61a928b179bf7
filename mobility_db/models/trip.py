"""Trip and generic app-event models written by the ingestion service."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from mobility_db.core.types import coordinate, timestamp

from .base import Base


class Trip(Base):
    """A single recorded trip.

    ``origin_county`` is derived from the origin coordinates by the county
    backfill job and is NULL until then.
    """

    __tablename__ = "hntb_trip"
    __table_args__ = (Index("idx_hntb_trip_user_id", "user_id"),)

    trip_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(256), nullable=False)
    origin_lat: Mapped[float] = mapped_column(coordinate(), nullable=False)
    origin_lng: Mapped[float] = mapped_column(coordinate(), nullable=False)
    origin_county: Mapped[str | None] = mapped_column(String(64), nullable=True)
    destination_lat: Mapped[float | None] = mapped_column(coordinate(), nullable=True)
    destination_lng: Mapped[float | None] = mapped_column(coordinate(), nullable=True)
    start_time: Mapped[datetime] = mapped_column(timestamp(), nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(timestamp(), nullable=True)
    travel_mode: Mapped[str | None] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        timestamp(), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        timestamp(), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Trip(trip_id={self.trip_id!r}, user_id={self.user_id!r})>"


class TripEvent(Base):
    """A generic event logged by the mobile app (braking, app open, ...)."""

    __tablename__ = "hntb_event"
    __table_args__ = (Index("idx_hntb_event_user_id", "user_id"),)

    event_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(256), nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
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

"""Tow-and-Go emergency assistance request model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Index, String, func
from sqlalchemy.orm import Mapped, mapped_column

from mobility_db.core.types import coordinate, timestamp, tiny_integer, unsigned_integer

from .base import Base
from .enums import TowAndGoStatus


class TowAndGo(Base):
    """One emergency assistance request.

    ``status`` and ``response_time`` are written once by the ingestion
    service when the request resolves; the row is immutable afterwards.
    """

    __tablename__ = "hntb_tow_and_go"
    __table_args__ = (
        Index("hntb_tow_and_go_tow_and_go_id_unique", "tow_and_go_id", unique=True),
    )

    tow_and_go_id: Mapped[int] = mapped_column(
        unsigned_integer(), primary_key=True, autoincrement=True
    )
    user_id: Mapped[str] = mapped_column(String(256), nullable=False)
    status: Mapped[int] = mapped_column(tiny_integer(), nullable=False)
    event_lat: Mapped[float] = mapped_column(coordinate(), nullable=False)
    event_lng: Mapped[float] = mapped_column(coordinate(), nullable=False)
    event_county: Mapped[str | None] = mapped_column(String(64), nullable=True)
    request_time: Mapped[datetime] = mapped_column(timestamp(), nullable=False)
    response_time: Mapped[datetime | None] = mapped_column(timestamp(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        timestamp(), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        timestamp(), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    @property
    def succeeded(self) -> bool:
        return self.status == TowAndGoStatus.SUCCESS

    @property
    def response_seconds(self) -> float | None:
        """Seconds between request and response, or None while unresolved."""
        if self.response_time is None:
            return None
        return (self.response_time - self.request_time).total_seconds()

    def __repr__(self) -> str:
        return (
            f"<TowAndGo(tow_and_go_id={self.tow_and_go_id!r}, "
            f"status={TowAndGoStatus(self.status)!s})>"
        )

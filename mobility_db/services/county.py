"""County-label backfill for rows with coordinates.

The county migration only adds nullable columns. This job fills them in
afterwards by resolving each row's coordinates through a caller-supplied
resolver (a shapefile lookup, a geocoding client, ...). Rows that already
have a label are never rewritten.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from mobility_db.core.logging import get_logger, sanitize_error
from mobility_db.models import SchoolZoneEvent, TowAndGo, Trip, TripEvent
from mobility_db.models.base import Base

logger = get_logger(__name__)

CountyResolver = Callable[[float, float], str | None]

COUNTY_MAX_LENGTH = 64

# model -> (county attribute, latitude attribute, longitude attribute)
COUNTY_FIELDS: dict[type[Base], tuple[str, str, str]] = {
    Trip: ("origin_county", "origin_lat", "origin_lng"),
    TripEvent: ("event_county", "event_lat", "event_lng"),
    TowAndGo: ("event_county", "event_lat", "event_lng"),
    SchoolZoneEvent: ("event_county", "event_lat", "event_lng"),
}


@dataclass(slots=True)
class BackfillResult:
    """Counts from one backfill run."""

    examined: int = 0
    labelled: int = 0
    unresolved: int = 0


def backfill_counties(
    session: Session,
    model: type[Base],
    resolver: CountyResolver,
    batch_size: int = 500,
) -> BackfillResult:
    """Fill NULL county labels on ``model`` using ``resolver``.

    Args:
        session: Database session; the caller owns the commit.
        model: One of the models in ``COUNTY_FIELDS``.
        resolver: ``(lat, lng) -> county name`` or None when unknown.
        batch_size: Rows loaded per batch.

    Returns:
        BackfillResult with examined/labelled/unresolved counts.

    Raises:
        ValueError: If the model has no county column, ``batch_size`` is not
            positive, or the resolver returns a label longer than the column.
    """
    if model not in COUNTY_FIELDS:
        raise ValueError(f"{model.__name__} has no county column")
    if batch_size <= 0:
        raise ValueError("batch_size must be positive")

    county_attr, lat_attr, lng_attr = COUNTY_FIELDS[model]
    county_col = getattr(model, county_attr)
    pk_col = model.__mapper__.primary_key[0]

    result = BackfillResult()
    last_pk = None
    while True:
        stmt = select(model).where(county_col.is_(None)).order_by(pk_col).limit(batch_size)
        if last_pk is not None:
            stmt = stmt.where(pk_col > last_pk)
        rows = list(session.scalars(stmt).all())
        if not rows:
            break

        for row in rows:
            result.examined += 1
            try:
                county = resolver(getattr(row, lat_attr), getattr(row, lng_attr))
            except Exception as e:
                logger.error(f"County resolver failed for {row!r}: {sanitize_error(e)}")
                raise
            if county is None:
                result.unresolved += 1
                continue
            if len(county) > COUNTY_MAX_LENGTH:
                raise ValueError(
                    f"County label '{county[:20]}...' exceeds {COUNTY_MAX_LENGTH} characters"
                )
            setattr(row, county_attr, county)
            result.labelled += 1

        last_pk = getattr(rows[-1], pk_col.key)
        session.flush()

    logger.info(
        f"County backfill on {model.__tablename__}: examined={result.examined}, "
        f"labelled={result.labelled}, unresolved={result.unresolved}"
    )
    return result

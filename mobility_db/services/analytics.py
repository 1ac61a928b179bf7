"""Example analytics queries over the research tables.

These are the queries analysts run most often, written with SQLAlchemy so
they work against the MySQL warehouse as well as local SQLite copies.

Usage:
    with get_session(engine) as session:
        counts = count_school_zone_events_by_name(session)
        summary = summarize_tow_and_go(session)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sqlalchemy import case, func, select
from sqlalchemy.orm import InstrumentedAttribute, Session

from mobility_db.core.logging import get_logger
from mobility_db.models import SchoolZoneEvent, TowAndGo, TowAndGoStatus

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class TowAndGoSummary:
    """Aggregate outcome of Tow-and-Go requests."""

    total: int
    successes: int
    failures: int
    resolved: int
    mean_response_seconds: float | None

    @property
    def success_rate(self) -> float | None:
        """Share of successful requests, or None when there are none."""
        if self.total == 0:
            return None
        return self.successes / self.total

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "successes": self.successes,
            "failures": self.failures,
            "resolved": self.resolved,
            "success_rate": self.success_rate,
            "mean_response_seconds": self.mean_response_seconds,
        }


def get_school_zone_event(session: Session, action_id: str) -> SchoolZoneEvent | None:
    """Fetch one school-zone action by primary key."""
    return session.get(SchoolZoneEvent, action_id)


def count_school_zone_events_by_name(
    session: Session,
    since: datetime | None = None,
    until: datetime | None = None,
) -> dict[str, int]:
    """Count school-zone actions per ``event_name``.

    Args:
        session: Database session.
        since: Only count actions logged at or after this time.
        until: Only count actions logged before this time.

    Returns:
        Mapping of event name to count, most frequent first.
    """
    count = func.count(SchoolZoneEvent.action_id).label("count")
    stmt = select(SchoolZoneEvent.event_name, count).group_by(SchoolZoneEvent.event_name)
    if since is not None:
        stmt = stmt.where(SchoolZoneEvent.logged_time >= since)
    if until is not None:
        stmt = stmt.where(SchoolZoneEvent.logged_time < until)
    stmt = stmt.order_by(count.desc(), SchoolZoneEvent.event_name)

    return {name: int(total) for name, total in session.execute(stmt).all()}


def list_school_zone_events_for_user(
    session: Session, user_id: str, limit: int | None = None
) -> list[SchoolZoneEvent]:
    """Return a user's school-zone actions, newest first."""
    stmt = (
        select(SchoolZoneEvent)
        .where(SchoolZoneEvent.user_id == user_id)
        .order_by(SchoolZoneEvent.logged_time.desc())
    )
    if limit is not None:
        stmt = stmt.limit(limit)
    return list(session.scalars(stmt).all())


def summarize_tow_and_go(session: Session) -> TowAndGoSummary:
    """Summarize Tow-and-Go outcomes and response times.

    Response times are computed in Python because interval arithmetic is
    not portable across the supported dialects.
    """
    success = case((TowAndGo.status == int(TowAndGoStatus.SUCCESS), 1), else_=0)
    total, successes = session.execute(
        select(func.count(TowAndGo.tow_and_go_id), func.coalesce(func.sum(success), 0))
    ).one()

    durations = [
        (response - request).total_seconds()
        for request, response in session.execute(
            select(TowAndGo.request_time, TowAndGo.response_time).where(
                TowAndGo.response_time.is_not(None)
            )
        ).all()
    ]
    mean = sum(durations) / len(durations) if durations else None

    summary = TowAndGoSummary(
        total=int(total),
        successes=int(successes),
        failures=int(total) - int(successes),
        resolved=len(durations),
        mean_response_seconds=mean,
    )
    logger.debug(f"Tow-and-Go summary: {summary.to_dict()}")
    return summary


def count_by_county(
    session: Session, county_column: InstrumentedAttribute[str | None]
) -> dict[str | None, int]:
    """Count rows per county label; unlabelled rows are keyed by None.

    Usage:
        count_by_county(session, Trip.origin_county)
        count_by_county(session, SchoolZoneEvent.event_county)
    """
    stmt = (
        select(county_column, func.count().label("count"))
        .group_by(county_column)
        .order_by(func.count().desc())
    )
    return {county: int(total) for county, total in session.execute(stmt).all()}

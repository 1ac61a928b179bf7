"""Targeted-participant registry backed by hashed identifiers.

Participants are never stored by their app user id. The registry keeps an
HMAC-SHA256 of the id keyed with ``PARTICIPANT_HASH_SALT``, so membership
can be checked without the table revealing who is enrolled.
"""

from __future__ import annotations

import hashlib
import hmac

from sqlalchemy import select
from sqlalchemy.orm import Session

from mobility_db.core.config import get_settings
from mobility_db.core.logging import get_logger
from mobility_db.models import TargetParticipant

logger = get_logger(__name__)


def hash_participant_id(raw_id: str, salt: str | None = None) -> str:
    """Derive the privacy-preserving token for a participant id.

    Args:
        raw_id: The participant's app user id.
        salt: Secret key; defaults to the configured participant hash salt.

    Returns:
        64-character lowercase hex digest.

    Raises:
        ValueError: If ``raw_id`` is empty.
    """
    if not raw_id:
        raise ValueError("Participant id must not be empty")
    key = (get_settings().participant_hash_salt if salt is None else salt).encode("utf-8")
    return hmac.new(key, raw_id.encode("utf-8"), hashlib.sha256).hexdigest()


def find_participant(session: Session, hash_id: str) -> TargetParticipant | None:
    return session.scalars(
        select(TargetParticipant)
        .where(TargetParticipant.hash_id == hash_id)
        .order_by(TargetParticipant.target_participant_id)
        .limit(1)
    ).first()


def register_participant(
    session: Session, raw_id: str, salt: str | None = None
) -> TargetParticipant:
    """Add a participant to the registry unless already present.

    Returns:
        The existing or newly created registry row.
    """
    hash_id = hash_participant_id(raw_id, salt)
    existing = find_participant(session, hash_id)
    if existing is not None:
        logger.debug(f"Participant already registered as {existing.target_participant_id}")
        return existing

    participant = TargetParticipant(hash_id=hash_id)
    session.add(participant)
    session.flush()
    logger.info(f"Registered targeted participant {participant.target_participant_id}")
    return participant


def is_targeted_participant(session: Session, raw_id: str, salt: str | None = None) -> bool:
    """Check whether a user id is in the targeted-participant registry."""
    return find_participant(session, hash_participant_id(raw_id, salt)) is not None

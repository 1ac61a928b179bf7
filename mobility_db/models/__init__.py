"""SQLAlchemy models for the mobility research platform."""

from .base import Base
from .enums import TowAndGoStatus
from .school_zone import SchoolZoneEvent
from .target_participant import TargetParticipant
from .tow_and_go import TowAndGo
from .trip import Trip, TripEvent

__all__ = [
    "Base",
    "SchoolZoneEvent",
    "TargetParticipant",
    "TowAndGo",
    "TowAndGoStatus",
    "Trip",
    "TripEvent",
]

"""Enumeration types for the mobility research platform."""

from enum import IntEnum


class TowAndGoStatus(IntEnum):
    """Outcome of a Tow-and-Go assistance request, stored as a tinyint."""

    FAILURE = 0
    SUCCESS = 1

    def __str__(self) -> str:
        """Return lowercase outcome name."""
        return self.name.lower()

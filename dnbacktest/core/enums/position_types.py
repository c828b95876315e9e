"""
Position stance and recommendation enumerations.

This module defines the stance a funding-rate position can hold and the
actions a funding-rate prediction can recommend.
"""

from enum import StrEnum


class Stance(StrEnum):
    """
    Funding-rate position stance.

    A short stance collects positive funding, a long stance collects
    negative funding.
    """

    LONG = "long"
    SHORT = "short"
    NEUTRAL = "neutral"

    @property
    def is_directional(self) -> bool:
        """Check if the stance holds a perpetual position."""
        return self in [self.LONG, self.SHORT]

    @classmethod
    def from_funding_rate(cls, rate: float) -> "Stance":
        """Resolve the stance that collects the given funding rate."""
        if rate > 0:
            return cls.SHORT
        if rate < 0:
            return cls.LONG
        return cls.NEUTRAL


class RecommendedAction(StrEnum):
    """
    Action recommended by a funding-rate prediction.
    """

    LONG = "long"
    SHORT = "short"
    NEUTRAL = "neutral"
    AVOID = "avoid"

    def expected_funding_sign(self) -> int:
        """Sign of the funding rate this action expects to collect."""
        if self == self.SHORT:
            return 1
        if self == self.LONG:
            return -1
        return 0

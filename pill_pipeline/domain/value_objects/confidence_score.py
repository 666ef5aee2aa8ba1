"""
Confidence Score Value Object

Represents confidence levels for extractions and search matches.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


# Below this an extraction or search is usable but flagged for review.
LOW_CONFIDENCE_THRESHOLD = 0.70


class ConfidenceLevel(Enum):
    """Bands the extraction prompt asks the vision model to respect."""

    NONE = "none"               # < 0.1: no reliable signal
    LOW = "low"                 # 0.1 - 0.5
    MEDIUM = "medium"           # 0.5 - 0.7
    HIGH = "high"               # 0.7 - 0.9
    EXACT = "exact"             # >= 0.9: imprint, shape and color all align


@dataclass(frozen=True)
class ConfidenceScore:
    """
    Immutable value object representing a confidence score.

    Attributes:
        value: Float between 0.0 and 1.0
        source: Optional identifier for what produced this score
    """

    value: float
    source: Optional[str] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.value <= 1.0:
            raise ValueError(f"Confidence score must be between 0.0 and 1.0, got {self.value}")

    @property
    def level(self) -> ConfidenceLevel:
        if self.value < 0.1:
            return ConfidenceLevel.NONE
        elif self.value < 0.5:
            return ConfidenceLevel.LOW
        elif self.value < 0.7:
            return ConfidenceLevel.MEDIUM
        elif self.value < 0.9:
            return ConfidenceLevel.HIGH
        return ConfidenceLevel.EXACT

    @property
    def is_low(self) -> bool:
        return self.value < LOW_CONFIDENCE_THRESHOLD

    @property
    def percentage(self) -> int:
        return int(round(self.value * 100))

    def __str__(self) -> str:
        return f"{self.value:.2%}"

    def __repr__(self) -> str:
        return f"ConfidenceScore(value={self.value:.4f}, level={self.level.value})"

    @classmethod
    def zero(cls, source: Optional[str] = None) -> "ConfidenceScore":
        return cls(value=0.0, source=source)

    @classmethod
    def clamped(cls, value: float, source: Optional[str] = None) -> "ConfidenceScore":
        """Create a score, clamping any real value into [0, 1]."""
        return cls(value=min(max(float(value), 0.0), 1.0), source=source)

    @classmethod
    def from_percentage(cls, percentage: float, source: Optional[str] = None) -> "ConfidenceScore":
        return cls.clamped(percentage / 100.0, source=source)

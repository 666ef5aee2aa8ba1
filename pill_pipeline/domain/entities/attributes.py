"""
Extracted Attributes Entity

Visual attributes of one pill, normalized to the canonical vocabularies.
"""

from dataclasses import dataclass, asdict
from typing import Optional, Dict, Any, Mapping

from ..normalization import (
    normalize_shape,
    normalize_color,
    normalize_scoring,
    normalize_text,
)
from ..value_objects.confidence_score import ConfidenceScore


ATTRIBUTE_FIELDS = (
    "shape",
    "color",
    "size_mm",
    "thickness_mm",
    "front_imprint",
    "back_imprint",
    "scoring",
    "coating",
    "notes",
    "confidence",
)


def _measurement(value: Optional[float]) -> Optional[float]:
    """Sizes are rounded to 0.1 mm; 0 means the model did not estimate one."""
    if value is None:
        return None
    if value < 0:
        raise ValueError(f"Measurements must be non-negative, got {value}")
    if value == 0:
        return None
    return round(float(value), 1)


@dataclass(frozen=True)
class ExtractedAttributes:
    """
    Canonical attribute set for one cropped pill.

    Unknown or "unclear" fields are None, never a guess. Shape and color are
    members of their vocabularies; scoring is one of the scoring options.

    Attributes:
        shape: Canonical shape
        color: Canonical single or two-tone color
        size_mm: Longest dimension in millimetres
        thickness_mm: Thickness in millimetres
        front_imprint: Imprint text on the visible face
        back_imprint: Imprint text on the reverse face
        scoring: "no score", "1 score" or "2 scores"
        coating: Free-text coating description (film, sugar, ...)
        notes: Free-text observations
        confidence: Model confidence in [0, 1]
    """

    confidence: float
    shape: Optional[str] = None
    color: Optional[str] = None
    size_mm: Optional[float] = None
    thickness_mm: Optional[float] = None
    front_imprint: Optional[str] = None
    back_imprint: Optional[str] = None
    scoring: Optional[str] = None
    coating: Optional[str] = None
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Attribute confidence must be between 0.0 and 1.0, got {self.confidence}")
        for name in ("size_mm", "thickness_mm"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ValueError(f"{name} must be non-negative, got {value}")

    @property
    def confidence_score(self) -> ConfidenceScore:
        return ConfidenceScore(value=self.confidence, source="extraction")

    @property
    def is_low_confidence(self) -> bool:
        return self.confidence_score.is_low

    @property
    def has_imprint(self) -> bool:
        return bool(self.front_imprint or self.back_imprint)

    def describe(self) -> str:
        """Short human description, e.g. 'Round White "M 367"'."""
        parts = [p for p in (self.shape, self.color) if p]
        if self.front_imprint:
            parts.append(f'"{self.front_imprint}"')
        return " ".join(parts) or "unrecognised pill"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "ExtractedAttributes":
        """
        Build canonical attributes from a schema-valid raw payload.

        Shape and color outside the vocabulary become None; scoring is
        folded onto the scoring options; text fields are trimmed and
        "unclear" dropped; 0 mm means "not estimated".
        """
        return cls(
            shape=normalize_shape(raw.get("shape")) or None,
            color=normalize_color(raw.get("color")) or None,
            size_mm=_measurement(raw.get("size_mm")),
            thickness_mm=_measurement(raw.get("thickness_mm")),
            front_imprint=normalize_text(raw.get("front_imprint")),
            back_imprint=normalize_text(raw.get("back_imprint")),
            scoring=normalize_scoring(raw.get("scoring")),
            coating=normalize_text(raw.get("coating")),
            notes=normalize_text(raw.get("notes")),
            confidence=float(raw.get("confidence", 0.0)),
        )

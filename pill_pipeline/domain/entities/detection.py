"""
Detection Entities

Raw detector predictions and the clamped regions the pipeline works on.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple, Dict, Any, List

from ..value_objects.bounding_box import BoundingBox


@dataclass(frozen=True)
class DetectorPrediction:
    """
    One raw prediction as returned by the detector (center-box convention).

    Attributes:
        center_x: Box center x in pixels
        center_y: Box center y in pixels
        width: Box width in pixels
        height: Box height in pixels
        confidence: Detector confidence (0-1)
        class_label: Optional class name
        detection_id: Optional detector-assigned identifier
    """

    center_x: float
    center_y: float
    width: float
    height: float
    confidence: float
    class_label: Optional[str] = None
    detection_id: Optional[str] = None

    def to_box(self) -> BoundingBox:
        """Unclamped top-left box."""
        return BoundingBox.from_center(self.center_x, self.center_y, self.width, self.height)


@dataclass(frozen=True)
class DetectorResponse:
    """Detector output before thresholding."""

    image_width: int
    image_height: int
    predictions: Tuple[DetectorPrediction, ...] = ()

    @property
    def prediction_count(self) -> int:
        return len(self.predictions)


@dataclass(frozen=True)
class DetectionRegion:
    """
    One detected pill candidate. Produced once per run and never mutated.

    The box is top-left/width/height and always inside the image.
    """

    id: str
    confidence: float
    box: BoundingBox
    class_label: Optional[str] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Region confidence must be between 0.0 and 1.0, got {self.confidence}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "confidence": round(self.confidence, 4),
            "class_label": self.class_label,
            "box": self.box.to_dict(),
        }


@dataclass(frozen=True)
class DetectionResult:
    """Regions that passed the confidence threshold, plus image size."""

    image_width: int
    image_height: int
    regions: Tuple[DetectionRegion, ...] = field(default_factory=tuple)
    threshold: float = 0.6
    candidates_seen: int = 0

    @property
    def region_count(self) -> int:
        return len(self.regions)

    @property
    def region_ids(self) -> List[str]:
        return [region.id for region in self.regions]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "image_width": self.image_width,
            "image_height": self.image_height,
            "threshold": self.threshold,
            "candidates_seen": self.candidates_seen,
            "regions": [region.to_dict() for region in self.regions],
        }

"""
Pipeline Unit Result Entity

Outcome of the crop → extract unit of work for one detected region.
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any
from enum import Enum
from datetime import datetime

from .detection import DetectionRegion
from .crop import CroppedImage
from .attributes import ExtractedAttributes


class UnitStatus(Enum):
    """
    Lifecycle of one region's unit of work.

    PENDING → CROPPING → EXTRACTING → SUCCESS | FAILED.
    SUCCESS and FAILED are terminal.
    """

    PENDING = "pending"
    CROPPING = "cropping"
    EXTRACTING = "extracting"
    SUCCESS = "success"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (UnitStatus.SUCCESS, UnitStatus.FAILED)

    @property
    def order(self) -> int:
        return _STATUS_ORDER[self]


_STATUS_ORDER = {
    UnitStatus.PENDING: 0,
    UnitStatus.CROPPING: 1,
    UnitStatus.EXTRACTING: 2,
    UnitStatus.SUCCESS: 3,
    UnitStatus.FAILED: 3,
}


@dataclass(frozen=True)
class PipelineUnitResult:
    """
    Tagged result for one region, keyed by region id.

    Use the pending(), success() and failed() constructors; the tag decides
    which payload fields are populated.
    """

    region: DetectionRegion
    status: UnitStatus
    attributes: Optional[ExtractedAttributes] = None
    crop: Optional[CroppedImage] = None
    reason: Optional[str] = None
    error_type: Optional[str] = None
    duration_ms: float = 0.0
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.status == UnitStatus.SUCCESS and (self.attributes is None or self.crop is None):
            raise ValueError("A successful unit needs both attributes and a crop")
        if self.status == UnitStatus.FAILED and not self.reason:
            raise ValueError("A failed unit needs a reason")

    @property
    def region_id(self) -> str:
        return self.region.id

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def is_success(self) -> bool:
        return self.status == UnitStatus.SUCCESS

    @property
    def is_failed(self) -> bool:
        return self.status == UnitStatus.FAILED

    @property
    def is_low_confidence(self) -> bool:
        """Mechanically successful but below the usability threshold."""
        return self.is_success and self.attributes.is_low_confidence

    @property
    def display_status(self) -> str:
        """"success", "low-confidence", "failed" or the in-flight state."""
        if self.is_low_confidence:
            return "low-confidence"
        return self.status.value

    def advance(self, status: UnitStatus) -> "PipelineUnitResult":
        """Move a non-terminal unit to a later in-flight state."""
        if self.is_terminal:
            raise ValueError(f"Region '{self.region_id}' is already {self.status.value}")
        if status.is_terminal or status.order < self.status.order:
            raise ValueError(f"Cannot move region '{self.region_id}' from {self.status.value} to {status.value}")
        return PipelineUnitResult(region=self.region, status=status, updated_at=datetime.now())

    def to_dict(self, include_image: bool = False) -> Dict[str, Any]:
        return {
            "region_id": self.region_id,
            "status": self.display_status,
            "region": self.region.to_dict(),
            "attributes": self.attributes.to_dict() if self.attributes else None,
            "crop": self.crop.to_dict(include_data=include_image) if self.crop else None,
            "reason": self.reason,
            "error_type": self.error_type,
            "duration_ms": round(self.duration_ms, 2),
        }

    @classmethod
    def pending(cls, region: DetectionRegion) -> "PipelineUnitResult":
        return cls(region=region, status=UnitStatus.PENDING, updated_at=datetime.now())

    @classmethod
    def success(
        cls,
        region: DetectionRegion,
        attributes: ExtractedAttributes,
        crop: CroppedImage,
        duration_ms: float = 0.0
    ) -> "PipelineUnitResult":
        return cls(
            region=region,
            status=UnitStatus.SUCCESS,
            attributes=attributes,
            crop=crop,
            duration_ms=duration_ms,
            updated_at=datetime.now(),
        )

    @classmethod
    def failed(
        cls,
        region: DetectionRegion,
        reason: str,
        error_type: Optional[str] = None,
        crop: Optional[CroppedImage] = None,
        duration_ms: float = 0.0
    ) -> "PipelineUnitResult":
        return cls(
            region=region,
            status=UnitStatus.FAILED,
            crop=crop,
            reason=reason,
            error_type=error_type,
            duration_ms=duration_ms,
            updated_at=datetime.now(),
        )

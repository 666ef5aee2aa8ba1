"""
Aggregate Report Entity

Immutable summary of one pipeline run over all detected regions.
"""

from dataclasses import dataclass, field
from typing import Tuple, Optional, Dict, Any, List, Iterable
from datetime import datetime

from .unit_result import PipelineUnitResult


@dataclass(frozen=True)
class AggregateReport:
    """
    Per-region outcomes of one run plus summary statistics.

    `regions` carries completion order; use sorted_regions() for a stable
    display order. Low-confidence units count as neither identified nor
    failed.

    Attributes:
        regions: Terminal unit results, one per detected region
        processing_time_ms: Wall-clock time of the whole run
        request_id: Identifier of the run
        image_width: Width the detector reported
        image_height: Height the detector reported
        aborted: True when the run was cancelled before all units finished
        created_at: When the report was built
    """

    regions: Tuple[PipelineUnitResult, ...]
    processing_time_ms: float
    request_id: str = ""
    image_width: Optional[int] = None
    image_height: Optional[int] = None
    aborted: bool = False
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        ids = [unit.region_id for unit in self.regions]
        if len(ids) != len(set(ids)):
            raise ValueError("Aggregate report contains duplicate region ids")
        if not self.aborted and any(not unit.is_terminal for unit in self.regions):
            raise ValueError("All regions must be terminal unless the run was aborted")

    @property
    def total_count(self) -> int:
        return len(self.regions)

    @property
    def success_count(self) -> int:
        return sum(1 for unit in self.regions if unit.is_success and not unit.is_low_confidence)

    @property
    def low_confidence_count(self) -> int:
        return sum(1 for unit in self.regions if unit.is_low_confidence)

    @property
    def failed_count(self) -> int:
        return sum(1 for unit in self.regions if unit.is_failed)

    @property
    def has_partial_failure(self) -> bool:
        return 0 < self.failed_count < self.total_count

    def get(self, region_id: str) -> Optional[PipelineUnitResult]:
        for unit in self.regions:
            if unit.region_id == region_id:
                return unit
        return None

    def sorted_regions(self, by: str = "region_id") -> List[PipelineUnitResult]:
        """
        Regions in a stable order.

        Args:
            by: "region_id" (numeric ids sort numerically) or "confidence"
                (detector confidence, highest first)
        """
        if by == "confidence":
            return sorted(self.regions, key=lambda unit: -unit.region.confidence)
        return sorted(self.regions, key=lambda unit: _region_sort_key(unit.region_id))

    def best_unit(self) -> Optional[PipelineUnitResult]:
        """Successful unit with the highest attribute confidence."""
        successes = [unit for unit in self.regions if unit.is_success]
        if not successes:
            return None
        return max(successes, key=lambda unit: unit.attributes.confidence)

    def summary(self) -> str:
        """One-line human readable summary."""
        if self.total_count == 0:
            return "No pills detected in the image."

        if self.total_count == 1:
            unit = self.regions[0]
            if unit.is_success and not unit.is_low_confidence:
                score = unit.attributes.confidence_score
                return f"Identified 1 pill ({unit.attributes.describe()}) with {score.percentage}% confidence."
            return "1 pill detected but could not be identified with confidence."

        return (
            f"Detected {self.total_count} pills: {self.success_count} identified, "
            f"{self.low_confidence_count} low confidence, {self.failed_count} failed."
        )

    def to_dict(self, include_images: bool = False) -> Dict[str, Any]:
        return {
            "request_id": self.request_id,
            "summary": self.summary(),
            "total_count": self.total_count,
            "success_count": self.success_count,
            "low_confidence_count": self.low_confidence_count,
            "failed_count": self.failed_count,
            "processing_time_ms": round(self.processing_time_ms, 2),
            "image": {"width": self.image_width, "height": self.image_height},
            "aborted": self.aborted,
            "regions": [unit.to_dict(include_image=include_images) for unit in self.sorted_regions()],
        }

    @classmethod
    def build(
        cls,
        results: Iterable[PipelineUnitResult],
        processing_time_ms: float,
        **kwargs
    ) -> "AggregateReport":
        return cls(regions=tuple(results), processing_time_ms=processing_time_ms, **kwargs)


def _region_sort_key(region_id: str):
    return (0, int(region_id), "") if region_id.isdigit() else (1, 0, region_id)

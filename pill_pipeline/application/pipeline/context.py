"""
Pipeline Context

Carries state through one identification run.
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, Callable, List
from datetime import datetime
from enum import Enum
import asyncio
import logging
import uuid

from ...domain.value_objects.image_data import ImageData
from ...domain.entities.detection import DetectionRegion, DetectionResult
from ...domain.entities.crop import CroppedImage
from ...domain.entities.attributes import ExtractedAttributes
from ...domain.entities.unit_result import PipelineUnitResult
from ...domain.entities.report import AggregateReport
from ...domain.exceptions import (
    PipelineCancelledError,
    PipelineError,
    ResultAlreadyRecordedError,
)
from ...cross_cutting.error_handling import ErrorHandler


logger = logging.getLogger(__name__)


UnitUpdateCallback = Callable[[PipelineUnitResult], None]


class PipelineStage(Enum):
    """Stages of one run."""

    DETECTION = "detection"
    CROP = "crop"
    EXTRACTION = "extraction"


class RunState(Enum):
    """
    Run-level state.

    IDLE → DETECTING → FAILED (run-level error)
    IDLE → DETECTING → PROCESSING → AGGREGATED
    """

    IDLE = "idle"
    DETECTING = "detecting"
    FAILED = "failed"
    PROCESSING = "processing"
    AGGREGATED = "aggregated"


_ALLOWED_TRANSITIONS = {
    RunState.IDLE: {RunState.DETECTING},
    RunState.DETECTING: {RunState.PROCESSING, RunState.FAILED},
    RunState.PROCESSING: {RunState.AGGREGATED, RunState.FAILED},
    RunState.FAILED: set(),
    RunState.AGGREGATED: set(),
}


@dataclass
class StageMetrics:
    """
    Accumulated metrics for one stage across all regions of a run.

    Attributes:
        stage: The pipeline stage
        calls: Number of executions
        failures: Number of executions that raised
        retries: Number of retry attempts
        total_duration_ms: Summed execution time
    """

    stage: PipelineStage
    calls: int = 0
    failures: int = 0
    retries: int = 0
    total_duration_ms: float = 0.0

    def record(self, duration_ms: float, success: bool, retries: int = 0) -> None:
        self.calls += 1
        self.total_duration_ms += duration_ms
        self.retries += retries
        if not success:
            self.failures += 1

    @property
    def average_duration_ms(self) -> float:
        return self.total_duration_ms / self.calls if self.calls else 0.0


@dataclass
class RegionWork:
    """Scratch state of one region's crop → extract unit."""

    region: DetectionRegion
    crop: Optional[CroppedImage] = None
    attributes: Optional[ExtractedAttributes] = None


@dataclass
class PipelineContext:
    """
    Context object that carries state through the pipeline.

    Region results live in a write-once map keyed by region id: each unit
    writes its own slot exactly once, so concurrent units never contend.

    Attributes:
        request_id: Unique identifier for this run
        image: Input image
        options: Caller options (context_hint, ...)
        detection: Detection stage output
        state: Run-level state
        cancel_event: Set by the caller to cancel the run
        on_unit_update: Observer of unit state transitions
        units: Latest state of every unit (in-flight or terminal)
        stage_metrics: Per-stage execution metrics
    """

    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    image: Optional[ImageData] = None
    options: Dict[str, Any] = field(default_factory=dict)

    detection: Optional[DetectionResult] = None
    state: RunState = RunState.IDLE

    cancel_event: Optional[asyncio.Event] = None
    on_unit_update: Optional[UnitUpdateCallback] = None

    units: Dict[str, PipelineUnitResult] = field(default_factory=dict)
    stage_metrics: Dict[PipelineStage, StageMetrics] = field(default_factory=dict)
    created_at: datetime = field(default_factory=datetime.now)

    _results: Dict[str, PipelineUnitResult] = field(default_factory=dict, repr=False)
    _completion_order: List[str] = field(default_factory=list, repr=False)

    # =========================================================================
    # Run state
    # =========================================================================

    def transition(self, new_state: RunState) -> None:
        """
        Move the run to a new state.

        Raises:
            PipelineError: For a transition the state machine does not allow
        """
        if new_state not in _ALLOWED_TRANSITIONS[self.state]:
            raise PipelineError(
                f"Invalid run transition {self.state.value} → {new_state.value}",
                is_recoverable=False,
            )
        logger.debug(f"Run {self.request_id[:8]}: {self.state.value} → {new_state.value}")
        self.state = new_state

    @property
    def is_cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise PipelineCancelledError when the caller has cancelled the run."""
        if self.is_cancelled:
            raise PipelineCancelledError(details={"request_id": self.request_id})

    # =========================================================================
    # Units
    # =========================================================================

    def update_unit(self, unit: PipelineUnitResult) -> None:
        """Publish a unit's in-flight state."""
        if unit.region_id in self._results:
            raise ResultAlreadyRecordedError(unit.region_id)
        self.units[unit.region_id] = unit
        self._notify(unit)

    def record_result(self, result: PipelineUnitResult) -> None:
        """
        Record a unit's terminal result.

        Raises:
            ResultAlreadyRecordedError: If the region already has a result
            ValueError: If the result is not terminal
        """
        if not result.is_terminal:
            raise ValueError(f"Result for region '{result.region_id}' is not terminal")
        if result.region_id in self._results:
            raise ResultAlreadyRecordedError(result.region_id)

        self._results[result.region_id] = result
        self._completion_order.append(result.region_id)
        self.units[result.region_id] = result
        self._notify(result)

    def _notify(self, unit: PipelineUnitResult) -> None:
        if self.on_unit_update is None:
            return
        # A broken observer must not fail the unit it observes
        with ErrorHandler(logger, context="on_unit_update", suppress=True):
            self.on_unit_update(unit)

    def get_result(self, region_id: str) -> Optional[PipelineUnitResult]:
        return self._results.get(region_id)

    @property
    def completed_count(self) -> int:
        return len(self._results)

    @property
    def all_units_terminal(self) -> bool:
        if self.detection is None:
            return False
        return all(region_id in self._results for region_id in self.detection.region_ids)

    # =========================================================================
    # Metrics
    # =========================================================================

    def record_stage(
        self,
        stage: PipelineStage,
        duration_ms: float,
        success: bool,
        retries: int = 0
    ) -> None:
        metrics = self.stage_metrics.setdefault(stage, StageMetrics(stage=stage))
        metrics.record(duration_ms, success, retries)

    def get_stage_duration(self, stage: PipelineStage) -> float:
        if stage in self.stage_metrics:
            return self.stage_metrics[stage].total_duration_ms
        return 0.0

    # =========================================================================
    # Output
    # =========================================================================

    def to_report(self, processing_time_ms: float, aborted: bool = False) -> AggregateReport:
        """
        Build the aggregate report.

        Results appear in completion order. An aborted run also includes the
        latest in-flight state of unfinished units.
        """
        regions = [self._results[region_id] for region_id in self._completion_order]
        if aborted:
            regions.extend(
                unit for region_id, unit in self.units.items() if region_id not in self._results
            )

        return AggregateReport.build(
            regions,
            processing_time_ms=processing_time_ms,
            request_id=self.request_id,
            image_width=self.detection.image_width if self.detection else None,
            image_height=self.detection.image_height if self.detection else None,
            aborted=aborted,
        )

    def __str__(self) -> str:
        return (
            f"PipelineContext(id={self.request_id[:8]}..., state={self.state.value}, "
            f"results={self.completed_count})"
        )

    @classmethod
    def create(
        cls,
        image: ImageData,
        options: Optional[Dict[str, Any]] = None,
        cancel_event: Optional[asyncio.Event] = None,
        on_unit_update: Optional[UnitUpdateCallback] = None
    ) -> "PipelineContext":
        """Create a new pipeline context."""
        return cls(
            image=image,
            options=options or {},
            cancel_event=cancel_event,
            on_unit_update=on_unit_update,
        )

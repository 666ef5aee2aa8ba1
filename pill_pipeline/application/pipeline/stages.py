"""
Pipeline Stage Definitions

Defines individual pipeline stages and their execution logic.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List
import asyncio
import logging
import time

from .context import PipelineContext, PipelineStage, RegionWork
from ...domain.entities.detection import DetectionRegion, DetectionResult, DetectorResponse
from ...domain.entities.crop import CroppedImage
from ...domain.entities.attributes import ExtractedAttributes
from ...domain.exceptions import (
    DomainException,
    NoDetectionError,
    PipelineCancelledError,
    StageExecutionError,
)
from ...domain.ports.detector import DetectorPort
from ...domain.ports.cropper import CropperPort, DEFAULT_PADDING_PCT
from ...domain.ports.attribute_extractor import AttributeExtractorPort


logger = logging.getLogger(__name__)


DEFAULT_CONFIDENCE_THRESHOLD = 0.6


@dataclass
class StageConfig:
    """
    Configuration for a pipeline stage.

    Attributes:
        retry_count: Extra attempts after a recoverable failure (0 = no retries)
        retry_delay_seconds: Delay between attempts
        options: Stage-specific options
    """

    retry_count: int = 0
    retry_delay_seconds: float = 1.0
    options: Dict[str, Any] = field(default_factory=dict)


class PipelineStageExecutor(ABC):
    """
    Abstract base class for pipeline stage executors.

    Each stage wraps one external capability call. Stages raise instead of
    recording errors: the orchestrator decides whether an error fails the
    run or only the region it belongs to.
    """

    def __init__(self, config: Optional[StageConfig] = None):
        self.config = config or StageConfig()
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    @abstractmethod
    def stage(self) -> PipelineStage:
        """Get the pipeline stage this executor handles."""
        pass

    @property
    def name(self) -> str:
        return self.stage.value

    @abstractmethod
    async def execute(self, context: PipelineContext, work: Optional[RegionWork] = None) -> Any:
        """
        Execute the stage logic.

        Args:
            context: Pipeline context
            work: The region unit being processed (None for run-level stages)
        """
        pass

    async def run(self, context: PipelineContext, work: Optional[RegionWork] = None) -> Any:
        """
        Run the stage with cancellation checks and optional retries.

        Recoverable domain errors are retried up to retry_count times;
        anything else is raised on the first failure. Unexpected exceptions
        are wrapped in StageExecutionError.

        Returns:
            Whatever execute() returns
        """
        attempts = 0
        label = f"{self.name}[{work.region.id}]" if work else self.name

        while True:
            context.raise_if_cancelled()
            start = time.perf_counter()
            try:
                result = await self.execute(context, work)
                context.record_stage(self.stage, _elapsed_ms(start), success=True, retries=attempts)
                return result

            except (PipelineCancelledError, asyncio.CancelledError):
                raise

            except DomainException as e:
                context.record_stage(self.stage, _elapsed_ms(start), success=False)
                if not e.is_recoverable or attempts >= self.config.retry_count:
                    self.logger.warning(f"Stage {label} failed: {e}")
                    raise
                attempts += 1
                self.logger.info(
                    f"Stage {label} failed with a recoverable error, "
                    f"retry {attempts}/{self.config.retry_count}: {e}"
                )
                await asyncio.sleep(self.config.retry_delay_seconds)

            except Exception as e:
                context.record_stage(self.stage, _elapsed_ms(start), success=False)
                self.logger.exception(f"Unexpected error in stage {label}")
                raise StageExecutionError(self.name, e)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


# =============================================================================
# Stage Implementations
# =============================================================================

class DetectionStage(PipelineStageExecutor):
    """
    Run the detector and turn its predictions into clamped regions.

    Predictions below the confidence threshold are dropped. Center boxes are
    converted to top-left form first and clamped to the image afterwards.
    """

    def __init__(
        self,
        detector: DetectorPort,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        config: Optional[StageConfig] = None
    ):
        super().__init__(config)
        self.detector = detector
        self.confidence_threshold = confidence_threshold

    @property
    def stage(self) -> PipelineStage:
        return PipelineStage.DETECTION

    async def execute(self, context: PipelineContext, work: Optional[RegionWork] = None) -> DetectionResult:
        response = await self.detector.detect(context.image)
        return build_detection_result(response, self.confidence_threshold)


def build_detection_result(response: DetectorResponse, threshold: float) -> DetectionResult:
    """
    Filter, convert and clamp detector predictions.

    Raises:
        NoDetectionError: If no prediction reaches the threshold
    """
    kept = [p for p in response.predictions if p.confidence >= threshold]
    if not kept:
        raise NoDetectionError(threshold=threshold, candidates_seen=response.prediction_count)

    regions: List[DetectionRegion] = []
    used_ids = set()
    for position, prediction in enumerate(kept, start=1):
        region_id = _unique_id(prediction.detection_id or str(position), used_ids)
        box = prediction.to_box().clamp_to(response.image_width, response.image_height)
        regions.append(DetectionRegion(
            id=region_id,
            confidence=prediction.confidence,
            box=box,
            class_label=prediction.class_label,
        ))

    logger.info(
        f"Detection kept {len(regions)}/{response.prediction_count} predictions "
        f"(threshold {threshold:.2f})"
    )
    return DetectionResult(
        image_width=response.image_width,
        image_height=response.image_height,
        regions=tuple(regions),
        threshold=threshold,
        candidates_seen=response.prediction_count,
    )


def _unique_id(candidate: str, used_ids: set) -> str:
    region_id = candidate
    suffix = 2
    while region_id in used_ids:
        region_id = f"{candidate}-{suffix}"
        suffix += 1
    used_ids.add(region_id)
    return region_id


class CropStage(PipelineStageExecutor):
    """Crop one region out of the source image."""

    def __init__(
        self,
        cropper: CropperPort,
        padding_pct: float = DEFAULT_PADDING_PCT,
        config: Optional[StageConfig] = None
    ):
        super().__init__(config)
        self.cropper = cropper
        self.padding_pct = padding_pct

    @property
    def stage(self) -> PipelineStage:
        return PipelineStage.CROP

    async def execute(self, context: PipelineContext, work: Optional[RegionWork] = None) -> CroppedImage:
        crop = await self.cropper.crop(
            context.image,
            region_id=work.region.id,
            box=work.region.box,
            padding_pct=self.padding_pct,
        )
        work.crop = crop
        return crop


class ExtractionStage(PipelineStageExecutor):
    """Extract visual attributes from one crop."""

    def __init__(self, extractor: AttributeExtractorPort, config: Optional[StageConfig] = None):
        super().__init__(config)
        self.extractor = extractor

    @property
    def stage(self) -> PipelineStage:
        return PipelineStage.EXTRACTION

    async def execute(self, context: PipelineContext, work: Optional[RegionWork] = None) -> ExtractedAttributes:
        attributes = await self.extractor.extract(
            work.crop,
            context_hint=context.options.get("context_hint"),
        )
        work.attributes = attributes
        self.logger.debug(
            f"Region {work.region.id}: {attributes.describe()} ({attributes.confidence:.0%})"
        )
        return attributes

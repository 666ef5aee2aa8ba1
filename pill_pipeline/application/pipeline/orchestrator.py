"""
Pipeline Orchestrator

Main orchestration logic for the pill identification pipeline:
detection once per image, then crop → extract for every region under a
bounded concurrency window, then aggregation.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any
import asyncio
import logging
import time

from .context import PipelineContext, PipelineStage, RunState, RegionWork, UnitUpdateCallback
from .stages import (
    PipelineStageExecutor,
    StageConfig,
    DetectionStage,
    CropStage,
    ExtractionStage,
    DEFAULT_CONFIDENCE_THRESHOLD,
)
from ...domain.value_objects.image_data import ImageData
from ...domain.entities.detection import DetectionRegion
from ...domain.entities.unit_result import PipelineUnitResult, UnitStatus
from ...domain.entities.report import AggregateReport
from ...domain.ports.detector import DetectorPort
from ...domain.ports.cropper import CropperPort, DEFAULT_PADDING_PCT
from ...domain.ports.attribute_extractor import AttributeExtractorPort
from ...domain.exceptions import (
    DomainException,
    PipelineCancelledError,
    PipelineConfigurationError,
    StageExecutionError,
    UnitTimeoutError,
)
from ...cross_cutting.error_handling import error_to_reason
from ...cross_cutting.logging import PipelineLogger


logger = logging.getLogger(__name__)


@dataclass
class OrchestratorConfig:
    """
    Configuration for the pipeline orchestrator.

    Attributes:
        max_concurrency: Units allowed in flight at once
        unit_timeout_seconds: Time budget of one crop+extract unit (None = unbounded)
        confidence_threshold: Minimum detector confidence for a region
        padding_pct: Crop padding per side as a fraction of the box
        stages: Per-stage configurations
    """

    max_concurrency: int = 3
    unit_timeout_seconds: Optional[float] = None
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    padding_pct: float = DEFAULT_PADDING_PCT
    stages: Dict[PipelineStage, StageConfig] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {self.max_concurrency}")

    def get_stage_config(self, stage: PipelineStage) -> StageConfig:
        """Get configuration for a specific stage."""
        return self.stages.get(stage, StageConfig())

    @classmethod
    def from_app_config(cls, config: Any) -> "OrchestratorConfig":
        """Build from an AppConfig; the retry policy applies to every stage."""
        stage_config = StageConfig(
            retry_count=config.pipeline.stage_retry_count,
            retry_delay_seconds=config.pipeline.stage_retry_delay_seconds,
        )
        return cls(
            max_concurrency=config.pipeline.max_concurrency,
            unit_timeout_seconds=config.pipeline.unit_timeout_seconds,
            confidence_threshold=config.detection.confidence_threshold,
            padding_pct=config.crop.padding_pct,
            stages={stage: stage_config for stage in PipelineStage},
        )


class PipelineOrchestrator:
    """
    Pipeline orchestrator for pill identification.

    Orchestrates the flow: DETECTION → (CROP → EXTRACTION per region) → REPORT

    Features:
    - Run-level failure when detection fails or finds nothing
    - Per-region isolation: a failing region never affects its siblings
    - Bounded concurrency with a sliding window of units
    - Optional per-unit timeout and cooperative cancellation

    Usage:
        orchestrator = PipelineOrchestrator(
            detector=roboflow_detector,
            cropper=local_cropper,
            extractor=openai_extractor,
        )

        report = await orchestrator.run(image_data)
    """

    def __init__(
        self,
        detector: Optional[DetectorPort] = None,
        cropper: Optional[CropperPort] = None,
        extractor: Optional[AttributeExtractorPort] = None,
        config: Optional[OrchestratorConfig] = None
    ):
        self.detector = detector
        self.cropper = cropper
        self.extractor = extractor
        self.config = config or OrchestratorConfig()

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self._stages = self._build_stages()

    def _build_stages(self) -> Dict[PipelineStage, PipelineStageExecutor]:
        """Build the stages for the configured components."""
        stages: Dict[PipelineStage, PipelineStageExecutor] = {}

        if self.detector:
            stages[PipelineStage.DETECTION] = DetectionStage(
                self.detector,
                confidence_threshold=self.config.confidence_threshold,
                config=self.config.get_stage_config(PipelineStage.DETECTION),
            )
        if self.cropper:
            stages[PipelineStage.CROP] = CropStage(
                self.cropper,
                padding_pct=self.config.padding_pct,
                config=self.config.get_stage_config(PipelineStage.CROP),
            )
        if self.extractor:
            stages[PipelineStage.EXTRACTION] = ExtractionStage(
                self.extractor,
                config=self.config.get_stage_config(PipelineStage.EXTRACTION),
            )

        return stages

    # =========================================================================
    # Run
    # =========================================================================

    async def run(
        self,
        image: ImageData,
        options: Optional[Dict[str, Any]] = None,
        cancel_event: Optional[asyncio.Event] = None,
        on_unit_update: Optional[UnitUpdateCallback] = None
    ) -> AggregateReport:
        """
        Run the pipeline on one image.

        Args:
            image: Input image
            options: Run options (context_hint: free text passed to extraction)
            cancel_event: Set it to cancel the run at the next suspension point
            on_unit_update: Called on every unit state transition

        Returns:
            AggregateReport with exactly one terminal entry per detected region

        Raises:
            NoDetectionError: If no region passes the confidence threshold
            CapabilityUnavailableError: If the detector cannot be reached
            PipelineCancelledError: If the run was cancelled; the partial
                report is attached as `partial_report`
        """
        self.validate_configuration()

        start = time.perf_counter()
        context = PipelineContext.create(
            image,
            options=options,
            cancel_event=cancel_event,
            on_unit_update=on_unit_update,
        )
        run_log = PipelineLogger(context.request_id)
        self.logger.info(f"Starting pipeline {context.request_id}")

        context.transition(RunState.DETECTING)
        run_log.stage_start(PipelineStage.DETECTION.value)
        try:
            context.detection = await self._stages[PipelineStage.DETECTION].run(context)
        except DomainException as e:
            run_log.stage_end(PipelineStage.DETECTION.value, success=False)
            run_log.stage_error(PipelineStage.DETECTION.value, e)
            context.transition(RunState.FAILED)
            raise
        run_log.stage_end(PipelineStage.DETECTION.value)

        context.transition(RunState.PROCESSING)
        regions = context.detection.regions
        for region in regions:
            context.update_unit(PipelineUnitResult.pending(region))

        semaphore = asyncio.Semaphore(self.config.max_concurrency)
        outcomes = await asyncio.gather(
            *(self._run_unit(context, region, semaphore, run_log) for region in regions),
            return_exceptions=True,
        )
        self._raise_unit_errors(context, outcomes, start)

        report = context.to_report(processing_time_ms=_elapsed_ms(start))
        context.transition(RunState.AGGREGATED)

        run_log.metric("regions", report.total_count)
        run_log.metric("processing_time", round(report.processing_time_ms, 2), "ms")
        self.logger.info(f"Pipeline {context.request_id} finished: {report.summary()}")
        return report

    async def _run_unit(
        self,
        context: PipelineContext,
        region: DetectionRegion,
        semaphore: asyncio.Semaphore,
        run_log: PipelineLogger
    ) -> None:
        """Run one region to a terminal state and record it."""
        async with semaphore:
            context.raise_if_cancelled()
            start = time.perf_counter()
            work = RegionWork(region=region)

            try:
                if self.config.unit_timeout_seconds:
                    try:
                        await asyncio.wait_for(
                            self._process_unit(context, work),
                            timeout=self.config.unit_timeout_seconds,
                        )
                    except asyncio.TimeoutError:
                        raise UnitTimeoutError(region.id, self.config.unit_timeout_seconds)
                else:
                    await self._process_unit(context, work)
                context.raise_if_cancelled()
                result = PipelineUnitResult.success(
                    region,
                    attributes=work.attributes,
                    crop=work.crop,
                    duration_ms=_elapsed_ms(start),
                )

            except PipelineCancelledError:
                raise

            except Exception as e:
                original = e.original_error if isinstance(e, StageExecutionError) else e
                result = PipelineUnitResult.failed(
                    region,
                    reason=error_to_reason(e),
                    error_type=original.__class__.__name__,
                    crop=work.crop,
                    duration_ms=_elapsed_ms(start),
                )

            context.record_result(result)
            detail = result.attributes.describe() if result.is_success else result.reason
            run_log.unit_outcome(region.id, result.display_status, detail)

    async def _process_unit(self, context: PipelineContext, work: RegionWork) -> None:
        unit = context.units[work.region.id].advance(UnitStatus.CROPPING)
        context.update_unit(unit)
        await self._stages[PipelineStage.CROP].run(context, work)

        context.raise_if_cancelled()
        context.update_unit(unit.advance(UnitStatus.EXTRACTING))
        await self._stages[PipelineStage.EXTRACTION].run(context, work)

    def _raise_unit_errors(
        self,
        context: PipelineContext,
        outcomes: List[Any],
        start: float
    ) -> None:
        """Surface cancellation or bookkeeping errors that escaped the units."""
        errors = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
        if not errors:
            return

        context.transition(RunState.FAILED)
        cancelled = [e for e in errors if isinstance(e, PipelineCancelledError)]
        if cancelled:
            error = cancelled[0]
            error.partial_report = context.to_report(processing_time_ms=_elapsed_ms(start), aborted=True)
            self.logger.info(
                f"Pipeline {context.request_id} cancelled after "
                f"{context.completed_count}/{len(outcomes)} regions"
            )
            raise error
        raise errors[0]

    # =========================================================================
    # Introspection
    # =========================================================================

    def validate_configuration(self) -> bool:
        """
        Validate that all pipeline components are configured.

        Returns:
            True if the pipeline is fully configured

        Raises:
            PipelineConfigurationError: If components are missing
        """
        missing = []
        if not self.detector:
            missing.append("detector")
        if not self.cropper:
            missing.append("cropper")
        if not self.extractor:
            missing.append("extractor")

        if missing:
            raise PipelineConfigurationError(
                f"Missing pipeline components: {', '.join(missing)}",
                missing_components=missing,
            )
        return True

    @property
    def stage_count(self) -> int:
        """Get number of configured stages."""
        return len(self._stages)

    @property
    def stage_names(self) -> List[str]:
        """Get names of all configured stages."""
        return [stage.name for stage in self._stages.values()]

    async def close(self) -> None:
        """Close every component that holds connections."""
        for component in (self.detector, self.cropper, self.extractor):
            if component is not None:
                await component.close()


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class PipelineBuilder:
    """
    Builder for constructing pipeline orchestrators.

    Usage:
        pipeline = (
            PipelineBuilder()
            .with_detector(DetectorFactory.create(DetectorType.ROBOFLOW))
            .with_cropper(CropperFactory.create(CropperType.LOCAL))
            .with_extractor(ExtractorFactory.create(ExtractorType.OPENAI))
            .with_config(OrchestratorConfig(max_concurrency=3))
            .build()
        )
    """

    def __init__(self):
        self._detector: Optional[DetectorPort] = None
        self._cropper: Optional[CropperPort] = None
        self._extractor: Optional[AttributeExtractorPort] = None
        self._config: Optional[OrchestratorConfig] = None

    def with_detector(self, detector: DetectorPort) -> "PipelineBuilder":
        self._detector = detector
        return self

    def with_cropper(self, cropper: CropperPort) -> "PipelineBuilder":
        self._cropper = cropper
        return self

    def with_extractor(self, extractor: AttributeExtractorPort) -> "PipelineBuilder":
        self._extractor = extractor
        return self

    def with_config(self, config: OrchestratorConfig) -> "PipelineBuilder":
        self._config = config
        return self

    def build(self) -> PipelineOrchestrator:
        """
        Build the orchestrator.

        Raises:
            PipelineConfigurationError: If a component is missing
        """
        orchestrator = PipelineOrchestrator(
            detector=self._detector,
            cropper=self._cropper,
            extractor=self._extractor,
            config=self._config,
        )
        orchestrator.validate_configuration()
        return orchestrator

"""
Pipeline Module

Run context, stage executors and the orchestrator.
"""

from .context import PipelineContext, PipelineStage, RunState, StageMetrics, RegionWork
from .stages import (
    StageConfig,
    PipelineStageExecutor,
    DetectionStage,
    CropStage,
    ExtractionStage,
    build_detection_result,
)
from .orchestrator import PipelineOrchestrator, PipelineBuilder, OrchestratorConfig

__all__ = [
    "PipelineContext",
    "PipelineStage",
    "RunState",
    "StageMetrics",
    "RegionWork",
    "StageConfig",
    "PipelineStageExecutor",
    "DetectionStage",
    "CropStage",
    "ExtractionStage",
    "build_detection_result",
    "PipelineOrchestrator",
    "PipelineBuilder",
    "OrchestratorConfig",
]

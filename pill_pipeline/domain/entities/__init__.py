"""
Domain Entities

Core entities of the pill identification domain.
"""

from .detection import DetectorPrediction, DetectorResponse, DetectionRegion, DetectionResult
from .crop import CroppedImage
from .attributes import ExtractedAttributes, ATTRIBUTE_FIELDS
from .unit_result import PipelineUnitResult, UnitStatus
from .report import AggregateReport
from .search import SearchQuery, SecondaryHints, PillRecord, RankedMatch, SearchResult

__all__ = [
    "DetectorPrediction",
    "DetectorResponse",
    "DetectionRegion",
    "DetectionResult",
    "CroppedImage",
    "ExtractedAttributes",
    "ATTRIBUTE_FIELDS",
    "PipelineUnitResult",
    "UnitStatus",
    "AggregateReport",
    "SearchQuery",
    "SecondaryHints",
    "PillRecord",
    "RankedMatch",
    "SearchResult",
]

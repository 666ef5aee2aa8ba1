"""
Ports (Interfaces)

Abstract interfaces defining the contracts for infrastructure adapters.
Following Hexagonal Architecture / Ports & Adapters pattern.
"""

from .detector import DetectorPort
from .cropper import CropperPort, DEFAULT_PADDING_PCT
from .attribute_extractor import AttributeExtractorPort
from .reference_store import ReferenceStorePort
from .analytics_sink import AnalyticsSinkPort, SearchAnalyticsRecord

__all__ = [
    "DetectorPort",
    "CropperPort",
    "DEFAULT_PADDING_PCT",
    "AttributeExtractorPort",
    "ReferenceStorePort",
    "AnalyticsSinkPort",
    "SearchAnalyticsRecord",
]

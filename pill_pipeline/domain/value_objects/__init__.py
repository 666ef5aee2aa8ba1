"""
Value Objects

Immutable objects that describe characteristics of domain entities.
"""

from .bounding_box import BoundingBox, round_half_up
from .confidence_score import ConfidenceScore, ConfidenceLevel, LOW_CONFIDENCE_THRESHOLD
from .image_data import ImageData

__all__ = [
    "BoundingBox",
    "round_half_up",
    "ConfidenceScore",
    "ConfidenceLevel",
    "LOW_CONFIDENCE_THRESHOLD",
    "ImageData",
]

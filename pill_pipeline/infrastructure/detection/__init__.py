"""
Detection Infrastructure

Object-detection adapters for locating pills in an image.
"""

from .roboflow_detector import RoboflowDetector, DummyDetector, parse_roboflow_payload
from .factory import DetectorFactory, DetectorType

__all__ = [
    "RoboflowDetector",
    "DummyDetector",
    "parse_roboflow_payload",
    "DetectorFactory",
    "DetectorType",
]

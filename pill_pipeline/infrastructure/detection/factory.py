"""
Detector Factory

Factory for creating pill detector instances.
"""

from typing import Dict, Any
from enum import Enum

from ...domain.ports.detector import DetectorPort
from .roboflow_detector import RoboflowDetector, DummyDetector


class DetectorType(Enum):
    """Available detector implementations."""

    ROBOFLOW = "roboflow"
    DUMMY = "dummy"


class DetectorFactory:
    """
    Factory for creating detector instances.

    Usage:
        detector = DetectorFactory.create(
            DetectorType.ROBOFLOW,
            model_url="https://detect.roboflow.com/pills/3",
            api_key="..."
        )
    """

    @staticmethod
    def create(detector_type: DetectorType, **kwargs) -> DetectorPort:
        """
        Create a detector instance.

        Args:
            detector_type: Type of detector to create
            **kwargs: Configuration options
                For Roboflow:
                - model_url: Hosted model endpoint
                - api_key: Roboflow API key
                - timeout_seconds: Request timeout
                - client: Shared httpx.AsyncClient
                For Dummy:
                - predictions, image_size, error

        Returns:
            DetectorPort implementation
        """
        if detector_type == DetectorType.ROBOFLOW:
            return RoboflowDetector(
                model_url=kwargs.get("model_url"),
                api_key=kwargs.get("api_key"),
                timeout=kwargs.get("timeout_seconds", 30.0),
                client=kwargs.get("client"),
            )

        elif detector_type == DetectorType.DUMMY:
            return DummyDetector(
                predictions=kwargs.get("predictions"),
                image_size=kwargs.get("image_size"),
                error=kwargs.get("error"),
            )

        else:
            raise ValueError(f"Unknown detector type: {detector_type}")

    @staticmethod
    def create_from_config(config: Dict[str, Any]) -> DetectorPort:
        """Create detector from configuration dictionary."""
        try:
            detector_type = DetectorType(config.get("type", "roboflow"))
        except ValueError:
            raise ValueError(f"Unknown detector type: {config.get('type')}")

        options = {key: value for key, value in config.items() if key != "type"}
        return DetectorFactory.create(detector_type, **options)

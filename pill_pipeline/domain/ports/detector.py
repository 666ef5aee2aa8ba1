"""
Detector Port

Abstract interface for the external object-detection capability.
"""

from abc import ABC, abstractmethod

from ..value_objects.image_data import ImageData
from ..entities.detection import DetectorResponse


class DetectorPort(ABC):
    """
    Port (interface) for pill detectors.

    Implementations return every prediction in center-box form; thresholding,
    box conversion and clamping belong to the detection stage.
    """

    @abstractmethod
    async def detect(self, image: ImageData) -> DetectorResponse:
        """
        Run detection on an image.

        Args:
            image: Image bytes or a remote reference

        Returns:
            DetectorResponse with image size and raw predictions

        Raises:
            CapabilityUnavailableError: If the detector cannot be reached
            MalformedDetectionError: If the response violates the contract
        """
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the name/identifier of the underlying model."""
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None

"""
Cropper Port

Abstract interface for producing padded region crops.
"""

from abc import ABC, abstractmethod

from ..value_objects.image_data import ImageData
from ..value_objects.bounding_box import BoundingBox
from ..entities.crop import CroppedImage


DEFAULT_PADDING_PCT = 0.06


class CropperPort(ABC):
    """
    Port (interface) for crop implementations.

    Crops are never resized: only the extracted rectangle changes, so the
    extraction stage sees undistorted geometry.
    """

    @abstractmethod
    async def crop(
        self,
        image: ImageData,
        region_id: str,
        box: BoundingBox,
        padding_pct: float = DEFAULT_PADDING_PCT
    ) -> CroppedImage:
        """
        Crop one region with symmetric padding.

        Args:
            image: Original image
            region_id: Region the crop belongs to
            box: Top-left box inside the detector's image frame
            padding_pct: Padding per side as a fraction of box size

        Returns:
            Encoded crop with its pixel dimensions

        Raises:
            CropOutOfBoundsError: If the padded box has no area inside the image
            InvalidImageError: If the image cannot be decoded or is too large
        """
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    async def close(self) -> None:
        return None

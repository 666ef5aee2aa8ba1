"""
Local Cropper

In-process region cropping with Pillow and OpenCV.
"""

from typing import Optional, Dict
import asyncio
import logging
import time

import httpx
import numpy as np

from ...domain.ports.cropper import CropperPort, DEFAULT_PADDING_PCT
from ...domain.entities.crop import CroppedImage
from ...domain.value_objects.image_data import ImageData
from ...domain.value_objects.bounding_box import BoundingBox
from ...domain.exceptions import CropOutOfBoundsError, InvalidImageError
from ..utils.image_processing import (
    bytes_to_cv2,
    image_size,
    crop_array,
    encode_jpeg,
    DEFAULT_JPEG_QUALITY,
)
from ..utils.http_utils import fetch_image_bytes


DEFAULT_MAX_IMAGE_BYTES = 8 * 1024 * 1024


class LocalCropper(CropperPort):
    """
    Cropper that decodes the source image once and slices regions from it.

    The padded box is intersected with the image; the slice is JPEG-encoded
    without resizing. Decoding and encoding run in a worker thread so other
    regions' network calls keep flowing.

    Attributes:
        jpeg_quality: JPEG quality of the encoded crop
        max_image_bytes: Largest accepted source image
    """

    def __init__(
        self,
        jpeg_quality: int = DEFAULT_JPEG_QUALITY,
        max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.jpeg_quality = jpeg_quality
        self.max_image_bytes = max_image_bytes
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

        # Decoded pixels of the most recent source image
        self._cached_image: Optional[ImageData] = None
        self._cached_pixels: Optional[np.ndarray] = None
        self._decode_lock = asyncio.Lock()

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    async def _source_bytes(self, image: ImageData) -> bytes:
        if image.is_remote:
            if self._client is None:
                self._client = httpx.AsyncClient(timeout=self.timeout)
            data, _ = await fetch_image_bytes(self._client, image.source_url, self.max_image_bytes)
            return data

        try:
            data = image.bytes
        except (ValueError, OSError) as e:
            raise InvalidImageError(f"Failed to read image: {e}")
        if len(data) > self.max_image_bytes:
            raise InvalidImageError(
                f"Image size exceeds maximum ({self.max_image_bytes / 1024 / 1024:.1f} MB)"
            )
        return data

    async def _decoded(self, image: ImageData) -> np.ndarray:
        async with self._decode_lock:
            if self._cached_image is image and self._cached_pixels is not None:
                return self._cached_pixels

            data = await self._source_bytes(image)
            try:
                pixels = await asyncio.to_thread(bytes_to_cv2, data)
            except ValueError as e:
                raise InvalidImageError(str(e))

            self._cached_image = image
            self._cached_pixels = pixels
            width, height = image_size(pixels)
            self.logger.debug(f"Decoded source image {width}x{height}")
            return pixels

    def _encode(self, pixels: np.ndarray, box: BoundingBox) -> bytes:
        return encode_jpeg(crop_array(pixels, box), quality=self.jpeg_quality)

    async def crop(
        self,
        image: ImageData,
        region_id: str,
        box: BoundingBox,
        padding_pct: float = DEFAULT_PADDING_PCT
    ) -> CroppedImage:
        start_time = time.time()
        pixels = await self._decoded(image)
        width, height = image_size(pixels)

        padded = box.pad(padding_pct)
        target = padded.intersect(width, height)
        if target is None:
            raise CropOutOfBoundsError(region_id, box=padded.to_dict(), image_size=(width, height))

        data = await asyncio.to_thread(self._encode, pixels, target)

        elapsed = (time.time() - start_time) * 1000
        self.logger.debug(f"Cropped region {region_id} to {target} in {elapsed:.2f}ms")

        return CroppedImage(
            region_id=region_id,
            data=data,
            mime_type="image/jpeg",
            width=target.width,
            height=target.height,
        )

    @property
    def name(self) -> str:
        return "local"

    async def close(self) -> None:
        self._cached_image = None
        self._cached_pixels = None
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class DummyCropper(CropperPort):
    """
    Dummy cropper for testing.

    Returns placeholder bytes sized like the padded box. Regions listed in
    `errors` raise the mapped exception instead.
    """

    def __init__(self, errors: Optional[Dict[str, Exception]] = None):
        self._errors = errors or {}
        self.calls = []

    async def crop(
        self,
        image: ImageData,
        region_id: str,
        box: BoundingBox,
        padding_pct: float = DEFAULT_PADDING_PCT
    ) -> CroppedImage:
        self.calls.append(region_id)
        if region_id in self._errors:
            raise self._errors[region_id]

        padded = box.pad(padding_pct)
        return CroppedImage(
            region_id=region_id,
            data=b"\xff\xd8dummy-crop\xff\xd9",
            mime_type="image/jpeg",
            width=max(1, padded.width),
            height=max(1, padded.height),
        )

    @property
    def name(self) -> str:
        return "dummy"

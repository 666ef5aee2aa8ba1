"""
HTTP Cropper

Delegates cropping to a remote crop service.
"""

from typing import Optional
import base64
import binascii
import logging

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from ...domain.ports.cropper import CropperPort, DEFAULT_PADDING_PCT
from ...domain.entities.crop import CroppedImage
from ...domain.value_objects.image_data import ImageData
from ...domain.value_objects.bounding_box import BoundingBox
from ...domain.exceptions import (
    MalformedResponseError,
    InvalidImageError,
    PipelineConfigurationError,
)
from ..utils.http_utils import capability_error, fetch_image_bytes


class CropServiceResponse(BaseModel):
    """Body returned by the crop service."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    image: str = Field(min_length=1)
    mime_type: str = Field(default="image/jpeg", alias="mimeType")
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class HttpCropper(CropperPort):
    """
    Cropper that posts the image and a top-left box to a crop service.

    Request:  {image, mimeType, box: {x, y, width, height}, paddingPct, isTopLeft: true}
    Response: {image, mimeType, width, height}
    """

    CAPABILITY = "crop service"

    def __init__(
        self,
        service_url: Optional[str] = None,
        timeout: float = 30.0,
        max_image_bytes: int = 8 * 1024 * 1024,
        client: Optional[httpx.AsyncClient] = None
    ):
        if not service_url:
            raise PipelineConfigurationError(
                "HTTP cropper needs a service URL",
                missing_components=["crop.service_url"],
            )
        self.service_url = service_url
        self.timeout = timeout
        self.max_image_bytes = max_image_bytes
        self._client = client
        self._owns_client = client is None

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def _initialize(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _payload_image(self, client: httpx.AsyncClient, image: ImageData):
        if image.is_remote:
            data, mime_type = await fetch_image_bytes(client, image.source_url, self.max_image_bytes)
            return base64.b64encode(data).decode("utf-8"), mime_type or "image/jpeg"

        if len(image) > self.max_image_bytes:
            raise InvalidImageError(
                f"Image size exceeds maximum ({self.max_image_bytes / 1024 / 1024:.1f} MB)"
            )
        return image.base64_string, image.mime_type

    async def crop(
        self,
        image: ImageData,
        region_id: str,
        box: BoundingBox,
        padding_pct: float = DEFAULT_PADDING_PCT
    ) -> CroppedImage:
        client = self._initialize()
        encoded, mime_type = await self._payload_image(client, image)

        body = {
            "image": encoded,
            "mimeType": mime_type,
            "box": box.to_dict(),
            "paddingPct": padding_pct,
            "isTopLeft": True,
        }

        try:
            response = await client.post(self.service_url, json=body)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            error = capability_error(self.CAPABILITY, e)
            self.logger.warning(f"Crop request for region {region_id} failed: {error.message}")
            raise error
        except ValueError as e:
            raise MalformedResponseError(f"Crop service returned a non-JSON body: {e}")

        try:
            parsed = CropServiceResponse.model_validate(data)
            crop_bytes = base64.b64decode(parsed.image, validate=True)
        except (PydanticValidationError, binascii.Error) as e:
            raise MalformedResponseError(
                f"Crop service response violates the contract: {e}",
                raw_preview=str(data),
            )

        return CroppedImage(
            region_id=region_id,
            data=crop_bytes,
            mime_type=parsed.mime_type,
            width=parsed.width,
            height=parsed.height,
        )

    @property
    def name(self) -> str:
        return f"http:{self.service_url}"

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

"""Tests for the local and HTTP croppers."""

import base64
import json
from io import BytesIO
from unittest.mock import patch

import httpx
import pytest
from PIL import Image

from pill_pipeline.domain.exceptions import (
    CapabilityUnavailableError,
    CropOutOfBoundsError,
    InvalidImageError,
    MalformedResponseError,
    PipelineConfigurationError,
)
from pill_pipeline.domain.value_objects.bounding_box import BoundingBox
from pill_pipeline.domain.value_objects.image_data import ImageData
from pill_pipeline.infrastructure.cropping import (
    CropperFactory,
    CropperType,
    DummyCropper,
    HttpCropper,
    LocalCropper,
)
from pill_pipeline.infrastructure.cropping import local_cropper as local_cropper_module

from conftest import make_png


def decode(data: bytes) -> Image.Image:
    return Image.open(BytesIO(data))


@pytest.fixture
def patched_image() -> ImageData:
    """200x200 white image with a red 50x50 square at (75, 75)."""
    img = Image.new("RGB", (200, 200), (255, 255, 255))
    img.paste((255, 0, 0), (75, 75, 125, 125))
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return ImageData.from_bytes(buffer.getvalue(), mime_type="image/png")


class TestLocalCropper:
    """Tests for in-process cropping."""

    @pytest.mark.asyncio
    async def test_padded_crop_keeps_geometry(self, patched_image):
        cropper = LocalCropper()

        crop = await cropper.crop(patched_image, "1", BoundingBox(x=75, y=75, width=50, height=50))

        assert crop.mime_type == "image/jpeg"
        assert (crop.width, crop.height) == (56, 56)
        decoded = decode(crop.data)
        assert decoded.format == "JPEG"
        assert decoded.size == (56, 56)

    @pytest.mark.asyncio
    async def test_content_is_not_rescaled(self, patched_image):
        crop = await LocalCropper().crop(
            patched_image, "1", BoundingBox(x=75, y=75, width=50, height=50), padding_pct=0.5
        )

        # 25-pixel white margin around the untouched red square
        pixels = decode(crop.data).convert("RGB")
        assert pixels.size == (100, 100)
        r, g, b = pixels.getpixel((50, 50))
        assert r > 200 and g < 60 and b < 60
        r, g, b = pixels.getpixel((5, 5))
        assert r > 200 and g > 200 and b > 200

    @pytest.mark.asyncio
    async def test_padding_cut_at_image_edge(self, image):
        crop = await LocalCropper().crop(image, "1", BoundingBox(x=0, y=0, width=35, height=35))

        assert (crop.width, crop.height) == (37, 37)

    @pytest.mark.asyncio
    async def test_box_outside_image(self, image):
        with pytest.raises(CropOutOfBoundsError) as exc_info:
            await LocalCropper().crop(image, "9", BoundingBox(x=400, y=400, width=10, height=10))

        assert exc_info.value.details["region_id"] == "9"
        assert exc_info.value.details["image_size"] == [200, 200]

    @pytest.mark.asyncio
    async def test_exif_orientation_applied(self):
        img = Image.new("RGB", (300, 100), (0, 0, 255))
        exif = img.getexif()
        exif[0x0112] = 6  # rotate 90 degrees clockwise on display
        buffer = BytesIO()
        img.save(buffer, format="JPEG", exif=exif.tobytes())
        rotated = ImageData.from_bytes(buffer.getvalue(), mime_type="image/jpeg")

        crop = await LocalCropper().crop(rotated, "1", BoundingBox(x=0, y=0, width=100, height=300), padding_pct=0)

        assert (crop.width, crop.height) == (100, 300)

    @pytest.mark.asyncio
    async def test_source_decoded_once_per_image(self, image):
        cropper = LocalCropper()

        with patch.object(
            local_cropper_module, "bytes_to_cv2", wraps=local_cropper_module.bytes_to_cv2
        ) as decoder:
            await cropper.crop(image, "1", BoundingBox(x=10, y=10, width=20, height=20))
            await cropper.crop(image, "2", BoundingBox(x=100, y=100, width=20, height=20))

        assert decoder.call_count == 1

    @pytest.mark.asyncio
    async def test_oversized_image_rejected(self, image):
        with pytest.raises(InvalidImageError):
            await LocalCropper(max_image_bytes=10).crop(image, "1", BoundingBox(x=0, y=0, width=5, height=5))

    @pytest.mark.asyncio
    async def test_undecodable_image_rejected(self):
        garbage = ImageData.from_bytes(b"not an image", mime_type="image/png")

        with pytest.raises(InvalidImageError):
            await LocalCropper().crop(garbage, "1", BoundingBox(x=0, y=0, width=5, height=5))

    @pytest.mark.asyncio
    async def test_remote_image_downloaded(self):
        png = make_png(120, 80)
        client = httpx.AsyncClient(transport=httpx.MockTransport(
            lambda request: httpx.Response(200, content=png, headers={"content-type": "image/png"})
        ))
        cropper = LocalCropper(client=client)

        crop = await cropper.crop(
            ImageData.from_url("https://cdn.example.com/p.png"),
            "1",
            BoundingBox(x=100, y=60, width=40, height=40),
            padding_pct=0,
        )

        assert (crop.width, crop.height) == (20, 20)

    @pytest.mark.asyncio
    async def test_remote_image_unreachable(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(404)))

        with pytest.raises(CapabilityUnavailableError) as exc_info:
            await LocalCropper(client=client).crop(
                ImageData.from_url("https://cdn.example.com/missing.png"),
                "1",
                BoundingBox(x=0, y=0, width=5, height=5),
            )

        assert exc_info.value.reason == "model_not_found"


class TestHttpCropper:
    """Tests for the crop-service adapter."""

    SERVICE_URL = "http://crop.local/api/crop"

    def make_cropper(self, handler) -> HttpCropper:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return HttpCropper(service_url=self.SERVICE_URL, client=client)

    @pytest.mark.asyncio
    async def test_request_and_response_contract(self, image):
        captured = {}
        crop_png = make_png(56, 56)

        def handler(request: httpx.Request) -> httpx.Response:
            captured.update(json.loads(request.content))
            return httpx.Response(200, json={
                "image": base64.b64encode(crop_png).decode(),
                "mimeType": "image/png",
                "width": 56,
                "height": 56,
            })

        crop = await self.make_cropper(handler).crop(
            image, "7", BoundingBox(x=75, y=75, width=50, height=50), padding_pct=0.06
        )

        assert captured["box"] == {"x": 75, "y": 75, "width": 50, "height": 50}
        assert captured["paddingPct"] == 0.06
        assert captured["isTopLeft"] is True
        assert captured["mimeType"] == "image/png"
        assert base64.b64decode(captured["image"]) == image.bytes
        assert crop.region_id == "7"
        assert crop.data == crop_png
        assert crop.mime_type == "image/png"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {"image": "", "mimeType": "image/jpeg", "width": 5, "height": 5},
        {"image": "aGVsbG8=", "mimeType": "image/jpeg", "width": 0, "height": 5},
        {"image": "***", "mimeType": "image/jpeg", "width": 5, "height": 5},
        {"mimeType": "image/jpeg"},
    ])
    async def test_malformed_response(self, image, body):
        cropper = self.make_cropper(lambda request: httpx.Response(200, json=body))

        with pytest.raises(MalformedResponseError):
            await cropper.crop(image, "1", BoundingBox(x=0, y=0, width=5, height=5))

    @pytest.mark.asyncio
    async def test_server_error(self, image):
        cropper = self.make_cropper(lambda request: httpx.Response(502))

        with pytest.raises(CapabilityUnavailableError) as exc_info:
            await cropper.crop(image, "1", BoundingBox(x=0, y=0, width=5, height=5))

        assert exc_info.value.reason == "server_error"
        assert exc_info.value.is_recoverable

    def test_requires_service_url(self):
        with pytest.raises(PipelineConfigurationError):
            HttpCropper()


class TestCropperFactory:
    """Tests for CropperFactory."""

    def test_create_local(self):
        assert isinstance(CropperFactory.create(CropperType.LOCAL), LocalCropper)

    def test_create_dummy_from_config(self):
        assert isinstance(CropperFactory.create_from_config({"type": "dummy", "padding_pct": 0.06}), DummyCropper)

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            CropperFactory.create_from_config({"type": "gpu"})

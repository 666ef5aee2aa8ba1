"""Pytest configuration and fixtures."""

from io import BytesIO
from typing import List

import pytest
from PIL import Image

from pill_pipeline.domain.value_objects.image_data import ImageData
from pill_pipeline.domain.entities.detection import DetectorPrediction
from pill_pipeline.domain.entities.attributes import ExtractedAttributes
from pill_pipeline.domain.entities.search import PillRecord
from pill_pipeline.application.pipeline.orchestrator import PipelineOrchestrator, OrchestratorConfig
from pill_pipeline.infrastructure.detection import DummyDetector
from pill_pipeline.infrastructure.cropping import DummyCropper
from pill_pipeline.infrastructure.extraction import DummyAttributeExtractor
from pill_pipeline.infrastructure.store import InMemoryReferenceStore


def make_png(width: int = 200, height: int = 200, color=(255, 255, 255)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def prediction(cx, cy, w, h, confidence=0.95, detection_id=None) -> DetectorPrediction:
    return DetectorPrediction(
        center_x=cx,
        center_y=cy,
        width=w,
        height=h,
        confidence=confidence,
        class_label="pill",
        detection_id=detection_id,
    )


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def image(png_bytes) -> ImageData:
    """A 200x200 white PNG."""
    return ImageData.from_bytes(png_bytes, mime_type="image/png")


@pytest.fixture
def three_predictions() -> List[DetectorPrediction]:
    return [
        prediction(50, 50, 40, 40, confidence=0.95),
        prediction(150, 50, 40, 40, confidence=0.85),
        prediction(100, 150, 40, 40, confidence=0.75),
    ]


@pytest.fixture
def round_white() -> ExtractedAttributes:
    return ExtractedAttributes(
        shape="Round",
        color="White",
        front_imprint="M 367",
        size_mm=9.5,
        scoring="1 score",
        confidence=0.92,
    )


@pytest.fixture
def make_orchestrator():
    """Build an orchestrator around dummy adapters."""

    def _make(
        predictions=None,
        image_size=(200, 200),
        crop_errors=None,
        extract_errors=None,
        per_region=None,
        detector_error=None,
        **config_kwargs
    ) -> PipelineOrchestrator:
        return PipelineOrchestrator(
            detector=DummyDetector(predictions=predictions, image_size=image_size, error=detector_error),
            cropper=DummyCropper(errors=crop_errors),
            extractor=DummyAttributeExtractor(per_region=per_region, errors=extract_errors),
            config=OrchestratorConfig(**config_kwargs),
        )

    return _make


@pytest.fixture
def pill_rows() -> List[dict]:
    return [
        {
            "id": "1",
            "brand_name": "Tylenol",
            "generic_name": "Acetaminophen",
            "manufacturer": "McNeil",
            "strength": "500 mg",
            "shape": "Round",
            "color": "White",
            "front_imprint": "TYLENOL 500",
            "size_mm": 12.0,
            "scoring": "no score",
        },
        {
            "id": "2",
            "generic_name": "Acetaminophen and Hydrocodone",
            "manufacturer": "Mallinckrodt",
            "strength": "325 mg / 5 mg",
            "shape": "Capsule/Oblong",
            "color": "White",
            "front_imprint": "M 367",
            "size_mm": 16.0,
            "scoring": "1 score",
        },
        {
            "id": "3",
            "generic_name": "Ibuprofen",
            "manufacturer": "Amneal",
            "strength": "200 mg",
            "shape": "Round",
            "color": "Brown",
            "front_imprint": "IP 464",
            "size_mm": 10.0,
            "scoring": "no score",
        },
        {
            "id": "4",
            "generic_name": "Metformin",
            "manufacturer": "Mylan",
            "strength": "500 mg",
            "shape": "Round",
            "color": "White",
            "front_imprint": "M 367X",
            "size_mm": 11.0,
            "scoring": "1 score",
        },
    ]


@pytest.fixture
def pill_records(pill_rows) -> List[PillRecord]:
    return [PillRecord.from_dict(row) for row in pill_rows]


@pytest.fixture
def memory_store(pill_rows) -> InMemoryReferenceStore:
    return InMemoryReferenceStore.from_records(pill_rows)

"""
Roboflow Detector

Pill detection through a hosted Roboflow object-detection model.
"""

from typing import Optional, List, Dict, Any
import logging
import os
import time

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from ...domain.ports.detector import DetectorPort
from ...domain.entities.detection import DetectorPrediction, DetectorResponse
from ...domain.value_objects.image_data import ImageData
from ...domain.exceptions import (
    MalformedDetectionError,
    PipelineConfigurationError,
)
from ..utils.http_utils import capability_error


logger = logging.getLogger(__name__)


# =============================================================================
# Response schema
# =============================================================================

class RoboflowPrediction(BaseModel):
    """One prediction; the box is center x/y plus width/height in pixels."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    x: float
    y: float
    width: float = Field(ge=0)
    height: float = Field(ge=0)
    confidence: float = Field(ge=0, le=1)
    class_name: Optional[str] = Field(default=None, alias="class")
    detection_id: Optional[str] = None


class RoboflowImage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    width: int = Field(gt=0)
    height: int = Field(gt=0)


class RoboflowPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    image: RoboflowImage
    predictions: List[RoboflowPrediction] = Field(default_factory=list)


def parse_roboflow_payload(data: Any) -> DetectorResponse:
    """
    Validate a Roboflow response body and convert it to a DetectorResponse.

    Raises:
        MalformedDetectionError: If the body does not match the schema
    """
    try:
        payload = RoboflowPayload.model_validate(data)
    except PydanticValidationError as e:
        raise MalformedDetectionError(
            f"Detector response violates the prediction schema: {e.error_count()} error(s)",
            raw_preview=str(data),
        )

    predictions = tuple(
        DetectorPrediction(
            center_x=p.x,
            center_y=p.y,
            width=p.width,
            height=p.height,
            confidence=p.confidence,
            class_label=p.class_name,
            detection_id=p.detection_id,
        )
        for p in payload.predictions
    )
    return DetectorResponse(
        image_width=payload.image.width,
        image_height=payload.image.height,
        predictions=predictions,
    )


# =============================================================================
# Detectors
# =============================================================================

class RoboflowDetector(DetectorPort):
    """
    Detector implementation backed by the Roboflow hosted inference API.

    The model URL and API key come from the constructor or from the
    ROBOFLOW_MODEL_URL / ROBOFLOW_API_KEY environment variables. Local images
    are posted as a data URL body; remote images are passed by reference and
    fetched by Roboflow.

    Attributes:
        model_url: Hosted model endpoint
        timeout: Request timeout in seconds
    """

    CAPABILITY = "detector"

    def __init__(
        self,
        model_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize Roboflow detector.

        Args:
            model_url: Model endpoint (or set ROBOFLOW_MODEL_URL)
            api_key: API key (or set ROBOFLOW_API_KEY)
            timeout: Request timeout in seconds
            client: Optional shared httpx client (not closed by close())
        """
        self.model_url = model_url or os.environ.get("ROBOFLOW_MODEL_URL")
        self._api_key = api_key or os.environ.get("ROBOFLOW_API_KEY")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def _initialize(self) -> httpx.AsyncClient:
        """Lazy initialization of the HTTP client."""
        if not self.model_url or not self._api_key:
            missing = [
                name for name, value in (("ROBOFLOW_MODEL_URL", self.model_url), ("ROBOFLOW_API_KEY", self._api_key))
                if not value
            ]
            raise PipelineConfigurationError(
                "Roboflow detector is not configured",
                missing_components=missing,
            )

        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self.logger.info(f"Roboflow client initialized for {self.model_name}")
        return self._client

    def _build_request(self, image: ImageData) -> Dict[str, Any]:
        params: Dict[str, Any] = {"api_key": self._api_key}
        request: Dict[str, Any] = {
            "params": params,
            "headers": {"Content-Type": "application/x-www-form-urlencoded"},
        }
        if image.is_remote:
            params["image"] = image.source_url
        else:
            request["content"] = image.data_url
        return request

    async def detect(self, image: ImageData) -> DetectorResponse:
        client = self._initialize()
        start_time = time.time()

        try:
            response = await client.post(self.model_url, **self._build_request(image))
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            error = capability_error(self.CAPABILITY, e)
            self.logger.warning(f"Detection request failed: {error.message}")
            raise error
        except ValueError as e:
            raise MalformedDetectionError(f"Detector returned a non-JSON body: {e}")

        result = parse_roboflow_payload(data)

        elapsed = (time.time() - start_time) * 1000
        self.logger.info(
            f"Detector returned {result.prediction_count} predictions "
            f"for {result.image_width}x{result.image_height} image in {elapsed:.2f}ms"
        )
        return result

    @property
    def model_name(self) -> str:
        if not self.model_url:
            return "roboflow"
        return f"roboflow:{self.model_url.rstrip('/').split('/', 3)[-1]}"

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


class DummyDetector(DetectorPort):
    """
    Dummy detector for testing.

    Returns fixed predictions. Without explicit predictions, one centered
    box covering half the image is returned with confidence 0.9.
    """

    def __init__(
        self,
        predictions: Optional[List[DetectorPrediction]] = None,
        image_size: Optional[tuple] = None,
        error: Optional[Exception] = None
    ):
        self._predictions = predictions
        self._image_size = image_size
        self._error = error
        self.calls = 0

    async def detect(self, image: ImageData) -> DetectorResponse:
        self.calls += 1
        if self._error is not None:
            raise self._error

        width, height = self._image_size or image.size or (640, 480)
        predictions = self._predictions
        if predictions is None:
            predictions = [
                DetectorPrediction(
                    center_x=width / 2,
                    center_y=height / 2,
                    width=width / 2,
                    height=height / 2,
                    confidence=0.9,
                    class_label="pill",
                )
            ]
        return DetectorResponse(image_width=width, image_height=height, predictions=tuple(predictions))

    @property
    def model_name(self) -> str:
        return "DummyDetector"

"""
OpenAI Attribute Extractor

Pill attribute extraction using OpenAI vision-capable chat models.
"""

from typing import Optional, Dict, List, Any
import logging
import os
import time

import openai
from openai import AsyncOpenAI

from ...domain.ports.attribute_extractor import AttributeExtractorPort
from ...domain.entities.crop import CroppedImage
from ...domain.entities.attributes import ExtractedAttributes
from ...domain.exceptions import CapabilityUnavailableError, PipelineConfigurationError
from .prompts import SYSTEM_PROMPT, build_extraction_prompt
from .schema import parse_extraction


logger = logging.getLogger(__name__)


def map_openai_error(error: Exception) -> CapabilityUnavailableError:
    """
    Bucket an OpenAI SDK exception.

    insufficient_quota is not recoverable; a plain 429 is a rate limit.
    """
    capability = "vision model"
    code = getattr(error, "code", None)
    status_code = getattr(error, "status_code", None)

    if isinstance(error, openai.APITimeoutError):
        reason, message = "timeout", "Vision model request timed out. Try a smaller image or retry."
    elif isinstance(error, openai.APIConnectionError):
        reason, message = "network", "Network error reaching the vision model."
    elif code == "insufficient_quota":
        reason, message = "quota", "Vision model quota exceeded."
    elif isinstance(error, openai.RateLimitError):
        reason, message = "rate_limited", "Vision model rate limit reached."
    elif isinstance(error, (openai.AuthenticationError, openai.PermissionDeniedError)) or code == "invalid_api_key":
        reason, message = "auth", "Invalid vision model API key."
    elif isinstance(error, openai.NotFoundError) or code == "model_not_found":
        reason, message = "model_not_found", "Vision model not found or unavailable."
    elif code == "context_length_exceeded":
        reason, message = "bad_request", "Vision model context too large for this image."
    elif isinstance(error, openai.InternalServerError):
        reason, message = "server_error", "Vision model service error."
    elif isinstance(error, openai.BadRequestError):
        reason, message = "bad_request", f"Vision model rejected the request: {error}"
    elif isinstance(error, openai.APIStatusError):
        reason = "server_error" if (status_code or 0) >= 500 else "bad_request"
        message = f"Vision model returned HTTP {status_code}"
    else:
        reason, message = "unknown", f"Vision model call failed: {error}"

    return CapabilityUnavailableError(
        capability=capability,
        reason=reason,
        message=message,
        status_code=status_code,
    )


class OpenAIAttributeExtractor(AttributeExtractorPort):
    """
    Attribute extractor implementation using OpenAI chat completions.

    The crop goes in an image_url block as a data URL, never pasted into the
    text prompt. The answer is forced to a JSON object and validated strictly.

    Attributes:
        model: Model name
        temperature: Sampling temperature
        max_tokens: Maximum answer length
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        temperature: float = 0.1,
        max_tokens: int = 500,
        timeout: float = 60.0,
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None
    ):
        """
        Initialize OpenAI extractor.

        Args:
            api_key: OpenAI API key (or set OPENAI_API_KEY env var)
            model: Vision-capable chat model
            temperature: Response temperature
            max_tokens: Maximum response tokens
            timeout: Request timeout in seconds
            base_url: Optional OpenAI-compatible endpoint
            client: Pre-built AsyncOpenAI client
        """
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._base_url = base_url
        self._client = client

        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def _initialize(self) -> AsyncOpenAI:
        """Lazy initialization of OpenAI client."""
        if self._client is not None:
            return self._client

        api_key = self._api_key or os.environ.get("OPENAI_API_KEY")
        if not api_key:
            raise PipelineConfigurationError(
                "OpenAI API key not provided. Set OPENAI_API_KEY or pass api_key.",
                missing_components=["OPENAI_API_KEY"],
            )

        # Retries are the pipeline's decision, not the SDK's
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=self._base_url,
            timeout=self._timeout,
            max_retries=0,
        )
        self.logger.info(f"OpenAI client initialized with model={self._model}")
        return self._client

    def _build_messages(self, crop: CroppedImage, context_hint: Optional[str]) -> List[Dict[str, Any]]:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": build_extraction_prompt(context_hint)},
                    {"type": "image_url", "image_url": {"url": crop.data_url}},
                ],
            },
        ]

    async def extract(
        self,
        crop: CroppedImage,
        context_hint: Optional[str] = None
    ) -> ExtractedAttributes:
        client = self._initialize()
        start_time = time.time()

        try:
            response = await client.chat.completions.create(
                model=self._model,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                response_format={"type": "json_object"},
                messages=self._build_messages(crop, context_hint),
            )
        except openai.OpenAIError as e:
            error = map_openai_error(e)
            self.logger.warning(f"Extraction for region {crop.region_id} failed: {error.message}")
            raise error

        raw = response.choices[0].message.content if response.choices else None
        attributes = parse_extraction(raw)

        elapsed = (time.time() - start_time) * 1000
        self.logger.info(
            f"Region {crop.region_id}: {attributes.describe()} "
            f"(confidence={attributes.confidence:.2f}) in {elapsed:.2f}ms"
        )
        return attributes

    @property
    def model_name(self) -> str:
        return self._model

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


class DummyAttributeExtractor(AttributeExtractorPort):
    """
    Dummy extractor for testing.

    Returns fixed attributes, or per-region attributes / errors when given.
    """

    def __init__(
        self,
        attributes: Optional[ExtractedAttributes] = None,
        per_region: Optional[Dict[str, ExtractedAttributes]] = None,
        errors: Optional[Dict[str, Exception]] = None
    ):
        self._attributes = attributes or ExtractedAttributes(
            shape="Round",
            color="White",
            front_imprint="TEST",
            scoring="no score",
            confidence=0.85,
        )
        self._per_region = per_region or {}
        self._errors = errors or {}
        self.calls = []

    async def extract(
        self,
        crop: CroppedImage,
        context_hint: Optional[str] = None
    ) -> ExtractedAttributes:
        self.calls.append(crop.region_id)
        if crop.region_id in self._errors:
            raise self._errors[crop.region_id]
        return self._per_region.get(crop.region_id, self._attributes)

    @property
    def model_name(self) -> str:
        return "DummyExtractor"

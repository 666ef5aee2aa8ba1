"""Tests for the vision attribute extractor and its response schema."""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from pill_pipeline.domain.entities.crop import CroppedImage
from pill_pipeline.domain.exceptions import (
    CapabilityUnavailableError,
    MalformedExtractionError,
    PipelineConfigurationError,
)
from pill_pipeline.infrastructure.extraction import (
    DummyAttributeExtractor,
    ExtractorFactory,
    ExtractorType,
    OpenAIAttributeExtractor,
    SYSTEM_PROMPT,
    build_extraction_prompt,
    map_openai_error,
    parse_extraction,
    parse_extraction_payload,
)

from conftest import make_png


VALID_ANSWER = {
    "shape": "round",
    "color": "white",
    "size_mm": 9.46,
    "thickness_mm": None,
    "front_imprint": "M 367",
    "back_imprint": "unclear",
    "scoring": "1",
    "coating": "film-coated",
    "notes": None,
    "confidence": 0.92,
}

REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


def status_error(cls, status: int, code=None):
    body = {"code": code} if code else None
    return cls("error", response=httpx.Response(status, request=REQUEST), body=body)


def completion(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


@pytest.fixture
def crop() -> CroppedImage:
    return CroppedImage(region_id="1", data=make_png(20, 20), mime_type="image/png", width=20, height=20)


class TestParseExtraction:
    """Strict decode of the model answer."""

    def test_valid_answer_is_normalized(self):
        attributes = parse_extraction(json.dumps(VALID_ANSWER))

        assert attributes.shape == "Round"
        assert attributes.color == "White"
        assert attributes.size_mm == 9.5
        assert attributes.front_imprint == "M 367"
        assert attributes.back_imprint is None
        assert attributes.scoring == "1 score"
        assert attributes.confidence == 0.92

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_answer(self, raw):
        with pytest.raises(MalformedExtractionError):
            parse_extraction(raw)

    def test_invalid_json(self):
        with pytest.raises(MalformedExtractionError) as exc_info:
            parse_extraction("{shape: round")

        assert exc_info.value.details["raw_preview"] == "{shape: round"
        assert not exc_info.value.is_recoverable

    def test_json_array_rejected(self):
        with pytest.raises(MalformedExtractionError):
            parse_extraction("[1, 2]")

    def test_extra_key_rejected(self):
        payload = dict(VALID_ANSWER, drug_name="Tylenol")

        with pytest.raises(MalformedExtractionError) as exc_info:
            parse_extraction_payload(payload)

        assert any("drug_name" in v for v in exc_info.value.details["violations"])

    def test_missing_key_rejected(self):
        payload = dict(VALID_ANSWER)
        del payload["scoring"]

        with pytest.raises(MalformedExtractionError) as exc_info:
            parse_extraction_payload(payload)

        assert any(v.startswith("scoring") for v in exc_info.value.details["violations"])

    @pytest.mark.parametrize("field,value", [
        ("confidence", 1.5),
        ("confidence", "high"),
        ("size_mm", -1.0),
        ("shape", 3),
    ])
    def test_wrong_values_rejected(self, field, value):
        with pytest.raises(MalformedExtractionError):
            parse_extraction_payload(dict(VALID_ANSWER, **{field: value}))


class TestPrompts:
    """Prompt text the model receives."""

    def test_prompt_lists_vocabularies(self):
        prompt = build_extraction_prompt()

        assert "Capsule/Oblong" in prompt
        assert "Blue & White" in prompt
        assert "2 scores" in prompt
        assert '"unclear"' in prompt
        assert "User-supplied context" not in prompt

    def test_context_hint_appended(self):
        prompt = build_extraction_prompt("  from my mother's pill box ")

        assert prompt.endswith("from my mother's pill box")

    def test_system_prompt_demands_json(self):
        assert "JSON" in SYSTEM_PROMPT


class TestOpenAIAttributeExtractor:
    """Tests for the OpenAI adapter with a mocked client."""

    def make_extractor(self, create):
        client = MagicMock()
        client.chat.completions.create = create
        return OpenAIAttributeExtractor(model="gpt-4o", client=client), client

    @pytest.mark.asyncio
    async def test_sends_crop_as_image_block(self, crop):
        create = AsyncMock(return_value=completion(json.dumps(VALID_ANSWER)))
        extractor, _ = self.make_extractor(create)

        attributes = await extractor.extract(crop, context_hint="white round tablet")

        assert attributes.shape == "Round"
        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["response_format"] == {"type": "json_object"}
        system, user = kwargs["messages"]
        assert system["content"] == SYSTEM_PROMPT
        text_block, image_block = user["content"]
        assert "white round tablet" in text_block["text"]
        assert image_block["image_url"]["url"] == crop.data_url
        assert crop.base64_string not in text_block["text"]

    @pytest.mark.asyncio
    async def test_malformed_answer(self, crop):
        extractor, _ = self.make_extractor(AsyncMock(return_value=completion("I think it is Tylenol")))

        with pytest.raises(MalformedExtractionError):
            await extractor.extract(crop)

    @pytest.mark.asyncio
    async def test_no_choices(self, crop):
        response = MagicMock()
        response.choices = []
        extractor, _ = self.make_extractor(AsyncMock(return_value=response))

        with pytest.raises(MalformedExtractionError):
            await extractor.extract(crop)

    @pytest.mark.asyncio
    async def test_sdk_errors_are_bucketed(self, crop):
        error = status_error(openai.RateLimitError, 429)
        extractor, _ = self.make_extractor(AsyncMock(side_effect=error))

        with pytest.raises(CapabilityUnavailableError) as exc_info:
            await extractor.extract(crop)

        assert exc_info.value.reason == "rate_limited"
        assert exc_info.value.is_recoverable

    @pytest.mark.asyncio
    async def test_missing_api_key(self, crop, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        with pytest.raises(PipelineConfigurationError):
            await OpenAIAttributeExtractor().extract(crop)

    @pytest.mark.asyncio
    async def test_close_releases_client(self):
        client = MagicMock()
        client.close = AsyncMock()
        extractor = OpenAIAttributeExtractor(client=client)

        await extractor.close()

        client.close.assert_awaited_once()


class TestMapOpenAIError:
    """SDK exceptions map onto capability reasons."""

    @pytest.mark.parametrize("error,reason,recoverable", [
        (openai.APITimeoutError(request=REQUEST), "timeout", True),
        (openai.APIConnectionError(request=REQUEST), "network", True),
        (status_error(openai.RateLimitError, 429, code="insufficient_quota"), "quota", False),
        (status_error(openai.RateLimitError, 429), "rate_limited", True),
        (status_error(openai.AuthenticationError, 401), "auth", False),
        (status_error(openai.NotFoundError, 404), "model_not_found", False),
        (status_error(openai.BadRequestError, 400, code="context_length_exceeded"), "bad_request", False),
        (status_error(openai.InternalServerError, 500), "server_error", True),
        (status_error(openai.BadRequestError, 400), "bad_request", False),
    ])
    def test_buckets(self, error, reason, recoverable):
        mapped = map_openai_error(error)

        assert mapped.reason == reason
        assert mapped.is_recoverable is recoverable
        assert mapped.capability == "vision model"

    def test_status_code_kept(self):
        assert map_openai_error(status_error(openai.InternalServerError, 503)).status_code == 503


class TestExtractorFactory:
    """Tests for ExtractorFactory."""

    def test_create_dummy(self):
        assert isinstance(ExtractorFactory.create(ExtractorType.DUMMY), DummyAttributeExtractor)

    def test_create_openai_from_config(self):
        extractor = ExtractorFactory.create_from_config({
            "type": "openai",
            "model": "gpt-4o",
            "timeout_seconds": 30.0,
        })

        assert isinstance(extractor, OpenAIAttributeExtractor)
        assert extractor.model_name == "gpt-4o"

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            ExtractorFactory.create_from_config({"type": "claude"})

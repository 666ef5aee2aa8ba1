"""
Extraction Response Schema

Strict decode of the vision model's JSON answer.
"""

from typing import Optional, Dict, Any
import json

from pydantic import BaseModel, ConfigDict, Field, ValidationError as PydanticValidationError

from ...domain.entities.attributes import ExtractedAttributes
from ...domain.exceptions import MalformedExtractionError


class ExtractionPayload(BaseModel):
    """
    Exact field set the vision model must return.

    Every key is required (null or "unclear" stands for missing evidence) and
    extra keys are rejected. Values are still free text here; normalization
    onto the vocabularies happens in ExtractedAttributes.from_raw().
    """

    model_config = ConfigDict(extra="forbid", strict=True)

    shape: Optional[str]
    color: Optional[str]
    size_mm: Optional[float] = Field(ge=0)
    thickness_mm: Optional[float] = Field(ge=0)
    front_imprint: Optional[str]
    back_imprint: Optional[str]
    scoring: Optional[str]
    coating: Optional[str]
    notes: Optional[str]
    confidence: float = Field(ge=0, le=1)


def _violations(error: PydanticValidationError) -> list:
    return [
        f"{'.'.join(str(part) for part in item['loc']) or '<root>'}: {item['msg']}"
        for item in error.errors()
    ]


def parse_extraction(raw_text: Optional[str]) -> ExtractedAttributes:
    """
    Decode and validate a raw model answer.

    Args:
        raw_text: The message content returned by the model

    Returns:
        Normalized ExtractedAttributes

    Raises:
        MalformedExtractionError: If the text is not a JSON object matching
            ExtractionPayload exactly
    """
    if not raw_text or not raw_text.strip():
        raise MalformedExtractionError("Vision model returned an empty response")

    try:
        data: Any = json.loads(raw_text)
    except json.JSONDecodeError as e:
        raise MalformedExtractionError(
            f"Vision model returned invalid JSON: {e.msg}",
            raw_preview=raw_text,
        )

    if not isinstance(data, dict):
        raise MalformedExtractionError(
            "Vision model returned JSON that is not an object",
            raw_preview=raw_text,
        )

    return parse_extraction_payload(data, raw_preview=raw_text)


def parse_extraction_payload(data: Dict[str, Any], raw_preview: Optional[str] = None) -> ExtractedAttributes:
    """Validate an already-decoded payload."""
    try:
        payload = ExtractionPayload.model_validate(data)
    except PydanticValidationError as e:
        violations = _violations(e)
        raise MalformedExtractionError(
            f"Vision model response violates the attribute schema ({len(violations)} violation(s))",
            violations=violations,
            raw_preview=raw_preview or json.dumps(data, default=str),
        )

    return ExtractedAttributes.from_raw(payload.model_dump())

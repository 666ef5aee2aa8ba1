"""
Extraction Infrastructure

Vision-language adapters that turn a crop into pill attributes.
"""

from .openai_extractor import OpenAIAttributeExtractor, DummyAttributeExtractor, map_openai_error
from .schema import ExtractionPayload, parse_extraction, parse_extraction_payload
from .prompts import SYSTEM_PROMPT, build_extraction_prompt
from .factory import ExtractorFactory, ExtractorType

__all__ = [
    "OpenAIAttributeExtractor",
    "DummyAttributeExtractor",
    "map_openai_error",
    "ExtractionPayload",
    "parse_extraction",
    "parse_extraction_payload",
    "SYSTEM_PROMPT",
    "build_extraction_prompt",
    "ExtractorFactory",
    "ExtractorType",
]

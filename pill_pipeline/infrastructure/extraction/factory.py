"""
Extractor Factory

Factory for creating attribute extractor instances.
"""

from typing import Dict, Any
from enum import Enum

from ...domain.ports.attribute_extractor import AttributeExtractorPort
from .openai_extractor import OpenAIAttributeExtractor, DummyAttributeExtractor


class ExtractorType(Enum):
    """Available extractor implementations."""

    OPENAI = "openai"
    DUMMY = "dummy"


class ExtractorFactory:
    """
    Factory for creating attribute extractor instances.

    Usage:
        extractor = ExtractorFactory.create(
            ExtractorType.OPENAI,
            api_key="your-api-key",
            model="gpt-4o-mini"
        )
    """

    @staticmethod
    def create(extractor_type: ExtractorType, **kwargs) -> AttributeExtractorPort:
        """
        Create an extractor instance.

        Args:
            extractor_type: Type of extractor to create
            **kwargs: Configuration options
                For OpenAI:
                - api_key, model, temperature, max_tokens,
                  timeout_seconds, base_url, client
                For Dummy:
                - attributes, per_region, errors
        """
        if extractor_type == ExtractorType.OPENAI:
            return OpenAIAttributeExtractor(
                api_key=kwargs.get("api_key"),
                model=kwargs.get("model", "gpt-4o-mini"),
                temperature=kwargs.get("temperature", 0.1),
                max_tokens=kwargs.get("max_tokens", 500),
                timeout=kwargs.get("timeout_seconds", 60.0),
                base_url=kwargs.get("base_url"),
                client=kwargs.get("client"),
            )

        elif extractor_type == ExtractorType.DUMMY:
            return DummyAttributeExtractor(
                attributes=kwargs.get("attributes"),
                per_region=kwargs.get("per_region"),
                errors=kwargs.get("errors"),
            )

        else:
            raise ValueError(f"Unknown extractor type: {extractor_type}")

    @staticmethod
    def create_from_config(config: Dict[str, Any]) -> AttributeExtractorPort:
        """Create extractor from configuration dictionary."""
        try:
            extractor_type = ExtractorType(config.get("type", "openai"))
        except ValueError:
            raise ValueError(f"Unknown extractor type: {config.get('type')}")

        options = {key: value for key, value in config.items() if key != "type"}
        return ExtractorFactory.create(extractor_type, **options)

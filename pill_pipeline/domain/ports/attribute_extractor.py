"""
Attribute Extractor Port

Abstract interface for the external vision-language capability.
"""

from abc import ABC, abstractmethod
from typing import Optional

from ..entities.crop import CroppedImage
from ..entities.attributes import ExtractedAttributes


class AttributeExtractorPort(ABC):
    """
    Port (interface) for attribute extraction.

    One call per crop. Implementations must validate the capability's answer
    against the attribute schema and return canonical attributes.
    """

    @abstractmethod
    async def extract(
        self,
        crop: CroppedImage,
        context_hint: Optional[str] = None
    ) -> ExtractedAttributes:
        """
        Extract visual attributes from one cropped pill.

        Args:
            crop: Encoded crop
            context_hint: Optional free-text secondary context

        Returns:
            Normalized ExtractedAttributes

        Raises:
            MalformedExtractionError: If the response fails schema validation
            CapabilityUnavailableError: On network, timeout, auth or quota errors
        """
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        pass

    async def close(self) -> None:
        return None

"""
Cropper Factory

Factory for creating cropper instances.
"""

from typing import Dict, Any
from enum import Enum

from ...domain.ports.cropper import CropperPort
from .local_cropper import LocalCropper, DummyCropper, DEFAULT_MAX_IMAGE_BYTES
from .http_cropper import HttpCropper


class CropperType(Enum):
    """Available cropper implementations."""

    LOCAL = "local"
    HTTP = "http"
    DUMMY = "dummy"


class CropperFactory:
    """
    Factory for creating cropper instances.

    Usage:
        cropper = CropperFactory.create(CropperType.LOCAL, jpeg_quality=92)
        cropper = CropperFactory.create(CropperType.HTTP, service_url="http://crop/api/crop")
    """

    @staticmethod
    def create(cropper_type: CropperType, **kwargs) -> CropperPort:
        if cropper_type == CropperType.LOCAL:
            return LocalCropper(
                jpeg_quality=kwargs.get("jpeg_quality", 92),
                max_image_bytes=kwargs.get("max_image_bytes", DEFAULT_MAX_IMAGE_BYTES),
                timeout=kwargs.get("timeout_seconds", 30.0),
                client=kwargs.get("client"),
            )

        elif cropper_type == CropperType.HTTP:
            return HttpCropper(
                service_url=kwargs.get("service_url"),
                timeout=kwargs.get("timeout_seconds", 30.0),
                max_image_bytes=kwargs.get("max_image_bytes", DEFAULT_MAX_IMAGE_BYTES),
                client=kwargs.get("client"),
            )

        elif cropper_type == CropperType.DUMMY:
            return DummyCropper(errors=kwargs.get("errors"))

        else:
            raise ValueError(f"Unknown cropper type: {cropper_type}")

    @staticmethod
    def create_from_config(config: Dict[str, Any]) -> CropperPort:
        """Create cropper from configuration dictionary."""
        try:
            cropper_type = CropperType(config.get("type", "local"))
        except ValueError:
            raise ValueError(f"Unknown cropper type: {config.get('type')}")

        options = {key: value for key, value in config.items() if key != "type"}
        return CropperFactory.create(cropper_type, **options)

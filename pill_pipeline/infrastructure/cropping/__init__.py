"""
Cropping Infrastructure

Adapters producing padded per-region crops.
"""

from .local_cropper import LocalCropper, DummyCropper
from .http_cropper import HttpCropper
from .factory import CropperFactory, CropperType

__all__ = [
    "LocalCropper",
    "DummyCropper",
    "HttpCropper",
    "CropperFactory",
    "CropperType",
]

"""
Utility modules for the infrastructure layer.
"""

from .image_processing import (
    bytes_to_cv2,
    image_size,
    crop_array,
    encode_jpeg,
    DEFAULT_JPEG_QUALITY,
)
from .http_utils import capability_error, reason_for_status, fetch_image_bytes

__all__ = [
    "bytes_to_cv2",
    "image_size",
    "crop_array",
    "encode_jpeg",
    "DEFAULT_JPEG_QUALITY",
    "capability_error",
    "reason_for_status",
    "fetch_image_bytes",
]

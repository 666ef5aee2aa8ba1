"""
OpenCV-based Image Processing Utilities

Decoding, orientation, cropping and JPEG encoding for pill crops.
PIL handles decoding and EXIF orientation; OpenCV handles array slicing
and encoding.
"""

from io import BytesIO
from typing import Tuple
import logging

import cv2
import numpy as np
from PIL import Image as PILImage, ImageOps, UnidentifiedImageError

from ...domain.value_objects.bounding_box import BoundingBox

logger = logging.getLogger(__name__)


DEFAULT_JPEG_QUALITY = 92


def bytes_to_cv2(image_bytes: bytes) -> np.ndarray:
    """
    Decode image bytes to OpenCV BGR format, honouring EXIF orientation.

    Phone photos often store pixels sideways with an orientation tag; the
    detector sees the rotated image, so crops must too.

    Raises:
        ValueError: If the bytes cannot be decoded
    """
    try:
        pil_image = PILImage.open(BytesIO(image_bytes))
        pil_image = ImageOps.exif_transpose(pil_image)
        rgb = np.asarray(pil_image.convert("RGB"))
    except (UnidentifiedImageError, OSError) as e:
        raise ValueError(f"Failed to decode image from bytes: {e}")

    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


def image_size(img: np.ndarray) -> Tuple[int, int]:
    """Return (width, height) of an OpenCV image."""
    height, width = img.shape[:2]
    return width, height


def crop_array(img: np.ndarray, box: BoundingBox) -> np.ndarray:
    """
    Slice a box out of an image without resizing.

    The box must already lie inside the image.
    """
    width, height = image_size(img)
    if not box.is_within(width, height):
        raise ValueError(f"{box} is outside a {width}x{height} image")
    return img[box.y:box.bottom, box.x:box.right]


def encode_jpeg(img: np.ndarray, quality: int = DEFAULT_JPEG_QUALITY) -> bytes:
    """
    Encode an OpenCV image as JPEG.

    Args:
        img: BGR image
        quality: JPEG quality (1-100)
    """
    ok, buffer = cv2.imencode(".jpg", img, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise ValueError("Failed to encode image as JPEG")
    return buffer.tobytes()

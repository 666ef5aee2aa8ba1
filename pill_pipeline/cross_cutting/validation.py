"""
Input Validation

Validation utilities for pipeline inputs.
"""

from typing import Optional, Tuple, Mapping, Any
from io import BytesIO
import logging

from PIL import Image as PILImage, UnidentifiedImageError

from ..domain.value_objects.image_data import ImageData
from ..domain.entities.search import SearchQuery
from ..domain.exceptions import InvalidImageError, InvalidAttributeError
from ..domain.normalization import (
    SHAPE_OPTIONS,
    COLOR_OPTIONS,
    SCORING_OPTIONS,
    normalize_shape,
    normalize_color,
    sanitize_filter_value,
)


logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = {"jpeg", "jpg", "png", "bmp", "webp", "gif", "mpo"}

MAX_IMAGE_DIMENSION = 8192

# 8 MB, the largest upload the crop stage accepts
MAX_FILE_SIZE = 8 * 1024 * 1024


def validate_image(image: ImageData, max_bytes: int = MAX_FILE_SIZE) -> Tuple[bool, Optional[str]]:
    """
    Validate image data.

    Remote references are accepted as-is; the detector fetches them.

    Returns:
        Tuple of (is_valid, error_message)
    """
    if image.is_remote:
        return True, None

    try:
        image_bytes = image.bytes
    except (ValueError, OSError) as e:
        return False, f"Failed to read image: {e}"

    if not image_bytes:
        return False, "Image is empty"

    if len(image_bytes) > max_bytes:
        return False, f"Image size exceeds maximum ({max_bytes / 1024 / 1024:.1f} MB)"

    try:
        pil_image = PILImage.open(BytesIO(image_bytes))
        pil_image.verify()

        # Reopen because verify() can only be called once
        pil_image = PILImage.open(BytesIO(image_bytes))
        width, height = pil_image.size
        img_format = pil_image.format.lower() if pil_image.format else "unknown"
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError) as e:
        return False, f"Invalid image data: {e}"

    if width > MAX_IMAGE_DIMENSION or height > MAX_IMAGE_DIMENSION:
        return False, f"Image dimensions exceed maximum ({MAX_IMAGE_DIMENSION}x{MAX_IMAGE_DIMENSION})"

    if img_format not in SUPPORTED_FORMATS:
        return False, f"Unsupported image format: {img_format}"

    return True, None


def probe_image(image: ImageData, max_bytes: int = MAX_FILE_SIZE) -> ImageData:
    """
    Validate an image and fill in its width, height and format.

    Raises:
        InvalidImageError: If the image fails validation
    """
    is_valid, error = validate_image(image, max_bytes=max_bytes)
    if not is_valid:
        raise InvalidImageError(error)

    if image.is_remote:
        return image

    pil_image = PILImage.open(BytesIO(image.bytes))
    img_format = (pil_image.format or image.format or "jpeg").lower()
    if img_format == "mpo":
        img_format = "jpeg"
    return image.with_dimensions(pil_image.width, pil_image.height, format=img_format)


def build_search_query(attributes: Mapping[str, Any]) -> SearchQuery:
    """
    Build a canonical SearchQuery from caller-supplied attributes.

    Sentinel values ("any", "__..." placeholders) and blanks are dropped.
    Shape and color may be synonyms of a canonical value; anything that does
    not normalize is rejected rather than silently dropped.

    Args:
        attributes: Mapping with any of shape, color, front_imprint,
            back_imprint (or imprint), size_mm, scoring

    Raises:
        InvalidAttributeError: For values outside the canonical vocabulary
        InvalidAttributeError: Also for a negative or non-numeric size
    """
    shape = sanitize_filter_value(attributes.get("shape"))
    if shape is not None:
        canonical = normalize_shape(shape)
        if not canonical:
            raise InvalidAttributeError("shape", shape, allowed=list(SHAPE_OPTIONS))
        shape = canonical

    color = sanitize_filter_value(attributes.get("color"))
    if color is not None:
        canonical = normalize_color(color)
        if not canonical:
            raise InvalidAttributeError("color", color, allowed=list(COLOR_OPTIONS))
        color = canonical

    scoring = sanitize_filter_value(attributes.get("scoring"))
    if scoring is not None:
        if scoring.lower() not in SCORING_OPTIONS:
            raise InvalidAttributeError("scoring", scoring, allowed=list(SCORING_OPTIONS))
        scoring = scoring.lower()

    front_imprint = sanitize_filter_value(attributes.get("front_imprint", attributes.get("imprint")))
    back_imprint = sanitize_filter_value(attributes.get("back_imprint"))

    size_mm = attributes.get("size_mm")
    if size_mm is not None and size_mm != "":
        try:
            size_mm = float(size_mm)
        except (TypeError, ValueError):
            raise InvalidAttributeError("size_mm", size_mm)
        if size_mm < 0:
            raise InvalidAttributeError("size_mm", size_mm)
        # 0 means "not estimated"
        size_mm = size_mm or None
    else:
        size_mm = None

    return SearchQuery(
        shape=shape,
        color=color,
        front_imprint=front_imprint,
        back_imprint=back_imprint,
        size_mm=size_mm,
        scoring=scoring,
    )


def validate_search_attributes(attributes: Mapping[str, Any]) -> SearchQuery:
    """
    Check caller-confirmed attributes before a search.

    Returns:
        The canonical SearchQuery built from the attributes

    Raises:
        InvalidAttributeError: For the first offending attribute
    """
    query = build_search_query(attributes)
    logger.debug(f"Validated search attributes: {query.supplied_fields}")
    return query


def describe_attributes(attributes: Mapping[str, Any]) -> SearchQuery:
    """
    Best-effort projection of unconfirmed attributes, for analytics only.

    Same fields as build_search_query, but values outside the vocabulary
    are dropped instead of raising.
    """
    shape = normalize_shape(sanitize_filter_value(attributes.get("shape"))) or None
    color = normalize_color(sanitize_filter_value(attributes.get("color"))) or None

    scoring = sanitize_filter_value(attributes.get("scoring"))
    if scoring is not None and scoring.lower() not in SCORING_OPTIONS:
        scoring = None

    size_mm = attributes.get("size_mm")
    try:
        size_mm = float(size_mm) if size_mm not in (None, "") else None
    except (TypeError, ValueError):
        size_mm = None
    if size_mm is not None and size_mm <= 0:
        size_mm = None

    return SearchQuery(
        shape=shape,
        color=color,
        front_imprint=sanitize_filter_value(attributes.get("front_imprint", attributes.get("imprint"))),
        back_imprint=sanitize_filter_value(attributes.get("back_imprint")),
        size_mm=size_mm,
        scoring=scoring.lower() if scoring else None,
    )

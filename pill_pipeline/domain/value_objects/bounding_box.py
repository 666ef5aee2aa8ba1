"""
Bounding Box Value Object

Represents a rectangular pixel region in an image, in top-left/width/height form.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple
import math


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positives, toward +inf for negatives."""
    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class BoundingBox:
    """
    Immutable value object representing a box in absolute pixel coordinates.

    A raw box (straight from a detector) may start outside the image; use
    clamp_to() or intersect() before cropping.

    Attributes:
        x: Left edge
        y: Top edge
        width: Box width in pixels
        height: Box height in pixels
    """

    x: int
    y: int
    width: int
    height: int

    def __post_init__(self) -> None:
        """Validate box dimensions."""
        if self.width < 0:
            raise ValueError(f"width must be >= 0, got {self.width}")
        if self.height < 0:
            raise ValueError(f"height must be >= 0, got {self.height}")

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.width / 2, self.y + self.height / 2)

    def is_within(self, image_width: int, image_height: int) -> bool:
        """Check the box lies fully inside an image and is at least 1x1."""
        return (
            self.x >= 0
            and self.y >= 0
            and self.width >= 1
            and self.height >= 1
            and self.right <= image_width
            and self.bottom <= image_height
        )

    def clamp_to(self, image_width: int, image_height: int) -> "BoundingBox":
        """
        Clamp the box to image bounds.

        The origin is clamped to [0, dim-1]; the far edge is kept where it was
        (or cut at the image edge) and the size is clamped to [1, dim-origin].
        The result always satisfies is_within().

        Args:
            image_width: Image width in pixels (>= 1)
            image_height: Image height in pixels (>= 1)

        Returns:
            New clamped BoundingBox
        """
        if image_width < 1 or image_height < 1:
            raise ValueError(f"Image dimensions must be positive, got {image_width}x{image_height}")

        x, width = _clamp_axis(self.x, self.width, image_width)
        y, height = _clamp_axis(self.y, self.height, image_height)
        return BoundingBox(x=x, y=y, width=width, height=height)

    def intersect(self, image_width: int, image_height: int) -> Optional["BoundingBox"]:
        """
        Intersect the box with the image rectangle.

        Returns:
            The overlapping box, or None when the overlap has no positive area
        """
        left = max(self.x, 0)
        top = max(self.y, 0)
        right = min(self.right, image_width)
        bottom = min(self.bottom, image_height)
        if right - left <= 0 or bottom - top <= 0:
            return None
        return BoundingBox(x=left, y=top, width=right - left, height=bottom - top)

    def pad(self, fraction: float) -> "BoundingBox":
        """
        Grow the box symmetrically by a fraction of its own size.

        Args:
            fraction: Padding per side as a fraction of width/height (0.06 = 6%)
        """
        if fraction < 0:
            raise ValueError(f"Padding fraction must be >= 0, got {fraction}")
        pad_x = round_half_up(self.width * fraction)
        pad_y = round_half_up(self.height * fraction)
        return BoundingBox(
            x=self.x - pad_x,
            y=self.y - pad_y,
            width=self.width + 2 * pad_x,
            height=self.height + 2 * pad_y,
        )

    def to_dict(self) -> Dict[str, int]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    def __str__(self) -> str:
        return f"BoundingBox(x={self.x}, y={self.y}, w={self.width}, h={self.height})"

    @classmethod
    def from_center(
        cls,
        center_x: float,
        center_y: float,
        width: float,
        height: float
    ) -> "BoundingBox":
        """
        Convert a center-point box to top-left form without clamping.

        Clamp the result afterwards; clamping a center box first shifts it.
        """
        return cls(
            x=round_half_up(center_x - width / 2),
            y=round_half_up(center_y - height / 2),
            width=max(0, round_half_up(width)),
            height=max(0, round_half_up(height)),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> "BoundingBox":
        return cls(
            x=round_half_up(data["x"]),
            y=round_half_up(data["y"]),
            width=round_half_up(data["width"]),
            height=round_half_up(data["height"]),
        )


def _clamp_axis(origin: int, size: int, limit: int) -> Tuple[int, int]:
    far_edge = min(origin + size, limit)
    clamped_origin = min(max(origin, 0), limit - 1)
    clamped_size = min(max(far_edge - clamped_origin, 1), limit - clamped_origin)
    return clamped_origin, clamped_size

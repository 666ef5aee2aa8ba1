"""
Cropped Image Entity
"""

from dataclasses import dataclass, field
from typing import Dict, Any
import base64


@dataclass(frozen=True)
class CroppedImage:
    """
    Encoded sub-image for one region.

    Owned by the unit of work that produced it until the unit's result is
    recorded in the aggregate report.
    """

    region_id: str
    data: bytes = field(repr=False)
    mime_type: str
    width: int
    height: int

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Crop dimensions must be positive, got {self.width}x{self.height}")
        if not self.data:
            raise ValueError("Crop data cannot be empty")

    @property
    def base64_string(self) -> str:
        return base64.b64encode(self.data).decode("utf-8")

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64_string}"

    def to_dict(self, include_data: bool = False) -> Dict[str, Any]:
        result = {
            "region_id": self.region_id,
            "mime_type": self.mime_type,
            "width": self.width,
            "height": self.height,
            "byte_size": len(self.data),
        }
        if include_data:
            result["image"] = self.base64_string
        return result

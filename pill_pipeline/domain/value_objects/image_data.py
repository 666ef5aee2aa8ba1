"""
Image Data Value Object

Represents the image handed to the pipeline: raw bytes plus MIME type,
or a remote reference the detector can fetch itself.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Tuple
from pathlib import Path
import base64


FORMAT_TO_MIME = {
    "jpeg": "image/jpeg",
    "jpg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "bmp": "image/bmp",
    "webp": "image/webp",
}

SUFFIX_TO_FORMAT = {
    ".jpg": "jpeg",
    ".jpeg": "jpeg",
    ".png": "png",
    ".gif": "gif",
    ".bmp": "bmp",
    ".webp": "webp",
}


@dataclass(frozen=True)
class ImageData:
    """
    Immutable value object representing image data.

    Attributes:
        source: Original source identifier (file path or URL)
        width: Image width in pixels (if known)
        height: Image height in pixels (if known)
        format: Image format (e.g., "jpeg", "png")
        source_url: Remote image reference; used instead of bytes when set
        _bytes: Raw image bytes (internal)
        _base64: Base64 encoded image (internal)
    """

    source: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None
    source_url: Optional[str] = None
    _bytes: Optional[bytes] = field(default=None, repr=False)
    _base64: Optional[str] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        """Validate that at least one data source is provided."""
        if self._bytes is None and self._base64 is None and self.source is None and self.source_url is None:
            raise ValueError("ImageData must have at least one of: bytes, base64, source path or URL")

    @property
    def has_content(self) -> bool:
        """True when pixel data is available locally (not only a URL)."""
        if self._bytes is not None or self._base64 is not None:
            return True
        return self.source is not None and Path(self.source).exists()

    @property
    def is_remote(self) -> bool:
        return self.source_url is not None and not self.has_content

    @property
    def bytes(self) -> bytes:
        """
        Get raw image bytes, loading from source if necessary.

        Raises:
            ValueError: If no local data source is available
        """
        if self._bytes is not None:
            return self._bytes

        if self._base64 is not None:
            return base64.b64decode(self._base64)

        if self.source is not None:
            path = Path(self.source)
            if path.exists():
                return path.read_bytes()

        raise ValueError("Cannot load image bytes: no local source available")

    @property
    def base64_string(self) -> str:
        if self._base64 is not None:
            return self._base64
        return base64.b64encode(self.bytes).decode("utf-8")

    @property
    def mime_type(self) -> str:
        """MIME type derived from the format, defaulting to JPEG."""
        return FORMAT_TO_MIME.get((self.format or "").lower(), "image/jpeg")

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64_string}"

    @property
    def size(self) -> Optional[Tuple[int, int]]:
        if self.width is not None and self.height is not None:
            return (self.width, self.height)
        return None

    def with_dimensions(self, width: int, height: int, format: Optional[str] = None) -> "ImageData":
        """Return a copy with known pixel dimensions (and format if given)."""
        return replace(self, width=width, height=height, format=format or self.format)

    def __len__(self) -> int:
        return len(self.bytes)

    def __str__(self) -> str:
        size_str = f"{self.width}x{self.height}" if self.size else "unknown size"
        origin = self.source_url if self.is_remote else (self.format or "unknown format")
        return f"ImageData({size_str}, {origin})"

    @classmethod
    def from_file(cls, file_path: str) -> "ImageData":
        """
        Create ImageData from a file path.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Image file not found: {file_path}")

        return cls(
            source=str(path.absolute()),
            format=SUFFIX_TO_FORMAT.get(path.suffix.lower()),
            _bytes=path.read_bytes()
        )

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        mime_type: Optional[str] = None,
        format: Optional[str] = None,
        source: Optional[str] = None
    ) -> "ImageData":
        """
        Create ImageData from raw bytes.

        Args:
            data: Raw image bytes
            mime_type: MIME type such as "image/png"; wins over format
            format: Image format (e.g., "jpeg", "png")
            source: Optional source identifier
        """
        if mime_type and mime_type.startswith("image/"):
            format = mime_type.split("/", 1)[1].split(";")[0]
        return cls(source=source, format=format, _bytes=data)

    @classmethod
    def from_base64(
        cls,
        base64_string: str,
        format: Optional[str] = None,
        source: Optional[str] = None
    ) -> "ImageData":
        """Create ImageData from a base64 string or a data URL."""
        if base64_string.startswith("data:"):
            header, base64_data = base64_string.split(",", 1)
            if "image/" in header:
                format = header.split("image/")[1].split(";")[0]
            base64_string = base64_data

        return cls(source=source, format=format, _base64=base64_string)

    @classmethod
    def from_url(cls, url: str) -> "ImageData":
        """Create a remote reference the detector fetches itself."""
        return cls(source=url, source_url=url)

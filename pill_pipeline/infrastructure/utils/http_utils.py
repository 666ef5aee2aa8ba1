"""
HTTP helpers

Error mapping and remote image download shared by the httpx adapters.
"""

from typing import Optional, Tuple

import httpx

from ...domain.exceptions import CapabilityUnavailableError, InvalidImageError


def reason_for_status(status_code: int) -> str:
    """Bucket an HTTP status code."""
    if status_code in (401, 403):
        return "auth"
    if status_code == 404:
        return "model_not_found"
    if status_code == 429:
        return "rate_limited"
    if status_code >= 500:
        return "server_error"
    return "bad_request"


def capability_error(capability: str, error: Exception) -> CapabilityUnavailableError:
    """
    Map an httpx exception to CapabilityUnavailableError.

    Args:
        capability: Name of the remote capability ("detector", "crop service")
        error: The exception raised by httpx
    """
    status_code: Optional[int] = None

    if isinstance(error, httpx.TimeoutException):
        reason = "timeout"
    elif isinstance(error, httpx.HTTPStatusError):
        status_code = error.response.status_code
        reason = reason_for_status(status_code)
    elif isinstance(error, httpx.RequestError):
        reason = "network"
    else:
        reason = "unknown"

    message = f"{capability} unavailable ({reason})"
    if status_code is not None:
        message = f"{capability} returned HTTP {status_code} ({reason})"

    return CapabilityUnavailableError(
        capability=capability,
        reason=reason,
        message=message,
        status_code=status_code,
    )


async def fetch_image_bytes(
    client: httpx.AsyncClient,
    url: str,
    max_bytes: int,
    capability: str = "image host"
) -> Tuple[bytes, Optional[str]]:
    """
    Download a remote image.

    Returns:
        Tuple of (bytes, mime_type)

    Raises:
        CapabilityUnavailableError: If the download fails
        InvalidImageError: If the body exceeds max_bytes
    """
    try:
        response = await client.get(url, follow_redirects=True)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise capability_error(capability, e)

    data = response.content
    if len(data) > max_bytes:
        raise InvalidImageError(f"Image size exceeds maximum ({max_bytes / 1024 / 1024:.1f} MB)")

    mime_type = response.headers.get("content-type", "").split(";")[0].strip() or None
    return data, mime_type

"""
Domain Exceptions

Custom exceptions for the pill identification domain.
Exceptions are grouped by pipeline stage. Region-level errors end up in a
unit's Failed state; run-level errors abort the run.
"""

from typing import Optional, Dict, Any


class DomainException(Exception):
    """
    Base exception for all domain-level errors.

    Attributes:
        message: Human-readable error message
        details: Additional error details
        is_recoverable: Whether the same call may succeed if retried
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        is_recoverable: bool = True
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.is_recoverable = is_recoverable

    def __str__(self) -> str:
        return f"{self.__class__.__name__}: {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for serialization."""
        return {
            "type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
            "is_recoverable": self.is_recoverable,
        }


# =============================================================================
# External Capability Exceptions
# =============================================================================

class CapabilityUnavailableError(DomainException):
    """
    An external capability (detector, crop service, vision model, store)
    could not be reached or refused the request.

    Reasons are bucketed so callers can decide on retries:
    timeout, network, rate_limited and server_error are transient;
    auth, quota, model_not_found and bad_request are not.
    """

    TRANSIENT_REASONS = {"timeout", "network", "rate_limited", "server_error"}

    def __init__(
        self,
        capability: str,
        reason: str,
        message: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs
    ):
        message = message or f"{capability} unavailable ({reason})"
        kwargs.setdefault("is_recoverable", reason in self.TRANSIENT_REASONS)
        super().__init__(message, **kwargs)
        self.capability = capability
        self.reason = reason
        self.status_code = status_code
        self.details["capability"] = capability
        self.details["reason"] = reason
        if status_code is not None:
            self.details["status_code"] = status_code


class MalformedResponseError(DomainException):
    """An external capability answered with data violating its contract."""

    def __init__(
        self,
        message: str,
        raw_preview: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, is_recoverable=False, **kwargs)
        if raw_preview:
            self.details["raw_preview"] = raw_preview[:200]


# =============================================================================
# Detection Exceptions
# =============================================================================

class DetectionError(DomainException):
    """Base exception for detection stage errors."""
    pass


class NoDetectionError(DetectionError):
    """No region passed the detector confidence threshold."""

    def __init__(
        self,
        threshold: float,
        candidates_seen: int = 0,
        message: Optional[str] = None,
        **kwargs
    ):
        message = message or f"No pills detected with confidence ≥ {threshold:.2f}"
        super().__init__(message, is_recoverable=False, **kwargs)
        self.threshold = threshold
        self.details["threshold"] = threshold
        self.details["candidates_seen"] = candidates_seen


class MalformedDetectionError(MalformedResponseError, DetectionError):
    """Detector response did not match the expected prediction schema."""
    pass


# =============================================================================
# Crop Exceptions
# =============================================================================

class CropError(DomainException):
    """Base exception for crop stage errors."""
    pass


class CropOutOfBoundsError(CropError):
    """The padded region does not overlap the image."""

    def __init__(
        self,
        region_id: str,
        box: Optional[Dict[str, int]] = None,
        image_size: Optional[tuple] = None,
        **kwargs
    ):
        message = f"Crop for region '{region_id}' has no positive area inside the image"
        super().__init__(message, is_recoverable=False, **kwargs)
        self.details["region_id"] = region_id
        if box:
            self.details["box"] = box
        if image_size:
            self.details["image_size"] = list(image_size)


# =============================================================================
# Attribute Extraction Exceptions
# =============================================================================

class ExtractionError(DomainException):
    """Base exception for attribute extraction errors."""
    pass


class MalformedExtractionError(MalformedResponseError, ExtractionError):
    """Vision model output failed schema validation."""

    def __init__(
        self,
        message: str = "Vision model returned data violating the attribute schema",
        violations: Optional[list] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        if violations:
            self.details["violations"] = violations


# =============================================================================
# Search Exceptions
# =============================================================================

class SearchError(DomainException):
    """Base exception for search and rerank errors."""
    pass


class ReferenceStoreError(SearchError):
    """The reference store failed to answer a query."""

    def __init__(self, message: str = "Reference store query failed", **kwargs):
        super().__init__(message, **kwargs)


class AnalyticsError(SearchError):
    """The analytics sink failed to persist a search record."""

    def __init__(self, message: str = "Failed to save search analytics", **kwargs):
        super().__init__(message, **kwargs)


# =============================================================================
# Pipeline Exceptions
# =============================================================================

class PipelineError(DomainException):
    """Base exception for pipeline-level errors."""
    pass


class PipelineConfigurationError(PipelineError):
    """Pipeline is not properly configured."""

    def __init__(
        self,
        message: str = "Pipeline is not properly configured",
        missing_components: Optional[list] = None,
        **kwargs
    ):
        super().__init__(message, is_recoverable=False, **kwargs)
        if missing_components:
            self.details["missing_components"] = missing_components


class PipelineCancelledError(PipelineError):
    """The caller cancelled the run."""

    def __init__(self, message: str = "Pipeline run was cancelled", **kwargs):
        super().__init__(message, is_recoverable=False, **kwargs)


class UnitTimeoutError(PipelineError):
    """A single region's crop+extract unit exceeded its time budget."""

    def __init__(
        self,
        region_id: str,
        timeout_seconds: float,
        **kwargs
    ):
        message = f"Region '{region_id}' timed out after {timeout_seconds} seconds"
        super().__init__(message, **kwargs)
        self.details["region_id"] = region_id
        self.details["timeout_seconds"] = timeout_seconds


class StageExecutionError(PipelineError):
    """A pipeline stage failed with an unexpected error."""

    def __init__(
        self,
        stage_name: str,
        original_error: Exception,
        **kwargs
    ):
        message = f"Stage '{stage_name}' failed: {str(original_error)}"
        kwargs.setdefault("is_recoverable", False)
        super().__init__(message, **kwargs)
        self.stage_name = stage_name
        self.original_error = original_error
        self.details["stage"] = stage_name
        self.details["original_error"] = str(original_error)


class ResultAlreadyRecordedError(PipelineError):
    """A region's terminal result was written twice."""

    def __init__(self, region_id: str, **kwargs):
        message = f"Terminal result for region '{region_id}' was already recorded"
        super().__init__(message, is_recoverable=False, **kwargs)
        self.details["region_id"] = region_id


# =============================================================================
# Validation Exceptions
# =============================================================================

class ValidationError(DomainException):
    """Base exception for validation errors."""
    pass


class InvalidImageError(ValidationError):
    """Input image is invalid, unsupported or too large."""

    def __init__(
        self,
        message: str = "Invalid or corrupted image",
        **kwargs
    ):
        super().__init__(message, is_recoverable=False, **kwargs)


class InvalidInputError(ValidationError):
    """Invalid input provided to a function or method."""

    def __init__(
        self,
        field: str,
        reason: str,
        **kwargs
    ):
        message = f"Invalid input for '{field}': {reason}"
        super().__init__(message, is_recoverable=False, **kwargs)
        self.details["field"] = field
        self.details["reason"] = reason


class InvalidAttributeError(InvalidInputError):
    """A search attribute is outside the canonical vocabulary."""

    def __init__(
        self,
        field: str,
        value: Any,
        allowed: Optional[list] = None,
        **kwargs
    ):
        super().__init__(field, f"'{value}' is not a recognised value", **kwargs)
        self.details["value"] = value
        if allowed:
            self.details["allowed"] = allowed

"""
Cross-Cutting Concerns

Utilities that span across multiple layers.
"""

from .logging import setup_logging, get_logger, PipelineLogger
from .validation import (
    validate_image,
    probe_image,
    build_search_query,
    validate_search_attributes,
    describe_attributes,
)
from .error_handling import handle_exception, ErrorHandler, error_to_reason

__all__ = [
    "setup_logging",
    "get_logger",
    "PipelineLogger",
    "validate_image",
    "probe_image",
    "build_search_query",
    "validate_search_attributes",
    "describe_attributes",
    "handle_exception",
    "ErrorHandler",
    "error_to_reason",
]

"""
Configuration Module

Application settings and configuration management.
"""

from .settings import (
    AppConfig,
    DetectionConfig,
    CropConfig,
    ExtractionConfig,
    StoreConfig,
    AnalyticsConfig,
    PipelineConfig,
    LoggingConfig,
    get_default_config,
)

__all__ = [
    "AppConfig",
    "DetectionConfig",
    "CropConfig",
    "ExtractionConfig",
    "StoreConfig",
    "AnalyticsConfig",
    "PipelineConfig",
    "LoggingConfig",
    "get_default_config",
]

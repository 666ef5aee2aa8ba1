"""
Application Configuration

Settings and configuration management for the pill identification pipeline.
"""

from dataclasses import dataclass, field, fields
from typing import Optional, Dict, Any
import os

from dotenv import load_dotenv


ENV_PREFIX = "PILL_PIPELINE_"


@dataclass
class DetectionConfig:
    """Detector configuration."""

    type: str = "roboflow"  # roboflow, dummy
    model_url: Optional[str] = None
    api_key: Optional[str] = None
    confidence_threshold: float = 0.6
    timeout_seconds: float = 30.0


@dataclass
class CropConfig:
    """Crop configuration."""

    type: str = "local"  # local, http, dummy
    padding_pct: float = 0.06
    service_url: Optional[str] = None
    max_image_bytes: int = 8 * 1024 * 1024
    jpeg_quality: int = 92
    timeout_seconds: float = 30.0


@dataclass
class ExtractionConfig:
    """Vision attribute extraction configuration."""

    type: str = "openai"  # openai, dummy
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    temperature: float = 0.1
    max_tokens: int = 500
    timeout_seconds: float = 60.0


@dataclass
class StoreConfig:
    """Reference store configuration."""

    type: str = "memory"  # memory, supabase, dummy
    data_path: Optional[str] = None  # JSON file for the memory store
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    table: str = "pills"
    result_limit: int = 20
    size_tolerance_mm: float = 2.0


@dataclass
class AnalyticsConfig:
    """Search analytics configuration."""

    type: str = "log"  # supabase, log, none
    table: str = "user_searches"


@dataclass
class PipelineConfig:
    """Pipeline orchestration configuration."""

    max_concurrency: int = 3
    unit_timeout_seconds: Optional[float] = None
    stage_retry_count: int = 0
    stage_retry_delay_seconds: float = 1.0


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    log_file: Optional[str] = None
    format: str = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


# Keys never written by AppConfig.to_dict()
SECRET_FIELDS = {"api_key", "supabase_key"}


@dataclass
class AppConfig:
    """
    Main application configuration.

    Aggregates all component configurations.
    """

    detection: DetectionConfig = field(default_factory=DetectionConfig)
    crop: CropConfig = field(default_factory=CropConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    analytics: AnalyticsConfig = field(default_factory=AnalyticsConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    SECTIONS = ("detection", "crop", "extraction", "store", "analytics", "pipeline", "logging")

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "AppConfig":
        """
        Create configuration from environment variables.

        A .env file is loaded first (existing variables win).

        Environment variables:
            PILL_PIPELINE_<SECTION>_<FIELD>: any field, e.g.
                PILL_PIPELINE_DETECTION_CONFIDENCE_THRESHOLD=0.7
                PILL_PIPELINE_PIPELINE_MAX_CONCURRENCY=5
            ROBOFLOW_MODEL_URL / ROBOFLOW_API_KEY: detector endpoint and key
            OPENAI_API_KEY: vision model key
            SUPABASE_URL / SUPABASE_KEY: reference store and analytics
            PILL_PIPELINE_LOG_LEVEL: logging level
        """
        load_dotenv(dotenv_path=env_file)
        config = cls()

        # Conventional provider variables
        config.detection.model_url = os.getenv("ROBOFLOW_MODEL_URL") or config.detection.model_url
        config.detection.api_key = os.getenv("ROBOFLOW_API_KEY") or config.detection.api_key
        config.extraction.api_key = os.getenv("OPENAI_API_KEY") or config.extraction.api_key
        config.store.supabase_url = os.getenv("SUPABASE_URL") or config.store.supabase_url
        config.store.supabase_key = os.getenv("SUPABASE_KEY") or config.store.supabase_key

        # Prefixed overrides
        for section_name in cls.SECTIONS:
            section = getattr(config, section_name)
            for section_field in fields(section):
                env_name = f"{ENV_PREFIX}{section_name}_{section_field.name}".upper()
                raw = os.getenv(env_name)
                if raw is not None:
                    setattr(section, section_field.name, _coerce(raw, getattr(section, section_field.name), section_field.type))

        log_level = os.getenv(f"{ENV_PREFIX}LOG_LEVEL")
        if log_level:
            config.logging.level = log_level

        return config

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        """Create configuration from dictionary. Unknown keys are ignored."""
        config = cls()

        for section_name in cls.SECTIONS:
            if section_name not in data:
                continue
            section = getattr(config, section_name)
            for key, value in data[section_name].items():
                if hasattr(section, key):
                    setattr(section, key, value)

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary, leaving secrets out."""
        result: Dict[str, Any] = {}
        for section_name in self.SECTIONS:
            section = getattr(self, section_name)
            result[section_name] = {
                f.name: getattr(section, f.name)
                for f in fields(section)
                if f.name not in SECRET_FIELDS
            }
        return result


def _coerce(raw: str, current: Any, annotation: Any) -> Any:
    """Convert an environment string to the type of the field it overrides."""
    type_name = str(annotation)
    if raw == "" and "Optional" in type_name:
        return None
    if isinstance(current, bool) or "bool" in type_name:
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(current, int) or "int" in type_name:
        return int(raw)
    if isinstance(current, float) or "float" in type_name:
        return float(raw)
    return raw


def get_default_config() -> AppConfig:
    """Get default application configuration."""
    return AppConfig.from_env()

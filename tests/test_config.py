"""Tests for configuration loading."""

import pytest

from pill_pipeline.application.pipeline import OrchestratorConfig, PipelineStage
from pill_pipeline.config.settings import AppConfig


ENV_VARS = [
    "ROBOFLOW_MODEL_URL",
    "ROBOFLOW_API_KEY",
    "OPENAI_API_KEY",
    "SUPABASE_URL",
    "SUPABASE_KEY",
    "PILL_PIPELINE_DETECTION_CONFIDENCE_THRESHOLD",
    "PILL_PIPELINE_PIPELINE_MAX_CONCURRENCY",
    "PILL_PIPELINE_PIPELINE_UNIT_TIMEOUT_SECONDS",
    "PILL_PIPELINE_CROP_TYPE",
    "PILL_PIPELINE_LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # keep a developer's .env out of the test
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestFromEnv:
    """Environment loading."""

    def test_defaults(self, clean_env):
        config = AppConfig.from_env()

        assert config.detection.confidence_threshold == 0.6
        assert config.crop.padding_pct == 0.06
        assert config.pipeline.max_concurrency == 3
        assert config.pipeline.unit_timeout_seconds is None
        assert config.extraction.api_key is None

    def test_provider_variables(self, clean_env):
        clean_env.setenv("ROBOFLOW_MODEL_URL", "https://detect.roboflow.com/pills/3")
        clean_env.setenv("OPENAI_API_KEY", "sk-test")
        clean_env.setenv("SUPABASE_URL", "https://x.supabase.co")

        config = AppConfig.from_env()

        assert config.detection.model_url == "https://detect.roboflow.com/pills/3"
        assert config.extraction.api_key == "sk-test"
        assert config.store.supabase_url == "https://x.supabase.co"

    def test_prefixed_overrides_are_typed(self, clean_env):
        clean_env.setenv("PILL_PIPELINE_DETECTION_CONFIDENCE_THRESHOLD", "0.75")
        clean_env.setenv("PILL_PIPELINE_PIPELINE_MAX_CONCURRENCY", "5")
        clean_env.setenv("PILL_PIPELINE_PIPELINE_UNIT_TIMEOUT_SECONDS", "12.5")
        clean_env.setenv("PILL_PIPELINE_CROP_TYPE", "http")
        clean_env.setenv("PILL_PIPELINE_LOG_LEVEL", "DEBUG")

        config = AppConfig.from_env()

        assert config.detection.confidence_threshold == 0.75
        assert config.pipeline.max_concurrency == 5
        assert config.pipeline.unit_timeout_seconds == 12.5
        assert config.crop.type == "http"
        assert config.logging.level == "DEBUG"

    def test_env_file(self, clean_env, tmp_path):
        env_file = tmp_path / "custom.env"
        env_file.write_text("OPENAI_API_KEY=sk-from-file\n")

        config = AppConfig.from_env(env_file=str(env_file))

        assert config.extraction.api_key == "sk-from-file"


class TestDictRoundTrip:
    """from_dict / to_dict."""

    def test_round_trip_without_secrets(self):
        config = AppConfig.from_dict({
            "detection": {"api_key": "secret", "confidence_threshold": 0.7},
            "store": {"type": "supabase", "supabase_key": "secret"},
            "unknown": {"x": 1},
        })

        data = config.to_dict()

        assert data["detection"]["confidence_threshold"] == 0.7
        assert "api_key" not in data["detection"]
        assert "supabase_key" not in data["store"]
        assert AppConfig.from_dict(data).store.type == "supabase"

    def test_unknown_keys_ignored(self):
        config = AppConfig.from_dict({"pipeline": {"workers": 9}})

        assert not hasattr(config.pipeline, "workers")


class TestOrchestratorConfig:
    """Mapping application config onto the orchestrator."""

    def test_from_app_config(self):
        config = AppConfig.from_dict({
            "detection": {"confidence_threshold": 0.5},
            "crop": {"padding_pct": 0.1},
            "pipeline": {"max_concurrency": 2, "stage_retry_count": 1, "stage_retry_delay_seconds": 0.0},
        })

        orchestrator_config = OrchestratorConfig.from_app_config(config)

        assert orchestrator_config.max_concurrency == 2
        assert orchestrator_config.confidence_threshold == 0.5
        assert orchestrator_config.padding_pct == 0.1
        assert orchestrator_config.get_stage_config(PipelineStage.EXTRACTION).retry_count == 1

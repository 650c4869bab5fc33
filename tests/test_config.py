"""Tests for the pipeline configuration."""

import tempfile
from pathlib import Path

import pytest

from brew_resolver.core.errors import ConfigError
from brew_resolver.ingestion.config import (
    DEFAULT_QUALITY_WEIGHTS,
    PipelineConfig,
    QualityConfig,
    get_default_config,
    reset_default_config,
)

PROJECT_CONFIG = Path(__file__).parent.parent / "config" / "pipeline.yaml"


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


class TestPipelineConfig:
    """Tests for PipelineConfig loading."""

    def test_defaults(self) -> None:
        """Test built-in defaults match the documented thresholds."""
        config = PipelineConfig()

        assert config.quality.threshold == 60
        assert config.entity_resolution.fuzzy_threshold == 0.7
        assert config.entity_resolution.confidence_with_website == 0.8
        assert config.entity_resolution.confidence_without_website == 0.5
        assert config.grounded_search.daily_limit == 1000
        assert config.grounded_search.min_confidence == 0.5
        assert config.queue.max_tries == 3
        assert config.site_extraction.max_pages == 15

    def test_load_project_file(self) -> None:
        """Test the shipped pipeline.yaml parses."""
        config = PipelineConfig.load(PROJECT_CONFIG)

        assert config.config_path == PROJECT_CONFIG.resolve()
        assert config.search_engine.primary_url.startswith("https://html.duckduckgo.com")
        assert "untappd.com" in config.search_engine.excluded_domains
        assert config.quality.weights == DEFAULT_QUALITY_WEIGHTS
        assert "/contatti" in config.site_extraction.fallback_paths

    def test_partial_file_keeps_defaults(self, temp_dir: Path) -> None:
        """Test sections missing from the file fall back to defaults."""
        path = temp_dir / "pipeline.yaml"
        path.write_text("quality:\n  threshold: 40\nentity_resolution:\n  thresholds:\n    fuzzy: 0.8\n")

        config = PipelineConfig.load(path)

        assert config.quality.threshold == 40
        assert config.entity_resolution.fuzzy_threshold == 0.8
        assert config.entity_resolution.confidence_with_website == 0.8
        assert config.queue.job_timeout == 300

    def test_missing_file(self, temp_dir: Path) -> None:
        """Test a missing file raises ConfigError."""
        with pytest.raises(ConfigError):
            PipelineConfig.load(temp_dir / "nope.yaml")

    def test_invalid_yaml(self, temp_dir: Path) -> None:
        """Test malformed YAML raises ConfigError."""
        path = temp_dir / "pipeline.yaml"
        path.write_text("quality: [unclosed\n")

        with pytest.raises(ConfigError):
            PipelineConfig.load(path)

    def test_invalid_value(self) -> None:
        """Test a non-numeric threshold raises ConfigError."""
        with pytest.raises(ConfigError):
            PipelineConfig.from_dict({"quality": {"threshold": "high"}})

    def test_non_mapping(self) -> None:
        """Test a non-mapping document raises ConfigError."""
        with pytest.raises(ConfigError):
            PipelineConfig.from_dict(["not", "a", "mapping"])  # type: ignore[arg-type]


class TestQualityConfig:
    """Tests for quality weights."""

    def test_weight_override_merges(self) -> None:
        """Test overriding one weight keeps the others."""
        config = QualityConfig.from_dict({"weights": {"website": 50}})

        assert config.weights["website"] == 50
        assert config.weights["name"] == DEFAULT_QUALITY_WEIGHTS["name"]
        assert config.max_score == sum(DEFAULT_QUALITY_WEIGHTS.values()) + 25


class TestDefaultConfig:
    """Tests for the process-wide configuration."""

    def test_env_override(self, temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test PIPELINE_CONFIG_PATH selects the file."""
        path = temp_dir / "pipeline.yaml"
        path.write_text("queue:\n  max_jobs: 9\n")
        monkeypatch.setenv("PIPELINE_CONFIG_PATH", str(path))
        reset_default_config()
        try:
            config = get_default_config()
            assert config.queue.max_jobs == 9
            assert get_default_config() is config
        finally:
            reset_default_config()

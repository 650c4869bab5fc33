"""
Pipeline Configuration Module
=============================

Loads the enrichment pipeline settings from a YAML file. Every threshold
used by the resolver cascade lives here so it can be tuned without code
changes.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from brew_resolver.core.errors import ConfigError

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

DEFAULT_EXCLUDED_DOMAINS = [
    "untappd.com",
    "ratebeer.com",
    "beeradvocate.com",
    "facebook.com",
    "instagram.com",
    "twitter.com",
    "x.com",
    "linkedin.com",
    "youtube.com",
    "tiktok.com",
    "wikipedia.org",
    "tripadvisor.com",
    "tripadvisor.it",
    "amazon.com",
    "amazon.it",
    "ebay.it",
    "paginegialle.it",
    "google.com",
]

DEFAULT_QUALITY_WEIGHTS = {
    "name": 20,
    "website": 25,
    "legal_address": 20,
    "fiscal_code": 15,
    "rea_code": 10,
    "pec_email": 5,
    "email": 5,
    "phone": 5,
    "description": 5,
}


@dataclass
class RateLimitConfig:
    """Per-domain rate limiting for outgoing HTTP requests."""

    requests_per_second: float = 2.0
    burst_limit: int = 5

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RateLimitConfig:
        """Create from dictionary, using defaults for missing values."""
        if data is None:
            return cls()
        return cls(
            requests_per_second=float(data.get("requests_per_second", 2.0)),
            burst_limit=int(data.get("burst_limit", 5)),
        )


@dataclass
class GlobalConfig:
    """Global HTTP settings."""

    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    user_agent: str = DEFAULT_USER_AGENT
    request_timeout: float = 10.0
    max_retries: int = 1
    respect_robots: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> GlobalConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        return cls(
            rate_limit=RateLimitConfig.from_dict(data.get("rate_limit")),
            user_agent=data.get("user_agent", DEFAULT_USER_AGENT),
            request_timeout=float(data.get("request_timeout", 10.0)),
            max_retries=int(data.get("max_retries", 1)),
            respect_robots=bool(data.get("respect_robots", False)),
        )


@dataclass
class SearchEngineConfig:
    """Search engine scraping settings."""

    primary_url: str = "https://html.duckduckgo.com/html/"
    fallback_url: str = "https://www.bing.com/search"
    max_results: int = 5
    min_delay_ms: int = 300
    max_delay_ms: int = 900
    timeout: float = 10.0
    excluded_domains: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_DOMAINS))

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SearchEngineConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        return cls(
            primary_url=data.get("primary_url", "https://html.duckduckgo.com/html/"),
            fallback_url=data.get("fallback_url", "https://www.bing.com/search"),
            max_results=int(data.get("max_results", 5)),
            min_delay_ms=int(data.get("min_delay_ms", 300)),
            max_delay_ms=int(data.get("max_delay_ms", 900)),
            timeout=float(data.get("timeout", 10.0)),
            excluded_domains=list(data.get("excluded_domains", DEFAULT_EXCLUDED_DOMAINS)),
        )


@dataclass
class SiteExtractionConfig:
    """Direct website extraction settings."""

    max_pages: int = 15
    page_timeout: float = 10.0
    extraction_timeout: float = 60.0
    min_beer_page_length: int = 1000
    verify_known_website: bool = True
    fallback_paths: list[str] = field(
        default_factory=lambda: [
            "/contatti", "/contacts", "/chi-siamo", "/about", "/birre", "/beers", "/prodotti",
        ]
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SiteExtractionConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        defaults = cls()
        return cls(
            max_pages=int(data.get("max_pages", 15)),
            page_timeout=float(data.get("page_timeout", 10.0)),
            extraction_timeout=float(data.get("extraction_timeout", 60.0)),
            min_beer_page_length=int(data.get("min_beer_page_length", 1000)),
            verify_known_website=bool(data.get("verify_known_website", True)),
            fallback_paths=list(data.get("fallback_paths", defaults.fallback_paths)),
        )


@dataclass
class GroundedSearchConfig:
    """Grounded AI search settings."""

    enabled: bool = True
    provider: str | None = None
    model: str | None = None
    daily_limit: int = 1000
    timeout: float = 45.0
    min_confidence: float = 0.5
    temperature: float = 0.1
    max_output_tokens: int = 4096
    redirect_hosts: list[str] = field(
        default_factory=lambda: ["vertexaisearch.cloud.google.com", "grounding-api-redirect"]
    )

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> GroundedSearchConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        defaults = cls()
        return cls(
            enabled=bool(data.get("enabled", True)),
            provider=data.get("provider"),
            model=data.get("model"),
            daily_limit=int(data.get("daily_limit", 1000)),
            timeout=float(data.get("timeout", 45.0)),
            min_confidence=float(data.get("min_confidence", 0.5)),
            temperature=float(data.get("temperature", 0.1)),
            max_output_tokens=int(data.get("max_output_tokens", 4096)),
            redirect_hosts=list(data.get("redirect_hosts", defaults.redirect_hosts)),
        )


@dataclass
class QualityConfig:
    """Data quality scoring weights and acceptance rule."""

    threshold: int = 60
    website_always_acceptable: bool = True
    weights: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_QUALITY_WEIGHTS))

    @property
    def max_score(self) -> int:
        """Sum of all field weights."""
        return sum(self.weights.values())

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> QualityConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        weights = dict(DEFAULT_QUALITY_WEIGHTS)
        weights.update({k: int(v) for k, v in (data.get("weights") or {}).items()})
        return cls(
            threshold=int(data.get("threshold", 60)),
            website_always_acceptable=bool(data.get("website_always_acceptable", True)),
            weights=weights,
        )


@dataclass
class EntityResolutionConfig:
    """Thresholds for matching and record creation."""

    fuzzy_threshold: float = 0.7
    fuzzy_sample_size: int = 100
    confidence_with_website: float = 0.8
    confidence_without_website: float = 0.5
    max_autocorrect_distance: int = 2

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> EntityResolutionConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        thresholds = data.get("thresholds", {})
        return cls(
            fuzzy_threshold=float(thresholds.get("fuzzy", 0.7)),
            fuzzy_sample_size=int(data.get("fuzzy_sample_size", 100)),
            confidence_with_website=float(thresholds.get("with_website", 0.8)),
            confidence_without_website=float(thresholds.get("without_website", 0.5)),
            max_autocorrect_distance=int(data.get("max_autocorrect_distance", 2)),
        )


@dataclass
class QueueConfig:
    """Job queue and worker settings."""

    queue_name: str = "arq:brew_resolver"
    max_jobs: int = 5
    job_timeout: int = 300
    max_tries: int = 3
    backoff_seconds: int = 5
    default_priority: int = 5
    priority_step_seconds: int = 1
    keep_result: int = 3600
    completed_grace: int = 3600
    failed_grace: int = 86400
    stalled_after: int = 900

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> QueueConfig:
        """Create from dictionary."""
        if data is None:
            return cls()
        return cls(
            queue_name=data.get("queue_name", "arq:brew_resolver"),
            max_jobs=int(data.get("max_jobs", 5)),
            job_timeout=int(data.get("job_timeout", 300)),
            max_tries=int(data.get("max_tries", 3)),
            backoff_seconds=int(data.get("backoff_seconds", 5)),
            default_priority=int(data.get("default_priority", 5)),
            priority_step_seconds=int(data.get("priority_step_seconds", 1)),
            keep_result=int(data.get("keep_result", 3600)),
            completed_grace=int(data.get("completed_grace", 3600)),
            failed_grace=int(data.get("failed_grace", 86400)),
            stalled_after=int(data.get("stalled_after", 900)),
        )


@dataclass
class PipelineConfig:
    """All settings of the enrichment pipeline."""

    global_config: GlobalConfig = field(default_factory=GlobalConfig)
    search_engine: SearchEngineConfig = field(default_factory=SearchEngineConfig)
    site_extraction: SiteExtractionConfig = field(default_factory=SiteExtractionConfig)
    grounded_search: GroundedSearchConfig = field(default_factory=GroundedSearchConfig)
    quality: QualityConfig = field(default_factory=QualityConfig)
    entity_resolution: EntityResolutionConfig = field(default_factory=EntityResolutionConfig)
    queue: QueueConfig = field(default_factory=QueueConfig)
    config_path: Path | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PipelineConfig:
        """Create from the parsed YAML document."""
        data = data or {}
        if not isinstance(data, dict):
            raise ConfigError("Pipeline configuration must be a mapping")
        try:
            return cls(
                global_config=GlobalConfig.from_dict(data.get("global")),
                search_engine=SearchEngineConfig.from_dict(data.get("search_engine")),
                site_extraction=SiteExtractionConfig.from_dict(data.get("site_extraction")),
                grounded_search=GroundedSearchConfig.from_dict(data.get("grounded_search")),
                quality=QualityConfig.from_dict(data.get("quality")),
                entity_resolution=EntityResolutionConfig.from_dict(data.get("entity_resolution")),
                queue=QueueConfig.from_dict(data.get("queue")),
            )
        except (TypeError, ValueError, AttributeError) as e:
            raise ConfigError(f"Invalid pipeline configuration: {e}") from e

    @classmethod
    def load(cls, config_path: Path | str) -> PipelineConfig:
        """
        Load configuration from a YAML file.

        Args:
            config_path: Path to the pipeline.yaml file

        Returns:
            Parsed PipelineConfig

        Raises:
            ConfigError: If the file is missing or malformed
        """
        path = Path(config_path).expanduser().resolve()
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        config = cls.from_dict(data)
        config.config_path = path
        return config


# Global config instance
_default_config: PipelineConfig | None = None


def get_default_config() -> PipelineConfig:
    """
    Get the default pipeline configuration.

    Loads configuration from the path specified in PIPELINE_CONFIG_PATH
    environment variable, or falls back to config/pipeline.yaml. Built-in
    defaults are used when no file exists.

    Returns:
        The global PipelineConfig instance
    """
    global _default_config

    if _default_config is None:
        config_path = os.environ.get("PIPELINE_CONFIG_PATH")
        if config_path:
            path = Path(config_path)
        else:
            project_root = Path(__file__).parent.parent.parent
            path = project_root / "config" / "pipeline.yaml"

        if path.exists():
            _default_config = PipelineConfig.load(path)
        else:
            _default_config = PipelineConfig()

    return _default_config


def reset_default_config() -> None:
    """Reset the default configuration (useful for testing)."""
    global _default_config
    _default_config = None

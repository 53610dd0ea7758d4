"""
Configuration Management Module
===============================
Centralized configuration system for the thumbnail scoring engine and
the corpus-analysis trainer.

This module provides:
- Type-safe configuration via dataclasses
- Environment variable overrides
- Training run configuration support
- Default values with documentation

Usage:
    from thumbscore.config import get_config
    config = get_config()

    # Access configuration
    sample_size = config.corpus.sample_size_per_category
    model_path = config.paths.scoring_model_path

For training runs, save a config file and load it:
    config = load_training_config("experiments/gaming_only.json")
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict
import os
import json
import logging

logger = logging.getLogger(__name__)


# =============================================================================
# CONFIGURATION DATACLASSES
# =============================================================================

@dataclass
class PathConfig:
    """Configuration for file system paths."""

    # Base directory (defaults to the project root)
    base_dir: Path = field(default_factory=lambda: Path(__file__).parent.parent)

    # Corpus data and trainer outputs
    data_dir: str = "data"
    analysis_dir: str = "data/analysis"
    thumbnails_dir: str = "data/thumbnails"
    logs_dir: str = "logs"

    # Artifact filenames (live in analysis_dir)
    scoring_model_file: str = "scoring_model.json"
    findings_file: str = "findings.json"

    @property
    def data(self) -> Path:
        return self.base_dir / self.data_dir

    @property
    def analysis(self) -> Path:
        return self.base_dir / self.analysis_dir

    @property
    def thumbnails(self) -> Path:
        return self.base_dir / self.thumbnails_dir

    @property
    def logs(self) -> Path:
        return self.base_dir / self.logs_dir

    @property
    def scoring_model_path(self) -> Path:
        return self.analysis / self.scoring_model_file

    @property
    def findings_path(self) -> Path:
        return self.analysis / self.findings_file

    def ensure_directories(self) -> None:
        """Create all required directories if they don't exist."""
        for dir_path in [self.data, self.analysis, self.thumbnails, self.logs]:
            dir_path.mkdir(parents=True, exist_ok=True)


@dataclass
class YouTubeConfig:
    """Configuration for the YouTube Data API (video sampling)."""

    api_key: Optional[str] = field(default_factory=lambda: os.getenv("YOUTUBE_API_KEY"))
    base_url: str = "https://www.googleapis.com/youtube/v3"

    # mostPopular chart is region-scoped
    region_code: str = "US"

    # The API rejects maxResults above 50
    max_page_size: int = 50

    timeout_seconds: float = 30.0


@dataclass
class VisionConfig:
    """
    Configuration for the Cloud Vision REST API.

    Face size percentages are computed against a fixed 1280x720 reference
    frame when the true image size is unknown. The trainer measures real
    dimensions for its face coverage statistic instead.
    """

    api_key: Optional[str] = field(
        default_factory=lambda: os.getenv("GOOGLE_CLOUD_VISION_API_KEY")
    )
    endpoint: str = "https://vision.googleapis.com/v1/images:annotate"
    timeout_seconds: float = 30.0

    max_dominant_colors: int = 5
    max_objects: int = 10

    reference_width: int = 1280
    reference_height: int = 720


@dataclass
class GeminiConfig:
    """Configuration for Google Gemini (LLM recommendations)."""

    # Model selection
    model_name: str = "gemini-1.5-flash"

    # Generation parameters
    temperature: float = 0.7
    top_k: int = 1
    top_p: float = 0.8
    max_output_tokens: int = 1024

    # API configuration (loaded from environment)
    api_key: Optional[str] = field(default_factory=lambda: os.getenv("GOOGLE_API_KEY"))

    # Rule-based recommendations are used when disabled or unavailable
    enabled: bool = True


@dataclass
class CorpusConfig:
    """
    Configuration for corpus sampling and the model trainer.

    The defaults sample ten popular, long-form videos per category. Videos
    under a million views are too noisy to learn from, and Shorts have
    auto-generated thumbnails that say nothing about design choices.
    """

    # YouTube category id -> display name
    categories: Dict[str, str] = field(default_factory=lambda: {
        "20": "Gaming",
        "24": "Entertainment",
        "10": "Music",
        "23": "Comedy",
        "22": "People & Blogs",
        "28": "Science & Technology",
    })

    sample_size_per_category: int = 10
    min_view_count: int = 1_000_000

    # First page asks for sample_size * candidate_multiplier (capped by page size)
    candidate_multiplier: int = 3

    # Short-form detection
    short_form_max_seconds: int = 60

    # Stop paginating after this many consecutive fetches with no new videos
    max_stale_fetches: int = 2

    # Concurrency ceiling for per-video download + vision analysis
    max_workers: int = 4

    write_csv: bool = True


@dataclass
class ScoringConfig:
    """
    Configuration for the scoring engine.

    category_requires_faces is applied to every thumbnail regardless of
    category. Category-aware face requirements are not modelled.
    """

    category_requires_faces: bool = True

    # Use the built-in default model when artifacts cannot be loaded
    fallback_to_default_model: bool = True


@dataclass
class FlaskConfig:
    """Configuration for Flask web server."""

    # Server settings
    host: str = "0.0.0.0"
    port: int = 5000
    debug: bool = False

    # Security
    secret_key: str = field(default_factory=lambda: os.getenv("FLASK_SECRET_KEY", "dev-secret-key"))

    # CORS
    cors_origins: list = field(default_factory=lambda: ["*"])


@dataclass
class ResearchConfig:
    """Configuration for training run tracking and logging."""

    # Run identification
    experiment_name: str = "default"
    experiment_version: str = "1.0.0"

    # Logging
    log_level: str = "INFO"
    log_scores: bool = True
    log_decisions: bool = True


@dataclass
class AppConfig:
    """
    Master configuration class that aggregates all configuration sections.

    This is the main configuration object used throughout the application.
    """

    paths: PathConfig = field(default_factory=PathConfig)
    youtube: YouTubeConfig = field(default_factory=YouTubeConfig)
    vision: VisionConfig = field(default_factory=VisionConfig)
    gemini: GeminiConfig = field(default_factory=GeminiConfig)
    corpus: CorpusConfig = field(default_factory=CorpusConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    flask: FlaskConfig = field(default_factory=FlaskConfig)
    research: ResearchConfig = field(default_factory=ResearchConfig)

    def __post_init__(self):
        """Ensure all directories exist after initialization."""
        self.paths.ensure_directories()

    def to_dict(self) -> dict:
        """Convert configuration to dictionary for serialization."""
        def convert(obj):
            if hasattr(obj, '__dataclass_fields__'):
                return {k: convert(v) for k, v in obj.__dict__.items()}
            elif isinstance(obj, Path):
                return str(obj)
            elif isinstance(obj, dict):
                return {k: convert(v) for k, v in obj.items()}
            return obj

        return convert(self)

    def save(self, filepath: str) -> None:
        """Save configuration to JSON file."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Configuration saved to {filepath}")

    @classmethod
    def from_dict(cls, data: dict) -> "AppConfig":
        """Create configuration from dictionary."""
        # Handle PathConfig specially to convert base_dir back to Path
        paths_data = dict(data.get('paths', {}))
        if 'base_dir' in paths_data and isinstance(paths_data['base_dir'], str):
            paths_data['base_dir'] = Path(paths_data['base_dir'])

        return cls(
            paths=PathConfig(**paths_data),
            youtube=YouTubeConfig(**data.get('youtube', {})),
            vision=VisionConfig(**data.get('vision', {})),
            gemini=GeminiConfig(**data.get('gemini', {})),
            corpus=CorpusConfig(**data.get('corpus', {})),
            scoring=ScoringConfig(**data.get('scoring', {})),
            flask=FlaskConfig(**data.get('flask', {})),
            research=ResearchConfig(**data.get('research', {}))
        )

    @classmethod
    def load(cls, filepath: str) -> "AppConfig":
        """Load configuration from JSON file."""
        with open(filepath, 'r') as f:
            data = json.load(f)
        logger.info(f"Configuration loaded from {filepath}")
        return cls.from_dict(data)


# =============================================================================
# GLOBAL CONFIGURATION SINGLETON
# =============================================================================

_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """
    Get the global application configuration.

    Creates a default configuration on first access.

    Returns:
        The global AppConfig instance
    """
    global _config
    if _config is None:
        _config = AppConfig()
        logger.info("Initialized default application configuration")
    return _config


def set_config(config: AppConfig) -> None:
    """
    Set the global application configuration.

    Args:
        config: The AppConfig instance to use globally
    """
    global _config
    _config = config
    logger.info(f"Set global configuration (experiment: {config.research.experiment_name})")


def reset_config() -> None:
    """Reset the global configuration to None (forces reload on next get_config)."""
    global _config
    _config = None
    logger.info("Reset global configuration")


def load_training_config(filepath: str) -> AppConfig:
    """
    Load a training run configuration and set it as global.

    Args:
        filepath: Path to the configuration JSON file

    Returns:
        The loaded AppConfig instance
    """
    config = AppConfig.load(filepath)
    set_config(config)
    return config


# =============================================================================
# ENVIRONMENT VARIABLE OVERRIDES
# =============================================================================

ENV_PREFIX = "THUMBSCORE_"

_SECTIONS = ('youtube', 'vision', 'gemini', 'corpus', 'scoring', 'flask', 'research')


def apply_environment_overrides(config: AppConfig) -> AppConfig:
    """
    Apply environment variable overrides to configuration.

    Environment variables follow the pattern:
    THUMBSCORE_{SECTION}_{KEY}

    Examples:
        THUMBSCORE_CORPUS_SAMPLE_SIZE_PER_CATEGORY=25
        THUMBSCORE_FLASK_PORT=8080
        THUMBSCORE_RESEARCH_LOG_LEVEL=DEBUG

    Also supports the simplified PORT variable (maps to flask.port).

    Args:
        config: Base configuration to override

    Returns:
        Configuration with environment overrides applied
    """
    if os.getenv("PORT"):
        try:
            config.flask.port = int(os.getenv("PORT"))
            logger.info(f"Environment override: flask.port = {config.flask.port}")
        except ValueError:
            logger.warning(f"Ignoring non-integer PORT value: {os.getenv('PORT')}")

    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue

        parts = key[len(ENV_PREFIX):].lower().split('_', 1)
        if len(parts) != 2:
            continue

        section, attr = parts
        if section not in _SECTIONS:
            continue

        section_config = getattr(config, section, None)
        if section_config is None or not hasattr(section_config, attr):
            continue

        # Convert value to appropriate type
        current_value = getattr(section_config, attr)
        try:
            if isinstance(current_value, bool):
                typed_value = value.lower() in ('true', '1', 'yes')
            elif isinstance(current_value, int):
                typed_value = int(value)
            elif isinstance(current_value, float):
                typed_value = float(value)
            elif isinstance(current_value, (dict, list)):
                typed_value = json.loads(value)
            else:
                typed_value = value

            setattr(section_config, attr, typed_value)
            logger.info(f"Environment override: {section}.{attr} = {typed_value}")

        except (ValueError, TypeError) as e:
            logger.warning(f"Failed to apply environment override {key}: {e}")

    return config


# =============================================================================
# PRESET CONFIGURATIONS FOR COMMON SCENARIOS
# =============================================================================

def get_development_config() -> AppConfig:
    """Get configuration optimized for development."""
    config = AppConfig()
    config.flask.debug = True
    config.corpus.sample_size_per_category = 3  # Cheap API quota usage
    config.research.log_level = "DEBUG"
    return config


def get_production_config() -> AppConfig:
    """Get configuration optimized for serving scores."""
    config = AppConfig()
    config.flask.debug = False
    config.research.log_level = "INFO"
    return config


def get_training_config(experiment_name: str) -> AppConfig:
    """Get configuration for a named corpus-analysis training run."""
    config = AppConfig()
    config.research.experiment_name = experiment_name
    config.research.log_scores = False  # Trainer does not score thumbnails
    config.research.log_decisions = True
    config.research.log_level = "DEBUG"
    return config


def get_environment_config(environment: Optional[str] = None) -> AppConfig:
    """
    Pick the serving preset by name, defaulting to THUMBSCORE_ENV.

    "production" selects the production preset; anything else is development.
    """
    environment = (environment or os.getenv("THUMBSCORE_ENV", "development")).lower()
    if environment == "production":
        return get_production_config()
    return get_development_config()

"""
Configuration System Tests
==========================
Verifies that the configuration management system works correctly.
"""

import os
import sys
import tempfile

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(__file__))))

from thumbscore.config import (
    AppConfig,
    get_config,
    set_config,
    reset_config,
    apply_environment_overrides,
    get_development_config,
    get_production_config,
    get_training_config,
    get_environment_config,
)


def test_default_config():
    """Test that default configuration is created correctly."""
    reset_config()
    config = get_config()

    assert config is not None
    assert config.gemini.model_name == "gemini-1.5-flash"
    assert config.corpus.sample_size_per_category == 10
    assert config.corpus.min_view_count == 1_000_000
    assert config.corpus.max_stale_fetches == 2
    assert config.vision.reference_width == 1280
    assert config.vision.reference_height == 720
    assert config.scoring.category_requires_faces is True
    assert config.flask.port == 5000

    print("[PASS] Default configuration test passed")


def test_default_categories():
    """Test the six default content categories."""
    categories = AppConfig().corpus.categories

    assert len(categories) == 6
    assert categories["20"] == "Gaming"
    assert categories["28"] == "Science & Technology"

    print("[PASS] Default categories test passed")


def test_config_singleton():
    """Test that get_config returns the same instance."""
    reset_config()
    config1 = get_config()
    config2 = get_config()

    assert config1 is config2
    print("[PASS] Singleton test passed")


def test_set_config():
    """Test replacing the global configuration."""
    custom = AppConfig()
    custom.research.experiment_name = "custom_run"
    set_config(custom)

    assert get_config() is custom
    reset_config()
    assert get_config() is not custom

    print("[PASS] set_config test passed")


def test_config_serialization():
    """Test configuration save and load."""
    config = AppConfig()
    config.research.experiment_name = "test_experiment"
    config.corpus.sample_size_per_category = 25

    with tempfile.NamedTemporaryFile(mode='w', suffix='.json', delete=False) as f:
        temp_path = f.name

    try:
        config.save(temp_path)
        loaded_config = AppConfig.load(temp_path)

        assert loaded_config.research.experiment_name == "test_experiment"
        assert loaded_config.corpus.sample_size_per_category == 25
        assert loaded_config.corpus.categories == config.corpus.categories

        print("[PASS] Serialization test passed")
    finally:
        os.unlink(temp_path)


def test_artifact_paths():
    """Test that artifact paths live in the analysis directory."""
    paths = AppConfig().paths

    assert paths.scoring_model_path.name == "scoring_model.json"
    assert paths.findings_path.name == "findings.json"
    assert paths.scoring_model_path.parent == paths.analysis

    print("[PASS] Artifact path test passed")


def test_environment_overrides():
    """Test environment variable overrides."""
    config = AppConfig()

    os.environ['THUMBSCORE_CORPUS_SAMPLE_SIZE_PER_CATEGORY'] = '42'
    os.environ['THUMBSCORE_SCORING_CATEGORY_REQUIRES_FACES'] = 'false'
    os.environ['THUMBSCORE_RESEARCH_LOG_LEVEL'] = 'DEBUG'
    os.environ['PORT'] = '8080'

    try:
        config = apply_environment_overrides(config)

        assert config.corpus.sample_size_per_category == 42
        assert config.scoring.category_requires_faces is False
        assert config.research.log_level == 'DEBUG'
        assert config.flask.port == 8080

        print("[PASS] Environment overrides test passed")
    finally:
        del os.environ['THUMBSCORE_CORPUS_SAMPLE_SIZE_PER_CATEGORY']
        del os.environ['THUMBSCORE_SCORING_CATEGORY_REQUIRES_FACES']
        del os.environ['THUMBSCORE_RESEARCH_LOG_LEVEL']
        del os.environ['PORT']


def test_invalid_environment_override_ignored():
    """Test that a badly typed override leaves the default in place."""
    config = AppConfig()
    os.environ['THUMBSCORE_CORPUS_MAX_WORKERS'] = 'many'

    try:
        config = apply_environment_overrides(config)
        assert config.corpus.max_workers == 4
        print("[PASS] Invalid override ignored test passed")
    finally:
        del os.environ['THUMBSCORE_CORPUS_MAX_WORKERS']


def test_config_presets():
    """Test preset configurations."""
    dev = get_development_config()
    assert dev.flask.debug is True
    assert dev.research.log_level == "DEBUG"

    prod = get_production_config()
    assert prod.flask.debug is False

    training = get_training_config("weekly_refresh")
    assert training.research.experiment_name == "weekly_refresh"
    assert training.research.log_scores is False

    print("[PASS] Config presets test passed")


def test_environment_config_selection():
    """THUMBSCORE_ENV picks the serving preset; an explicit name wins."""
    assert get_environment_config("production").flask.debug is False
    assert get_environment_config("Development").flask.debug is True

    os.environ['THUMBSCORE_ENV'] = "production"
    try:
        assert get_environment_config().research.log_level == "INFO"
        assert get_environment_config("development").flask.debug is True
    finally:
        del os.environ['THUMBSCORE_ENV']

    print("[PASS] Environment config selection test passed")


def run_all_tests():
    """Run all configuration tests."""
    print("\n" + "="*60)
    print("CONFIGURATION SYSTEM TESTS")
    print("="*60 + "\n")

    test_default_config()
    test_default_categories()
    test_config_singleton()
    test_set_config()
    test_config_serialization()
    test_artifact_paths()
    test_environment_overrides()
    test_invalid_environment_override_ignored()
    test_config_presets()
    test_environment_config_selection()

    print("\n" + "="*60)
    print("ALL CONFIGURATION TESTS PASSED")
    print("="*60 + "\n")


if __name__ == "__main__":
    run_all_tests()

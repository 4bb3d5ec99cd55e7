"""
Tests for PipelineConfig loading, environment overrides, and validation.
"""

from pathlib import Path

import pytest

from filedrop.config import PipelineConfig, apply_env_overrides, load_config


def test_defaults():
    """Test: defaults match the documented retry budget."""
    config = PipelineConfig()

    assert config.pattern == "*"
    assert config.recursive is False
    assert config.max_attempts == 5
    assert config.retry_delay_ms == 5000
    assert config.retry_delay == 5.0
    assert config.prober == "lock"
    assert config.validate() is config


def test_load_config_missing_file_returns_defaults(tmp_path):
    """Test: a missing config file is not an error."""
    config = load_config(tmp_path / "missing.yaml")
    assert config == PipelineConfig(watch_dir=config.watch_dir)


def test_load_config_nested_section(tmp_path):
    """Test: values under a `filedrop:` key are applied."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "filedrop:\n"
        "  watch_dir: /srv/incoming\n"
        "  pattern: '*.csv'\n"
        "  recursive: true\n"
        "  max_attempts: 8\n"
        "  retry_delay_ms: 250\n"
    )

    config = load_config(config_file)

    assert config.watch_dir == Path("/srv/incoming")
    assert config.pattern == "*.csv"
    assert config.recursive is True
    assert config.max_attempts == 8
    assert config.retry_delay == 0.25


def test_load_config_bare_mapping(tmp_path):
    """Test: a top-level mapping without the section key also works."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("prober: size\nsettle_seconds: 0.5\n")

    config = load_config(config_file)

    assert config.prober == "size"
    assert config.settle_seconds == 0.5


def test_load_config_rejects_non_mapping(tmp_path):
    """Test: a YAML list is not a valid config."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("- one\n- two\n")

    with pytest.raises(ValueError, match="mapping"):
        load_config(config_file)


def test_unknown_keys_are_ignored_with_warning(tmp_path, caplog):
    """Test: typos don't crash startup but are logged."""
    config_file = tmp_path / "config.yaml"
    config_file.write_text("max_attempt: 3\n")

    with caplog.at_level("WARNING", logger="filedrop"):
        config = load_config(config_file)

    assert config.max_attempts == 5
    assert "max_attempt" in caplog.text


def test_env_overrides():
    """Test: FILEDROP_* variables override file values, with type coercion."""
    config = PipelineConfig()
    apply_env_overrides(
        config,
        {
            "FILEDROP_WATCH_DIR": "/data/drop",
            "FILEDROP_RECURSIVE": "yes",
            "FILEDROP_MAX_ATTEMPTS": "3",
            "FILEDROP_RETRY_DELAY_MS": "10",
            "FILEDROP_IGNORE_TEMPORARY": "off",
            "UNRELATED": "ignored",
        },
    )

    assert config.watch_dir == Path("/data/drop")
    assert config.recursive is True
    assert config.max_attempts == 3
    assert config.retry_delay_ms == 10
    assert config.ignore_temporary is False


def test_env_override_bad_boolean():
    """Test: an unparseable boolean is a ValueError."""
    with pytest.raises(ValueError, match="boolean"):
        apply_env_overrides(PipelineConfig(), {"FILEDROP_RECURSIVE": "maybe"})


@pytest.mark.parametrize(
    "field, value",
    [
        ("max_attempts", 0),
        ("retry_delay_ms", -1),
        ("prober", "magic"),
        ("settle_seconds", 0),
        ("pattern", ""),
        ("log_level", "LOUD"),
    ],
)
def test_validate_rejects_out_of_range(field, value):
    """Test: invalid settings are rejected by validate()."""
    config = PipelineConfig()
    setattr(config, field, value)

    with pytest.raises(ValueError):
        config.validate()

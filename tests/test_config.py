"""Configuration tests.

Tests verify behavior (types, ranges, loading) not specific values.
"""

from pathlib import Path

import pytest

from wikisync.config import (
    CONFIG_SCHEMA,
    Config,
    ConfigError,
    _load_config,
    load_settings,
)


@pytest.fixture(autouse=True)
def clear_settings_cache(monkeypatch):
    """Clear the load_settings cache and sync env overrides around each test."""
    for name in (
        "ENABLE_INCREMENTAL_UPDATE",
        "UPDATE_INTERVAL",
        "SYNC_POLL_INTERVAL",
        "ACTIVE_PROVIDER",
        "ACTIVE_MODEL",
        "OPENAI_API_KEY",
        "ANTHROPIC_API_KEY",
        "GOOGLE_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    load_settings.cache_clear()
    yield
    load_settings.cache_clear()


def write_config(directory: Path, content: str) -> Path:
    """Write a config.ini file and return the path."""
    config_path = directory / "config.ini"
    config_path.write_text(content)
    return config_path


# =============================================================================
# Type Validation Tests
# =============================================================================


def test_all_settings_have_correct_types():
    """Every setting matches its declared type from schema."""
    config = _load_config(None)

    for section_name, keys in CONFIG_SCHEMA.items():
        section = getattr(config, section_name)
        for key, (expected_type, *_) in keys.items():
            value = getattr(section, key)
            assert isinstance(value, expected_type), (
                f"{section_name}.{key}: expected {expected_type.__name__}, "
                f"got {type(value).__name__}"
            )


def test_invalid_type_raises_clear_error(tmp_path: Path):
    """Non-numeric value for int setting gives helpful message."""
    config_path = write_config(tmp_path, "[sync]\nupdate_interval_days = soon")

    with pytest.raises(ConfigError) as exc_info:
        _load_config(config_path)

    assert "sync" in str(exc_info.value)
    assert "update_interval_days" in str(exc_info.value)
    assert "int" in str(exc_info.value)


def test_invalid_overflow_policy_raises_error(tmp_path: Path):
    """Only the known overflow policies are accepted."""
    config_path = write_config(tmp_path, "[access_log]\noverflow_policy = block")

    with pytest.raises(ConfigError) as exc_info:
        _load_config(config_path)

    assert "overflow_policy" in str(exc_info.value)


# =============================================================================
# Range Validation Tests
# =============================================================================


def test_value_below_minimum_raises_error(tmp_path: Path):
    """Value below declared minimum raises ConfigError."""
    config_path = write_config(tmp_path, "[analysis]\nmax_attempts = 0")

    with pytest.raises(ConfigError) as exc_info:
        _load_config(config_path)

    assert "analysis" in str(exc_info.value)
    assert "minimum" in str(exc_info.value)


def test_value_above_maximum_raises_error(tmp_path: Path):
    """Value above declared maximum raises ConfigError."""
    config_path = write_config(tmp_path, "[analysis]\ntemperature = 5.0")

    with pytest.raises(ConfigError) as exc_info:
        _load_config(config_path)

    assert "temperature" in str(exc_info.value)
    assert "maximum" in str(exc_info.value)


# =============================================================================
# Loading Behavior Tests
# =============================================================================


def test_defaults_match_sync_policy():
    """Defaults: 5-day staleness, 60s polling, 3 attempts with base-2 backoff."""
    config = _load_config(None)

    assert config.sync.enabled is True
    assert config.sync.update_interval_days == 5
    assert config.sync.poll_interval_secs == 60.0
    assert config.analysis.max_attempts == 3
    assert config.analysis.backoff_base == 2.0
    assert config.analysis.temperature == 0.3
    assert config.access_log.shutdown_grace_secs == 30.0
    assert config.access_log.overflow_policy == "drop_oldest"


def test_partial_config_merges_with_defaults(tmp_path: Path):
    """Config with only [sync] still has [analysis] defaults."""
    config_path = write_config(tmp_path, "[sync]\nupdate_interval_days = 2")

    config = _load_config(config_path)

    assert config.sync.update_interval_days == 2
    assert config.analysis.max_attempts == 3


def test_config_without_sections_fills_defaults(tmp_path: Path):
    """A bare Config gets default section objects."""
    config = Config(data_dir=tmp_path)

    assert config.sync.update_interval_days == 5
    assert config.db_path == tmp_path / "wikisync.db"
    assert config.llm_log_path == tmp_path / "logs" / "llm-queries.jsonl"


# =============================================================================
# Environment Tests
# =============================================================================


def test_load_settings_reads_data_dir_config(tmp_path: Path, monkeypatch):
    """config.ini in the data directory is applied."""
    monkeypatch.setenv("WIKISYNC_DATA_DIR", str(tmp_path))
    write_config(tmp_path, "[sync]\npoll_interval_secs = 5")

    settings = load_settings()

    assert settings.data_dir == tmp_path
    assert settings.sync.poll_interval_secs == 5.0


def test_environment_overrides_sync_settings(tmp_path: Path, monkeypatch):
    """Feature flag and staleness window come from the environment."""
    monkeypatch.setenv("WIKISYNC_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("ENABLE_INCREMENTAL_UPDATE", "false")
    monkeypatch.setenv("UPDATE_INTERVAL", "7")

    settings = load_settings()

    assert settings.sync.enabled is False
    assert settings.sync.update_interval_days == 7


def test_invalid_environment_override_raises(tmp_path: Path, monkeypatch):
    """A non-numeric UPDATE_INTERVAL is a configuration error."""
    monkeypatch.setenv("WIKISYNC_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("UPDATE_INTERVAL", "weekly")

    with pytest.raises(ConfigError):
        load_settings()


def test_provider_detected_from_api_key(tmp_path: Path, monkeypatch):
    """An OpenAI key selects the OpenAI provider when none is configured."""
    monkeypatch.setenv("WIKISYNC_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    settings = load_settings()

    assert settings.active_provider == "openai"
    assert settings.llm_api_key == "sk-test"
    assert settings.llm_endpoint is None


def test_ollama_is_default_provider(tmp_path: Path, monkeypatch):
    """Without keys the local Ollama endpoint is used."""
    monkeypatch.setenv("WIKISYNC_DATA_DIR", str(tmp_path))

    settings = load_settings()

    assert settings.active_provider == "ollama"
    assert settings.llm_endpoint == settings.ollama_endpoint

"""Configuration system for wikisync.

Settings come from three layers, in increasing precedence: the defaults in
CONFIG_SCHEMA, an optional ``config.ini`` in the data directory, and a small
set of environment variables that operators are used to setting directly
(the feature flag, the staleness window and the poll interval).
"""

from configparser import ConfigParser
from dataclasses import asdict, dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional
import os


class ConfigError(Exception):
    """Raised when configuration validation fails."""

    pass


# Schema: section -> key -> (type, default, min, max, description)
CONFIG_SCHEMA: dict[str, dict[str, tuple[type, Any, Any, Any, str]]] = {
    "sync": {
        "enabled": (bool, True, None, None, "Run the incremental sync loop"),
        "update_interval_days": (int, 5, 0, 365, "Staleness window before a repo is re-synced"),
        "poll_interval_secs": (float, 60.0, 0.0, 86400.0, "Idle wait between polls"),
        "failure_backoff_secs": (float, 60.0, 0.0, 86400.0, "Wait after a failed cycle"),
        "startup_delay_secs": (float, 1.0, 0.0, 600.0, "Delay before the first poll"),
    },
    "analysis": {
        "max_attempts": (int, 3, 1, 10, "Attempts per analysis call"),
        "backoff_base": (float, 2.0, 0.0, 60.0, "Retry delay is backoff_base ** attempt"),
        "temperature": (float, 0.3, 0.0, 2.0, "Temperature for catalog/changelog analysis"),
        "max_tokens": (int, 8192, 256, 131072, "Token budget for analysis responses"),
        "readme_max_chars": (int, 4000, 0, 100_000, "README excerpt size in prompts"),
    },
    "access_log": {
        "capacity": (int, 10_000, 1, 1_000_000, "Maximum queued access-log events"),
        "overflow_policy": (str, "drop_oldest", None, None, "drop_oldest or reject"),
        "shutdown_grace_secs": (float, 30.0, 0.0, 600.0, "Drain deadline at shutdown"),
        "error_backoff_secs": (float, 5.0, 0.0, 600.0, "Pause after a consumer error"),
    },
    "llm": {
        "max_tokens": (int, 8192, 256, 131072, "Max response tokens"),
        "default_temperature": (float, 0.7, 0.0, 2.0, "Default LLM temperature"),
    },
}

OVERFLOW_POLICIES = ("drop_oldest", "reject")


@dataclass(frozen=True)
class SyncConfig:
    """Scheduler configuration."""

    enabled: bool
    update_interval_days: int
    poll_interval_secs: float
    failure_backoff_secs: float
    startup_delay_secs: float


@dataclass(frozen=True)
class AnalysisConfig:
    """Analysis invoker configuration."""

    max_attempts: int
    backoff_base: float
    temperature: float
    max_tokens: int
    readme_max_chars: int


@dataclass(frozen=True)
class AccessLogConfig:
    """Access-log queue configuration."""

    capacity: int
    overflow_policy: str
    shutdown_grace_secs: float
    error_backoff_secs: float


@dataclass(frozen=True)
class LLMConfig:
    """LLM client configuration."""

    max_tokens: int
    default_temperature: float


def _coerce(section: str, key: str, typ: type, raw_value: str) -> Any:
    """Convert a raw string into the schema type."""
    try:
        if typ is bool:
            return raw_value.strip().lower() in ("true", "1", "yes", "on")
        if typ is int:
            return int(raw_value)
        if typ is float:
            return float(raw_value)
        return raw_value
    except ValueError as e:
        raise ConfigError(
            f"Invalid value for [{section}].{key}: {raw_value!r} (expected {typ.__name__})"
        ) from e


def _load_section(
    parser: ConfigParser, section: str, schema: dict[str, tuple[type, Any, Any, Any, str]]
) -> dict[str, Any]:
    """Load and validate a configuration section.

    Args:
        parser: ConfigParser instance with loaded config
        section: Section name to load
        schema: Schema definition for the section

    Returns:
        Dictionary of validated configuration values

    Raises:
        ConfigError: If validation fails
    """
    result = {}

    for key, (typ, default, min_val, max_val, _) in schema.items():
        if parser.has_option(section, key):
            value = _coerce(section, key, typ, parser.get(section, key))
        else:
            value = default

        if typ in (int, float) and value is not None:
            if min_val is not None and value < min_val:
                raise ConfigError(
                    f"Value for [{section}].{key} is {value}, but minimum is {min_val}"
                )
            if max_val is not None and value > max_val:
                raise ConfigError(
                    f"Value for [{section}].{key} is {value}, but maximum is {max_val}"
                )

        result[key] = value

    return result


def _defaults(section: str) -> dict[str, Any]:
    return {key: default for key, (_, default, _, _, _) in CONFIG_SCHEMA[section].items()}


def _load_config(config_path: Optional[Path] = None) -> "Config":
    """Load configuration from an INI file (internal use only).

    Args:
        config_path: Path to config file. If None, uses defaults from schema.

    Returns:
        Config object with all sections populated (data_dir is a placeholder)

    Raises:
        ConfigError: If validation fails
    """
    parser = ConfigParser()

    if config_path and config_path.exists():
        parser.read(config_path)

    access_log = AccessLogConfig(
        **_load_section(parser, "access_log", CONFIG_SCHEMA["access_log"])
    )
    if access_log.overflow_policy not in OVERFLOW_POLICIES:
        raise ConfigError(
            f"Value for [access_log].overflow_policy is {access_log.overflow_policy!r}, "
            f"expected one of: {', '.join(OVERFLOW_POLICIES)}"
        )

    return Config(
        data_dir=Path("."),
        sync=SyncConfig(**_load_section(parser, "sync", CONFIG_SCHEMA["sync"])),
        analysis=AnalysisConfig(**_load_section(parser, "analysis", CONFIG_SCHEMA["analysis"])),
        access_log=access_log,
        llm=LLMConfig(**_load_section(parser, "llm", CONFIG_SCHEMA["llm"])),
    )


@dataclass(frozen=True)
class Config:
    """Complete application configuration."""

    data_dir: Path
    active_provider: str = "ollama"
    active_model: str = "llama2"
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    google_api_key: Optional[str] = None
    ollama_endpoint: str = "http://localhost:11434"

    # Section configs; defaults are filled in by __post_init__
    sync: SyncConfig = None  # type: ignore[assignment]
    analysis: AnalysisConfig = None  # type: ignore[assignment]
    access_log: AccessLogConfig = None  # type: ignore[assignment]
    llm: LLMConfig = None  # type: ignore[assignment]

    def __post_init__(self):
        """Initialize section configs with defaults if not provided."""
        if self.sync is None:
            object.__setattr__(self, "sync", SyncConfig(**_defaults("sync")))
        if self.analysis is None:
            object.__setattr__(self, "analysis", AnalysisConfig(**_defaults("analysis")))
        if self.access_log is None:
            object.__setattr__(self, "access_log", AccessLogConfig(**_defaults("access_log")))
        if self.llm is None:
            object.__setattr__(self, "llm", LLMConfig(**_defaults("llm")))

    @property
    def db_path(self) -> Path:
        """Path to the SQLite database."""
        return self.data_dir / "wikisync.db"

    @property
    def config_path(self) -> Path:
        """Path to the optional INI file."""
        return self.data_dir / "config.ini"

    @property
    def llm_log_path(self) -> Path:
        """Path to the JSONL log of LLM queries."""
        return self.data_dir / "logs" / "llm-queries.jsonl"

    @property
    def llm_api_key(self) -> Optional[str]:
        """API key for the active LLM provider."""
        provider_keys = {
            "openai": self.openai_api_key,
            "anthropic": self.anthropic_api_key,
            "google": self.google_api_key,
        }
        return provider_keys.get(self.active_provider)

    @property
    def llm_endpoint(self) -> Optional[str]:
        """Endpoint for LLM provider (mainly for Ollama)."""
        if self.active_provider == "ollama":
            return self.ollama_endpoint
        return None


def _detect_provider_from_keys() -> tuple[str, str]:
    """Auto-detect provider from available API keys.

    Falls back to ollama if no keys are found.
    """
    if os.getenv("OPENAI_API_KEY"):
        return ("openai", "gpt-4o")
    if os.getenv("ANTHROPIC_API_KEY"):
        return ("anthropic", "claude-3-5-sonnet-20241022")
    if os.getenv("GOOGLE_API_KEY"):
        return ("google", "gemini-1.5-pro")
    return ("ollama", "llama2")


def _env_override(section_config: Any, section: str, overrides: dict[str, str]) -> Any:
    """Apply environment overrides to a frozen section dataclass.

    Args:
        section_config: The loaded section dataclass.
        section: Section name in CONFIG_SCHEMA.
        overrides: Mapping of key -> environment variable name.

    Returns:
        A new section dataclass with any set environment variables applied.
    """
    values = asdict(section_config)
    for key, env_name in overrides.items():
        raw_value = os.getenv(env_name)
        if raw_value is None or raw_value == "":
            continue
        typ = CONFIG_SCHEMA[section][key][0]
        values[key] = _coerce(section, key, typ, raw_value)
    return type(section_config)(**values)


@lru_cache(maxsize=1)
def load_settings() -> Config:
    """Load settings from environment variables and config file.

    Settings are cached for the lifetime of the application.
    Use load_settings.cache_clear() to reload settings.

    Returns:
        Config object populated from environment variables and config file.

    Raises:
        ConfigError: If the config file or an override is invalid.
    """
    data_dir_str = os.getenv("WIKISYNC_DATA_DIR")
    data_dir = Path(data_dir_str) if data_dir_str else Path.home() / ".wikisync"

    config_file = data_dir / "config.ini"
    try:
        config_exists = config_file.exists()
    except PermissionError:
        config_exists = False
    base_config = _load_config(config_file if config_exists else None)

    sync = _env_override(
        base_config.sync,
        "sync",
        {
            "enabled": "ENABLE_INCREMENTAL_UPDATE",
            "update_interval_days": "UPDATE_INTERVAL",
            "poll_interval_secs": "SYNC_POLL_INTERVAL",
        },
    )

    active_provider = os.getenv("ACTIVE_PROVIDER")
    active_model = os.getenv("ACTIVE_MODEL")

    if not active_provider:
        active_provider, detected_model = _detect_provider_from_keys()
        if not active_model:
            active_model = detected_model
    elif not active_model:
        provider_defaults = {
            "openai": "gpt-4o",
            "anthropic": "claude-3-5-sonnet-20241022",
            "google": "gemini-1.5-pro",
            "ollama": "llama2",
        }
        active_model = provider_defaults.get(active_provider, "llama2")

    return Config(
        data_dir=data_dir,
        active_provider=active_provider,
        active_model=active_model,
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
        google_api_key=os.getenv("GOOGLE_API_KEY"),
        ollama_endpoint=os.getenv("OLLAMA_ENDPOINT", "http://localhost:11434"),
        sync=sync,
        analysis=base_config.analysis,
        access_log=base_config.access_log,
        llm=base_config.llm,
    )

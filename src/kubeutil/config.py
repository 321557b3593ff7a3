"""kubeutil configuration management.

Handles persistent configuration stored in ~/.kubeutil/config.yaml.
Supports environment variable overrides and CLI flag precedence.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError
from .logging import get_logger

logger = get_logger(__name__)

# Default values
DEFAULT_KUBECTL = "kubectl"
DEFAULT_TOKEN_TIMEOUT = 120
DEFAULT_POLL_INTERVAL = 2.0
DEFAULT_LOG_LEVEL = "warning"

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")

# Environment variable mappings
ENV_VARS = {
    "kubectl": "KUBEUTIL_KUBECTL",
    "kubeconfig": "KUBEUTIL_KUBECONFIG",
    "token_timeout": "KUBEUTIL_TOKEN_TIMEOUT",
    "poll_interval": "KUBEUTIL_POLL_INTERVAL",
    "log_level": "KUBEUTIL_LOG_LEVEL",
}

CONFIG_KEYS = tuple(ENV_VARS)


@dataclass
class KubeutilConfig:
    """kubeutil configuration."""

    kubectl: str = DEFAULT_KUBECTL
    kubeconfig: str | None = None
    token_timeout: int = DEFAULT_TOKEN_TIMEOUT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    log_level: str = DEFAULT_LOG_LEVEL

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict)

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")

    def to_dict(self) -> dict[str, Any]:
        return {key: getattr(self, key) for key in CONFIG_KEYS}


def get_config_path() -> Path:
    """Get the config file path.

    Returns:
        Path to ~/.kubeutil/config.yaml
    """
    return Path.home() / ".kubeutil" / "config.yaml"


def validate_value(key: str, value: Any) -> Any:
    """Convert and validate a config value.

    Args:
        key: Config key
        value: Raw value (string from env/CLI or YAML scalar)

    Returns:
        Value converted to the key's type

    Raises:
        ConfigError: Unknown key or invalid value
    """
    if key not in CONFIG_KEYS:
        raise ConfigError(f"Unknown config key '{key}'. Valid keys: {', '.join(CONFIG_KEYS)}")

    if key == "token_timeout":
        try:
            converted = int(value)
        except (TypeError, ValueError):
            raise ConfigError("token_timeout must be an integer") from None
        if converted <= 0:
            raise ConfigError("token_timeout must be positive")
        return converted

    if key == "poll_interval":
        try:
            converted = float(value)
        except (TypeError, ValueError):
            raise ConfigError("poll_interval must be a number") from None
        if converted <= 0:
            raise ConfigError("poll_interval must be positive")
        return converted

    if key == "log_level":
        level = str(value).lower()
        if level not in LOG_LEVELS:
            raise ConfigError(f"log_level must be one of: {', '.join(LOG_LEVELS)}")
        return level

    return str(value)


def _read_config_file(config_path: Path) -> dict[str, Any]:
    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"cannot read {config_path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping")
    return data


def _write_config_file(config_path: Path, data: dict[str, Any]) -> None:
    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False)
    except OSError as e:
        raise ConfigError(f"cannot write {config_path}: {e}") from e


def load_config() -> KubeutilConfig:
    """Load configuration.

    Precedence (highest to lowest):
    1. Environment variables
    2. Config file (~/.kubeutil/config.yaml)
    3. Defaults

    Invalid values are logged and skipped.

    Returns:
        KubeutilConfig with values and sources
    """
    config = KubeutilConfig()
    sources: dict[str, str] = {key: "default" for key in CONFIG_KEYS}

    config_path = get_config_path()
    if config_path.exists():
        try:
            file_config = _read_config_file(config_path)
        except ConfigError as e:
            logger.warning("ignoring unreadable config file", path=str(config_path), error=str(e))
            file_config = {}

        for key in CONFIG_KEYS:
            if key not in file_config or file_config[key] is None:
                continue
            try:
                setattr(config, key, validate_value(key, file_config[key]))
                sources[key] = "config file"
            except ConfigError as e:
                logger.warning("ignoring config file value", key=key, error=str(e))

    for key, env_var in ENV_VARS.items():
        raw = os.environ.get(env_var)
        if not raw:
            continue
        try:
            setattr(config, key, validate_value(key, raw))
            sources[key] = "environment"
        except ConfigError as e:
            logger.warning("ignoring environment value", var=env_var, error=str(e))

    config._sources = sources
    return config


def save_config(key: str, value: Any) -> None:
    """Save a config value to the config file.

    Args:
        key: Config key
        value: Value to save (validated)

    Raises:
        ConfigError: Unknown key, invalid value, or an unreadable or
            unwritable config file
    """
    value = validate_value(key, value)
    config_path = get_config_path()

    existing: dict[str, Any] = {}
    if config_path.exists():
        existing = _read_config_file(config_path)

    existing[key] = value
    _write_config_file(config_path, existing)


def unset_config(key: str) -> bool:
    """Remove a config value from the config file.

    Args:
        key: Config key to remove

    Returns:
        True if key was removed, False if not found

    Raises:
        ConfigError: Config file is unreadable or unwritable
    """
    config_path = get_config_path()
    if not config_path.exists():
        return False

    existing = _read_config_file(config_path)
    if key not in existing:
        return False

    del existing[key]
    _write_config_file(config_path, existing)
    return True

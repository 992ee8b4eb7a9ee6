"""
spotctl Configuration System.

Priority order (highest to lowest):
1. Command-line arguments
2. Environment variables
3. Configuration file (YAML)
4. Default values
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from spotctl.endpoints import DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

CONFIG_DIR = Path.home() / ".config" / "spotctl"
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.yaml"
DEFAULT_COOKIE_PATH = CONFIG_DIR / "cookies.json"

VALID_ENGINES = {"connect", "web", "auto", "applescript"}
VALID_FORMATS = {"human", "plain", "json"}
VALID_LOG_LEVELS = {"debug", "info", "warning", "error"}

# Environment variable mappings
ENV_MAPPINGS = {
    # Spotify
    "SPOTCTL_COOKIE_PATH": ("spotify", "cookie_path"),
    "SPOTCTL_MARKET": ("spotify", "market"),
    "SPOTCTL_LANGUAGE": ("spotify", "language"),
    "SPOTCTL_DEVICE": ("spotify", "device"),
    # Engine
    "SPOTCTL_ENGINE": ("engine", "type"),
    "SPOTCTL_TIMEOUT": ("engine", "timeout"),
    # Output
    "SPOTCTL_FORMAT": ("output", "format"),
    # Logging
    "SPOTCTL_LOG_LEVEL": ("logging", "level"),
}


class ConfigError(Exception):
    """Configuration error."""

    pass


@dataclass
class SpotifyConfig:
    """Account and request configuration."""

    cookie_path: str = str(DEFAULT_COOKIE_PATH)
    market: str = ""  # ISO 3166-1 alpha-2
    language: str = ""  # e.g. "en" or "de-DE"
    device: str = ""  # preferred device id


@dataclass
class EngineConfig:
    """Engine selection."""

    type: str = "connect"
    timeout: float = DEFAULT_TIMEOUT  # seconds


@dataclass
class OutputConfig:
    """Output rendering configuration."""

    format: str = "human"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "warning"


@dataclass
class Config:
    """Complete spotctl configuration."""

    spotify: SpotifyConfig = field(default_factory=SpotifyConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def validate_market(market: str) -> bool:
    """Validate a two-letter market code."""
    return bool(re.match(r"^[A-Za-z]{2}$", market))


def validate_config(config: Config) -> None:
    """
    Validate configuration.

    Raises:
        ConfigError: If configuration is invalid
    """
    errors = []

    if config.engine.type not in VALID_ENGINES:
        errors.append(
            f"Invalid engine: {config.engine.type}. Valid values: {sorted(VALID_ENGINES)}"
        )
    if not isinstance(config.engine.timeout, (int, float)) or config.engine.timeout <= 0:
        errors.append(f"Invalid timeout: {config.engine.timeout}")

    if config.spotify.market and not validate_market(config.spotify.market):
        errors.append(f"Invalid market: {config.spotify.market}. Expected a 2-letter country code")

    if config.output.format not in VALID_FORMATS:
        errors.append(
            f"Invalid output format: {config.output.format}. Valid values: {sorted(VALID_FORMATS)}"
        )

    if config.logging.level.lower() not in VALID_LOG_LEVELS:
        errors.append(
            f"Invalid log level: {config.logging.level}. "
            f"Valid values: {sorted(VALID_LOG_LEVELS)}"
        )

    if errors:
        raise ConfigError("Configuration validation failed:\n  - " + "\n  - ".join(errors))


def load_yaml_config(path: Path) -> dict:
    """
    Load configuration from YAML file.

    Args:
        path: Path to YAML file

    Returns:
        Configuration dictionary

    Raises:
        ConfigError: If file cannot be read or parsed
    """
    if not path.exists():
        logger.debug(f"Config file not found: {path}")
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML config: {e}")
    except IOError as e:
        raise ConfigError(f"Error reading config file: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    return data


def _set_nested(d: dict, path: tuple, value: Any) -> None:
    """Set a nested dictionary value using a path tuple."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def load_env_config() -> dict:
    """
    Load configuration from environment variables.

    Returns:
        Configuration dictionary with values from environment
    """
    result: dict = {}

    for env_var, path in ENV_MAPPINGS.items():
        value: Any = os.environ.get(env_var)
        if value is None or value == "":
            continue
        if env_var == "SPOTCTL_TIMEOUT":
            try:
                value = float(value)
            except ValueError:
                logger.warning(f"Invalid number for {env_var}: {value}")
                continue
        _set_nested(result, path, value)

    return result


def _deep_merge(base: dict, override: dict) -> None:
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def merge_configs(*configs: dict) -> dict:
    """
    Deep merge multiple configuration dictionaries.
    Later configs override earlier ones.
    """
    result: dict = {}
    for config in configs:
        _deep_merge(result, config)
    return result


def dict_to_config(d: dict) -> Config:
    """Convert a dictionary to Config dataclass."""
    config = Config()

    if "spotify" in d:
        s = d["spotify"] or {}
        config.spotify.cookie_path = str(s.get("cookie_path", config.spotify.cookie_path))
        config.spotify.market = str(s.get("market", config.spotify.market)).upper()
        config.spotify.language = str(s.get("language", config.spotify.language))
        config.spotify.device = str(s.get("device", config.spotify.device))

    if "engine" in d:
        e = d["engine"] or {}
        config.engine.type = str(e.get("type", config.engine.type)).lower()
        config.engine.timeout = e.get("timeout", config.engine.timeout)

    if "output" in d:
        o = d["output"] or {}
        config.output.format = str(o.get("format", config.output.format)).lower()

    if "logging" in d:
        config.logging.level = (d["logging"] or {}).get("level", config.logging.level)

    return config


def load_config(
    config_path: Optional[Path] = None,
    cli_args: Optional[dict] = None,
) -> Config:
    """
    Load configuration from all sources.

    Args:
        config_path: Path to YAML config file (defaults to ~/.config/spotctl/config.yaml)
        cli_args: Dictionary of CLI arguments

    Returns:
        Merged Config object

    Raises:
        ConfigError: If configuration is invalid
    """
    configs = []

    file_config = load_yaml_config(config_path or DEFAULT_CONFIG_PATH)
    if file_config:
        configs.append(file_config)
        logger.debug(f"Loaded config from {config_path or DEFAULT_CONFIG_PATH}")

    env_config = load_env_config()
    if env_config:
        configs.append(env_config)
        logger.debug("Loaded config from environment variables")

    if cli_args:
        configs.append(cli_args)
        logger.debug("Loaded config from CLI arguments")

    merged = merge_configs(*configs) if configs else {}
    config = dict_to_config(merged)
    validate_config(config)
    return config

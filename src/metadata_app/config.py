"""
Server configuration.

Values are merged from, lowest precedence first: built-in defaults, a YAML
configuration file, METADATA_EMULATOR_* environment variables and command
line flags. The resulting ServerConfig is immutable.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import yaml

from .config_exceptions import ConfigLoadError, ConfigValidationError

logger = logging.getLogger(__name__)

EXIT_CODE_INVALID_CONFIGURATION = 1
EXIT_CODE_INTERNAL_ERROR = 99

ENV_PREFIX = "METADATA_EMULATOR_"

DEFAULT_SCOPES: Tuple[str, ...] = (
    "https://www.googleapis.com/auth/cloud-platform",
    "https://www.googleapis.com/auth/userinfo.email",
)

# trace is accepted for compatibility with older configuration files
LOG_LEVELS = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class ServerConfig:
    host: str = "localhost"
    port: int = 80
    scopes: Tuple[str, ...] = DEFAULT_SCOPES
    project: str = ""
    cloudsdk_config: str = ""
    google_application_credentials: str = ""
    log_level: str = "warning"
    log_root: str = ""

    @property
    def log_level_value(self) -> int:
        return LOG_LEVELS[self.log_level]


# Key used in the YAML file -> ServerConfig field
CONFIG_KEYS = {f.name.replace("_", "-"): f.name for f in fields(ServerConfig)}


def env_var_name(key: str) -> str:
    """Environment variable for a config key, e.g. log-level -> METADATA_EMULATOR_LOG_LEVEL."""
    return ENV_PREFIX + key.upper().replace("-", "_")


def load_config_file(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a YAML configuration file into a dict keyed by ServerConfig field."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigLoadError(f"Failed to read configuration file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Failed to parse configuration file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError(f"Configuration file {path} must contain a mapping")

    values = {}
    for key, value in data.items():
        field_name = CONFIG_KEYS.get(str(key).replace("_", "-"))
        if field_name is None:
            raise ConfigValidationError(f"Unknown configuration key in {path}: {key}")
        values[field_name] = value
    return values


def _parse_scopes(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, (list, tuple)):
        items = value
    else:
        raise ConfigValidationError(f"Invalid scopes: {value!r}")
    scopes = tuple(str(item).strip() for item in items if str(item).strip())
    if not scopes:
        raise ConfigValidationError("At least one scope must be configured")
    return scopes


def _parse_port(value: Any) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ConfigValidationError(f"Invalid port: {value!r}")
    if not 1 <= port <= 65535:
        raise ConfigValidationError(f"Port out of range: {port}")
    return port


def _parse_log_level(value: Any) -> str:
    level = str(value).strip().lower()
    if level not in LOG_LEVELS:
        raise ConfigValidationError(
            f"Invalid log level: {value!r} (expected one of {', '.join(LOG_LEVELS)})"
        )
    return level


def build_config(values: Mapping[str, Any]) -> ServerConfig:
    """Validate merged values and build a ServerConfig."""
    config = {}
    for name, value in values.items():
        if name == "scopes":
            config[name] = _parse_scopes(value)
        elif name == "port":
            config[name] = _parse_port(value)
        elif name == "log_level":
            config[name] = _parse_log_level(value)
        else:
            config[name] = "" if value is None else str(value).strip()

    if "host" in config and not config["host"]:
        raise ConfigValidationError("Host must not be empty")
    return ServerConfig(**config)


def load_config(
    cli: Optional[Mapping[str, Any]] = None,
    env_vars: Optional[Mapping[str, str]] = None,
    config_file: Optional[Union[str, Path]] = None,
) -> ServerConfig:
    """
    Merge all configuration sources into a ServerConfig.

    Args:
        cli: Values from command line flags keyed by ServerConfig field;
             None values are treated as "not given".
        env_vars: Environment to read METADATA_EMULATOR_* variables from
                  (defaults to os.environ).
        config_file: Optional YAML file.
    """
    env_vars = os.environ if env_vars is None else env_vars
    values: Dict[str, Any] = {}

    if config_file:
        values.update(load_config_file(config_file))

    for key, field_name in CONFIG_KEYS.items():
        env_value = env_vars.get(env_var_name(key))
        if env_value:
            values[field_name] = env_value

    for field_name, value in (cli or {}).items():
        if field_name not in CONFIG_KEYS.values():
            raise ConfigValidationError(f"Unknown configuration option: {field_name}")
        if value is not None:
            values[field_name] = value

    config = build_config(values)
    logger.debug(f"Loaded configuration: {config}")
    return config

"""Configuration loading and validation for the EIP bridge.

A bridge configuration is one YAML file, optionally layered with an
override file (for per-site device addresses or broker credentials), with
environment references expanded before validation.
"""

from __future__ import annotations

import os
import re
from typing import TYPE_CHECKING, Any, cast

import structlog
import yaml
from pydantic import ValidationError

from eip_bridge.config.schema import BridgeConfig

if TYPE_CHECKING:
    from pathlib import Path

logger = structlog.get_logger(__name__)

# $NAME, ${NAME} or ${NAME:-fallback}
_ENV_REFERENCE = re.compile(
    r"\$(?:\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}"
    r"|(?P<bare>[A-Za-z_][A-Za-z0-9_]*))"
)


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Read one configuration layer.

    Raises:
        ConfigurationError: If the file is missing, unreadable, or not a mapping
    """
    if not path.is_file():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration file {path}: {e}") from e

    try:
        content = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigurationError(
            f"Configuration in {path} must be a mapping, got {type(content).__name__}"
        )
    return content


def _expand_string(value: str) -> str:
    def replace(match: re.Match[str]) -> str:
        name = match.group("name") or match.group("bare")
        default = match.group("default")
        if name in os.environ:
            return os.environ[name]
        return default if default is not None else match.group(0)

    return _ENV_REFERENCE.sub(replace, value)


def expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Expand ``$VAR``, ``${VAR}`` and ``${VAR:-default}`` in string values.

    Unset variables without a default are left as written.
    """

    def expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        if isinstance(value, dict):
            return {k: expand_value(v) for k, v in value.items()}
        if isinstance(value, list):
            return [expand_value(item) for item in value]
        return value

    return cast("dict[str, Any]", expand_value(config))


def merge_configs(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Layer ``override`` on ``base``: mappings merge key by key, anything else replaces."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_configs(current, value)
        else:
            merged[key] = value
    return merged


def parse_config(config_dict: dict[str, Any]) -> BridgeConfig:
    """Validate a configuration mapping.

    Raises:
        ConfigurationError: With one ``  - section.field: reason`` line per
            failing field
    """
    try:
        return BridgeConfig.model_validate(config_dict)
    except ValidationError as e:
        errors = cast("list[dict[str, Any]]", e.errors())
        lines = [
            f"  - {'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
            for error in errors
        ]
        raise ConfigurationError(
            "Configuration validation failed:\n" + "\n".join(lines),
            errors=errors,
        ) from e


def load_config(
    config_path: Path,
    *,
    override_path: Path | None = None,
    expand_env: bool = True,
) -> BridgeConfig:
    """Load and validate the bridge configuration.

    Args:
        config_path: Main configuration file
        override_path: Optional file merged on top of the main one
        expand_env: Whether to expand environment references

    Raises:
        ConfigurationError: If any layer cannot be read or the result is invalid
    """
    layers = [config_path] if override_path is None else [config_path, override_path]

    config_dict: dict[str, Any] = {}
    for path in layers:
        logger.info("Loading configuration", path=str(path))
        config_dict = merge_configs(config_dict, load_yaml_file(path))

    if expand_env:
        config_dict = expand_env_vars(config_dict)

    config = parse_config(config_dict)
    logger.info(
        "Configuration loaded",
        bridge=config.bridge.name,
        device=f"{config.device.host}:{config.device.port}/{config.device.slot}",
        broker=f"{config.mqtt.host}:{config.mqtt.port}",
        topic_root=config.mqtt.topic_root,
    )
    return config


def generate_example_config() -> str:
    """Render an example configuration as YAML."""
    example = {
        "bridge": {
            "name": "ethernet-ip-adapter",
            "description": "Line 3 packaging PLC bridge",
        },
        "device": {
            "host": "192.168.1.50",
            "port": 44818,
            "slot": 0,
            "timeout_ms": 5000,
        },
        "mqtt": {
            "host": "${MQTT_HOST:-localhost}",
            "port": 1883,
            "username": "${MQTT_USERNAME}",
            "password": "${MQTT_PASSWORD}",
            "client_id": "ethernet-ip-adapter",
            "qos": 1,
            "topic_root": "ethernet-ip-adapter",
        },
        "workers": {
            "size": 4,
            "queue_size": 100,
        },
    }

    return yaml.dump(example, default_flow_style=False, sort_keys=False, allow_unicode=True)

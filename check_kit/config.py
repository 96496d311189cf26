"""
Configuration file parsing and management.

Settings come from YAML files, then CHECK_KIT_* environment variables, then
keyword arguments passed to check(). Later sources win.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from typing import Any, Mapping

import yaml

from .cache import DEFAULT_META_DIR
from .errors import InvalidInput

logger = logging.getLogger(__name__)


# Configuration file locations (lowest priority first)
CONFIG_LOCATIONS = [
    "/etc/check-kit/config.yml",
    os.path.expanduser("~/.config/check-kit/config.yml"),
    ".check-kit.yml",
]

# One hour, in milliseconds
DEFAULT_CHECK_INTERVAL = 3600000

ENV_VARS = {
    "CHECK_KIT_DIST_TAG": "dist_tag",
    "CHECK_KIT_CHECK_INTERVAL": "check_interval",
    "CHECK_KIT_META_DIR": "meta_dir",
    "CHECK_KIT_REGISTRY_URL": "registry_url",
    "CHECK_KIT_TIMEOUT": "timeout",
    "CHECK_KIT_APPLY_OWNER": "apply_owner",
}

_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class CheckConfig:
    """
    Settings for an update check.

    Attributes:
        dist_tag: Distribution tag to compare against
        check_interval: Milliseconds before the registry is asked again
        meta_dir: Directory holding update records
        registry_url: Registry base URL (npm config is used if None)
        timeout: Request timeout in seconds
        apply_owner: Keep new cache files owned by the parent directory's owner
        strict_ssl: Verify registry TLS certificates
        ca_file: Extra CA bundle for the registry
        proxy: Proxy URL for registry requests
    """
    dist_tag: str = "latest"
    check_interval: int = DEFAULT_CHECK_INTERVAL
    meta_dir: str = DEFAULT_META_DIR
    registry_url: str | None = None
    timeout: float = 5
    apply_owner: bool = True
    strict_ssl: bool = True
    ca_file: str | None = None
    proxy: str | None = None

    def __post_init__(self):
        """Validate settings after initialization."""
        if not self.dist_tag or not isinstance(self.dist_tag, str):
            raise InvalidInput("Expected distTag to be a non-empty string")

        if isinstance(self.check_interval, bool) or not isinstance(self.check_interval, int) or self.check_interval < 0:
            raise InvalidInput("Expected checkInterval to be a non-negative integer")

        if not self.meta_dir or not isinstance(self.meta_dir, (str, os.PathLike)):
            raise InvalidInput("Expected metaDir to be a non-empty string")

        if self.registry_url is not None and (not self.registry_url or not isinstance(self.registry_url, str)):
            raise InvalidInput("Expected registryUrl to be a non-empty string")

        if isinstance(self.timeout, bool) or not isinstance(self.timeout, (int, float)) or self.timeout <= 0:
            raise InvalidInput("Expected timeout to be a positive number")

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> CheckConfig:
        """Create CheckConfig from a dictionary, ignoring unknown keys."""
        known = {f.name for f in fields(CheckConfig)}
        return CheckConfig(**{key: value for key, value in data.items() if key in known})


def _load_yaml(file_path: str) -> dict[str, Any] | None:
    """
    Load a YAML configuration file.

    Returns:
        Parsed configuration dictionary, or None if the file is missing or invalid
    """
    try:
        with open(file_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.debug(f"Could not load config from {file_path}: {e}")
        return None

    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.debug(f"Ignoring non-mapping config file: {file_path}")
        return None
    return data


def _coerce_env(key: str, value: str) -> Any:
    if key == "check_interval":
        try:
            return int(value)
        except ValueError as e:
            raise InvalidInput(f"Invalid CHECK_KIT_CHECK_INTERVAL: {value}") from e
    if key == "timeout":
        try:
            return float(value)
        except ValueError as e:
            raise InvalidInput(f"Invalid CHECK_KIT_TIMEOUT: {value}") from e
    if key == "apply_owner":
        return value.strip().lower() not in _FALSE_VALUES
    return value


def env_overrides(env: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Settings taken from CHECK_KIT_* environment variables."""
    if env is None:
        env = os.environ

    overrides: dict[str, Any] = {}
    for var, key in ENV_VARS.items():
        value = env.get(var)
        if value:
            overrides[key] = _coerce_env(key, value)
    return overrides


def load_config(
    custom_path: str | None = None,
    env: Mapping[str, str] | None = None,
) -> CheckConfig:
    """
    Load and merge configuration from all sources.

    Precedence (highest to lowest):
    1. CHECK_KIT_* environment variables
    2. Custom path (if provided)
    3. Project .check-kit.yml
    4. User ~/.config/check-kit/config.yml
    5. System /etc/check-kit/config.yml
    6. Defaults

    Args:
        custom_path: Optional path to a configuration file
        env: Environment variables (os.environ if None)

    Returns:
        Merged CheckConfig

    Raises:
        InvalidInput: If custom_path cannot be loaded or a value is invalid
    """
    merged: dict[str, Any] = {}

    for location in CONFIG_LOCATIONS:
        if not os.path.exists(location):
            continue
        data = _load_yaml(location)
        if data is not None:
            logger.debug(f"Loaded config: {location}")
            merged.update(data)

    if custom_path:
        data = _load_yaml(custom_path)
        if data is None:
            raise InvalidInput(f"Could not load config from specified path: {custom_path}")
        merged.update(data)

    merged.update(env_overrides(env))
    return CheckConfig.from_dict(merged)

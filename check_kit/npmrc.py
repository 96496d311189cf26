"""
npm configuration lookup: registry URLs and auth tokens.

Reads the same sources npm does, lowest precedence first:
- user config (``$NPM_CONFIG_USERCONFIG`` or ``~/.npmrc``)
- project config (nearest ``.npmrc`` walking up from the working directory)
- ``npm_config_*`` environment variables
"""

from __future__ import annotations

import base64
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY = "https://registry.npmjs.org/"

_ENV_REF = re.compile(r"(\\*)\$\{([^}]+)\}")
_ENV_PREFIX = "npm_config_"


@dataclass(frozen=True)
class Credential:
    """Authorization scheme and token for a registry."""

    type: str
    token: str

    @property
    def header(self) -> str:
        return f"{self.type} {self.token}"


def _substitute_env(value: str, env: Mapping[str, str]) -> str:
    """Expand ${VAR} references; an escaped \\${VAR} is kept literally."""
    def _replace(match: re.Match[str]) -> str:
        slashes, name = match.group(1), match.group(2)
        if len(slashes) % 2:
            return slashes[1:] + "${" + name + "}"
        if name not in env:
            raise ValueError(f"Failed to replace env in config: ${{{name}}}")
        return slashes + env[name]

    return _ENV_REF.sub(_replace, value)


def parse_npmrc(text: str, env: Mapping[str, str] | None = None) -> dict[str, str]:
    """
    Parse .npmrc contents into a flat key/value mapping.

    Args:
        text: File contents
        env: Environment used for ${VAR} expansion (os.environ if None)

    Returns:
        Parsed settings; lines that cannot be expanded are skipped
    """
    if env is None:
        env = os.environ

    values: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith((";", "#")) or "=" not in line:
            continue

        key, _, value = line.partition("=")
        key = key.strip()
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
            value = value[1:-1]

        try:
            values[_substitute_env(key, env)] = _substitute_env(value, env)
        except ValueError as e:
            logger.debug(f"Skipping npmrc entry {key}: {e}")

    return values


def _read_npmrc(path: Path, env: Mapping[str, str]) -> dict[str, str]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    logger.debug(f"Loaded npm config: {path}")
    return parse_npmrc(text, env)


def _find_project_npmrc(cwd: str | None) -> Path | None:
    directory = Path(cwd or os.getcwd()).resolve()
    for candidate in (directory, *directory.parents):
        npmrc = candidate / ".npmrc"
        if npmrc.is_file():
            return npmrc
    return None


@dataclass
class NpmConfig:
    """Merged npm settings."""

    values: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def registry_url(self, scope: str | None = None) -> str:
        """
        Resolve the registry base URL for an optional package scope.

        Args:
            scope: Scope such as "@acme" (the leading "@" is optional)

        Returns:
            Registry URL with a trailing slash
        """
        url = None
        if scope:
            if not scope.startswith("@"):
                scope = f"@{scope}"
            url = self.values.get(f"{scope}:registry")
        url = url or self.values.get("registry") or DEFAULT_REGISTRY
        return url if url.endswith("/") else f"{url}/"

    def auth_token(self, registry_url: str | None = None) -> Credential | None:
        """
        Find credentials for a registry URL.

        Looks up ``//host/path/:_authToken``, ``:_auth`` and
        ``:username``/``:_password`` keys, dropping one path segment at a time
        until the host root is reached.

        Args:
            registry_url: Registry base URL (configured registry if None)

        Returns:
            Credential, or None if nothing is configured
        """
        registry_url = registry_url or self.registry_url()
        parsed = urlparse(registry_url)
        if not parsed.netloc:
            return None

        path = parsed.path or "/"
        while True:
            prefix = f"//{parsed.netloc}{path}"
            for key in (prefix if prefix.endswith("/") else f"{prefix}/", prefix.rstrip("/")):
                credential = self._credential_for(key)
                if credential is not None:
                    return credential

            if path in ("", "/"):
                break
            path = path.rstrip("/").rsplit("/", 1)[0] + "/"

        if registry_url.rstrip("/") == self.registry_url().rstrip("/"):
            return self._credential_for("")
        return None

    def _credential_for(self, prefix: str) -> Credential | None:
        sep = ":" if prefix else ""
        token = self.values.get(f"{prefix}{sep}_authToken")
        if token:
            return Credential("Bearer", token)

        auth = self.values.get(f"{prefix}{sep}_auth")
        if auth:
            return Credential("Basic", auth)

        username = self.values.get(f"{prefix}{sep}username")
        password = self.values.get(f"{prefix}{sep}_password")
        if username and password:
            try:
                decoded = base64.b64decode(password).decode("utf-8")
            except ValueError:
                logger.debug(f"Ignoring undecodable _password for {prefix or 'default registry'}")
                return None
            basic = base64.b64encode(f"{username}:{decoded}".encode("utf-8")).decode("ascii")
            return Credential("Basic", basic)

        return None


def load_npm_config(
    cwd: str | None = None,
    env: Mapping[str, str] | None = None,
) -> NpmConfig:
    """
    Load and merge npm configuration.

    Args:
        cwd: Directory to start the project .npmrc search from
        env: Environment variables (os.environ if None)

    Returns:
        NpmConfig with merged settings
    """
    if env is None:
        env = os.environ

    values: dict[str, str] = {}

    user_config = env.get("NPM_CONFIG_USERCONFIG") or env.get("npm_config_userconfig")
    user_path = Path(user_config) if user_config else Path.home() / ".npmrc"
    values.update(_read_npmrc(user_path, env))

    project_path = _find_project_npmrc(cwd)
    if project_path is not None and project_path.resolve() != user_path.resolve():
        values.update(_read_npmrc(project_path, env))

    for name, value in env.items():
        if name.lower().startswith(_ENV_PREFIX) and value:
            key = name[len(_ENV_PREFIX):].lower()
            if key != "userconfig":
                values[key] = value

    return NpmConfig(values)


def registry_url(scope: str | None = None, cwd: str | None = None) -> str:
    """Registry base URL for a scope from the ambient npm configuration."""
    return load_npm_config(cwd).registry_url(scope)


def auth_token(url: str, cwd: str | None = None) -> Credential | None:
    """Credentials for a registry URL from the ambient npm configuration."""
    return load_npm_config(cwd).auth_token(url)

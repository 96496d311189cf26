"""
package.json discovery and validation.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping

from .errors import InvalidInput, PackageDescriptorError

logger = logging.getLogger(__name__)

PACKAGE_FILE = "package.json"


def find_package(cwd: str | os.PathLike[str] | None = None) -> Path:
    """
    Scan from cwd up to the filesystem root for a package.json.

    Raises:
        PackageDescriptorError: If no package.json exists on the way up
    """
    directory = Path(cwd or os.getcwd()).resolve()
    for candidate in (directory, *directory.parents):
        file = candidate / PACKAGE_FILE
        if file.exists():
            logger.debug(f"Found {file}")
            return file
    raise PackageDescriptorError("Unable to find a package.json")


def load_package(file: str | os.PathLike[str]) -> Any:
    """
    Read and parse a package.json file.

    Returns:
        The parsed JSON value (validated by resolve_package)

    Raises:
        PackageDescriptorError: If the file cannot be read or parsed
    """
    try:
        with open(file, "r", encoding="utf-8") as f:
            contents = f.read()
    except FileNotFoundError as e:
        raise PackageDescriptorError(f"File not found: {file}") from e
    except (OSError, UnicodeDecodeError) as e:
        raise PackageDescriptorError(f"Failed to read file: {file} ({e})") from e

    try:
        return json.loads(contents)
    except ValueError as e:
        raise PackageDescriptorError(f"Failed to parse package.json: {e}") from e


def check_package_args(pkg: Any, cwd: Any) -> None:
    """Reject pkg and cwd values of the wrong type without touching the filesystem."""
    if cwd is not None and not isinstance(cwd, (str, os.PathLike)):
        raise InvalidInput("Expected cwd to be a string")
    if pkg is not None and not isinstance(pkg, (str, os.PathLike, Mapping)):
        raise InvalidInput("Expected pkg to be a parsed package.json object")


def resolve_package(
    pkg: Mapping[str, Any] | str | os.PathLike[str] | None = None,
    cwd: str | os.PathLike[str] | None = None,
) -> tuple[str, str]:
    """
    Get the package name and version to check.

    Args:
        pkg: Parsed package.json, path to one, or None to search from cwd
        cwd: Directory to start the search from

    Returns:
        Tuple of (name, version)

    Raises:
        InvalidInput: If pkg or cwd has the wrong type
        PackageDescriptorError: If package.json is missing or incomplete
    """
    check_package_args(pkg, cwd)

    if pkg is None:
        pkg = find_package(cwd)

    if isinstance(pkg, (str, os.PathLike)):
        pkg = load_package(pkg)

    if not isinstance(pkg, Mapping):
        raise InvalidInput("Expected pkg to be a parsed package.json object")

    name = pkg.get("name")
    version = pkg.get("version")

    if not name or not isinstance(name, str):
        raise PackageDescriptorError("Expected name in package.json to be a non-empty string")
    if not version or not isinstance(version, str):
        raise PackageDescriptorError("Expected version in package.json to be a non-empty string")

    return name, version

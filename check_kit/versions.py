"""
Version comparison for update checks.

npm versions follow semver 2.0 precedence: build metadata is ignored, a
pre-release sorts before its release, and pre-release identifiers compare
field by field. Strings that are not semver (e.g. "1.2" or "2024.1.post1")
fall back to PEP 440 ordering via packaging.
"""

from __future__ import annotations

import re

from packaging import version as pkg_version

_SEMVER = re.compile(
    r"^\s*[=vV]*"
    r"(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+(?P<build>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?\s*$"
)

# (is_alphanumeric, numeric value, text); numeric identifiers sort first
_Identifier = tuple[bool, int, str]
_SemverKey = tuple[tuple[int, int, int], int, tuple[_Identifier, ...]]


def _identifier_key(ident: str) -> _Identifier:
    if ident.isdigit():
        return False, int(ident), ""
    return True, 0, ident


def semver_key(v: str) -> _SemverKey | None:
    """
    Build a sort key with semver precedence.

    Args:
        v: Version string, optionally prefixed with "v" or "="

    Returns:
        Comparable key, or None if v is not a semver version
    """
    match = _SEMVER.match(v)
    if not match:
        return None

    release = (int(match["major"]), int(match["minor"]), int(match["patch"]))
    prerelease = match["prerelease"]
    if not prerelease:
        return release, 1, ()

    # A shorter identifier list sorts first when it is a prefix of the other.
    return release, 0, tuple(_identifier_key(i) for i in prerelease.split("."))


def compare_versions(v1: str, v2: str) -> int:
    """
    Compare two version strings.

    Args:
        v1: First version
        v2: Second version

    Returns:
        -1 if v1 < v2, 0 if v1 == v2, 1 if v1 > v2
    """
    key1 = semver_key(v1)
    key2 = semver_key(v2)

    if key1 is None or key2 is None:
        # Mixed or non-semver input: compare both under PEP 440.
        key1 = _sort_key_pep440(v1)
        key2 = _sort_key_pep440(v2)
        if key1 is None or key2 is None:
            return (v1 > v2) - (v1 < v2)

    if key1 < key2:
        return -1
    elif key1 > key2:
        return 1
    else:
        return 0


def _sort_key_pep440(v: str) -> pkg_version.Version | None:
    cleaned = v.strip().lstrip("vV=").split("+", 1)[0]
    try:
        return pkg_version.parse(cleaned)
    except pkg_version.InvalidVersion:
        return None


def is_newer(latest: str | None, current: str) -> bool:
    """True if latest is known and greater than current."""
    if not latest:
        return False
    return compare_versions(latest, current) > 0

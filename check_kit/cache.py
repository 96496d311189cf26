"""
Per-package update record cache.

One JSON file per (package name, dist-tag) holds the last known latest
version and when the registry was last asked. A missing or corrupt file reads
as an empty record; the next check simply queries the registry again.
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .fsutil import OwnerContext, write_file

logger = logging.getLogger(__name__)

# Default directory for update records
DEFAULT_META_DIR = os.path.join(tempfile.gettempdir(), "check-kit")

_PATH_SEPARATORS = re.compile(r"[/\\]")


@dataclass
class UpdateRecord:
    """Last known update state for a package and dist-tag."""

    name: str = ""
    dist_tag: str = ""
    current: str = ""
    latest: str | None = None
    last_check: int | None = None
    update_available: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "current": self.current,
            "distTag": self.dist_tag,
            "latest": self.latest,
            "lastCheck": self.last_check,
            "name": self.name,
            "updateAvailable": self.update_available,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UpdateRecord":
        """Create from dictionary.

        Raises:
            ValueError: If a field has the wrong type
        """
        latest = data.get("latest")
        last_check = data.get("lastCheck")

        if latest is not None and not isinstance(latest, str):
            raise ValueError("latest must be a string or null")
        # bool is an int subclass, but not a timestamp
        if last_check is not None and (isinstance(last_check, bool) or not isinstance(last_check, int)):
            raise ValueError("lastCheck must be an integer or null")

        for key in ("name", "distTag", "current"):
            if not isinstance(data.get(key, ""), str):
                raise ValueError(f"{key} must be a string")

        return cls(
            name=data.get("name", ""),
            dist_tag=data.get("distTag", ""),
            current=data.get("current", ""),
            latest=latest,
            last_check=last_check,
            update_available=bool(data.get("updateAvailable", False)),
        )


def get_meta_path(meta_dir: str | os.PathLike[str] | None, name: str, dist_tag: str) -> Path:
    """Get the record file path for a package and dist-tag.

    Args:
        meta_dir: Directory holding records (DEFAULT_META_DIR if None)
        name: Package name, path separators are replaced with "-"
        dist_tag: Distribution tag, path separators are replaced with "-"

    Returns:
        Path to the record file
    """
    safe_name = _PATH_SEPARATORS.sub("-", name)
    safe_tag = _PATH_SEPARATORS.sub("-", dist_tag)
    return Path(meta_dir or DEFAULT_META_DIR) / f"{safe_name}-{safe_tag}.json"


def load_record(path: Path) -> UpdateRecord:
    """Load an update record from file.

    Args:
        path: Path to the record file

    Returns:
        UpdateRecord instance, empty if the file is missing or unusable
    """
    if not path.exists():
        return UpdateRecord()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            logger.debug(f"Ignoring non-object update record: {path}")
            return UpdateRecord()
        return UpdateRecord.from_dict(data)
    except (OSError, ValueError) as e:
        logger.debug(f"Ignoring unreadable update record {path}: {e}")
        return UpdateRecord()


def save_record(
    path: Path,
    record: UpdateRecord,
    *,
    apply_owner: bool = True,
    uid: int | None = None,
    gid: int | None = None,
    context: OwnerContext | None = None,
) -> None:
    """Write an update record, replacing any existing file.

    Args:
        path: Path to the record file
        record: Record to write
        apply_owner: Hand new files and directories to the parent's owner when privileged
        uid: Explicit owner
        gid: Explicit group
        context: Ownership capabilities
    """
    contents = json.dumps(record.to_dict(), indent=2, ensure_ascii=False, sort_keys=True)
    write_file(
        path,
        contents + "\n",
        apply_owner=apply_owner,
        uid=uid,
        gid=gid,
        context=context,
    )
    logger.debug(f"Wrote update record: {path}")

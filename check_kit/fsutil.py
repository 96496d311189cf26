"""
Filesystem helpers that preserve ownership under elevated privilege.

When a tool runs as root on behalf of a regular user (``sudo npm i -g`` and
friends), files it creates in that user's directories would end up owned by
root. These helpers find the owner of the nearest existing parent directory
and apply it to the written file and every directory created along the way.

Whether the process is privileged is passed in as an OwnerContext rather than
read from the process, so the ownership walk can be exercised without root.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tempfile
from dataclasses import dataclass
from typing import Callable, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


@dataclass(frozen=True)
class OwnerContext:
    """
    Capabilities used by the ownership walk.

    Attributes:
        privileged: Process runs with an effective uid of 0
        posix: Platform has POSIX file ownership
        chown: Ownership change function (defaults to os.lchown)
        lstat: Stat function that does not follow symlinks
    """
    privileged: bool = False
    posix: bool = True
    chown: Callable[[str, int, int], None] | None = None
    lstat: Callable[[str], os.stat_result] = os.lstat

    @classmethod
    def detect(cls) -> OwnerContext:
        """Build a context describing the running process."""
        geteuid = getattr(os, "geteuid", None)
        return cls(
            privileged=geteuid is not None and geteuid() == 0,
            posix=os.name == "posix",
        )

    def change_owner(self, path: str, uid: int, gid: int) -> None:
        fn = self.chown or getattr(os, "lchown", None) or os.chown
        fn(path, uid, gid)


def _nearest_existing_dir(dest: str, context: OwnerContext) -> tuple[str, os.stat_result | None]:
    """Walk up from dest to the first directory that already exists."""
    candidate = dest
    while True:
        try:
            st = context.lstat(candidate)
            if stat.S_ISDIR(st.st_mode):
                return candidate, st
        except OSError:
            pass

        parent = os.path.dirname(candidate)
        if parent == candidate:
            return candidate, None
        candidate = parent


def _apply_owner(dest: str, origin: str, uid: int, gid: int | None, context: OwnerContext) -> None:
    """Chown dest and each new parent up to (not including) origin.

    Failures stop the walk; the filesystem operation already succeeded.
    """
    target_gid = -1 if gid is None else gid
    path = dest
    while path != origin:
        try:
            st = context.lstat(path)
            if st.st_uid != uid or (gid is not None and st.st_gid != gid):
                context.change_owner(path, uid, target_gid)
                logger.debug(f"Changed owner of {path} to {uid}:{target_gid}")
        except OSError as e:
            logger.debug(f"Unable to change owner of {path}: {e}")
            break

        parent = os.path.dirname(path)
        if parent == path:
            break
        path = parent


def _execute(
    dest: PathLike,
    fn: Callable[[], None],
    apply_owner: bool,
    uid: int | None,
    gid: int | None,
    context: OwnerContext | None,
) -> None:
    """Run fn, then hand the created paths over to the resolved owner."""
    if context is None:
        context = OwnerContext.detect()

    if not apply_owner or not context.posix or not context.privileged:
        fn()
        return

    dest = os.path.abspath(os.fspath(dest))
    origin, origin_stat = _nearest_existing_dir(dest, context)

    if uid is None:
        if origin_stat is None:
            fn()
            return
        uid = origin_stat.st_uid
        if gid is None:
            gid = origin_stat.st_gid

    fn()
    _apply_owner(dest, origin, uid, gid, context)


def ensure_dir(
    dest: PathLike,
    *,
    apply_owner: bool = True,
    uid: int | None = None,
    gid: int | None = None,
    mode: int = 0o777,
    context: OwnerContext | None = None,
) -> None:
    """
    Create a directory and any missing parents.

    Args:
        dest: Directory to create
        apply_owner: Apply the owner of the nearest existing parent when privileged
        uid: Explicit owner, skips the parent lookup
        gid: Explicit group
        mode: Permission bits for new directories
        context: Ownership capabilities (detected from the process if None)
    """
    def _mkdir() -> None:
        os.makedirs(dest, mode=mode, exist_ok=True)

    _execute(dest, _mkdir, apply_owner, uid, gid, context)


def write_file(
    dest: PathLike,
    contents: str | bytes,
    *,
    apply_owner: bool = True,
    uid: int | None = None,
    gid: int | None = None,
    encoding: str = "utf-8",
    mode: int = 0o644,
    context: OwnerContext | None = None,
) -> None:
    """
    Write a file, creating parent directories as needed.

    The contents go to a uniquely named sibling temp file that is then renamed
    over dest, so readers see either the old file or the new one and
    concurrent writers never share a temp file. The last rename wins.

    Args:
        dest: File to write
        contents: Text (encoded with ``encoding``) or bytes
        apply_owner: Apply the owner of the nearest existing parent when privileged
        uid: Explicit owner, skips the parent lookup
        gid: Explicit group
        encoding: Encoding for text contents
        mode: Permission bits for the written file
        context: Ownership capabilities (detected from the process if None)
    """
    dest = os.fspath(dest)
    data = contents.encode(encoding) if isinstance(contents, str) else contents

    def _write() -> None:
        parent = os.path.dirname(os.path.abspath(dest))
        os.makedirs(parent, exist_ok=True)

        fd, temp_path = tempfile.mkstemp(
            dir=parent,
            prefix=f".{os.path.basename(dest)}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.chmod(temp_path, mode)
            os.replace(temp_path, dest)
        except OSError:
            try:
                os.unlink(temp_path)
            except OSError:
                pass
            raise

    _execute(dest, _write, apply_owner, uid, gid, context)


def move(
    src: PathLike,
    dest: PathLike,
    *,
    apply_owner: bool = True,
    uid: int | None = None,
    gid: int | None = None,
    context: OwnerContext | None = None,
) -> None:
    """
    Move a file or directory, creating the destination's parents as needed.

    Args:
        src: Path to move
        dest: Destination path
        apply_owner: Apply the owner of the nearest existing parent when privileged
        uid: Explicit owner, skips the parent lookup
        gid: Explicit group
        context: Ownership capabilities (detected from the process if None)
    """
    def _move() -> None:
        os.makedirs(os.path.dirname(os.path.abspath(dest)), exist_ok=True)
        shutil.move(os.fspath(src), os.fspath(dest))

    _execute(dest, _move, apply_owner, uid, gid, context)

"""
Tests for ownership-preserving filesystem helpers (check_kit/fsutil.py).
"""

import os
import stat
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from check_kit.fsutil import OwnerContext, ensure_dir, move, write_file

pytestmark = pytest.mark.skipif(os.name != "posix", reason="POSIX ownership only")


def _fake_owner_lstat(owned_path: Path, uid: int, gid: int):
    """lstat that reports owned_path as belonging to uid:gid."""
    def _lstat(path):
        st = os.lstat(path)
        if path == str(owned_path):
            values = list(st[:10])
            values[4] = uid
            values[5] = gid
            return os.stat_result(values)
        return st
    return _lstat


class TestOwnerContext:
    """Tests for OwnerContext."""

    def test_defaults_are_unprivileged(self):
        """Test the default context never changes ownership."""
        context = OwnerContext()
        assert context.privileged is False
        assert context.posix is True

    @patch("os.geteuid", create=True, return_value=0)
    def test_detect_root(self, _mock_geteuid):
        """Test detecting a process running as root."""
        assert OwnerContext.detect().privileged is True

    @patch("os.geteuid", create=True, return_value=1000)
    def test_detect_regular_user(self, _mock_geteuid):
        """Test detecting a non-root process."""
        assert OwnerContext.detect().privileged is False

    def test_change_owner_uses_injected_chown(self):
        """Test an injected chown replaces the os function."""
        chown = MagicMock()
        OwnerContext(chown=chown).change_owner("/some/path", 1, 2)
        chown.assert_called_once_with("/some/path", 1, 2)

    @pytest.mark.skipif(not hasattr(os, "lchown"), reason="requires lchown")
    def test_change_owner_defaults_to_lchown(self):
        """Test symlinks are changed themselves, not their targets."""
        with patch("os.lchown") as mock_lchown:
            OwnerContext().change_owner("/some/link", 1, 2)
        mock_lchown.assert_called_once_with("/some/link", 1, 2)


class TestEnsureDir:
    """Tests for ensure_dir."""

    def test_creates_nested_directories(self, tmp_path):
        """Test missing parents are created."""
        target = tmp_path / "a" / "b" / "c"
        ensure_dir(target, context=OwnerContext())
        assert target.is_dir()

    def test_existing_directory_is_fine(self, tmp_path):
        """Test an existing directory is left alone."""
        chown = MagicMock()
        ensure_dir(tmp_path, uid=os.getuid() + 1, context=OwnerContext(privileged=True, chown=chown))
        assert tmp_path.is_dir()
        chown.assert_not_called()

    def test_unprivileged_skips_ownership(self, tmp_path):
        """Test ownership is untouched for regular users."""
        chown = MagicMock()
        ensure_dir(tmp_path / "a", uid=12345, context=OwnerContext(privileged=False, chown=chown))
        chown.assert_not_called()

    def test_apply_owner_false_skips_ownership(self, tmp_path):
        """Test apply_owner=False disables the walk."""
        chown = MagicMock()
        ensure_dir(
            tmp_path / "a",
            apply_owner=False,
            uid=12345,
            context=OwnerContext(privileged=True, chown=chown),
        )
        assert (tmp_path / "a").is_dir()
        chown.assert_not_called()

    def test_non_posix_skips_ownership(self, tmp_path):
        """Test platforms without ownership skip the walk."""
        chown = MagicMock()
        ensure_dir(tmp_path / "a", uid=12345, context=OwnerContext(privileged=True, posix=False, chown=chown))
        chown.assert_not_called()

    def test_explicit_uid_applies_to_new_directories(self, tmp_path):
        """Test each newly created directory gets the explicit owner."""
        chown = MagicMock()
        uid = os.getuid() + 1
        target = tmp_path / "a" / "b" / "c"

        ensure_dir(target, uid=uid, gid=55, context=OwnerContext(privileged=True, chown=chown))

        changed = [call.args[0] for call in chown.call_args_list]
        assert changed == [str(target), str(tmp_path / "a" / "b"), str(tmp_path / "a")]
        assert all(call.args[1:] == (uid, 55) for call in chown.call_args_list)

    def test_explicit_uid_without_gid_keeps_group(self, tmp_path):
        """Test a missing gid is passed as -1 (unchanged)."""
        chown = MagicMock()
        ensure_dir(tmp_path / "a", uid=os.getuid() + 1, context=OwnerContext(privileged=True, chown=chown))
        chown.assert_called_once_with(str(tmp_path / "a"), os.getuid() + 1, -1)

    def test_same_owner_needs_no_changes(self, tmp_path):
        """Test inferred owner matching the new paths causes no chown."""
        chown = MagicMock()
        ensure_dir(tmp_path / "a" / "b", context=OwnerContext(privileged=True, chown=chown))
        chown.assert_not_called()


class TestWriteFile:
    """Tests for write_file."""

    def test_writes_text(self, tmp_path):
        """Test text contents are written as UTF-8."""
        dest = tmp_path / "out.json"
        write_file(dest, "héllo", context=OwnerContext())
        assert dest.read_text(encoding="utf-8") == "héllo"

    def test_writes_bytes_and_creates_parents(self, tmp_path):
        """Test bytes contents and parent directory creation."""
        dest = tmp_path / "x" / "y" / "out.bin"
        write_file(dest, b"\x00\x01", context=OwnerContext())
        assert dest.read_bytes() == b"\x00\x01"

    def test_replaces_existing_file_without_leftovers(self, tmp_path):
        """Test the whole file is replaced and no temp file remains."""
        dest = tmp_path / "out.txt"
        dest.write_text("old contents that are longer")
        write_file(dest, "new", context=OwnerContext())
        assert dest.read_text() == "new"
        assert os.listdir(tmp_path) == ["out.txt"]

    def test_second_writer_during_replace(self, tmp_path, monkeypatch):
        """Test a writer racing another's rename neither fails nor truncates it."""
        dest = tmp_path / "rec.json"
        real_replace = os.replace
        interleaved = []

        def _replace(src, dst):
            if not interleaved:
                interleaved.append(src)
                write_file(dest, '{"writer": 2}', context=OwnerContext())
            real_replace(src, dst)

        monkeypatch.setattr(os, "replace", _replace)

        write_file(dest, '{"writer": 1}', context=OwnerContext())

        assert dest.read_text() == '{"writer": 1}'
        assert os.listdir(tmp_path) == ["rec.json"]

    def test_threaded_writers(self, tmp_path):
        """Test writers on several threads always leave one whole file."""
        dest = tmp_path / "rec.json"
        payloads = [f"writer-{i}-" + "x" * 4096 for i in range(8)]

        with ThreadPoolExecutor(max_workers=8) as executor:
            futures = [
                executor.submit(write_file, dest, payload, context=OwnerContext())
                for payload in payloads * 5
            ]
            for future in futures:
                future.result()

        assert dest.read_text() in payloads
        assert os.listdir(tmp_path) == ["rec.json"]

    def test_file_mode(self, tmp_path):
        """Test the written file gets the requested permission bits."""
        dest = tmp_path / "out.txt"
        write_file(dest, "data", mode=0o640, context=OwnerContext())
        assert stat.S_IMODE(os.stat(dest).st_mode) == 0o640

    def test_inherits_owner_of_nearest_existing_directory(self, tmp_path):
        """Test the file and new parents adopt the existing parent's owner."""
        chown = MagicMock()
        context = OwnerContext(
            privileged=True,
            chown=chown,
            lstat=_fake_owner_lstat(tmp_path, 4242, 4343),
        )
        dest = tmp_path / "a" / "b" / "record.json"

        write_file(dest, "{}", context=context)

        assert dest.read_text() == "{}"
        changed = [call.args for call in chown.call_args_list]
        assert changed == [
            (str(dest), 4242, 4343),
            (str(tmp_path / "a" / "b"), 4242, 4343),
            (str(tmp_path / "a"), 4242, 4343),
        ]

    def test_chown_failure_is_not_fatal(self, tmp_path):
        """Test a failed ownership change stops the walk but keeps the file."""
        chown = MagicMock(side_effect=PermissionError("denied"))
        dest = tmp_path / "a" / "record.json"

        write_file(dest, "data", uid=os.getuid() + 1, context=OwnerContext(privileged=True, chown=chown))

        assert dest.read_text() == "data"
        assert chown.call_count == 1


class TestMove:
    """Tests for move."""

    def test_moves_into_new_directory(self, tmp_path):
        """Test the destination's parents are created."""
        src = tmp_path / "src.txt"
        src.write_text("payload")
        dest = tmp_path / "new" / "dest.txt"

        move(src, dest, context=OwnerContext())

        assert not src.exists()
        assert dest.read_text() == "payload"

    def test_move_applies_owner(self, tmp_path):
        """Test moved files and new parents get the explicit owner."""
        src = tmp_path / "src.txt"
        src.write_text("payload")
        dest = tmp_path / "new" / "dest.txt"
        chown = MagicMock()

        move(src, dest, uid=os.getuid() + 1, gid=7, context=OwnerContext(privileged=True, chown=chown))

        changed = [call.args[0] for call in chown.call_args_list]
        assert changed == [str(dest), str(tmp_path / "new")]

"""Unit tests for the filesystem primitives."""

import os
import stat
import sys
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from isnapshot.errors import IncompleteCopyError, MetadataRestoreError
from isnapshot.materialize import (
    EntryKind,
    copy_file,
    create_special,
    create_symlink,
    ensure_directory,
    link_to_previous,
    restore_link_ownership,
    restore_metadata,
)


class TestEntryKind:
    """Tests for EntryKind.from_mode."""

    @pytest.mark.parametrize("mode,kind", [
        (stat.S_IFDIR | 0o755, EntryKind.DIRECTORY),
        (stat.S_IFREG | 0o644, EntryKind.REGULAR),
        (stat.S_IFLNK | 0o777, EntryKind.SYMLINK),
        (stat.S_IFIFO | 0o600, EntryKind.FIFO),
        (stat.S_IFCHR | 0o600, EntryKind.CHAR_DEVICE),
        (stat.S_IFBLK | 0o600, EntryKind.BLOCK_DEVICE),
        (stat.S_IFSOCK | 0o600, EntryKind.SOCKET),
        (0o644, EntryKind.UNKNOWN),
    ])
    def test_from_mode(self, mode, kind):
        assert EntryKind.from_mode(mode) is kind

    def test_is_special(self):
        assert EntryKind.FIFO.is_special
        assert EntryKind.SOCKET.is_special
        assert not EntryKind.REGULAR.is_special
        assert not EntryKind.DIRECTORY.is_special


class TestEnsureDirectory:
    """Tests for ensure_directory."""

    def test_creates_deep_path(self):
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "a" / "b" / "c" / "d"
            ensure_directory(target, 0o755)
            assert target.is_dir()

    def test_idempotent(self):
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "a"
            ensure_directory(target, 0o755)
            (target / "keep").write_text("x")
            ensure_directory(target, 0o700)
            assert (target / "keep").read_text() == "x"

    def test_ancestors_use_same_mode(self):
        with tempfile.TemporaryDirectory() as tmp:
            saved = os.umask(0)
            try:
                ensure_directory(Path(tmp) / "p" / "q", 0o750)
            finally:
                os.umask(saved)
            assert stat.S_IMODE(os.stat(Path(tmp) / "p").st_mode) == 0o750
            assert stat.S_IMODE(os.stat(Path(tmp) / "p" / "q").st_mode) == 0o750

    def test_relative_path(self):
        with tempfile.TemporaryDirectory() as tmp:
            cwd = os.getcwd()
            os.chdir(tmp)
            try:
                ensure_directory("x/y", 0o755)
                assert os.path.isdir(os.path.join(tmp, "x", "y"))
            finally:
                os.chdir(cwd)

    def test_file_in_the_way(self):
        with tempfile.TemporaryDirectory() as tmp:
            blocker = Path(tmp) / "file"
            blocker.write_text("x")
            with pytest.raises(OSError):
                ensure_directory(blocker / "sub", 0o755)


class TestCopyFile:
    """Tests for copy_file."""

    def test_copies_content(self):
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src.bin"
            dst = Path(tmp) / "dst.bin"
            data = bytes(range(256)) * 100
            src.write_bytes(data)

            copied = copy_file(src, dst, 0o644, 4096)

            assert copied == len(data)
            assert dst.read_bytes() == data

    def test_small_block_size(self):
        """Chunks smaller than the file still copy every byte."""
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            dst = Path(tmp) / "dst"
            src.write_bytes(b"0123456789abcdef")

            assert copy_file(src, dst, 0o644, 3) == 16
            assert dst.read_bytes() == b"0123456789abcdef"

    def test_default_block_size(self):
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            dst = Path(tmp) / "dst"
            src.write_bytes(b"hello")
            assert copy_file(src, dst, 0o644, 0) == 5
            assert dst.read_bytes() == b"hello"

    def test_empty_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            dst = Path(tmp) / "dst"
            src.write_bytes(b"")
            assert copy_file(src, dst, 0o644) == 0
            assert dst.exists()

    def test_missing_source(self):
        with tempfile.TemporaryDirectory() as tmp:
            with pytest.raises(FileNotFoundError):
                copy_file(Path(tmp) / "absent", Path(tmp) / "dst", 0o644)
            assert not (Path(tmp) / "dst").exists()

    def test_short_write_is_fatal(self):
        with tempfile.TemporaryDirectory() as tmp:
            src = Path(tmp) / "src"
            dst = Path(tmp) / "dst"
            src.write_bytes(b"abcdefgh")
            real_write = os.write

            def short_write(fd, data):
                return real_write(fd, data[:len(data) - 1])

            with patch("isnapshot.materialize.os.write", side_effect=short_write):
                with pytest.raises(IncompleteCopyError) as exc_info:
                    copy_file(src, dst, 0o644, 4)

            assert exc_info.value.written == 3
            assert exc_info.value.expected == 4
            # Partial output is left in place
            assert dst.read_bytes() == b"abc"


class TestLinks:
    """Tests for create_symlink and link_to_previous."""

    def test_create_symlink_is_literal(self):
        with tempfile.TemporaryDirectory() as tmp:
            link = Path(tmp) / "link"
            create_symlink("../does/not/exist", link)
            assert os.readlink(link) == "../does/not/exist"

    def test_link_to_stored_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            stored = Path(tmp) / "stored"
            stored.write_text("X")
            link = Path(tmp) / "link"

            target = link_to_previous(stored, link)

            assert target == str(stored)
            assert os.readlink(link) == str(stored)
            assert link.read_text() == "X"

    def test_link_collapses_one_level(self):
        with tempfile.TemporaryDirectory() as tmp:
            stored = Path(tmp) / "gen1"
            stored.write_text("X")
            gen2 = Path(tmp) / "gen2"
            os.symlink(str(stored), gen2)
            gen3 = Path(tmp) / "gen3"

            link_to_previous(gen2, gen3)

            assert os.readlink(gen3) == str(stored)
            assert not os.path.islink(os.readlink(gen3))

    def test_link_to_missing_previous(self):
        with tempfile.TemporaryDirectory() as tmp:
            with pytest.raises(FileNotFoundError):
                link_to_previous(Path(tmp) / "absent", Path(tmp) / "link")


class TestCreateSpecial:
    """Tests for create_special."""

    def test_fifo(self):
        with tempfile.TemporaryDirectory() as tmp:
            dest = Path(tmp) / "pipe"
            create_special(dest, EntryKind.FIFO, stat.S_IFIFO | 0o600)
            assert stat.S_ISFIFO(os.lstat(dest).st_mode)

    def test_device_uses_mknod(self):
        with patch("isnapshot.materialize.os.mknod") as mock_mknod:
            create_special("/snap/dev/null", EntryKind.CHAR_DEVICE, stat.S_IFCHR | 0o666, 0x0103)
        mock_mknod.assert_called_once_with("/snap/dev/null", stat.S_IFCHR | 0o666, 0x0103)

    def test_block_device_uses_mknod(self):
        with patch("isnapshot.materialize.os.mknod") as mock_mknod:
            create_special("/snap/dev/sda", EntryKind.BLOCK_DEVICE, 0o660, 0x0800)
        mock_mknod.assert_called_once_with("/snap/dev/sda", stat.S_IFBLK | 0o660, 0x0800)

    @pytest.mark.skipif(not sys.platform.startswith("linux"), reason="mknod sockets are Linux-only")
    def test_socket(self):
        with tempfile.TemporaryDirectory() as tmp:
            dest = Path(tmp) / "sock"
            create_special(dest, EntryKind.SOCKET, stat.S_IFSOCK | 0o600)
            assert stat.S_ISSOCK(os.lstat(dest).st_mode)

    def test_rejects_non_special_kind(self):
        with pytest.raises(ValueError):
            create_special("/unused", EntryKind.REGULAR, 0o644)


class TestRestoreMetadata:
    """Tests for restore_metadata and restore_link_ownership."""

    def _source_stat(self, tmp: str, mode: int = 0o640, mtime: int = 1_000_000_000) -> os.stat_result:
        src = Path(tmp) / "src"
        src.write_text("x")
        os.chmod(src, mode)
        os.utime(src, (mtime - 50, mtime))
        return os.stat(src)

    def test_restores_times_and_mode(self):
        with tempfile.TemporaryDirectory() as tmp:
            st = self._source_stat(tmp)
            dest = Path(tmp) / "dest"
            dest.write_text("x")

            restore_metadata(dest, st)

            dest_stat = os.stat(dest)
            assert dest_stat.st_mtime_ns == st.st_mtime_ns
            assert dest_stat.st_atime_ns == st.st_atime_ns
            assert stat.S_IMODE(dest_stat.st_mode) == 0o640

    def test_chown_failure_strips_setid_bits(self):
        with tempfile.TemporaryDirectory() as tmp:
            st = self._source_stat(tmp, mode=0o6755)
            dest = Path(tmp) / "dest"
            dest.write_text("x")

            with patch("isnapshot.materialize.os.chown", side_effect=PermissionError("no")):
                with pytest.raises(MetadataRestoreError) as exc_info:
                    restore_metadata(dest, st)

            assert exc_info.value.failed_steps == ["ownership"]
            # Times and permissions were still applied, minus setuid/setgid
            dest_stat = os.stat(dest)
            assert stat.S_IMODE(dest_stat.st_mode) == 0o755
            assert dest_stat.st_mtime_ns == st.st_mtime_ns

    def test_all_steps_attempted(self):
        with tempfile.TemporaryDirectory() as tmp:
            st = self._source_stat(tmp)
            dest = Path(tmp) / "dest"
            dest.write_text("x")

            with patch("isnapshot.materialize.os.utime", side_effect=OSError("a")), \
                 patch("isnapshot.materialize.os.chown", side_effect=OSError("b")), \
                 patch("isnapshot.materialize.os.chmod", side_effect=OSError("c")) as mock_chmod:
                with pytest.raises(MetadataRestoreError) as exc_info:
                    restore_metadata(dest, st)

            assert exc_info.value.failed_steps == ["times", "ownership", "permissions"]
            mock_chmod.assert_called_once()

    def test_link_ownership(self):
        with tempfile.TemporaryDirectory() as tmp:
            link = Path(tmp) / "link"
            os.symlink("nowhere", link)
            restore_link_ownership(link, os.lstat(link))

    def test_link_ownership_failure(self):
        with tempfile.TemporaryDirectory() as tmp:
            link = Path(tmp) / "link"
            os.symlink("nowhere", link)
            with patch("isnapshot.materialize.os.lchown", side_effect=PermissionError("no")):
                with pytest.raises(MetadataRestoreError):
                    restore_link_ownership(link, os.lstat(link))

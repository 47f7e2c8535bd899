"""Filesystem primitives used to build a snapshot.

Each function materializes exactly one kind of entry or restores one piece of
metadata, so the walker can decide *what* to do and this module does it.
"""

from enum import Enum
from typing import List, Optional
import io
import logging
import os
import stat

from isnapshot.errors import IncompleteCopyError, MetadataRestoreError


logger = logging.getLogger(__name__)


class EntryKind(Enum):
    """Kind of a filesystem entry as reported by lstat."""
    DIRECTORY = "directory"
    REGULAR = "regular"
    SYMLINK = "symlink"
    FIFO = "fifo"
    CHAR_DEVICE = "char_device"
    BLOCK_DEVICE = "block_device"
    SOCKET = "socket"
    UNKNOWN = "unknown"

    @classmethod
    def from_mode(cls, mode: int) -> "EntryKind":
        if stat.S_ISDIR(mode):
            return cls.DIRECTORY
        if stat.S_ISREG(mode):
            return cls.REGULAR
        if stat.S_ISLNK(mode):
            return cls.SYMLINK
        if stat.S_ISFIFO(mode):
            return cls.FIFO
        if stat.S_ISCHR(mode):
            return cls.CHAR_DEVICE
        if stat.S_ISBLK(mode):
            return cls.BLOCK_DEVICE
        if stat.S_ISSOCK(mode):
            return cls.SOCKET
        return cls.UNKNOWN

    @property
    def is_special(self) -> bool:
        return self in _SPECIAL_KINDS


_SPECIAL_KINDS = frozenset({
    EntryKind.FIFO,
    EntryKind.CHAR_DEVICE,
    EntryKind.BLOCK_DEVICE,
    EntryKind.SOCKET,
})

_NODE_TYPES = {
    EntryKind.CHAR_DEVICE: stat.S_IFCHR,
    EntryKind.BLOCK_DEVICE: stat.S_IFBLK,
    EntryKind.SOCKET: stat.S_IFSOCK,
}


def ensure_directory(path, mode: int) -> None:
    """
    Create a directory and any missing ancestors.

    Does nothing if ``path`` is already a directory. Missing ancestors are
    created in order from the top down with the same ``mode``; the caller is
    expected to apply the directory's real mode afterwards.

    Raises:
        OSError: If a component cannot be created or is not a directory
    """
    path = os.fspath(path)
    if os.path.isdir(path):
        return

    prefix = os.sep if os.path.isabs(path) else ""
    for segment in path.split(os.sep):
        if not segment:
            continue
        prefix = os.path.join(prefix, segment)
        if os.path.isdir(prefix):
            continue
        os.mkdir(prefix, mode)
        logger.debug(f"mkdir {prefix}")


def copy_file(source, dest, mode: int, block_size: Optional[int] = None) -> int:
    """
    Stream a regular file into a newly created destination.

    The destination is opened with ``mode`` (subject to the umask; the real
    permissions are applied later by restore_metadata). Reads and writes both
    use ``block_size`` bytes, normally the source's preferred I/O size.

    Args:
        source: File to read
        dest: File to create or truncate
        mode: Permission bits for the new file
        block_size: Chunk size, defaults to io.DEFAULT_BUFFER_SIZE

    Returns:
        Number of bytes copied

    Raises:
        OSError: If either file cannot be opened, read or written
        IncompleteCopyError: If a write was short. The partial destination
            is left on disk.
    """
    if not block_size or block_size <= 0:
        block_size = io.DEFAULT_BUFFER_SIZE

    logger.debug(f"copy {dest} ...")

    copied = 0
    in_fd = os.open(source, os.O_RDONLY)
    try:
        out_fd = os.open(dest, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, stat.S_IMODE(mode))
        try:
            while True:
                chunk = os.read(in_fd, block_size)
                if not chunk:
                    break
                written = os.write(out_fd, chunk)
                if written != len(chunk):
                    logger.error(f"incomplete copy of file {source}")
                    raise IncompleteCopyError(source, copied + written, copied + len(chunk))
                copied += written
        finally:
            os.close(out_fd)
    finally:
        os.close(in_fd)

    return copied


def create_symlink(target: str, dest) -> None:
    """Create ``dest`` as a symlink holding ``target`` verbatim."""
    os.symlink(target, dest)


def link_to_previous(previous, dest) -> str:
    """
    Link ``dest`` to a file stored in the previous snapshot.

    If ``previous`` is itself a link left by an earlier unchanged
    generation, its target is used instead, so every link points straight
    at stored content and chains never grow past one level.

    Returns:
        The target the new link points at

    Raises:
        OSError: If the previous entry cannot be read or the link created
    """
    previous = os.fspath(previous)
    target = previous

    if stat.S_ISLNK(os.lstat(previous).st_mode):
        target = os.readlink(previous)

    logger.debug(f"mirror {target} ...")
    os.symlink(target, dest)
    return target


def create_special(dest, kind: EntryKind, mode: int, device: int = 0) -> None:
    """
    Recreate a fifo, device node or socket.

    Args:
        dest: Path to create
        kind: One of the special EntryKind members
        mode: Permission bits (file type bits are ignored)
        device: Device number for character and block devices

    Raises:
        ValueError: If ``kind`` is not a special kind
        OSError: If the node cannot be created
    """
    permissions = stat.S_IMODE(mode)

    if kind is EntryKind.FIFO:
        os.mkfifo(dest, permissions)
        logger.debug(f"fifo {dest}")
        return

    if kind not in _NODE_TYPES:
        raise ValueError(f"{kind.value} is not a special file kind")

    node_device = device if kind is not EntryKind.SOCKET else 0
    os.mknod(dest, _NODE_TYPES[kind] | permissions, node_device)
    logger.debug(f"node {dest}")


def restore_metadata(path, source_stat: os.stat_result) -> None:
    """
    Apply the source's timestamps, ownership and permissions to ``path``.

    Steps run in that order and all of them are attempted. If ownership
    cannot be changed the setuid and setgid bits are dropped from the mode
    applied in the last step.

    Raises:
        MetadataRestoreError: If any step failed
    """
    failed: List[str] = []
    mode = stat.S_IMODE(source_stat.st_mode)

    try:
        os.utime(path, ns=(source_stat.st_atime_ns, source_stat.st_mtime_ns))
    except OSError as e:
        logger.error(f"could not set time on {path}: {e}")
        failed.append("times")

    try:
        os.chown(path, source_stat.st_uid, source_stat.st_gid)
    except OSError as e:
        logger.error(f"could not set ownership on {path}: {e}")
        mode &= ~(stat.S_ISUID | stat.S_ISGID)
        failed.append("ownership")

    try:
        os.chmod(path, mode)
    except OSError as e:
        logger.error(f"could not set permissions on {path}: {e}")
        failed.append("permissions")

    if failed:
        raise MetadataRestoreError(path, failed)


def restore_link_ownership(path, source_stat: os.stat_result) -> None:
    """Apply the source's owner and group to a symlink itself."""
    try:
        os.lchown(path, source_stat.st_uid, source_stat.st_gid)
    except OSError as e:
        logger.error(f"unable to preserve ownership of {path}: {e}")
        raise MetadataRestoreError(path, ["ownership"]) from e

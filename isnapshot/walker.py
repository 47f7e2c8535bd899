"""Recursive snapshot walk.

The walker decides, for every entry under a source path, whether to copy it,
link it to the previous snapshot, or recreate it, and hands the actual work
to isnapshot.materialize.
"""

from dataclasses import dataclass
from typing import Optional
import logging
import os
import stat

from isnapshot.errors import UnsupportedFileTypeError
from isnapshot.exclude import ExclusionFilter
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
from isnapshot.paths import join_path


logger = logging.getLogger(__name__)


@dataclass
class WalkStats:
    """Byte and entry counters for a walk, merged bottom-up."""
    total_bytes: int = 0  # Size of every regular file seen
    copied_bytes: int = 0  # Size of regular files freshly copied
    files_copied: int = 0
    files_linked: int = 0
    directories: int = 0
    symlinks: int = 0
    special_files: int = 0

    def merge(self, other: "WalkStats") -> "WalkStats":
        """Add another walk's counters into this one and return self."""
        self.total_bytes += other.total_bytes
        self.copied_bytes += other.copied_bytes
        self.files_copied += other.files_copied
        self.files_linked += other.files_linked
        self.directories += other.directories
        self.symlinks += other.symlinks
        self.special_files += other.special_files
        return self


def _is_stored_copy(target: str, source: str, previous_root: str) -> bool:
    """
    True if ``target`` is where some snapshot beside ``previous_root`` stores ``source``.

    Links left by the unchanged-file optimization always have this form.
    A symlink that was itself backed up verbatim does not, and may point
    anywhere, including back into a live source tree.
    """
    if not os.path.isabs(target):
        return False

    backup_root = os.path.dirname(previous_root.rstrip(os.sep))
    snapshot_name = os.path.relpath(target, backup_root).split(os.sep, 1)[0]
    if snapshot_name in (os.curdir, os.pardir):
        return False

    return target == join_path(os.path.join(backup_root, snapshot_name), source)


class SnapshotWalker:
    """
    Walks a source tree into a new snapshot.

    Unchanged regular files (same nanosecond mtime as their stored copy in
    the previous snapshot) become symlinks to the stored copy. Everything
    else is materialized fresh with its metadata.

    Any failure propagates as an exception. Remaining siblings of the failed
    entry are skipped and nothing already written is removed.
    """

    def __init__(
        self,
        exclusion_filter: Optional[ExclusionFilter] = None,
        full_backup: bool = False,
    ):
        """
        Args:
            exclusion_filter: Filter consulted for every path before it is visited
            full_backup: If True, copy every regular file even when unchanged
        """
        self.exclusion_filter = exclusion_filter or ExclusionFilter()
        self.full_backup = full_backup

    def walk(
        self,
        source: str,
        new_root: str,
        previous_root: Optional[str] = None,
    ) -> WalkStats:
        """
        Materialize ``source`` beneath ``new_root``.

        Args:
            source: Source path, absolute or relative, exactly as given by the user
            new_root: Root directory of the snapshot being built
            previous_root: Root directory of the previous snapshot, if any

        Returns:
            WalkStats for this entry and everything below it

        Raises:
            OSError: On any stat, open, read, write or create failure
            SnapshotError: On short writes, metadata failures or unsupported types
        """
        source = os.fspath(source)
        new_root = os.fspath(new_root)
        if previous_root is not None:
            previous_root = os.fspath(previous_root)

        if self.exclusion_filter.should_exclude(source):
            logger.debug(f"exclude {source}")
            return WalkStats()

        try:
            source_stat = os.lstat(source)
        except OSError as e:
            logger.error(f"could not stat file {source}: {e}")
            raise

        dest = join_path(new_root, source)
        kind = EntryKind.from_mode(source_stat.st_mode)

        if kind is EntryKind.DIRECTORY:
            return self._walk_directory(source, dest, source_stat, new_root, previous_root)
        if kind is EntryKind.REGULAR:
            return self._process_regular(source, dest, previous_root, source_stat)
        if kind is EntryKind.SYMLINK:
            return self._process_symlink(source, dest, source_stat)
        if kind.is_special:
            return self._process_special(source, dest, kind, source_stat)

        logger.error(f"unrecognized file type for {source}")
        raise UnsupportedFileTypeError(source, source_stat.st_mode)

    def _walk_directory(
        self,
        source: str,
        dest: str,
        source_stat: os.stat_result,
        new_root: str,
        previous_root: Optional[str],
    ) -> WalkStats:
        # Owner rwx so the directory can be populated even if the source is read-only
        creation_mode = stat.S_IMODE(source_stat.st_mode) | stat.S_IRWXU

        saved_umask = os.umask(0)
        try:
            ensure_directory(dest, creation_mode)
        except OSError as e:
            logger.error(f"cannot create directory {dest}: {e}")
            raise
        finally:
            os.umask(saved_umask)

        try:
            names = sorted(os.listdir(source))
        except OSError as e:
            logger.error(f"could not open directory {source}: {e}")
            raise

        stats = WalkStats(directories=1)
        for name in names:
            child = self.walk(join_path(source, name), new_root, previous_root)
            stats.merge(child)

        restore_metadata(dest, source_stat)
        return stats

    def _process_regular(
        self,
        source: str,
        dest: str,
        previous_root: Optional[str],
        source_stat: os.stat_result,
    ) -> WalkStats:
        stats = WalkStats(total_bytes=source_stat.st_size)

        if self._is_unchanged(source, source_stat, previous_root):
            link_to_previous(join_path(previous_root, source), dest)
            stats.files_linked = 1
            return stats

        try:
            copy_file(source, dest, source_stat.st_mode, source_stat.st_blksize)
        except OSError as e:
            logger.error(f"unable to copy {source} to {dest}: {e}")
            raise
        restore_metadata(dest, source_stat)

        stats.copied_bytes = source_stat.st_size
        stats.files_copied = 1
        return stats

    def _is_unchanged(
        self,
        source: str,
        source_stat: os.stat_result,
        previous_root: Optional[str],
    ) -> bool:
        """True if the previous snapshot stores this file with the same mtime."""
        if previous_root is None or self.full_backup:
            return False

        previous = join_path(previous_root, source)
        try:
            previous_stat = os.lstat(previous)
            if stat.S_ISLNK(previous_stat.st_mode):
                target = os.readlink(previous)
                if not _is_stored_copy(target, source, previous_root):
                    return False
                previous_stat = os.lstat(target)
        except OSError:
            return False

        if not stat.S_ISREG(previous_stat.st_mode):
            return False
        return previous_stat.st_mtime_ns == source_stat.st_mtime_ns

    def _process_symlink(
        self,
        source: str,
        dest: str,
        source_stat: os.stat_result,
    ) -> WalkStats:
        try:
            target = os.readlink(source)
        except OSError as e:
            logger.error(f"cannot read symlink {source}: {e}")
            raise

        try:
            create_symlink(target, dest)
        except OSError as e:
            logger.error(f"cannot create symlink {dest}: {e}")
            raise

        restore_link_ownership(dest, source_stat)
        logger.debug(f"symlink {source}")
        return WalkStats(symlinks=1)

    def _process_special(
        self,
        source: str,
        dest: str,
        kind: EntryKind,
        source_stat: os.stat_result,
    ) -> WalkStats:
        try:
            create_special(dest, kind, source_stat.st_mode, source_stat.st_rdev)
        except OSError as e:
            logger.error(f"unable to create {kind.value} {dest}: {e}")
            raise

        restore_metadata(dest, source_stat)
        return WalkStats(special_files=1)

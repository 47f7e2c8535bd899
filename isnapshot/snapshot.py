"""Snapshot engine for isnapshot.

This module provides the SnapshotEngine class that creates incremental
snapshots: unchanged files are symlinked to the previous snapshot, changed
files and everything else are copied fresh.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence
import logging
import os
import time

from isnapshot.errors import SnapshotError, SnapshotExistsError
from isnapshot.exclude import ExclusionFilter
from isnapshot.locator import locate_previous
from isnapshot.materialize import ensure_directory
from isnapshot.paths import join_path
from isnapshot.walker import SnapshotWalker, WalkStats


logger = logging.getLogger(__name__)


DEFAULT_DATE_FORMAT = "%m-%d-%y-%H-%M-%S"


@dataclass
class SnapshotResult:
    """Result of a snapshot operation."""
    success: bool
    snapshot_path: Optional[Path]
    previous_path: Optional[Path]
    duration_seconds: float
    error_message: Optional[str]
    stats: WalkStats = field(default_factory=WalkStats)

    @property
    def total_bytes(self) -> int:
        return self.stats.total_bytes

    @property
    def copied_bytes(self) -> int:
        return self.stats.copied_bytes


class SnapshotEngine:
    """
    Creates timestamp-named incremental snapshots under a backup root.

    Each run creates ``<backup_root>/<now formatted with date_format>`` and
    walks every source into it, using the most recent existing snapshot as
    the previous generation.
    """

    def __init__(
        self,
        backup_root: Path,
        date_format: str = DEFAULT_DATE_FORMAT,
        exclude_pattern: Optional[str] = None,
        full_backup: bool = False,
    ):
        """
        Initialize the snapshot engine.

        Args:
            backup_root: Directory holding all snapshots. Made absolute so
                links into the previous snapshot resolve from anywhere.
            date_format: strftime format used to name snapshots
            exclude_pattern: Optional glob pattern of source paths to skip
            full_backup: If True, copy every file instead of linking unchanged ones
        """
        self.backup_root = Path(os.path.abspath(backup_root))
        self.date_format = date_format
        self.walker = SnapshotWalker(
            exclusion_filter=ExclusionFilter(exclude_pattern),
            full_backup=full_backup,
        )

    def _generate_timestamp(self, now: Optional[datetime] = None) -> str:
        """Format ``now`` (default: the current local time) as a snapshot name."""
        return (now or datetime.now()).strftime(self.date_format)

    def find_previous_snapshot(self) -> Optional[Path]:
        """
        Find the most recent snapshot to link against.

        An unreadable backup root is logged and treated as having no
        previous snapshot, which makes the run a full copy.
        """
        try:
            return locate_previous(self.backup_root, self.date_format)
        except OSError as e:
            logger.error(f"could not open root directory {self.backup_root}: {e}")
            return None

    def create_snapshot(
        self,
        sources: Sequence,
        now: Optional[datetime] = None,
    ) -> SnapshotResult:
        """
        Create a new incremental snapshot.

        Process:
        1. Locate the previous snapshot
        2. Name the new snapshot and refuse if it already exists
        3. Create the snapshot root
        4. Walk each source in order, stopping at the first failure

        A failed run leaves whatever was materialized on disk.

        Args:
            sources: Source paths, each mirrored beneath the snapshot as given
            now: Timestamp to name the snapshot with (default: current time)

        Returns:
            SnapshotResult with success status and byte counters
        """
        start_time = time.time()
        stats = WalkStats()

        previous = self.find_previous_snapshot()
        snapshot_path = self.backup_root / self._generate_timestamp(now)

        logger.info(f"backing up to {snapshot_path}")

        try:
            if os.path.lexists(snapshot_path):
                raise SnapshotExistsError(snapshot_path)

            ensure_directory(snapshot_path, 0o755)

            if previous is not None:
                logger.info(f"using previous backup at {previous}")

            for source in sources:
                source = os.fspath(source)
                dest = join_path(snapshot_path, source)
                logger.debug(f"processing source {source} -> {dest}")
                # The walk only creates the source itself, not its mirrored parents
                ensure_directory(os.path.dirname(dest.rstrip(os.sep)), 0o755)
                stats.merge(self.walker.walk(
                    source,
                    str(snapshot_path),
                    str(previous) if previous is not None else None,
                ))
        except (OSError, SnapshotError) as e:
            logger.error(f"snapshot {snapshot_path} failed: {e}")
            return SnapshotResult(
                success=False,
                snapshot_path=snapshot_path,
                previous_path=previous,
                duration_seconds=time.time() - start_time,
                error_message=str(e),
                stats=stats,
            )

        return SnapshotResult(
            success=True,
            snapshot_path=snapshot_path,
            previous_path=previous,
            duration_seconds=time.time() - start_time,
            error_message=None,
            stats=stats,
        )

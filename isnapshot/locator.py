"""Previous snapshot lookup.

Snapshot directories are named with ``datetime.now().strftime(date_format)``.
A child of the backup root is a snapshot only if its whole name parses back
with the same format; anything else (notes, lock files, half-typed names)
is ignored.
"""

from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple
import logging
import os

from isnapshot.errors import NameFormatError


logger = logging.getLogger(__name__)


def parse_snapshot_name(name: str, date_format: str) -> datetime:
    """
    Strictly parse a snapshot directory name.

    ``strptime`` already refuses unconverted trailing characters, so a
    match means the entire name was consumed.

    Raises:
        NameFormatError: If the name does not match the format
    """
    try:
        return datetime.strptime(name, date_format)
    except ValueError:
        raise NameFormatError(name, date_format) from None


def list_snapshots(backup_root: Path, date_format: str) -> List[Tuple[datetime, Path]]:
    """
    List every snapshot directory under the backup root, oldest first.

    Snapshots sharing an instant are ordered by name, so the
    lexicographically greatest name sorts last among them.

    Args:
        backup_root: Directory holding the snapshots
        date_format: strftime format the snapshot names were created with

    Returns:
        List of (timestamp, path) tuples. Empty if the root does not exist.

    Raises:
        OSError: If the backup root exists but cannot be read
    """
    backup_root = Path(backup_root)
    snapshots = []

    try:
        with os.scandir(backup_root) as it:
            entries = list(it)
    except FileNotFoundError:
        logger.debug(f"Backup root {backup_root} does not exist yet")
        return snapshots

    for entry in entries:
        try:
            timestamp = parse_snapshot_name(entry.name, date_format)
        except NameFormatError:
            continue
        if not entry.is_dir(follow_symlinks=False):
            continue
        snapshots.append((timestamp, entry.name))

    snapshots.sort()
    return [(timestamp, backup_root / name) for timestamp, name in snapshots]


def locate_previous(backup_root: Path, date_format: str) -> Optional[Path]:
    """
    Find the most recent snapshot under the backup root.

    Returns:
        Path to the latest snapshot, or None if there is none

    Raises:
        OSError: If the backup root exists but cannot be read
    """
    snapshots = list_snapshots(backup_root, date_format)
    if not snapshots:
        return None
    return snapshots[-1][1]

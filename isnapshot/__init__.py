"""isnapshot - Incremental snapshots with symlinks to unchanged files."""

__version__ = "1.0.0"

from isnapshot.errors import (
    SnapshotError,
    NameFormatError,
    SnapshotExistsError,
    UnsupportedFileTypeError,
    IncompleteCopyError,
    MetadataRestoreError,
)
from isnapshot.paths import join_path
from isnapshot.exclude import ExclusionFilter
from isnapshot.locator import (
    parse_snapshot_name,
    list_snapshots,
    locate_previous,
)
from isnapshot.materialize import (
    EntryKind,
    ensure_directory,
    copy_file,
    create_symlink,
    link_to_previous,
    create_special,
    restore_metadata,
    restore_link_ownership,
)
from isnapshot.walker import SnapshotWalker, WalkStats
from isnapshot.snapshot import (
    DEFAULT_DATE_FORMAT,
    SnapshotEngine,
    SnapshotResult,
)
from isnapshot.config import (
    Configuration,
    ConfigurationError,
    LoggingConfig,
    ValidationError,
    parse_config,
    parse_config_string,
    validate_date_format,
)
from isnapshot.lock import LockManager, LockError
from isnapshot.logger import (
    LoggingError,
    setup_logging,
    get_logger,
)
from isnapshot.backup import (
    BackupResult,
    run_backup,
    EXIT_SUCCESS,
    EXIT_CONFIG_ERROR,
    EXIT_LOCK_ERROR,
    EXIT_SNAPSHOT_ERROR,
)

__all__ = [
    "SnapshotError",
    "NameFormatError",
    "SnapshotExistsError",
    "UnsupportedFileTypeError",
    "IncompleteCopyError",
    "MetadataRestoreError",
    "join_path",
    "ExclusionFilter",
    "parse_snapshot_name",
    "list_snapshots",
    "locate_previous",
    "EntryKind",
    "ensure_directory",
    "copy_file",
    "create_symlink",
    "link_to_previous",
    "create_special",
    "restore_metadata",
    "restore_link_ownership",
    "SnapshotWalker",
    "WalkStats",
    "DEFAULT_DATE_FORMAT",
    "SnapshotEngine",
    "SnapshotResult",
    "Configuration",
    "ConfigurationError",
    "LoggingConfig",
    "ValidationError",
    "parse_config",
    "parse_config_string",
    "validate_date_format",
    "LockManager",
    "LockError",
    "LoggingError",
    "setup_logging",
    "get_logger",
    "BackupResult",
    "run_backup",
    "EXIT_SUCCESS",
    "EXIT_CONFIG_ERROR",
    "EXIT_LOCK_ERROR",
    "EXIT_SNAPSHOT_ERROR",
]

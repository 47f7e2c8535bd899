"""Main snapshot orchestration for isnapshot.

This module ties the components together for one run:
- Set up logging
- Validate sources
- Acquire the backup-root lock
- Create the snapshot
- Release the lock

The lock is always released, even when the snapshot fails. A failed
snapshot is left on disk as far as it got.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from isnapshot.config import (
    Configuration,
    ConfigurationError,
    ValidationError,
    parse_config,
)
from isnapshot.lock import LockError, LockManager
from isnapshot.logger import (
    LoggingError,
    get_logger,
    log_snapshot_completion,
    log_snapshot_error,
    log_snapshot_start,
    setup_logging,
)
from isnapshot.snapshot import SnapshotEngine, SnapshotResult


# Exit codes
EXIT_SUCCESS = 0
EXIT_CONFIG_ERROR = 1
EXIT_LOCK_ERROR = 2
EXIT_SNAPSHOT_ERROR = 4


@dataclass
class BackupResult:
    """Result of a backup run."""
    success: bool
    exit_code: int
    snapshot_result: Optional[SnapshotResult] = None
    error_message: Optional[str] = None


def run_backup(
    config: Optional[Configuration] = None,
    config_path: Optional[Path] = None,
    verbose: bool = False,
    lock_timeout: float = 5,
) -> BackupResult:
    """
    Run a complete snapshot.

    Args:
        config: Pre-loaded Configuration object. If provided, config_path is ignored.
        config_path: Path to configuration file. If None, uses default path.
        verbose: Log every materialized entry
        lock_timeout: Seconds to wait for another run on the same backup root

    Returns:
        BackupResult with success status, exit code and the snapshot result
    """
    if config is None:
        try:
            config = parse_config(config_path)
        except (ConfigurationError, ValidationError) as e:
            return BackupResult(
                success=False,
                exit_code=EXIT_CONFIG_ERROR,
                error_message=str(e),
            )

    try:
        logger = setup_logging(config.logging, verbose=verbose)
    except LoggingError as e:
        logger = get_logger()
        logger.warning(f"Failed to set up logging: {e}")

    if not config.sources:
        error_msg = "not enough arguments: no sources given"
        log_snapshot_error(logger, Exception(error_msg), "argument validation")
        return BackupResult(
            success=False,
            exit_code=EXIT_CONFIG_ERROR,
            error_message=error_msg,
        )

    log_snapshot_start(logger, config.sources, config.backup_root)

    engine = SnapshotEngine(
        backup_root=config.backup_root,
        date_format=config.date_format,
        exclude_pattern=config.exclude_pattern,
        full_backup=config.full_backup,
    )
    lock_manager = LockManager(engine.backup_root, timeout=lock_timeout)

    try:
        lock_manager.acquire()
        logger.debug("Lock acquired successfully")
    except LockError as e:
        log_snapshot_error(logger, e, "lock acquisition")
        return BackupResult(
            success=False,
            exit_code=EXIT_LOCK_ERROR,
            error_message=str(e),
        )

    try:
        snapshot_result = engine.create_snapshot(config.sources)
    finally:
        lock_manager.release()
        logger.debug("Lock released")

    if not snapshot_result.success:
        log_snapshot_error(
            logger,
            Exception(snapshot_result.error_message or "Unknown error"),
            "snapshot creation",
        )
        return BackupResult(
            success=False,
            exit_code=EXIT_SNAPSHOT_ERROR,
            snapshot_result=snapshot_result,
            error_message=snapshot_result.error_message,
        )

    stats = snapshot_result.stats
    log_snapshot_completion(
        logger,
        duration_seconds=snapshot_result.duration_seconds,
        files_copied=stats.files_copied,
        files_linked=stats.files_linked,
        copied_bytes=stats.copied_bytes,
        total_bytes=stats.total_bytes,
        snapshot_path=snapshot_result.snapshot_path,
    )

    return BackupResult(
        success=True,
        exit_code=EXIT_SUCCESS,
        snapshot_result=snapshot_result,
    )

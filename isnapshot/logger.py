"""Logging configuration for isnapshot.

This module provides logging setup and utility functions for snapshot runs.
Console output is always enabled; a main log file and an error-only log file
can be added, both rotated with gzip compression.
"""

import gzip
import logging
import os
import shutil
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Sequence

from isnapshot.config import LoggingConfig


# Logger name for the isnapshot package
LOGGER_NAME = "isnapshot"

# Valid log levels
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


class LoggingError(Exception):
    """Raised when logging setup fails."""
    pass


class GzipRotatingFileHandler(RotatingFileHandler):
    """
    Rotating file handler that compresses rotated files with gzip.

    Rotated files are named with a .gz extension.
    """

    def rotation_filename(self, default_name: str) -> str:
        return default_name + ".gz"

    def rotate(self, source: str, dest: str) -> None:
        """
        Compress the current log file into ``dest`` and remove it.

        If compression fails the file is renamed without the .gz suffix.
        """
        if not os.path.exists(source):
            return

        try:
            with open(source, 'rb') as f_in:
                with gzip.open(dest, 'wb') as f_out:
                    shutil.copyfileobj(f_in, f_out)
            os.remove(source)
        except OSError:
            if os.path.exists(source):
                fallback_dest = dest[:-3] if dest.endswith('.gz') else dest
                try:
                    os.rename(source, fallback_dest)
                except OSError:
                    pass  # Best effort - don't fail logging


def _ensure_log_directory(log_path: Path) -> None:
    """Ensure the parent directory for a log file exists."""
    log_dir = log_path.parent
    if not log_dir.exists():
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise LoggingError(f"Failed to create log directory {log_dir}: {e}")


def _get_log_level(level_str: str) -> int:
    """Convert log level string to logging constant."""
    level_str = level_str.upper()
    if level_str not in VALID_LOG_LEVELS:
        raise LoggingError(
            f"Invalid log level '{level_str}'. Must be one of: {', '.join(sorted(VALID_LOG_LEVELS))}"
        )
    return getattr(logging, level_str)


def setup_logging(
    config: Optional[LoggingConfig] = None,
    verbose: bool = False,
) -> logging.Logger:
    """
    Configure logging for isnapshot.

    Sets up logging with:
    - Console output at the configured level (DEBUG when verbose)
    - A rotating file handler for general logs, if log_file is set
    - A rotating file handler for errors only, if error_log_file is set

    Args:
        config: LoggingConfig object with settings. Defaults to LoggingConfig().
        verbose: Log every materialized entry to the console

    Returns:
        Configured logger instance

    Raises:
        LoggingError: If log directory cannot be created or level is invalid
    """
    if config is None:
        config = LoggingConfig()

    log_level = logging.DEBUG if verbose else _get_log_level(config.level)

    logger = logging.getLogger(LOGGER_NAME)

    # Clear any existing handlers to avoid duplicates
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(logging.DEBUG)  # Allow all levels, handlers will filter

    detailed_formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    if config.log_file is not None:
        log_file = Path(os.path.expanduser(str(config.log_file)))
        _ensure_log_directory(log_file)
        file_handler = GzipRotatingFileHandler(
            log_file,
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(detailed_formatter)
        logger.addHandler(file_handler)

    if config.error_log_file is not None:
        error_log_file = Path(os.path.expanduser(str(config.error_log_file)))
        _ensure_log_directory(error_log_file)
        error_handler = GzipRotatingFileHandler(
            error_log_file,
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
            encoding="utf-8",
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(detailed_formatter)
        logger.addHandler(error_handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(detailed_formatter)
    logger.addHandler(console_handler)

    return logger


def get_logger() -> logging.Logger:
    """Get the isnapshot logger instance."""
    return logging.getLogger(LOGGER_NAME)


def format_size(size_bytes: int) -> str:
    """Format size in bytes to human-readable string."""
    if size_bytes >= 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024 * 1024):.2f} GB"
    elif size_bytes >= 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.2f} MB"
    elif size_bytes >= 1024:
        return f"{size_bytes / 1024:.2f} KB"
    return f"{size_bytes} bytes"


def log_snapshot_start(
    logger: logging.Logger,
    sources: Sequence,
    backup_root: Path,
) -> None:
    """Log the start of a snapshot run."""
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    sources_str = ", ".join(str(s) for s in sources)
    logger.info(f"Snapshot started at {timestamp}")
    logger.info(f"Sources: {sources_str}")
    logger.info(f"Backup root: {backup_root}")


def log_snapshot_completion(
    logger: logging.Logger,
    duration_seconds: float,
    files_copied: int,
    files_linked: int,
    copied_bytes: int,
    total_bytes: int,
    snapshot_path: Optional[Path] = None,
) -> None:
    """Log the completion of a snapshot run."""
    logger.info("Snapshot completed successfully")
    logger.info(f"Duration: {duration_seconds:.2f} seconds")
    logger.info(f"Files copied: {files_copied}, linked: {files_linked}")
    logger.info(f"Copied {format_size(copied_bytes)} of {format_size(total_bytes)}")
    if snapshot_path:
        logger.info(f"Snapshot: {snapshot_path}")


def log_snapshot_error(
    logger: logging.Logger,
    error: Exception,
    context: Optional[str] = None,
) -> None:
    """Log a snapshot failure, optionally naming the step that failed."""
    if context:
        logger.error(f"Snapshot failed during {context}: {error}")
    else:
        logger.error(f"Snapshot failed: {error}")

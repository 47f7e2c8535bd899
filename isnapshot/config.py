"""Configuration management for isnapshot.

This module provides dataclasses for configuration and functions for
parsing TOML configuration files.
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional
import os
import tomllib

from isnapshot.errors import NameFormatError
from isnapshot.locator import parse_snapshot_name
from isnapshot.snapshot import DEFAULT_DATE_FORMAT


class ConfigurationError(Exception):
    """Raised when configuration file is missing or malformed."""
    pass


class ValidationError(Exception):
    """Raised when configuration values have invalid types."""
    pass


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"  # "DEBUG", "INFO", "WARNING", "ERROR"
    log_file: Optional[Path] = None  # None = console only
    error_log_file: Optional[Path] = None
    log_max_size_mb: int = 10  # Maximum log file size in MB before rotation
    log_backup_count: int = 5  # Number of rotated log files to keep

    @property
    def log_max_bytes(self) -> int:
        """Return max size in bytes for use with RotatingFileHandler."""
        return self.log_max_size_mb * 1024 * 1024


@dataclass
class Configuration:
    """Main configuration for isnapshot."""
    backup_root: Path
    sources: List[str]  # Kept verbatim, they decide the layout inside the snapshot
    exclude_pattern: Optional[str] = None
    date_format: str = DEFAULT_DATE_FORMAT
    full_backup: bool = False
    count_bytes: bool = False
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Default config file path
DEFAULT_CONFIG_PATH = Path.home() / ".config/isnapshot/config.toml"

# Required keys in configuration
REQUIRED_KEYS = ["backup_root", "sources"]


def _validate_type(value: Any, expected_type: type, key: str) -> None:
    """Validate that a value has the expected type."""
    if not isinstance(value, expected_type):
        raise ValidationError(
            f"Key '{key}' has invalid type: expected {expected_type.__name__}, "
            f"got {type(value).__name__}"
        )


def validate_date_format(date_format: str) -> None:
    """
    Check that a date format can name snapshots.

    The formatted name must not contain a path separator and must parse
    back with the same format, otherwise the next run would never find
    the snapshot this one creates.

    Raises:
        ConfigurationError: If the format cannot be used
    """
    if not date_format:
        raise ConfigurationError("Date format must not be empty")

    try:
        sample = datetime(2006, 1, 2, 15, 4, 5).strftime(date_format)
    except ValueError as e:
        raise ConfigurationError(f"Invalid date format '{date_format}': {e}")

    if os.sep in sample or sample in (".", ".."):
        raise ConfigurationError(
            f"Date format '{date_format}' produces '{sample}', which is not a directory name"
        )

    try:
        parse_snapshot_name(sample, date_format)
    except NameFormatError:
        raise ConfigurationError(
            f"Date format '{date_format}' produces names that cannot be parsed back"
        )


def _parse_logging_config(data: Dict[str, Any]) -> LoggingConfig:
    """Parse logging configuration from dict."""
    logging_data = data.get("logging", {})
    _validate_type(logging_data, dict, "logging")

    level = logging_data.get("level", "INFO")
    _validate_type(level, str, "logging.level")

    log_file = logging_data.get("log_file")
    if log_file is not None:
        _validate_type(log_file, str, "logging.log_file")

    error_log_file = logging_data.get("error_log_file")
    if error_log_file is not None:
        _validate_type(error_log_file, str, "logging.error_log_file")

    log_max_size_mb = logging_data.get("log_max_size_mb", 10)
    _validate_type(log_max_size_mb, int, "logging.log_max_size_mb")

    log_backup_count = logging_data.get("log_backup_count", 5)
    _validate_type(log_backup_count, int, "logging.log_backup_count")

    return LoggingConfig(
        level=level,
        log_file=Path(log_file).expanduser() if log_file else None,
        error_log_file=Path(error_log_file).expanduser() if error_log_file else None,
        log_max_size_mb=log_max_size_mb,
        log_backup_count=log_backup_count,
    )


def parse_config_string(toml_content: str) -> Configuration:
    """
    Parse TOML string into Configuration object.

    Args:
        toml_content: TOML formatted string

    Returns:
        Configuration object

    Raises:
        ConfigurationError: If required key is missing or the date format is unusable
        ValidationError: If value has wrong type
    """
    try:
        data = tomllib.loads(toml_content)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML format: {e}")

    # Get main section (may be nested under [main] or at root)
    main_data = data.get("main", data)

    for key in REQUIRED_KEYS:
        if key not in main_data:
            raise ConfigurationError(f"Missing required configuration key: '{key}'")

    backup_root = main_data["backup_root"]
    _validate_type(backup_root, str, "backup_root")

    sources = main_data["sources"]
    _validate_type(sources, list, "sources")
    for i, src in enumerate(sources):
        _validate_type(src, str, f"sources[{i}]")

    exclude_pattern = main_data.get("exclude_pattern")
    if exclude_pattern is not None:
        _validate_type(exclude_pattern, str, "exclude_pattern")

    date_format = main_data.get("date_format", DEFAULT_DATE_FORMAT)
    _validate_type(date_format, str, "date_format")
    validate_date_format(date_format)

    full_backup = main_data.get("full_backup", False)
    _validate_type(full_backup, bool, "full_backup")

    count_bytes = main_data.get("count_bytes", False)
    _validate_type(count_bytes, bool, "count_bytes")

    return Configuration(
        backup_root=Path(backup_root).expanduser(),
        sources=list(sources),
        exclude_pattern=exclude_pattern,
        date_format=date_format,
        full_backup=full_backup,
        count_bytes=count_bytes,
        logging=_parse_logging_config(data),
    )


def parse_config(config_path: Optional[Path] = None) -> Configuration:
    """
    Parse TOML configuration file into Configuration object.

    Args:
        config_path: Path to config file. Defaults to ~/.config/isnapshot/config.toml

    Returns:
        Configuration object

    Raises:
        ConfigurationError: If file doesn't exist or required key missing
        ValidationError: If value has wrong type
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        raise ConfigurationError(
            f"Configuration file not found: {config_path}"
        )

    try:
        content = config_path.read_text()
    except PermissionError:
        raise ConfigurationError(
            f"Permission denied reading configuration file: {config_path}"
        )
    except OSError as e:
        raise ConfigurationError(
            f"Error reading configuration file {config_path}: {e}"
        )

    return parse_config_string(content)

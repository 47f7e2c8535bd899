"""Command-line interface for isnapshot.

Usage: isnapshot [OPTION] SOURCE... DESTINATION

Each run creates DESTINATION/<timestamp>/ holding every SOURCE. Files that
did not change since the previous snapshot are symlinked to it instead of
copied. Settings can also come from a TOML file given with --config.
"""

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from isnapshot import __version__
from isnapshot.backup import EXIT_CONFIG_ERROR, EXIT_SUCCESS, run_backup
from isnapshot.config import (
    Configuration,
    ConfigurationError,
    ValidationError,
    parse_config,
    validate_date_format,
)
from isnapshot.snapshot import DEFAULT_DATE_FORMAT


EXIT_GENERAL_ERROR = 1


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser."""
    parser = argparse.ArgumentParser(
        prog='isnapshot',
        description='Incremental snapshots: copy changed files, symlink unchanged '
                    'ones to the previous snapshot.',
        usage='%(prog)s [OPTION] SOURCE... DESTINATION',
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )
    parser.add_argument(
        'paths',
        nargs='*',
        metavar='PATH',
        help='One or more sources followed by the backup destination'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Show verbose information'
    )
    parser.add_argument(
        '--full', '-f',
        action='store_true',
        default=None,
        help='Perform full backup. Default is incremental.'
    )
    parser.add_argument(
        '--count-bytes', '-c',
        action='store_true',
        default=None,
        help='Count the number of bytes copied compared to total backup'
    )
    parser.add_argument(
        '--date-format', '-d',
        metavar='FORMAT',
        help=f'Set backup folder date format (default {DEFAULT_DATE_FORMAT.replace("%", "%%")})'
    )
    parser.add_argument(
        '--exclude', '-e',
        metavar='PATTERN',
        help='Define exclude pattern to exclude files from snapshot'
    )
    parser.add_argument(
        '--config',
        type=Path,
        metavar='PATH',
        help='Read settings from a TOML config file; options given here override it'
    )
    return parser


def build_config(args: argparse.Namespace) -> Configuration:
    """
    Build the run configuration from parsed arguments.

    Raises:
        ConfigurationError: If there are not enough paths or the date format is unusable
        ValidationError: If the config file has values of the wrong type
    """
    if args.config is not None:
        config = parse_config(args.config)
    else:
        config = None

    if len(args.paths) >= 2:
        sources = list(args.paths[:-1])
        backup_root = Path(args.paths[-1])
        if config is None:
            config = Configuration(backup_root=backup_root, sources=sources)
        else:
            config = replace(config, backup_root=backup_root, sources=sources)
    elif args.paths or config is None:
        raise ConfigurationError("not enough arguments")

    overrides = {}
    if args.full is not None:
        overrides["full_backup"] = args.full
    if args.count_bytes is not None:
        overrides["count_bytes"] = args.count_bytes
    if args.exclude is not None:
        overrides["exclude_pattern"] = args.exclude
    if args.date_format is not None:
        validate_date_format(args.date_format)
        overrides["date_format"] = args.date_format

    return replace(config, **overrides)


def main(argv: Optional[list] = None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parser = create_parser()
    args = parser.parse_intermixed_args(argv)

    try:
        config = build_config(args)
    except (ConfigurationError, ValidationError) as e:
        print(f"error: {e}", file=sys.stderr)
        parser.print_usage(sys.stderr)
        return EXIT_CONFIG_ERROR

    try:
        result = run_backup(config=config, verbose=args.verbose)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130  # Standard exit code for SIGINT

    if not result.success:
        print(f"error: {result.error_message}", file=sys.stderr)
        return result.exit_code or EXIT_GENERAL_ERROR

    if config.count_bytes and result.snapshot_result is not None:
        print(
            f"Copied {result.snapshot_result.copied_bytes} of "
            f"{result.snapshot_result.total_bytes} bytes total in backup."
        )

    return EXIT_SUCCESS


if __name__ == "__main__":
    sys.exit(main())

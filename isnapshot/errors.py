"""Exceptions raised by the snapshot engine.

I/O failures are left as the built-in ``OSError`` family. Everything below
describes a failure mode that has no natural ``OSError`` counterpart.
"""

from typing import Sequence


class SnapshotError(RuntimeError):
    """Base exception for snapshot failures."""
    pass


class NameFormatError(SnapshotError, ValueError):
    """Raised when a directory name does not parse as a snapshot name."""

    def __init__(self, name: str, date_format: str):
        super().__init__(f"'{name}' does not match snapshot format '{date_format}'")
        self.name = name
        self.date_format = date_format


class SnapshotExistsError(SnapshotError):
    """Raised when the destination snapshot directory already exists."""

    def __init__(self, path):
        super().__init__(f"backup already exists for {path}")
        self.path = path


class UnsupportedFileTypeError(SnapshotError):
    """Raised for entries that are not a directory, file, link or special file."""

    def __init__(self, path, mode: int):
        super().__init__(f"unrecognized file type for {path} (mode {mode:#o})")
        self.path = path
        self.mode = mode


class IncompleteCopyError(SnapshotError):
    """Raised when fewer bytes were written than were read."""

    def __init__(self, source, written: int, expected: int):
        super().__init__(
            f"incomplete copy of file {source}: wrote {written} of {expected} bytes"
        )
        self.source = source
        self.written = written
        self.expected = expected


class MetadataRestoreError(SnapshotError):
    """Raised when times, ownership or permissions could not be restored."""

    def __init__(self, path, failed_steps: Sequence[str]):
        steps = ", ".join(failed_steps)
        super().__init__(f"could not restore {steps} on {path}")
        self.path = path
        self.failed_steps = list(failed_steps)

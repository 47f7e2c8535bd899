"""Exclusion pattern matching for snapshot sources."""

from fnmatch import fnmatchcase
from typing import Optional
import os


class ExclusionFilter:
    """
    Matches source paths against a single shell glob pattern.

    The pattern is matched against the path exactly as the walker sees it,
    so an absolute source argument yields absolute paths here and a relative
    one yields relative paths. ``*`` also matches ``/``.
    """

    def __init__(self, pattern: Optional[str] = None):
        self.pattern = pattern or None

    def should_exclude(self, path) -> bool:
        if self.pattern is None:
            return False
        return fnmatchcase(os.fspath(path), self.pattern)

    def __repr__(self) -> str:
        return f"ExclusionFilter({self.pattern!r})"

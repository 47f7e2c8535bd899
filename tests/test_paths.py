"""Unit tests for path joining."""

from isnapshot.paths import join_path


class TestJoinPath:
    """Tests for join_path."""

    def test_adds_separator(self):
        assert join_path("/backup/run1", "home") == "/backup/run1/home"

    def test_keeps_single_trailing_separator(self):
        assert join_path("/backup/run1/", "home") == "/backup/run1/home"

    def test_absolute_name_lands_under_base(self):
        """An absolute source path is nested beneath the snapshot root."""
        assert join_path("/backup/run1", "/home/me/src") == "/backup/run1/home/me/src"

    def test_strips_repeated_leading_separators(self):
        assert join_path("/backup", "//etc/hosts") == "/backup/etc/hosts"

    def test_relative_name(self):
        assert join_path("run1", "dir/a.txt") == "run1/dir/a.txt"

    def test_accepts_path_objects(self):
        from pathlib import Path
        assert join_path(Path("/backup"), Path("/src")) == "/backup/src"

    def test_empty_base(self):
        assert join_path("", "dir") == "dir"

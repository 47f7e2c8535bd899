"""Path helpers shared by the locator and the walker."""

import os


def join_path(path: str, filename: str) -> str:
    """
    Join a base path and a name with exactly one separator.

    Leading separators are stripped from ``filename`` so that an absolute
    source path lands beneath ``path`` instead of replacing it, which is
    how ``/home/me/src`` ends up at ``<snapshot>/home/me/src``.

    Args:
        path: Base directory
        filename: Name or relative/absolute path to append

    Returns:
        The joined path as a string
    """
    path = os.fspath(path)
    filename = os.fspath(filename).lstrip(os.sep)

    if not path:
        return filename
    if path.endswith(os.sep):
        return path + filename
    return path + os.sep + filename

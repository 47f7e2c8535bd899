"""Lock management for isnapshot.

This module provides the LockManager class that keeps two runs from writing
into the same backup root at once, using fcntl.flock with PID tracking.
"""

import fcntl
import os
import time
from pathlib import Path
from typing import Optional


# Lock file name inside the backup root. Never parses as a snapshot name.
LOCK_FILE_NAME = ".isnapshot.lock"


class LockError(Exception):
    """Raised when lock cannot be acquired."""
    pass


class LockManager:
    """
    Manages the exclusive lock for a backup root.

    The lock is a single atomic flock on ``<backup_root>/.isnapshot.lock``;
    the holder's PID is written into the file for diagnostics.

    Implements context manager protocol for safe lock handling.
    """

    def __init__(self, backup_root: Path, timeout: float = 5):
        """
        Initialize LockManager.

        Args:
            backup_root: Backup root to lock. Created if missing.
            timeout: Timeout in seconds for acquiring lock. Default 5 seconds.
        """
        self.lock_path = Path(backup_root) / LOCK_FILE_NAME
        self.timeout = timeout
        self._lock_fd: Optional[int] = None

    def acquire(self) -> bool:
        """
        Acquire the exclusive lock, retrying until the timeout expires.

        Returns True if lock acquired.

        Raises:
            LockError: If the lock file cannot be opened or another process
                holds the lock past the timeout
        """
        try:
            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            self._lock_fd = os.open(
                str(self.lock_path),
                os.O_RDWR | os.O_CREAT,
                0o644
            )
        except OSError as e:
            raise LockError(f"Cannot open lock file {self.lock_path}: {e}")

        start_time = time.time()
        while True:
            try:
                fcntl.flock(self._lock_fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                self._write_pid()
                return True
            except BlockingIOError:
                if time.time() - start_time >= self.timeout:
                    os.close(self._lock_fd)
                    self._lock_fd = None
                    holder_pid = self.get_lock_holder_pid()
                    if holder_pid:
                        raise LockError(
                            f"Backup root {self.lock_path.parent} locked by process "
                            f"{holder_pid} after {self.timeout}s timeout"
                        )
                    raise LockError(
                        f"Backup root {self.lock_path.parent} locked by another process "
                        f"after {self.timeout}s timeout"
                    )
                time.sleep(0.1)

    def release(self) -> None:
        """
        Release the lock.

        The lock file itself is kept: unlinking it would let a waiter lock
        the old inode while a newcomer locks a fresh file.
        """
        if self._lock_fd is None:
            return

        # Clear our PID while still holding the lock
        try:
            os.ftruncate(self._lock_fd, 0)
        except OSError:
            pass

        try:
            fcntl.flock(self._lock_fd, fcntl.LOCK_UN)
        except OSError:
            pass

        try:
            os.close(self._lock_fd)
        except OSError:
            pass

        self._lock_fd = None

    def is_locked(self) -> bool:
        """Check if lock is currently held (by any process)."""
        if not self.lock_path.exists():
            return False

        try:
            fd = os.open(str(self.lock_path), os.O_RDONLY)
        except OSError:
            return False

        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
            fcntl.flock(fd, fcntl.LOCK_UN)
            return False
        except BlockingIOError:
            return True
        finally:
            os.close(fd)

    def get_lock_holder_pid(self) -> Optional[int]:
        """Return PID of process holding lock, or None."""
        try:
            content = self.lock_path.read_text().strip()
            if content:
                return int(content)
        except (OSError, ValueError):
            pass

        return None

    def _write_pid(self) -> None:
        """Write current process PID to lock file."""
        try:
            os.ftruncate(self._lock_fd, 0)
            os.lseek(self._lock_fd, 0, os.SEEK_SET)
            os.write(self._lock_fd, str(os.getpid()).encode())
        except OSError:
            pass  # Best effort

    def __enter__(self) -> "LockManager":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.release()
        return False  # Don't suppress exceptions

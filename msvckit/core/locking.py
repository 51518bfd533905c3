"""
Concurrent access control for msvckit.

This module provides file-based locking so that several msvckit processes can
share one data directory safely. Each lock is an OS-level exclusive advisory
lock on a `.lock` file; the file is deleted when the lock is released.

Lock scopes:
- Channel URL cache, channel manifest cache and VS manifest cache, one lock
  each per channel. These are always taken one at a time, never nested.
- One lock per content-addressed cache entry (download).
- One lock per install directory (install sequence).

By default a lock wait blocks indefinitely. A non-negative timeout turns an
over-long wait into a LockTimeout.

Usage:
    from msvckit.core.locking import LockManager

    lock_manager = LockManager()
    with lock_manager.install_lock(install_dir):
        # Safely mutate the install directory
        pass
"""

import logging
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Union

from filelock import FileLock, Timeout as LockTimeout

logger = logging.getLogger(__name__)

BLOCK_FOREVER = -1


def _is_current_lock_file(lock: FileLock, lock_path: Path) -> bool:
    """Check that the file `lock` holds is still the one at `lock_path`."""
    try:
        path_stat = os.stat(lock_path)
    except FileNotFoundError:
        return False
    held_stat = os.fstat(lock._context.lock_file_fd)
    return (held_stat.st_dev, held_stat.st_ino) == (path_stat.st_dev, path_stat.st_ino)


def _acquire_current(lock: FileLock, lock_path: Path):
    """
    Acquire `lock`, retrying while the locked file is no longer at `lock_path`.

    Holders delete the lock file before releasing it. On POSIX a waiter can
    then win the lock on the unlinked file while a newcomer locks a new file
    at the same path, so the waiter starts over on the new file.
    """
    while True:
        lock.acquire()
        if os.name == "nt" or _is_current_lock_file(lock, lock_path):
            return
        logger.debug(f"Lock file was replaced while waiting, retrying: {lock_path}")
        lock.release()


class LockManager:
    """
    Manages the msvckit lock scopes.

    Uses file-based locking with the `filelock` library for cross-platform
    compatibility and automatic release on process death.

    Attributes:
        timeout: Seconds to wait for a lock, or -1 to wait forever
    """

    def __init__(self, timeout: float = BLOCK_FOREVER):
        """
        Initialize lock manager.

        Args:
            timeout: Maximum wait time in seconds (default: -1, no limit)
        """
        self.timeout = timeout

    @contextmanager
    def lock(self, lock_path: Union[str, Path], description: str = "resource"):
        """
        Hold an exclusive lock on `lock_path` for the duration of the block.

        The parent directory is created if needed and the lock file is removed
        before the lock is released, including when the block raises.

        Args:
            lock_path: Path of the lock file
            description: Human-readable name used in log and error messages

        Yields:
            None

        Raises:
            LockTimeout: If a timeout is configured and it expires
        """
        lock_path = Path(lock_path)
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock = FileLock(str(lock_path), timeout=self.timeout)

        try:
            _acquire_current(lock, lock_path)
        except LockTimeout:
            logger.error(
                f"Could not acquire {description} lock after {self.timeout}s: {lock_path}. "
                "Another msvckit process may be running."
            )
            raise

        logger.debug(f"Acquired {description} lock: {lock_path}")
        try:
            yield
        finally:
            # filelock removes the file itself on Windows
            if os.name != "nt":
                lock_path.unlink(missing_ok=True)
            lock.release()
            logger.debug(f"Released {description} lock: {lock_path}")

    def manifest_lock(self, manifest_dir: Path):
        """
        Lock one manifest cache directory (channel URL, channel manifest or
        VS manifest of a given channel).

        Callers must release one manifest lock before acquiring another.
        """
        return self.lock(Path(manifest_dir) / ".lock", "manifest cache")

    def cache_entry_lock(self, cache_path: Path):
        """
        Lock a content-addressed cache entry for the existence check through
        the final rename.

        Example:
            >>> with lock_manager.cache_entry_lock(cache_dir / "abc...-foo.vsix"):
            ...     if not entry.exists():
            ...         download()
        """
        cache_path = Path(cache_path)
        return self.lock(cache_path.with_name(cache_path.name + ".lock"), "cache entry")

    def install_lock(self, install_dir: Path):
        """Lock an install directory for a whole payload install sequence."""
        return self.lock(Path(install_dir) / ".lock", "install")


__all__ = [
    "BLOCK_FOREVER",
    "LockManager",
    "LockTimeout",
]

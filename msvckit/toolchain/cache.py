"""
Content-addressed payload cache.

Payloads are stored as ``<cache dir>/<sha256>-<basename>``. An entry is only
ever created by renaming a fully downloaded and verified ``.fetching`` file,
so an existing entry is trusted without re-hashing. Each entry has its own
lock, held from the existence check through the rename, so concurrent
msvckit processes never download the same payload twice.

A hash mismatch terminates the process immediately (exit code 255) rather
than raising, so that nothing above the cache can treat a payload that
failed verification as usable.

Usage:
    from msvckit.toolchain.cache import PayloadCache

    cache = PayloadCache(cache_dir, lock_manager)
    path = cache.fetch(url, sha256)
"""

import logging
import os
from pathlib import Path
from typing import Optional, Tuple, Union

import requests

from msvckit.core.download import create_session, fetch_to_file
from msvckit.core.exceptions import ChecksumError
from msvckit.core.filesystem import basename_from_url, remove_file_if_exists
from msvckit.core.locking import LockManager

logger = logging.getLogger(__name__)

HASH_MISMATCH_EXIT_CODE = 0xFF
UNHASHED_ENTRY_NAME = "nohash"


def terminate(code: int) -> None:
    """Exit the process at once, skipping cleanup handlers."""
    os._exit(code)


def fail_hash_mismatch(name: str, expected: str, actual: str) -> None:
    """
    Report a SHA256 mismatch and terminate the process.

    Raises:
        ChecksumError: Only reached if `terminate` returns
    """
    logger.error(f"SHA256 mismatch for {name}:\nexpected: {expected}\nactual  : {actual}")
    terminate(HASH_MISMATCH_EXIT_CODE)
    raise ChecksumError(name, expected, actual)


def cache_entry_name(sha256: str, url: str) -> str:
    """File name of the cache entry for a payload."""
    return f"{sha256}-{basename_from_url(url)}"


class PayloadCache:
    """
    Download cache keyed by content hash.

    Attributes:
        cache_dir: Directory holding the entries
        lock_manager: Lock manager used for entry locks
    """

    def __init__(
        self,
        cache_dir: Union[str, Path],
        lock_manager: Optional[LockManager] = None,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        max_retries: int = 3,
    ):
        self.cache_dir = Path(cache_dir)
        self.lock_manager = lock_manager or LockManager()
        self.session = session or create_session()
        self.timeout = timeout
        self.max_retries = max_retries

    def entry_path(self, sha256: str, url: str) -> Path:
        return self.cache_dir / cache_entry_name(sha256, url)

    def fetch(self, url: str, sha256: str) -> Path:
        """
        Make sure the payload is in the cache.

        Args:
            url: Payload URL
            sha256: Expected lowercase hex digest

        Returns:
            Path of the cache entry

        Raises:
            DownloadError: If the download fails
        """
        cache_path = self.entry_path(sha256, url)

        with self.lock_manager.cache_entry_lock(cache_path):
            if cache_path.exists():
                logger.info(f"ALREADY FETCHED  | {url} {sha256}")
                return cache_path

            logger.info(f"FETCHING         | {url} {sha256}")
            fetching_path = cache_path.with_name(cache_path.name + ".fetching")
            actual = fetch_to_file(
                url,
                fetching_path,
                session=self.session,
                timeout=self.timeout,
                max_retries=self.max_retries,
            )
            if actual != sha256:
                fail_hash_mismatch(basename_from_url(url), sha256, actual)
            fetching_path.replace(cache_path)

        return cache_path

    def fetch_unhashed(self, url: str) -> Tuple[str, Path]:
        """
        Download a payload whose hash is not known yet and file it under the
        hash of its content.

        Returns:
            (sha256, cache entry path)
        """
        download_path = self.cache_dir / UNHASHED_ENTRY_NAME

        with self.lock_manager.cache_entry_lock(download_path):
            sha256 = fetch_to_file(
                url,
                download_path,
                session=self.session,
                timeout=self.timeout,
                max_retries=self.max_retries,
            )
            final_path = self.entry_path(sha256, url)
            if final_path.exists():
                logger.info(f"{final_path}: already exists")
                remove_file_if_exists(download_path)
            else:
                logger.info(f"{final_path}: newly fetched")
                download_path.replace(final_path)

        return sha256, final_path


__all__ = [
    "HASH_MISMATCH_EXIT_CODE",
    "PayloadCache",
    "cache_entry_name",
    "fail_hash_mismatch",
    "terminate",
]

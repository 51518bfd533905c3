"""
Channel and VS manifest caching.

Three cached files per channel, each in its own directory under
``<data>/manifest/`` with a ``latest`` file and its own lock:

- ``channel-<kind>-url``: the channel manifest URL (redirect target of the
  aka.ms channel link)
- ``channel-<kind>``: the channel manifest
- ``vs-<kind>``: the VS manifest, verified against the channel manifest

Each lookup checks its cache under its lock, releases the lock before
resolving what it depends on, then re-acquires it, re-checks and fetches.
Manifest locks are therefore never nested.
"""

import logging
import time
from pathlib import Path
from typing import Optional, Tuple

import requests

from msvckit.core.directory import DataDir
from msvckit.core.download import create_session, fetch_to_file, resolve_redirect
from msvckit.core.exceptions import ManifestError
from msvckit.core.filesystem import atomic_write
from msvckit.core.locking import LockManager
from msvckit.packages.manifest import ChannelKind, ManifestUpdate, vs_manifest_payload
from msvckit.toolchain.cache import fail_hash_mismatch

logger = logging.getLogger(__name__)

DAILY_MAX_AGE_SECONDS = 24 * 60 * 60


class ManifestCache:
    """
    Fetches and caches the manifests of one channel.

    Attributes:
        data: msvckit data directory
        channel: Release channel
    """

    def __init__(
        self,
        data: DataDir,
        channel: ChannelKind = ChannelKind.RELEASE,
        lock_manager: Optional[LockManager] = None,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        max_retries: int = 3,
    ):
        self.data = data
        self.channel = channel
        self.lock_manager = lock_manager or LockManager()
        self.session = session or create_session()
        self.timeout = timeout
        self.max_retries = max_retries

    def _dir(self, subdir: str) -> Path:
        return self.data.path("manifest", subdir)

    def _read_cached(self, latest_path: Path, update: ManifestUpdate) -> Optional[str]:
        if update is ManifestUpdate.ALWAYS:
            return None
        try:
            if update is ManifestUpdate.DAILY:
                age = time.time() - latest_path.stat().st_mtime
                if age >= DAILY_MAX_AGE_SECONDS:
                    logger.debug(f"{latest_path}: older than a day, refreshing")
                    return None
            return latest_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def _fetch(self, url: str, latest_path: Path) -> Tuple[str, Path]:
        fetching_path = latest_path.with_name("latest.fetching")
        sha256 = fetch_to_file(
            url,
            fetching_path,
            session=self.session,
            timeout=self.timeout,
            max_retries=self.max_retries,
        )
        return sha256, fetching_path

    def read_vs_manifest(self, update: ManifestUpdate = ManifestUpdate.OFF) -> Tuple[Path, str]:
        """
        Return the VS manifest path and text, fetching it if needed.

        Raises:
            ManifestError: If the channel manifest is malformed
            DownloadError: If a download fails
        """
        manifest_dir = self._dir(self.channel.subdir)
        latest_path = manifest_dir / "latest"

        with self.lock_manager.manifest_lock(manifest_dir):
            content = self._read_cached(latest_path, update)
            if content is not None:
                return latest_path, content

        channel_path, channel_content = self.read_channel_manifest(update)

        with self.lock_manager.manifest_lock(manifest_dir):
            if update is not ManifestUpdate.ALWAYS:
                content = self._read_cached(latest_path, update)
                if content is not None:
                    return latest_path, content

            payload = vs_manifest_payload(self.channel, channel_path, channel_content)
            sha256, fetching_path = self._fetch(payload.url, latest_path)
            if sha256 != payload.sha256:
                fail_hash_mismatch(str(latest_path), payload.sha256, sha256)
            fetching_path.replace(latest_path)
            return latest_path, self._read_required(latest_path)

    def read_channel_manifest(self, update: ManifestUpdate = ManifestUpdate.OFF) -> Tuple[Path, str]:
        """Return the channel manifest path and text, fetching it if needed."""
        manifest_dir = self._dir(self.channel.channel_subdir)
        latest_path = manifest_dir / "latest"

        with self.lock_manager.manifest_lock(manifest_dir):
            content = self._read_cached(latest_path, update)
            if content is not None:
                return latest_path, content

        channel_url = self.resolve_channel_manifest_url(update)

        with self.lock_manager.manifest_lock(manifest_dir):
            if update is not ManifestUpdate.ALWAYS:
                content = self._read_cached(latest_path, update)
                if content is not None:
                    return latest_path, content

            _, fetching_path = self._fetch(channel_url, latest_path)
            fetching_path.replace(latest_path)
            return latest_path, self._read_required(latest_path)

    def resolve_channel_manifest_url(self, update: ManifestUpdate = ManifestUpdate.OFF) -> str:
        """Return the channel manifest URL behind the channel's aka.ms link."""
        url_dir = self._dir(self.channel.channel_url_subdir)
        latest_path = url_dir / "latest"

        with self.lock_manager.manifest_lock(url_dir):
            content = self._read_cached(latest_path, update)
            if content is not None:
                return content.strip()

            url = resolve_redirect(self.channel.https_url, session=self.session, timeout=self.timeout)
            atomic_write(latest_path, url)
            return url

    @staticmethod
    def _read_required(latest_path: Path) -> str:
        try:
            return latest_path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise ManifestError(f"{latest_path} still doesn't exist") from e


__all__ = ["DAILY_MAX_AGE_SECONDS", "ManifestCache"]

"""
Atomic payload installation.

Installs one lock file payload into a target package's install directory:

1. Skip if ``install/<cache entry>.files`` exists (already installed).
2. Fetch the payload (and its cab group) into the cache.
3. Under the install directory lock: roll back any interrupted install,
   plan the files to place, journal them as pending, place the ``new``
   ones, then commit.

A failure after the pending journal is written leaves ``install/current``
behind; the next install into the same directory rolls it back.

Example:
    >>> installer = PayloadInstaller(cache)
    >>> installer.install(data.install_dir("msvc-14.40.17.10"), payload, cabs=[])
"""

import logging
import shutil
import subprocess
import zipfile
from pathlib import Path
from typing import List, Optional, Tuple

from msvckit.config.lockfile import Cab, LockFilePayload
from msvckit.core.exceptions import ExtractionError, InstallError
from msvckit.core.filesystem import (
    ZipKind,
    basename_from_url,
    copy_zip_member,
    safe_rmtree,
    select_zip_members,
)
from msvckit.core.locking import LockManager
from msvckit.core.platform import is_windows
from msvckit.packages.classifier import PayloadUrlKind
from msvckit.toolchain.cache import PayloadCache, cache_entry_name
from msvckit.toolchain.install_manifest import (
    ACTION_ADD,
    ACTION_NEW,
    InstallManifest,
    InstallRecord,
)

logger = logging.getLogger(__name__)

MSI_STAGING_DIRNAME = ".msi-staging"
MSIEXEC_TIMEOUT_SECONDS = 3600

_ZIP_KINDS = {
    PayloadUrlKind.VSIX: ZipKind.VSIX,
    PayloadUrlKind.ZIP: ZipKind.ZIP,
}


def plan_records(destinations: List[Path]) -> List[InstallRecord]:
    """Record each destination as 'add' if it already exists, else 'new'."""
    return [
        InstallRecord(ACTION_ADD if dest.exists() else ACTION_NEW, str(dest))
        for dest in destinations
    ]


class PayloadInstaller:
    """
    Installs lock file payloads.

    Attributes:
        cache: Payload cache used to fetch archives
        lock_manager: Lock manager for install directory locks
    """

    def __init__(self, cache: PayloadCache, lock_manager: Optional[LockManager] = None):
        self.cache = cache
        self.lock_manager = lock_manager or cache.lock_manager

    def install(
        self, install_dir: Path, payload: LockFilePayload, cabs: Optional[List[LockFilePayload]] = None
    ) -> bool:
        """
        Install one top-level payload.

        Args:
            install_dir: Install root of the payload's target package
            payload: TopLevel lock file payload
            cabs: Cab payloads that precede it in the lock file

        Returns:
            True if files were installed, False if the payload was already
            installed (or cannot be installed on this host)

        Raises:
            InstallError: If the payload is not top-level or extraction fails
            DownloadError: If a fetch fails
        """
        cabs = cabs or []
        if not payload.url_kind.is_top_level:
            raise InstallError(f"cannot install cab payload '{payload.url_decoded}' on its own")

        install_dir = Path(install_dir)
        name = basename_from_url(payload.url_decoded)
        cache_entry = cache_entry_name(payload.sha256, payload.url_decoded)
        manifest = InstallManifest(install_dir)

        if manifest.is_installed(cache_entry):
            logger.info(f"ALREADY INSTALLED | {name} {payload.sha256}")
            return False

        cab_paths = [
            (cab, self.cache.fetch(cab.url_decoded, cab.sha256)) for cab in cabs
        ]
        cache_path = self.cache.fetch(payload.url_decoded, payload.sha256)

        install_dir.mkdir(parents=True, exist_ok=True)
        with self.lock_manager.install_lock(install_dir):
            manifest.recover()
            if manifest.is_installed(cache_entry):
                logger.info(f"ALREADY INSTALLED | {name} {payload.sha256}")
                return False

            if payload.url_kind is PayloadUrlKind.MSI:
                if not is_windows():
                    logger.warning(
                        f"MSI installation is only supported on Windows, skipping '{payload.url_decoded}'"
                    )
                    return False
                self._install_msi(manifest, cache_entry, cache_path, name, cab_paths)
            else:
                self._install_zip(
                    manifest,
                    cache_entry,
                    cache_path,
                    _ZIP_KINDS[payload.url_kind],
                    payload.strip_root_dir,
                )

        logger.info(f"INSTALLED        | {name} {payload.sha256}")
        return True

    def _install_zip(
        self,
        manifest: InstallManifest,
        cache_entry: str,
        cache_path: Path,
        kind: ZipKind,
        strip_root_dir: bool,
    ) -> None:
        try:
            zf = zipfile.ZipFile(cache_path)
        except (zipfile.BadZipFile, OSError) as e:
            raise ExtractionError(f"reading ZIP: {e}", str(cache_path)) from e

        with zf:
            members = []
            seen = set()
            for info, sub_path in select_zip_members(zf, kind, strip_root_dir, str(cache_path)):
                dest = manifest.install_dir / sub_path
                # first entry wins if an archive lists a path twice
                if dest in seen:
                    continue
                seen.add(dest)
                members.append((info, dest))

            state = manifest.begin(cache_entry, plan_records([dest for _, dest in members]))

            for (info, dest), record in zip(members, state.records):
                if record.action != ACTION_NEW:
                    continue
                dest.parent.mkdir(parents=True, exist_ok=True)
                try:
                    copy_zip_member(zf, info, dest)
                except (zipfile.BadZipFile, OSError) as e:
                    raise ExtractionError(f"extracting '{info.filename}': {e}", str(cache_path)) from e

        manifest.commit(state)

    def _install_msi(
        self,
        manifest: InstallManifest,
        cache_entry: str,
        msi_cache_path: Path,
        msi_name: str,
        cab_paths: List[Tuple[LockFilePayload, Path]],
    ) -> None:
        install_dir = manifest.install_dir
        staging_dir = install_dir / MSI_STAGING_DIRNAME
        safe_rmtree(staging_dir, require_prefix=install_dir)

        installer_dir = staging_dir / "installer"
        installer_dir.mkdir(parents=True)
        msi_copy = installer_dir / msi_name
        shutil.copyfile(msi_cache_path, msi_copy)

        for cab, cab_cache_path in cab_paths:
            if not isinstance(cab.entry, Cab):
                continue
            dest = installer_dir / cab.entry.path.strip().replace("\\", "/")
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(cab_cache_path, dest)

        target_dir = staging_dir / "target"
        logger.info(f"running msiexec for '{msi_copy}'...")
        result = subprocess.run(
            ["msiexec.exe", "/a", str(msi_copy), "/quiet", "/qn", f"TARGETDIR={target_dir}"],
            capture_output=True,
            text=True,
            timeout=MSIEXEC_TIMEOUT_SECONDS,
        )
        if result.returncode != 0:
            raise InstallError(f"msiexec for '{msi_copy}' failed with exit code {result.returncode}")

        sources = []
        for source in sorted(target_dir.rglob("*")):
            relative = source.relative_to(target_dir)
            # administrative installs drop a copy of the MSI at the root
            if relative.as_posix() == msi_name or not source.is_file():
                continue
            sources.append((source, install_dir / relative))

        state = manifest.begin(cache_entry, plan_records([dest for _, dest in sources]))
        for (source, dest), record in zip(sources, state.records):
            if record.action != ACTION_NEW:
                continue
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, dest)

        manifest.commit(state)
        safe_rmtree(staging_dir, require_prefix=install_dir)


__all__ = ["MSI_STAGING_DIRNAME", "PayloadInstaller", "plan_records"]

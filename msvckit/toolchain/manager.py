"""
Install orchestration for msvckit.

Ties the pieces together for the command line:

- install(): reuse the lock file when it matches the request, otherwise
  regenerate it from the VS manifest, then install every payload it lists
  and finish the msvc/sdk targets (vcvars scripts)
- list_targets() / list_payloads(): what the VS manifest offers
- fetch(): download a ninja/cmake release asset into the cache

Usage:
    from msvckit.config.settings import load_settings
    from msvckit.toolchain.manager import ToolchainManager

    manager = ToolchainManager(load_settings())
    manager.install(requested, "msvc.lock")
"""

import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

import requests

from msvckit.config.lockfile import Cab, LockFileManager, LockFilePayload
from msvckit.config.settings import Settings
from msvckit.core.download import create_session
from msvckit.core.exceptions import InstallError, LockFileMismatchError, MsvcKitError
from msvckit.core.filesystem import update_file
from msvckit.core.locking import LockManager
from msvckit.core.platform import Arch
from msvckit.packages.extra import UnexpectedUrl, parse_extra_url
from msvckit.packages.identity import PackageKind, TargetPackage, is_valid_version
from msvckit.packages.manifest import (
    ManifestUpdate,
    VendorPackages,
    available_targets,
    installable_payload_indices,
    parse_vendor_manifest,
)
from msvckit.toolchain.cache import PayloadCache
from msvckit.toolchain.channel import ManifestCache
from msvckit.toolchain.installer import PayloadInstaller

logger = logging.getLogger(__name__)

# Where each finishable kind keeps its version directories
_VERSION_QUERY_PATHS = {
    PackageKind.MSVC: ("VC", "Tools", "MSVC"),
    PackageKind.SDK: ("Windows Kits", "10", "Include"),
}


def generate_vcvars_bat(
    kind: PackageKind, install_version: str, target_arch: Arch, host_arch: Optional[Arch] = None
) -> str:
    """
    Render ``vcvars-<arch>.bat`` for an msvc or sdk install.

    Paths are relative to the script (``%~dp0``), so the install root can be
    moved.
    """
    host = host_arch or Arch.native() or Arch.X64
    v = install_version
    if kind is PackageKind.MSVC:
        return (
            f'set "INCLUDE=%~dp0VC\\Tools\\MSVC\\{v}\\include;%INCLUDE%"\n'
            f'set "PATH=%~dp0VC\\Tools\\MSVC\\{v}\\bin\\Host{host}\\{target_arch};%PATH%"\n'
            f'set "LIB=%~dp0VC\\Tools\\MSVC\\{v}\\lib\\{target_arch};%LIB%"\n'
        )
    if kind is PackageKind.SDK:
        include = "%~dp0Windows Kits\\10\\Include\\" + v
        lib = "%~dp0Windows Kits\\10\\Lib\\" + v
        return (
            f'set "INCLUDE={include}\\ucrt;{include}\\shared;{include}\\um;'
            f'{include}\\winrt;{include}\\cppwinrt;%INCLUDE%"\n'
            f'set "PATH=%~dp0Windows Kits\\10\\bin\\{v}\\{host};%PATH%"\n'
            f'set "LIB={lib}\\ucrt\\{target_arch};{lib}\\um\\{target_arch};%LIB%"\n'
        )
    raise ValueError(f"no vcvars script for package kind '{kind}'")


def query_install_version(kind: PackageKind, install_dir: Path) -> Optional[str]:
    """
    Find the single version directory of an msvc/sdk install.

    Returns:
        The version, or None if the directory to search does not exist

    Raises:
        InstallError: If there are no or several version directories
    """
    query_path = install_dir.joinpath(*_VERSION_QUERY_PATHS[kind])
    if not query_path.is_dir():
        return None

    versions = sorted(entry.name for entry in query_path.iterdir() if is_valid_version(entry.name))
    if len(versions) > 1:
        raise InstallError(f"directory '{query_path}' has multiple version entries")
    if not versions:
        raise InstallError(f"directory '{query_path}' did not contain any version subdirectories")
    return versions[0]


class ToolchainManager:
    """
    Runs the msvckit commands against one data directory.

    Attributes:
        settings: Resolved settings
        lock_manager: Shared lock manager
        cache: Payload cache
        manifests: VS manifest cache for the configured channel
    """

    def __init__(
        self,
        settings: Settings,
        session: Optional[requests.Session] = None,
        cache_dir: Optional[Union[str, Path]] = None,
    ):
        self.settings = settings
        self.data = settings.data
        self.lock_manager = LockManager(timeout=settings.lock_timeout)
        self.session = session or create_session()

        self.cache = PayloadCache(
            Path(cache_dir) if cache_dir else settings.resolved_cache_dir,
            lock_manager=self.lock_manager,
            session=self.session,
            timeout=settings.http_timeout,
            max_retries=settings.max_retries,
        )
        self.manifests = ManifestCache(
            self.data,
            channel=settings.channel,
            lock_manager=self.lock_manager,
            session=self.session,
            timeout=settings.http_timeout,
            max_retries=settings.max_retries,
        )
        self.installer = PayloadInstaller(self.cache, self.lock_manager)

    # ------------------------------------------------------------------
    # Manifest access
    # ------------------------------------------------------------------

    def load_vendor_packages(self, update: ManifestUpdate = ManifestUpdate.OFF) -> VendorPackages:
        path, content = self.manifests.read_vs_manifest(update)
        return parse_vendor_manifest(path, content)

    # ------------------------------------------------------------------
    # install
    # ------------------------------------------------------------------

    def install(
        self,
        requested: List[TargetPackage],
        lock_file_path: Union[str, Path],
        manifest_update: Optional[ManifestUpdate] = None,
    ) -> None:
        """
        Install the requested targets.

        Args:
            requested: Sorted, unique target packages
            lock_file_path: Lock file to use and (re)generate
            manifest_update: Manifest refresh policy (settings default if None)

        Raises:
            MsvcKitError: If nothing was requested
            LockFileMismatchError: If a regenerated lock file still does not
                provide the request
        """
        if not requested:
            raise MsvcKitError(
                "no packages were given to install, use 'list' to list the available packages"
            )

        update = manifest_update or self.settings.manifest_update
        lock_file = LockFileManager(lock_file_path)

        if update is not ManifestUpdate.ALWAYS:
            content = lock_file.load()
            if content is not None:
                mismatch = lock_file.check(requested, content)
                if mismatch is None:
                    self.install_from_lock_file(requested, lock_file, content)
                    return
                logger.info(mismatch)

        vendor = self.load_vendor_packages(update)
        content = lock_file.regenerate(vendor, requested)

        mismatch = lock_file.check(requested, content)
        if mismatch is not None:
            raise LockFileMismatchError(
                f"lock file '{lock_file.lock_file_path}' still doesn't match after update: {mismatch}"
            )
        self.install_from_lock_file(requested, lock_file, content)

    def install_from_lock_file(
        self, requested: List[TargetPackage], lock_file: LockFileManager, content: str
    ) -> None:
        """Install every payload of a lock file in line order, then finish targets."""
        native = Arch.native()
        pending_cabs: List[LockFilePayload] = []

        for payload in lock_file.entries(content):
            arch_limit = payload.host_arch_limit()
            if arch_limit is not None and arch_limit is not native:
                logger.info(
                    f"skipping payload '{payload.url_decoded.rsplit('/', 1)[-1]}' "
                    f"arch {arch_limit} != host arch {native}"
                )
                continue

            if isinstance(payload.entry, Cab):
                pending_cabs.append(payload)
                continue

            cabs, pending_cabs = pending_cabs, []
            self.installer.install(self.data.install_dir(payload.entry.target.pool_string), payload, cabs)

        if pending_cabs:
            logger.warning(
                f"{len(pending_cabs)} cab payloads at the end of '{lock_file.lock_file_path}' "
                "have no payload to install with"
            )

        for target in requested:
            self.finish_package(target)

    def finish_package(self, target: TargetPackage) -> None:
        """
        Write ``vcvars-<arch>.bat`` scripts into an msvc or sdk install.

        Other kinds need no finishing.
        """
        if target.kind not in _VERSION_QUERY_PATHS:
            return

        install_dir = self.data.install_dir(target.pool_string)
        install_version = query_install_version(target.kind, install_dir)
        if install_version is None:
            logger.warning(f"{target}: nothing installed to finish in '{install_dir}'")
            return
        logger.info(f"{target} install version '{install_version}'")

        for arch in Arch:
            bat_path = install_dir / f"vcvars-{arch}.bat"
            if update_file(bat_path, generate_vcvars_bat(target.kind, install_version, arch).encode()):
                logger.info(f"{bat_path}: updating...")
            else:
                logger.info(f"{bat_path}: already up-to-date")

    # ------------------------------------------------------------------
    # list / list-payloads / fetch
    # ------------------------------------------------------------------

    def list_targets(self) -> List[TargetPackage]:
        return available_targets(self.load_vendor_packages())

    def list_payloads(self) -> List[Tuple[str, str]]:
        """Return (payload file name, package id) for installable payloads."""
        vendor = self.load_vendor_packages()
        result = []
        for payload_index in installable_payload_indices(vendor):
            package = vendor.packages[vendor.package_index_for_payload(payload_index)]
            result.append((vendor.payloads[payload_index].file_name, package.id))
        return result

    def fetch(self, url: str) -> str:
        """
        Download a ninja/cmake release asset into the cache.

        Returns:
            SHA256 of the asset

        Raises:
            MsvcKitError: If the URL is not a known release asset
        """
        parsed = parse_extra_url(url)
        if isinstance(parsed, UnexpectedUrl):
            raise MsvcKitError(parsed.describe(url))
        sha256, path = self.cache.fetch_unhashed(url)
        logger.debug(f"fetched {parsed.kind}-{parsed.version} ({parsed.arch}) to {path}")
        return sha256


__all__ = ["ToolchainManager", "generate_vcvars_bat", "query_install_version"]

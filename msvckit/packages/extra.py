"""
Release URL parsing for the extra build tools (ninja and cmake).

ninja and cmake are not part of the vendor catalog proper; their payloads
point at the upstream GitHub release assets, one archive per host
architecture. The URL layout is fixed, so the version and architecture can
be read straight from it.
"""

from dataclasses import dataclass
from typing import Union

from msvckit.core.platform import Arch
from msvckit.packages.identity import PackageKind

NINJA_PREFIX = "https://github.com/ninja-build/ninja/releases/download/v"
CMAKE_PREFIX = "https://github.com/Kitware/CMake/releases/download/v"

_NINJA_ASSETS = {
    "/ninja-win.zip": Arch.X64,
    "/ninja-winarm64.zip": Arch.ARM64,
}

_CMAKE_ARCH_SUFFIXES = {
    "x86_64.zip": Arch.X64,
    "i386.zip": Arch.X86,
    "arm64.zip": Arch.ARM64,
}


@dataclass(frozen=True)
class ExtraPayload:
    """A recognised ninja/cmake release asset."""

    kind: PackageKind
    version: str
    arch: Arch


@dataclass(frozen=True)
class UnexpectedUrl:
    """The URL deviates from the known layouts at `offset`."""

    offset: int
    expected: str

    def describe(self, url: str) -> str:
        return (
            f"invalid package url '{url}' expected {self.expected} "
            f"at offset {self.offset} but got '{url[self.offset:]}'"
        )


def _scan_version(text: str) -> int:
    offset = 0
    while offset < len(text) and (text[offset] == "." or "0" <= text[offset] <= "9"):
        offset += 1
    return offset


def parse_extra_url(url: str) -> Union[ExtraPayload, UnexpectedUrl]:
    """
    Parse a ninja or cmake release asset URL.

    Example:
        >>> parse_extra_url(
        ...     "https://github.com/ninja-build/ninja/releases/download/v1.12.1/ninja-win.zip"
        ... )
        ExtraPayload(kind=<PackageKind.NINJA: 'ninja'>, version='1.12.1', arch=<Arch.X64: 'x64'>)
    """
    if url.startswith(NINJA_PREFIX):
        rest = url[len(NINJA_PREFIX) :]
        version_end = _scan_version(rest)
        if version_end == 0:
            return UnexpectedUrl(len(NINJA_PREFIX), "a version")
        arch = _NINJA_ASSETS.get(rest[version_end:])
        if arch is None:
            return UnexpectedUrl(
                len(NINJA_PREFIX) + version_end,
                "either '/ninja-win.zip' or '/ninja-winarm64.zip'",
            )
        return ExtraPayload(PackageKind.NINJA, rest[:version_end], arch)

    if url.startswith(CMAKE_PREFIX):
        rest = url[len(CMAKE_PREFIX) :]
        version_end = _scan_version(rest)
        if version_end == 0:
            return UnexpectedUrl(len(CMAKE_PREFIX), "a version")
        version = rest[:version_end]
        expected_mid = f"/cmake-{version}-windows-"
        remaining = rest[version_end:]
        if not remaining.startswith(expected_mid):
            return UnexpectedUrl(
                len(CMAKE_PREFIX) + version_end, "'/cmake-<version>-windows-<arch>.zip'"
            )
        arch = _CMAKE_ARCH_SUFFIXES.get(remaining[len(expected_mid) :])
        if arch is None:
            return UnexpectedUrl(
                len(CMAKE_PREFIX) + version_end + len(expected_mid),
                "'x86_64.zip', 'i386.zip', or 'arm64.zip'",
            )
        return ExtraPayload(PackageKind.CMAKE, version, arch)

    return UnexpectedUrl(0, f"either '{NINJA_PREFIX}' or '{CMAKE_PREFIX}'")


__all__ = ["CMAKE_PREFIX", "NINJA_PREFIX", "ExtraPayload", "UnexpectedUrl", "parse_extra_url"]

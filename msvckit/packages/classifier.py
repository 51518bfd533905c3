"""
Vendor package and payload classification.

Vendor manifest package ids are loosely structured dotted strings, for
example ``Microsoft.VC.14.40.17.10.Tools.HostX64.TargetX64.base``. This
module parses them into a tagged classification, narrows that into an
install decision against the requested target packages, and recognises the
Windows SDK payloads that can only be identified by file name.

Anything not recognised is simply not installed; classification never
raises.

Features:
- classify_package(): id -> Classification (one dataclass per variant)
- decide_install(): Classification -> requested TargetPackage or None
- classify_payload_filename(): fixed table of SDK installer prefixes
- PayloadUrlKind: payload archive kind from the URL extension
- Language: manifest language field, reduced to neutral/en-US/other

Usage:
    from msvckit.packages.classifier import classify_package, MsvcVersionHostTarget

    result = classify_package("Microsoft.VC.14.40.17.10.Tools.HostX64.TargetX64.base")
    if isinstance(result, MsvcVersionHostTarget):
        print(result.build_version, result.host_arch, result.target_arch)
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple, Type, Union

from msvckit.core.platform import Arch
from msvckit.packages.identity import PackageKind, TargetPackage

logger = logging.getLogger(__name__)


# ============================================================================
# Id scanning
# ============================================================================


def scan_id_version(text: str, start: int = 0) -> Tuple[str, int]:
    """
    Scan a maximal run of digits and dots starting at `start`.

    Trailing dots are not part of the version. An empty result means there
    was no version at `start`.

    Returns:
        (version, end offset)

    Example:
        >>> scan_id_version("14.40.17.10.Tools")
        ('14.40.17.10', 11)
    """
    offset = start
    while offset < len(text) and (text[offset] == "." or "0" <= text[offset] <= "9"):
        offset += 1
    while offset > start and text[offset - 1] == ".":
        offset -= 1
    return text[start:offset], offset


def scan_id_part(text: str, start: int = 0) -> Tuple[str, int]:
    """
    Scan one '.'-delimited part starting at `start`.

    Returns:
        (part, offset just past the delimiter). If there is no further
        delimiter, or the part would be empty, the rest of the string is
        returned with offset len(text).
    """
    pos = text.find(".", start)
    if pos > start:
        return text[start:pos], pos + 1
    return text[start:], len(text)


# ============================================================================
# Package classification
# ============================================================================


@dataclass(frozen=True)
class Unknown:
    """Id is not one msvckit knows about."""


@dataclass(frozen=True)
class Unexpected:
    """Id has a known prefix but breaks the expected structure at `offset`."""

    offset: int
    expected: str


@dataclass(frozen=True)
class MsvcVersionSomething:
    """``Microsoft.VC.<version><something>`` where something is not Tools."""

    build_version: str
    something: str


@dataclass(frozen=True)
class MsvcVersionToolsSomething:
    """``Microsoft.VC.<version>.Tools<something>`` without a Host part."""

    build_version: str
    something: str


@dataclass(frozen=True)
class MsvcVersionHostTarget:
    """``Microsoft.VC.<version>.Tools.Host<arch>.Target<arch>.<name>``."""

    build_version: str
    host_arch: Arch
    target_arch: Arch
    name: str


@dataclass(frozen=True)
class Msbuild:
    version: str


@dataclass(frozen=True)
class Diasdk:
    """The DIA SDK; its version comes from the vendor package."""


@dataclass(frozen=True)
class Ninja:
    version: str


@dataclass(frozen=True)
class Cmake:
    version: str


Classification = Union[
    Unknown,
    Unexpected,
    MsvcVersionSomething,
    MsvcVersionToolsSomething,
    MsvcVersionHostTarget,
    Msbuild,
    Diasdk,
    Ninja,
    Cmake,
]

MSBUILD_IDS = ("Microsoft.Build", "Microsoft.Build.Arm64")
MSBUILD_PREFIX = "Microsoft.VisualStudio.VC.MSBuild."
DIASDK_ID = "Microsoft.VisualCpp.DIA.SDK"
MSVC_PREFIX = "Microsoft.VC."


def _classify_msvc(rest: str) -> Classification:
    base = len(MSVC_PREFIX)
    version, version_end = scan_id_version(rest)
    if not version:
        return Unexpected(base, "version")

    after_version = rest[version_end:]
    if not after_version.startswith("."):
        return Unexpected(base + version_end, "anything")

    tools_rest = after_version[1:]
    tools_part, tools_end = scan_id_part(tools_rest)
    if tools_part != "Tools":
        return MsvcVersionSomething(version, after_version)

    host_rest = tools_rest[tools_end:]
    host_part, host_end = scan_id_part(host_rest)
    if not host_part:
        return Unexpected(base + version_end + 1 + tools_end, "anything")
    if not host_part.startswith("Host"):
        return MsvcVersionToolsSomething(version, after_version)

    host_arch = Arch.parse_ignore_case(host_part[4:])
    if host_arch is None:
        return Unexpected(base + version_end + 1 + tools_end + 4, "arch")

    target_rest = host_rest[host_end:]
    target_part, target_end = scan_id_part(target_rest)
    if not target_part.startswith("Target"):
        return Unexpected(base + version_end + 1 + tools_end + host_end, "target_arch")

    target_arch = Arch.parse_ignore_case(target_part[6:])
    if target_arch is None:
        return Unexpected(base + version_end + 1 + tools_end + host_end + 6, "arch")

    return MsvcVersionHostTarget(version, host_arch, target_arch, target_rest[target_end:])


def _classify_extra_tool(
    package_id: str, prefix: str, make: Callable[[str], Classification]
) -> Classification:
    rest = package_id[len(prefix) :]
    version, version_end = scan_id_version(rest)
    if not version:
        return Unexpected(len(prefix), "version")
    if version_end != len(rest):
        return Unexpected(len(prefix) + version_end, "end")
    return make(version)


def classify_package(package_id: str) -> Classification:
    """
    Classify a vendor manifest package id.

    Args:
        package_id: The ``id`` of a vendor manifest package

    Returns:
        One of the Classification variants; Unexpected carries the byte
        offset where parsing failed and what was expected there

    Example:
        >>> classify_package("ninja-1.12.1")
        Ninja(version='1.12.1')
        >>> classify_package("ninja-1.12.1-rc")
        Unexpected(offset=12, expected='end')
    """
    if package_id in MSBUILD_IDS:
        return Msbuild("170")
    if package_id.startswith(MSBUILD_PREFIX):
        part, _ = scan_id_part(package_id, len(MSBUILD_PREFIX))
        if part == "v170":
            return Msbuild("170")

    if package_id == DIASDK_ID:
        return Diasdk()

    if package_id.startswith(MSVC_PREFIX):
        return _classify_msvc(package_id[len(MSVC_PREFIX) :])

    if package_id.startswith("ninja-"):
        return _classify_extra_tool(package_id, "ninja-", Ninja)
    if package_id.startswith("cmake-"):
        return _classify_extra_tool(package_id, "cmake-", Cmake)

    return Unknown()


# ============================================================================
# Install decisions
# ============================================================================

CRT_DESKTOP_NAMES = ("Desktop.base", "Desktop.debug.base", "Store.base")
HOST_TARGET_NAMES = ("base", "Res.base")


def _is_crt_install(something: str) -> bool:
    # something starts with the '.' that followed the version
    crt, _ = scan_id_part(something, 1)
    if crt != "CRT":
        return False
    after_crt = something[1 + len(crt) :]
    if not after_crt.startswith("."):
        return False

    tail = after_crt[1:]
    if tail == "Headers.base":
        return True

    part, part_end = scan_id_part(tail)
    if part == "Redist":
        arch_rest = tail[part_end:]
        arch_part, arch_end = scan_id_part(arch_rest)
        return Arch.parse_ignore_case(arch_part) is not None and arch_rest[arch_end:] == "base"
    if Arch.parse_ignore_case(part) is not None:
        return tail[part_end:] in CRT_DESKTOP_NAMES
    return False


def _msvc_something(c: MsvcVersionSomething, package_version: str):
    if _is_crt_install(c.something):
        return PackageKind.MSVC, c.build_version
    return None


def _msvc_host_target(c: MsvcVersionHostTarget, package_version: str):
    if c.name in HOST_TARGET_NAMES:
        return PackageKind.MSVC, c.build_version
    return None


_INSTALL_DISPATCH: Dict[Type, Callable[..., Optional[Tuple[PackageKind, str]]]] = {
    MsvcVersionSomething: _msvc_something,
    MsvcVersionHostTarget: _msvc_host_target,
    Msbuild: lambda c, package_version: (PackageKind.MSBUILD, c.version),
    Diasdk: lambda c, package_version: (PackageKind.DIASDK, package_version),
    Ninja: lambda c, package_version: (PackageKind.NINJA, c.version),
    Cmake: lambda c, package_version: (PackageKind.CMAKE, c.version),
}


def install_identity(
    classification: Classification, package_version: str
) -> Optional[Tuple[PackageKind, str]]:
    """
    Reduce a classification to the (kind, version) it would install as.

    Unknown, Unexpected and Tools-without-host ids install nothing.
    """
    handler = _INSTALL_DISPATCH.get(type(classification))
    if handler is None:
        return None
    return handler(classification, package_version)


def find_requested(
    requested: List[TargetPackage], kind: PackageKind, version: str
) -> Optional[TargetPackage]:
    """Return the requested target with this kind and exact version text."""
    for target in requested:
        if target.kind is kind and target.version == version:
            return target
    return None


def decide_install(
    package_id: str, package_version: str, requested: List[TargetPackage]
) -> Optional[TargetPackage]:
    """
    Decide which requested target, if any, a vendor package installs into.

    Args:
        package_id: Vendor package id
        package_version: Vendor package version (used for the DIA SDK)
        requested: Requested target packages

    Returns:
        The matching requested TargetPackage, or None
    """
    identity = install_identity(classify_package(package_id), package_version)
    if identity is None:
        return None
    return find_requested(requested, *identity)


# ============================================================================
# Payload classification
# ============================================================================


class PayloadKind(Enum):
    UNKNOWN = "unknown"
    SDK = "sdk"


SDK_PAYLOAD_PREFIXES = (
    "Installers\\Universal CRT Headers Libraries and Sources-",
    "Installers\\Windows SDK Desktop Headers ",
    "Installers\\Windows SDK Desktop Libs ",
    "Installers\\Windows SDK Signing Tools-",
    "Installers\\Windows SDK for Windows Store Apps Headers-",
    "Installers\\Windows SDK for Windows Store Apps Libs-",
    "Installers\\Windows SDK for Windows Store Apps Tools-",
)


def classify_payload_filename(file_name: str) -> PayloadKind:
    """Recognise Windows SDK installer payloads by their vendor file name."""
    if file_name.startswith(SDK_PAYLOAD_PREFIXES):
        return PayloadKind.SDK
    return PayloadKind.UNKNOWN


class PayloadUrlKind(Enum):
    """Payload archive kind, named after the URL extension."""

    VSIX = ".vsix"
    MSI = ".msi"
    CAB = ".cab"
    ZIP = ".zip"

    @property
    def is_top_level(self) -> bool:
        return self is not PayloadUrlKind.CAB

    @classmethod
    def from_url(cls, url: str) -> Optional["PayloadUrlKind"]:
        for kind in cls:
            if url.endswith(kind.value):
                return kind
        return None


# ============================================================================
# Language
# ============================================================================


class Language(Enum):
    NEUTRAL = "neutral"
    EN_US = "en-US"
    OTHER = "other"

    @property
    def installable(self) -> bool:
        return self is not Language.OTHER

    @classmethod
    def parse(cls, text: Optional[str]) -> "Language":
        """
        Map a manifest ``language`` value; a missing value means neutral.

        Unrecognised languages are logged and treated as OTHER.
        """
        if text is None or text == "neutral":
            return cls.NEUTRAL
        if text.lower() == "en-us":
            return cls.EN_US
        if text in OTHER_LANGUAGES:
            return cls.OTHER
        logger.warning(f"unknown language '{text}'")
        return cls.OTHER


OTHER_LANGUAGES = frozenset(
    {
        "cs-CZ",
        "de-DE",
        "es-ES",
        "fr-FR",
        "it-IT",
        "ja-JP",
        "ko-KR",
        "pl-PL",
        "pt-BR",
        "ru-RU",
        "tr-TR",
        "zh-CN",
        "zh-TW",
    }
)


__all__ = [
    "Classification",
    "Cmake",
    "Diasdk",
    "Language",
    "Msbuild",
    "MsvcVersionHostTarget",
    "MsvcVersionSomething",
    "MsvcVersionToolsSomething",
    "Ninja",
    "PayloadKind",
    "PayloadUrlKind",
    "SDK_PAYLOAD_PREFIXES",
    "Unexpected",
    "Unknown",
    "classify_package",
    "classify_payload_filename",
    "decide_install",
    "find_requested",
    "install_identity",
    "scan_id_part",
    "scan_id_version",
]

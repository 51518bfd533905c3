"""
Vendor manifest model and parsing.

The vendor (VS) manifest is a large JSON catalog: a ``packages`` array whose
elements carry an ``id``, a ``version``, an optional ``language`` and an
optional ``payloads`` array of ``{fileName, sha256, url}``. It is flattened
here into a package list plus a single payload array; each package owns a
contiguous index range of that array, in declaration order.

The small channel manifest points at the current VS manifest; only the
extraction of that pointer lives here, fetching and caching is done by
msvckit.toolchain.channel.

Example:
    >>> vendor = parse_vendor_manifest("vs.json", text)
    >>> for index in vendor.payload_range(0):
    ...     print(vendor.payloads[index].name_decoded)
"""

import bisect
import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Union

from msvckit.core.exceptions import ManifestError
from msvckit.core.filesystem import basename_from_url, percent_decode
from msvckit.packages.classifier import (
    Cmake,
    Diasdk,
    Language,
    Msbuild,
    MsvcVersionHostTarget,
    Ninja,
    PayloadKind,
    classify_package,
    classify_payload_filename,
)
from msvckit.packages.identity import PackageKind, TargetPackage, insert_sorted

logger = logging.getLogger(__name__)

SHA256_HEX_LENGTH = 64


def parse_sha256(text: str) -> str:
    """
    Normalise a SHA256 hex digest to lowercase.

    Raises:
        ValueError: If the text is not exactly 64 hex digits
    """
    lowered = text.lower()
    if len(lowered) != SHA256_HEX_LENGTH or any(c not in "0123456789abcdef" for c in lowered):
        raise ValueError(f"invalid sha256 '{text}'")
    return lowered


class ChannelKind(Enum):
    """Vendor release channels."""

    RELEASE = "release"
    PREVIEW = "preview"

    @property
    def https_url(self) -> str:
        return _CHANNEL_URLS[self]

    @property
    def vs_manifest_channel_id(self) -> str:
        return _CHANNEL_MANIFEST_IDS[self]

    @property
    def subdir(self) -> str:
        return "vs-release" if self is ChannelKind.RELEASE else "vs-preview"

    @property
    def channel_subdir(self) -> str:
        return "channel-release" if self is ChannelKind.RELEASE else "channel-preview"

    @property
    def channel_url_subdir(self) -> str:
        return f"{self.channel_subdir}-url"


_CHANNEL_URLS = {
    ChannelKind.RELEASE: "https://aka.ms/vs/17/release/channel",
    ChannelKind.PREVIEW: "https://aka.ms/vs/17/pre/channel",
}

_CHANNEL_MANIFEST_IDS = {
    ChannelKind.RELEASE: "Microsoft.VisualStudio.Manifests.VisualStudio",
    ChannelKind.PREVIEW: "Microsoft.VisualStudio.Manifests.VisualStudioPreview",
}


class ManifestUpdate(Enum):
    """When to refresh cached manifests."""

    OFF = "off"
    DAILY = "daily"
    ALWAYS = "always"

    @classmethod
    def parse(cls, text: str) -> "ManifestUpdate":
        for policy in cls:
            if policy.value == text:
                return policy
        raise ValueError(
            f"invalid manifest update value '{text}', expected 'off', 'daily', or 'always'"
        )


@dataclass(frozen=True)
class VendorPackage:
    """
    One vendor manifest package.

    Attributes:
        id: Vendor package id
        version: Vendor package version
        payloads_offset: Index of the package's first payload
        language: Reduced language
    """

    id: str
    version: str
    payloads_offset: int
    language: Language


@dataclass(frozen=True)
class Payload:
    """
    One downloadable payload.

    Attributes:
        url_decoded: Percent-decoded URL
        sha256: Lowercase hex digest
        file_name: Vendor file name (may contain backslashes)
    """

    url_decoded: str
    sha256: str
    file_name: str

    @property
    def name_decoded(self) -> str:
        return basename_from_url(self.url_decoded)


class VendorPackages:
    """Packages plus the flat payload array they index into."""

    def __init__(self, packages: List[VendorPackage], payloads: List[Payload]):
        self.packages = packages
        self.payloads = payloads
        self._offsets = [package.payloads_offset for package in packages]

    def payload_range(self, package_index: int) -> range:
        """Indices of the payloads owned by a package (possibly empty)."""
        start = self._offsets[package_index]
        if package_index + 1 < len(self._offsets):
            end = self._offsets[package_index + 1]
        else:
            end = len(self.payloads)
        return range(start, end)

    def payloads_for(self, package_index: int) -> List[Payload]:
        r = self.payload_range(package_index)
        return self.payloads[r.start : r.stop]

    def package_index_for_payload(self, payload_index: int) -> int:
        """
        Find the package owning a payload.

        Packages with empty ranges share their start offset with the next
        package, so the last package starting at or before the index owns it.

        Raises:
            IndexError: If payload_index is outside the payload array
        """
        if not 0 <= payload_index < len(self.payloads):
            raise IndexError(f"payload index {payload_index} out of range")
        return bisect.bisect_right(self._offsets, payload_index) - 1


def _require(obj: dict, key: str, kind: type, path: str, what: str):
    value = obj.get(key)
    if not isinstance(value, kind):
        raise ManifestError(f"{path}: {what} missing '{key}'")
    return value


def parse_vendor_manifest(path: Union[str, Path], text: str) -> VendorPackages:
    """
    Parse VS manifest JSON into VendorPackages.

    Args:
        path: Manifest path, for error messages
        text: Manifest JSON text

    Returns:
        VendorPackages with percent-decoded URLs and lowercase hashes

    Raises:
        ManifestError: If the JSON is invalid or has an unexpected shape
    """
    path = str(path)
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestError(f"parsing '{path}': {e}") from e

    packages_json = parsed.get("packages") if isinstance(parsed, dict) else None
    if not isinstance(packages_json, list):
        raise ManifestError(f"{path}: missing 'packages' array")

    packages: List[VendorPackage] = []
    payloads: List[Payload] = []

    for package_json in packages_json:
        if not isinstance(package_json, dict):
            raise ManifestError(f"{path}: package is not an object")

        package_id = _require(package_json, "id", str, path, "package")
        version = _require(package_json, "version", str, path, "package")
        language_text = package_json.get("language")
        language = Language.parse(language_text if isinstance(language_text, str) else None)

        payloads_offset = len(payloads)
        payloads_json = package_json.get("payloads")
        if isinstance(payloads_json, list):
            for payload_json in payloads_json:
                if not isinstance(payload_json, dict):
                    raise ManifestError(f"{path}: payload is not an object")
                file_name = _require(payload_json, "fileName", str, path, "payload")
                sha256_text = _require(payload_json, "sha256", str, path, "payload")
                url = _require(payload_json, "url", str, path, "payload")
                try:
                    sha256 = parse_sha256(sha256_text)
                except ValueError as e:
                    raise ManifestError(f"{path}: {e}") from e
                payloads.append(Payload(percent_decode(url), sha256, file_name))

        packages.append(VendorPackage(package_id, version, payloads_offset, language))

    logger.debug(f"{path}: {len(packages)} packages, {len(payloads)} payloads")
    return VendorPackages(packages, payloads)


@dataclass(frozen=True)
class ManifestPayload:
    """Location of the VS manifest as published by a channel manifest."""

    url: str
    sha256: str
    size: int


def vs_manifest_payload(
    channel: ChannelKind, path: Union[str, Path], text: str
) -> ManifestPayload:
    """
    Extract the VS manifest pointer from channel manifest JSON.

    The channel item whose id matches the channel must carry exactly one
    payload with ``url``, ``sha256`` and ``size``.

    Raises:
        ManifestError: If the item is missing or malformed
    """
    path = str(path)
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestError(f"parsing '{path}': {e}") from e

    items = parsed.get("channelItems") if isinstance(parsed, dict) else None
    if not isinstance(items, list):
        raise ManifestError(f"{path}: missing 'channelItems' array")

    wanted_id = channel.vs_manifest_channel_id
    for item in items:
        if not isinstance(item, dict) or item.get("id") != wanted_id:
            continue

        item_payloads = item.get("payloads")
        if not isinstance(item_payloads, list):
            raise ManifestError(f"{path}: channelItem '{wanted_id}' missing 'payloads'")
        if len(item_payloads) != 1:
            raise ManifestError(
                f"{path}: channelItem '{wanted_id}' has {len(item_payloads)} payloads instead of 1"
            )
        payload = item_payloads[0]
        if not isinstance(payload, dict):
            raise ManifestError(f"{path}: payload is not an object")

        url = _require(payload, "url", str, path, "payload")
        sha256_text = _require(payload, "sha256", str, path, "payload")
        size = payload.get("size")
        if not isinstance(size, int) or isinstance(size, bool) or size < 0:
            raise ManifestError(f"{path}: payload missing 'size'")
        try:
            sha256 = parse_sha256(sha256_text)
        except ValueError as e:
            raise ManifestError(f"{path}: {e}") from e
        return ManifestPayload(percent_decode(url), sha256, size)

    raise ManifestError(f"channel manifest '{path}' is missing vs manifest id '{wanted_id}'")


# ============================================================================
# Listing
# ============================================================================


def available_targets(vendor: VendorPackages) -> List[TargetPackage]:
    """
    Every target package the manifest can provide, sorted and unique.

    Host/target MSVC tool ids give msvc at their build version; SDK payload
    file names give sdk at the owning package's version.
    """
    targets: List[TargetPackage] = []
    for package_index, package in enumerate(vendor.packages):
        classification = classify_package(package.id)
        target = None
        if isinstance(classification, MsvcVersionHostTarget):
            target = TargetPackage(PackageKind.MSVC, classification.build_version)
        elif isinstance(classification, Msbuild):
            target = TargetPackage(PackageKind.MSBUILD, classification.version)
        elif isinstance(classification, Diasdk):
            target = TargetPackage(PackageKind.DIASDK, package.version)
        elif isinstance(classification, Ninja):
            target = TargetPackage(PackageKind.NINJA, classification.version)
        elif isinstance(classification, Cmake):
            target = TargetPackage(PackageKind.CMAKE, classification.version)
        if target is not None:
            insert_sorted(targets, target)

        for payload in vendor.payloads_for(package_index):
            if classify_payload_filename(payload.file_name) is PayloadKind.SDK:
                insert_sorted(targets, TargetPackage(PackageKind.SDK, package.version))
    return targets


def installable_payload_indices(vendor: VendorPackages) -> List[int]:
    """Payloads of neutral/en-US packages, ordered by decoded name then index."""
    indices: List[int] = []
    for package_index, package in enumerate(vendor.packages):
        if package.language.installable:
            indices.extend(vendor.payload_range(package_index))
    indices.sort(key=lambda i: (vendor.payloads[i].name_decoded, i))
    return indices


__all__ = [
    "ChannelKind",
    "ManifestPayload",
    "ManifestUpdate",
    "Payload",
    "VendorPackage",
    "VendorPackages",
    "available_targets",
    "installable_payload_indices",
    "parse_sha256",
    "parse_vendor_manifest",
    "vs_manifest_payload",
]

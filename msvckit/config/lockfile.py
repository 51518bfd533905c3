"""
Lock file codec, consistency check and regeneration for msvckit.

The lock file pins every payload needed for a set of target packages, one
payload per line:

    <target>|<url>|<hash-field>[ <cab-path>]

- target: a pool string (``msvc-14.40.17.10``) or empty for cab lines
- url: percent-decoded payload URL; its extension gives the payload kind
- hash-field: 64 hex digits, or the decimal byte offset at which the digest
  literally occurs inside the URL
- cab-path: only for ``.cab`` payloads; they belong to the next top-level
  (MSI) line

TopLevel lines are ordered by (target, payload index); a run of cab lines
immediately precedes the top-level line it supports.

Example:
    >>> from msvckit.config.lockfile import LockFileManager
    >>>
    >>> manager = LockFileManager("msvc.lock")
    >>> mismatch = manager.check(requested)
    >>> if mismatch is not None:
    ...     manager.regenerate(vendor_packages, requested)
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple, Union

from msvckit.core.exceptions import LockFileError, LockFileParseError, PackageParseError
from msvckit.core.filesystem import atomic_write
from msvckit.core.platform import Arch
from msvckit.packages.classifier import (
    PayloadKind,
    PayloadUrlKind,
    classify_payload_filename,
    decide_install,
    find_requested,
)
from msvckit.packages.extra import ExtraPayload, parse_extra_url
from msvckit.packages.identity import PackageKind, TargetPackage, insert_sorted
from msvckit.packages.manifest import SHA256_HEX_LENGTH, VendorPackages, parse_sha256

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TopLevel:
    """A primary payload installed for `target`."""

    target: TargetPackage


@dataclass(frozen=True)
class Cab:
    """An auxiliary cab archive placed at `path` next to the next MSI."""

    path: str


LockFileEntry = Union[TopLevel, Cab]


@dataclass(frozen=True)
class LockFilePayload:
    """
    One parsed lock file line.

    Attributes:
        url_decoded: Payload URL
        sha256: Lowercase hex digest
        url_kind: Archive kind from the URL extension
        entry: TopLevel or Cab
    """

    url_decoded: str
    sha256: str
    url_kind: PayloadUrlKind
    entry: LockFileEntry

    @property
    def target(self) -> Optional[TargetPackage]:
        if isinstance(self.entry, TopLevel):
            return self.entry.target
        return None

    @property
    def strip_root_dir(self) -> bool:
        """cmake release archives wrap everything in one root directory."""
        target = self.target
        return target is not None and target.kind is PackageKind.CMAKE

    def host_arch_limit(self) -> Optional[Arch]:
        """
        Architecture a ninja/cmake payload runs on, None if unrestricted.

        URLs that do not follow the release layout are not restricted.
        """
        target = self.target
        if target is None or target.kind not in (PackageKind.NINJA, PackageKind.CMAKE):
            return None
        parsed = parse_extra_url(self.url_decoded)
        if isinstance(parsed, ExtraPayload):
            return parsed.arch
        return None


# ============================================================================
# Codec
# ============================================================================


def parse_line(line: str, path: str = "<lock file>", lineno: int = 0) -> LockFilePayload:
    """
    Parse one lock file line.

    Args:
        line: Line text without its newline
        path: Lock file path for error messages
        lineno: 1-based line number for error messages

    Returns:
        The parsed payload

    Raises:
        LockFileParseError: If the line is malformed
    """

    def fail(message: str) -> LockFileParseError:
        return LockFileParseError(path, lineno, message)

    target_end = line.find("|")
    if target_end < 0:
        raise fail("line has no '|' separator")
    target_text = line[:target_end]
    target = None
    if target_text:
        try:
            target = TargetPackage.parse(target_text)
        except PackageParseError as e:
            raise fail(f"invalid target package '{target_text}': {e}") from e

    url_start = target_end + 1
    url_end = line.find("|", url_start)
    if url_end < 0:
        raise fail("line has no second '|' separator")
    url = line[url_start:url_end]

    url_kind = PayloadUrlKind.from_url(url)
    if url_kind is None:
        raise fail(f"unable to determine payload kind from url '{url}'")

    hash_start = url_end + 1
    hash_end = line.find(" ", hash_start)
    if hash_end < 0:
        hash_end = len(line)
    hash_field = line[hash_start:hash_end]

    if len(hash_field) == SHA256_HEX_LENGTH:
        sha256_text = hash_field
    else:
        if not (hash_field.isascii() and hash_field.isdigit()):
            raise fail(f"expected sha256 hash or unsigned integer, got '{hash_field}'")
        # the index is a byte offset into the UTF-8 encoded url
        url_bytes = url.encode()
        hash_index = int(hash_field)
        if hash_index + SHA256_HEX_LENGTH > len(url_bytes):
            raise fail(f"hash index {hash_index} out of bounds (url is {len(url_bytes)} bytes)")
        sha256_text = url_bytes[hash_index : hash_index + SHA256_HEX_LENGTH].decode(errors="replace")

    try:
        sha256 = parse_sha256(sha256_text)
    except ValueError as e:
        raise fail(f"invalid sha256 hash '{sha256_text}'") from e

    if url_kind.is_top_level:
        if target is None:
            raise fail("missing target package")
        return LockFilePayload(url, sha256, url_kind, TopLevel(target))

    if target is not None:
        raise fail("cab payloads should not have an associated target package")
    cab_path = line[hash_end + 1 :]
    if not cab_path:
        raise fail("missing ' PATH' after hash (required for .cab payloads)")
    return LockFilePayload(url, sha256, url_kind, Cab(cab_path))


def write_line(target: Optional[TargetPackage], url: str, sha256: str, file_name: str = "") -> str:
    """
    Serialise one payload as a lock file line (without newline).

    The digest is written as its byte offset into the UTF-8 encoded URL
    whenever the URL contains it (case-insensitively); otherwise the full
    digest is written.
    Cab lines carry the vendor file name, reduced to its basename in the
    full-digest form.

    Raises:
        LockFileError: If the URL has no recognised payload extension, or
            a cab payload has no file name
    """
    url_kind = PayloadUrlKind.from_url(url)
    if url_kind is None:
        raise LockFileError(f"unable to determine payload kind from url '{url}'")

    target_text = target.pool_string if target is not None else ""
    sha256 = sha256.lower()

    # bytes.lower() folds ASCII only, so offsets stay byte offsets
    hash_index = url.encode().lower().find(sha256.encode())
    if hash_index >= 0:
        hash_field = str(hash_index)
        cab_name = file_name
    else:
        hash_field = sha256
        cab_name = file_name.rsplit("\\", 1)[-1]

    if url_kind is PayloadUrlKind.CAB:
        if not cab_name:
            raise LockFileError(f"cab payload '{url}' has no file name")
        return f"{target_text}|{url}|{hash_field} {cab_name}"
    return f"{target_text}|{url}|{hash_field}"


def _lock_lines(content: str) -> List[str]:
    # Only "\n" ends a line; urls and cab paths may hold other line breaks
    return [line[:-1] if line.endswith("\r") else line for line in content.split("\n")]


def parse_lock_file(path: Union[str, Path], content: str) -> List[LockFilePayload]:
    """Parse every non-empty line of a lock file."""
    path = str(path)
    return [
        parse_line(line, path, lineno)
        for lineno, line in enumerate(_lock_lines(content), start=1)
        if line
    ]


# ============================================================================
# Consistency check
# ============================================================================


def check_lock_file_pkgs(
    path: Union[str, Path], content: str, requested: List[TargetPackage]
) -> Optional[str]:
    """
    Check that a lock file provides exactly the requested targets.

    The lock file's top-level targets must equal the sorted, unique
    `requested` list, in order, each appearing on one or more consecutive
    lines. Cab lines are ignored.

    Args:
        path: Lock file path, for messages
        content: Lock file text
        requested: Sorted, de-duplicated requested targets (non-empty)

    Returns:
        None if the lock file matches, else a description of the mismatch
        (a parse error is reported as a mismatch too)
    """
    if not requested:
        raise ValueError("requested package list must not be empty")

    path = str(path)
    index = 0
    match_count = 0

    for lineno, line in enumerate(_lock_lines(content), start=1):
        if not line:
            continue
        try:
            parsed = parse_line(line, path, lineno)
        except LockFileParseError as e:
            return f"parse error: {e}"

        payload_target = parsed.target
        if payload_target is None:
            continue

        while True:
            wanted = requested[index]
            if wanted == payload_target:
                match_count += 1
                break
            if wanted < payload_target:
                if match_count == 0:
                    return f"lock file is missing package '{wanted}'"
                if index + 1 == len(requested):
                    return f"lock file has extra package '{payload_target}'"
                index += 1
                match_count = 0
                continue
            return f"lock file has extra package '{payload_target}'"

    if match_count == 0:
        return f"lock file is missing package '{requested[index]}'"
    if index + 1 < len(requested):
        return f"lock file is missing package '{requested[index + 1]}'"
    return None


# ============================================================================
# Regeneration
# ============================================================================


def _selection_key(item: Tuple[TargetPackage, int]):
    return (item[0].sort_key(), item[1])


def select_payloads(
    vendor: VendorPackages, requested: List[TargetPackage]
) -> List[Tuple[TargetPackage, int]]:
    """
    Select the payloads that install the requested targets.

    Only neutral and en-US packages take part. A package that installs as a
    requested target contributes its whole payload range; SDK installer
    payloads contribute individually to the sdk target of their package's
    version.

    Returns:
        Sorted, unique (target, payload index) pairs
    """
    selected: List[Tuple[TargetPackage, int]] = []

    for package_index, package in enumerate(vendor.packages):
        if not package.language.installable:
            continue

        target = decide_install(package.id, package.version, requested)
        if target is not None:
            for payload_index in vendor.payload_range(package_index):
                insert_sorted(selected, (target, payload_index), key=_selection_key)

        sdk_target = find_requested(requested, PackageKind.SDK, package.version)
        if sdk_target is None:
            continue
        for payload_index in vendor.payload_range(package_index):
            payload = vendor.payloads[payload_index]
            if classify_payload_filename(payload.file_name) is PayloadKind.SDK:
                insert_sorted(selected, (sdk_target, payload_index), key=_selection_key)

    # TODO: expand each selected package's vendor dependencies
    logger.warning("dependencies between packages are not resolved; only direct payloads are locked")
    return selected


def render_lock_file(vendor: VendorPackages, selected: List[Tuple[TargetPackage, int]]) -> str:
    """Serialise selected payloads; cab and unrecognised payloads are left out."""
    lines = []
    for target, payload_index in selected:
        payload = vendor.payloads[payload_index]
        url_kind = PayloadUrlKind.from_url(payload.url_decoded)
        if url_kind is None:
            logger.warning(
                f"skipping payload '{payload.name_decoded}': unable to determine payload kind from url"
            )
            continue
        if url_kind is PayloadUrlKind.CAB:
            logger.debug(f"skipping cab payload '{payload.file_name}' for {target}")
            continue
        lines.append(write_line(target, payload.url_decoded, payload.sha256, payload.file_name))
    logger.info(f"{len(lines)} payloads")
    return "".join(f"{line}\n" for line in lines)


class LockFileManager:
    """
    Reads, checks and regenerates one lock file.

    Attributes:
        lock_file_path: Path to the lock file
    """

    def __init__(self, lock_file_path: Union[str, Path]):
        self.lock_file_path = Path(lock_file_path)

    def load(self) -> Optional[str]:
        """
        Read the lock file text.

        Returns:
            The content, or None if the file does not exist
        """
        try:
            content = self.lock_file_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info(f"lock file NOT found: '{self.lock_file_path}'")
            return None
        logger.info(f"lock file found: '{self.lock_file_path}'")
        return content

    def check(self, requested: List[TargetPackage], content: Optional[str] = None) -> Optional[str]:
        """
        Check the lock file against `requested`.

        Returns:
            None if it matches, else a mismatch description (a missing lock
            file is a mismatch)
        """
        if content is None:
            content = self.load()
            if content is None:
                return f"lock file '{self.lock_file_path}' does not exist"
        return check_lock_file_pkgs(self.lock_file_path, content, requested)

    def entries(self, content: Optional[str] = None) -> List[LockFilePayload]:
        """
        Parse the lock file.

        Raises:
            LockFileError: If the file is missing or a line is malformed
        """
        if content is None:
            content = self.load()
            if content is None:
                raise LockFileError(f"lock file '{self.lock_file_path}' does not exist")
        return parse_lock_file(self.lock_file_path, content)

    def regenerate(self, vendor: VendorPackages, requested: List[TargetPackage]) -> str:
        """
        Rebuild the lock file from the vendor manifest and write it atomically.

        Returns:
            The new lock file content
        """
        content = render_lock_file(vendor, select_payloads(vendor, requested))
        atomic_write(self.lock_file_path, content)
        logger.info(f"Lock file saved: {self.lock_file_path}")
        return content


__all__ = [
    "Cab",
    "LockFileEntry",
    "LockFileManager",
    "LockFilePayload",
    "TopLevel",
    "check_lock_file_pkgs",
    "parse_line",
    "parse_lock_file",
    "render_lock_file",
    "select_payloads",
    "write_line",
]

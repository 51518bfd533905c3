"""
Canonical package identity for msvckit.

A target package is msvckit's own installable unit: a package kind plus a
dotted-numeric version, written as a "pool string" such as
``msvc-14.40.33807``. Pool strings name install directories, appear in lock
files and are what users pass on the command line.

Ordering is by kind (declaration order) and then by version, compared
component-wise as integers so that "9" < "10" and "14.9" < "14.10".

Example:
    >>> from msvckit.packages.identity import parse_requested
    >>> requested = parse_requested(["sdk-10.0.22621", "msvc-14.40.33807", "sdk-10.0.22621"])
    >>> [str(p) for p in requested]
    ['msvc-14.40.33807', 'sdk-10.0.22621']
"""

import bisect
import functools
import re
from enum import Enum
from typing import Any, Callable, List, Optional, Tuple

from msvckit.core.exceptions import InvalidVersionError, UnknownPackageKindError

_VERSION_RE = re.compile(r"^[0-9]+(\.[0-9]+)*$")


class PackageKind(Enum):
    """Kinds of target packages, in their sort order."""

    MSVC = "msvc"
    SDK = "sdk"
    MSBUILD = "msbuild"
    DIASDK = "diasdk"
    NINJA = "ninja"
    CMAKE = "cmake"

    def __str__(self) -> str:
        return self.value

    @property
    def order(self) -> int:
        return _KIND_ORDER[self]

    @classmethod
    def from_prefix(cls, text: str) -> Optional[Tuple["PackageKind", str]]:
        """
        Split a pool string into its kind and the text after ``<kind>-``.

        Returns:
            (kind, remainder) or None if no kind prefix matches
        """
        for kind in cls:
            prefix = f"{kind.value}-"
            if text.startswith(prefix):
                return kind, text[len(prefix) :]
        return None


_KIND_ORDER = {kind: index for index, kind in enumerate(PackageKind)}


def is_valid_version(version: str) -> bool:
    """Check for one or more digit groups joined by single dots."""
    return bool(_VERSION_RE.match(version))


def _version_part_key(part: str) -> Tuple[int, Any]:
    # Numeric parts sort before non-numeric ones
    if part.isascii() and part.isdigit():
        return (0, int(part))
    return (1, part)


def version_key(version: str) -> Tuple[Tuple[int, Any], ...]:
    """
    Sort key comparing dotted versions component-wise.

    A version that is a prefix of another sorts first ("0" < "0.1").
    """
    return tuple(_version_part_key(part) for part in version.split("."))


def compare_versions(lhs: str, rhs: str) -> int:
    """Three-way compare two dotted versions; returns -1, 0 or 1."""
    lhs_key = version_key(lhs)
    rhs_key = version_key(rhs)
    return (lhs_key > rhs_key) - (lhs_key < rhs_key)


@functools.total_ordering
class TargetPackage:
    """
    A target package identity (kind + version).

    Attributes:
        kind: Package kind
        version: Dotted version string
    """

    __slots__ = ("kind", "version")

    def __init__(self, kind: PackageKind, version: str):
        self.kind = kind
        self.version = version

    @classmethod
    def parse(cls, text: str) -> "TargetPackage":
        """
        Parse a pool string.

        Raises:
            UnknownPackageKindError: If the text has no known ``<kind>-`` prefix
            InvalidVersionError: If the version is empty or malformed

        Example:
            >>> TargetPackage.parse("cmake-3.31.4")
            TargetPackage('cmake-3.31.4')
        """
        split = PackageKind.from_prefix(text)
        if split is None:
            raise UnknownPackageKindError(text)
        kind, version = split
        if not is_valid_version(version):
            raise InvalidVersionError(version)
        return cls(kind, version)

    @property
    def pool_string(self) -> str:
        return f"{self.kind.value}-{self.version}"

    def sort_key(self) -> Tuple[int, Tuple[Tuple[int, Any], ...]]:
        return (self.kind.order, version_key(self.version))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TargetPackage):
            return NotImplemented
        return self.sort_key() == other.sort_key()

    def __lt__(self, other: "TargetPackage") -> bool:
        if not isinstance(other, TargetPackage):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __hash__(self) -> int:
        return hash(self.sort_key())

    def __str__(self) -> str:
        return self.pool_string

    def __repr__(self) -> str:
        return f"TargetPackage({self.pool_string!r})"


def insert_sorted(items: List[Any], item: Any, key: Optional[Callable[[Any], Any]] = None) -> bool:
    """
    Insert `item` into the sorted list `items` unless an equal item is present.

    Args:
        items: List kept sorted by `key`
        item: Item to insert
        key: Sort key (identity if omitted)

    Returns:
        True if the item was inserted, False if an equal item already existed
    """
    key = key or (lambda value: value)
    item_key = key(item)
    pos = bisect.bisect_left(items, item_key, key=key)
    if pos < len(items) and key(items[pos]) == item_key:
        return False
    items.insert(pos, item)
    return True


def parse_requested(texts: List[str]) -> List[TargetPackage]:
    """
    Parse pool strings into the sorted, de-duplicated requested set.

    Raises:
        PackageParseError: For the first invalid pool string
    """
    requested: List[TargetPackage] = []
    for text in texts:
        insert_sorted(requested, TargetPackage.parse(text))
    return requested


__all__ = [
    "PackageKind",
    "TargetPackage",
    "compare_versions",
    "insert_sorted",
    "is_valid_version",
    "parse_requested",
    "version_key",
]

"""
Platform detection for msvckit.

This module provides the closed set of CPU architectures that vendor package
ids and payload URLs refer to, plus detection of the host's native one.

Usage:
    from msvckit.core.platform import Arch

    host = Arch.native()
    if host is Arch.X64:
        print("Running on x64")
"""

import functools
import platform
from enum import Enum
from typing import Optional


class Arch(Enum):
    """CPU architecture, in declaration order x64, x86, arm, arm64."""

    X64 = "x64"
    X86 = "x86"
    ARM = "arm"
    ARM64 = "arm64"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, text: str) -> Optional["Arch"]:
        """
        Parse the exact lowercase architecture name.

        Example:
            >>> Arch.parse("arm64")
            <Arch.ARM64: 'arm64'>
            >>> Arch.parse("X64") is None
            True
        """
        for arch in cls:
            if arch.value == text:
                return arch
        return None

    @classmethod
    def parse_ignore_case(cls, text: str) -> Optional["Arch"]:
        """Parse an architecture name regardless of case (e.g. 'X64' in vendor ids)."""
        return cls.parse(text.lower())

    @staticmethod
    def native() -> Optional["Arch"]:
        """Return the host architecture, or None if it is not one we know."""
        return _detect_native_arch()


# platform.machine() spellings across Windows, Linux and macOS
_MACHINE_MAP = {
    "amd64": Arch.X64,
    "x86_64": Arch.X64,
    "x64": Arch.X64,
    "i386": Arch.X86,
    "i486": Arch.X86,
    "i586": Arch.X86,
    "i686": Arch.X86,
    "x86": Arch.X86,
    "arm64": Arch.ARM64,
    "aarch64": Arch.ARM64,
    "armv7l": Arch.ARM,
    "armv7": Arch.ARM,
    "armv6l": Arch.ARM,
    "arm": Arch.ARM,
}


@functools.lru_cache(maxsize=1)
def _detect_native_arch() -> Optional[Arch]:
    machine = platform.machine().lower()
    return _MACHINE_MAP.get(machine)


def is_windows() -> bool:
    """Check whether the current host runs Windows."""
    return platform.system() == "Windows"


__all__ = ["Arch", "is_windows"]

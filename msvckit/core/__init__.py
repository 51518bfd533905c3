"""
Core functionality for msvckit.

This package contains the foundational modules that other components depend on.
"""

from .directory import DataDir, get_default_data_dir
from .locking import LockManager, LockTimeout
from .platform import Arch, is_windows
from .exceptions import (
    MsvcKitError,
    PackageParseError,
    UnknownPackageKindError,
    InvalidVersionError,
    LockFileError,
    LockFileParseError,
    LockFileMismatchError,
    ManifestError,
    DownloadError,
    ChecksumError,
    InstallError,
    ExtractionError,
    ConfigError,
)

__all__ = [
    # Directory
    "DataDir",
    "get_default_data_dir",
    # Locking
    "LockManager",
    "LockTimeout",
    # Platform
    "Arch",
    "is_windows",
    # Exceptions
    "MsvcKitError",
    "PackageParseError",
    "UnknownPackageKindError",
    "InvalidVersionError",
    "LockFileError",
    "LockFileParseError",
    "LockFileMismatchError",
    "ManifestError",
    "DownloadError",
    "ChecksumError",
    "InstallError",
    "ExtractionError",
    "ConfigError",
]

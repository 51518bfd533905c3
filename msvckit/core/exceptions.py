"""
Centralized exception hierarchy for msvckit.

This module defines all custom exceptions used across the codebase
to eliminate duplication and provide clear exception semantics.
"""

from typing import Optional


# ============================================================================
# Base Exceptions
# ============================================================================


class MsvcKitError(Exception):
    """Base exception for all msvckit errors."""

    pass


# ============================================================================
# Package Identity Exceptions
# ============================================================================


class PackageParseError(MsvcKitError):
    """Base exception for malformed package pool strings."""

    pass


class UnknownPackageKindError(PackageParseError):
    """Raised when a pool string does not start with a known package kind."""

    def __init__(self, text: str):
        self.text = text
        super().__init__("unknown package name")


class InvalidVersionError(PackageParseError):
    """Raised when the version part of a pool string is malformed."""

    def __init__(self, version: str):
        self.version = version
        super().__init__(f"invalid version '{version}'")


# ============================================================================
# Lock File Exceptions
# ============================================================================


class LockFileError(MsvcKitError):
    """Base exception for lock file errors."""

    pass


class LockFileParseError(LockFileError):
    """Raised when a lock file line cannot be parsed."""

    def __init__(self, path: str, lineno: int, message: str):
        self.path = path
        self.lineno = lineno
        self.message = message
        super().__init__(f"{path}:{lineno}: {message}")


class LockFileMismatchError(LockFileError):
    """Raised when a regenerated lock file still does not match the request."""

    pass


# ============================================================================
# Manifest Exceptions
# ============================================================================


class ManifestError(MsvcKitError):
    """Raised when a vendor or channel manifest has an unexpected shape."""

    pass


# ============================================================================
# Network Exceptions
# ============================================================================


class DownloadError(MsvcKitError):
    """Raised when a download fails."""

    pass


class ChecksumError(DownloadError):
    """Raised when downloaded content does not hash to the expected value."""

    def __init__(self, name: str, expected: str, actual: str):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"SHA256 mismatch for {name}:\n" f"expected: {expected}\n" f"actual  : {actual}"
        )


# ============================================================================
# Install Exceptions
# ============================================================================


class InstallError(MsvcKitError):
    """Base exception for install engine errors."""

    pass


class ExtractionError(InstallError):
    """Raised when a payload archive cannot be extracted."""

    def __init__(self, message: str, archive: Optional[str] = None):
        self.archive = archive
        if archive:
            message = f"{archive}: {message}"
        super().__init__(message)


# ============================================================================
# Configuration Exceptions
# ============================================================================


class ConfigError(MsvcKitError):
    """Raised when configuration values are invalid."""

    pass

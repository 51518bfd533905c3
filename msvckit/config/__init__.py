"""
Lock files and settings for msvckit.
"""

from .lockfile import (
    Cab,
    LockFileManager,
    LockFilePayload,
    TopLevel,
    check_lock_file_pkgs,
    parse_line,
    write_line,
)
from .settings import Settings, load_settings

__all__ = [
    "Cab",
    "LockFileManager",
    "LockFilePayload",
    "TopLevel",
    "check_lock_file_pkgs",
    "parse_line",
    "write_line",
    "Settings",
    "load_settings",
]

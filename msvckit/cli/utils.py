"""
Shared helpers for msvckit CLI commands.
"""

import sys
from typing import List, Optional

from msvckit.config.settings import load_settings
from msvckit.core.exceptions import PackageParseError
from msvckit.packages.identity import TargetPackage, insert_sorted
from msvckit.toolchain.manager import ToolchainManager


class InvalidPackageError(ValueError):
    """Raised for a command-line package that is not a valid pool string."""


def parse_packages(texts: List[str]) -> List[TargetPackage]:
    """
    Parse command-line packages into the sorted, unique requested set.

    Raises:
        InvalidPackageError: Naming the first invalid package
    """
    requested: List[TargetPackage] = []
    for text in texts:
        try:
            insert_sorted(requested, TargetPackage.parse(text))
        except PackageParseError as e:
            raise InvalidPackageError(f"invalid package '{text}': {e}") from e
    return requested


def create_manager(args, cache_dir: Optional[str] = None) -> ToolchainManager:
    """Build a ToolchainManager from the global --config/--data-dir options."""
    settings = load_settings(
        config_path=getattr(args, "config", None),
        data_dir=getattr(args, "data_dir", None),
    )
    return ToolchainManager(settings, cache_dir=cache_dir)


def print_error(message: str, details: Optional[str] = None):
    """
    Print error message to stderr in consistent format.

    Args:
        message: Main error message
        details: Optional additional details
    """
    print(f"ERROR: {message}", file=sys.stderr)
    if details:
        print(f"  {details}", file=sys.stderr)

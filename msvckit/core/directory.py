"""
Directory structure management for msvckit.

This module resolves the tool-owned data directory and the well-known paths
inside it.

Directory Structure:
    Data directory (C:\\msvckit on Windows, ~/.local/share/msvckit elsewhere):
        - cache/                      : content-addressed payload cache
        - manifest/<subdir>/latest    : cached channel URL and manifests
        - <kind>-<version>/           : one install root per target package
            - .lock                   : install lock
            - install/current         : in-progress install manifest
            - install/<entry>.files   : committed install manifests
"""

import os
from pathlib import Path
from typing import Union

DATA_DIR_ENV = "MSVCKIT_DATA_DIR"


def get_default_data_dir() -> Path:
    """
    Get the platform-specific default data directory path.

    Returns:
        Path: The data directory path.
            - Windows: C:\\msvckit
            - Linux/macOS: $XDG_DATA_HOME/msvckit or ~/.local/share/msvckit

    Example:
        >>> get_default_data_dir()
        PosixPath('/home/user/.local/share/msvckit')  # on Linux
    """
    if os.name == "nt":
        return Path("C:\\msvckit")

    xdg_data_home = os.environ.get("XDG_DATA_HOME")
    if xdg_data_home:
        return Path(xdg_data_home) / "msvckit"
    return Path.home() / ".local" / "share" / "msvckit"


class DataDir:
    """
    The msvckit data directory.

    Attributes:
        root_path: Root of the data directory
    """

    def __init__(self, root_path: Union[str, Path]):
        self.root_path = Path(root_path)

    def path(self, *parts: str) -> Path:
        """Join path components onto the data directory root."""
        return self.root_path.joinpath(*parts)

    @property
    def default_cache_dir(self) -> Path:
        return self.path("cache")

    def install_dir(self, pool_string: str) -> Path:
        """Install root for a target package."""
        return self.path(pool_string)

    def __repr__(self) -> str:
        return f"DataDir({str(self.root_path)!r})"


__all__ = ["DATA_DIR_ENV", "DataDir", "get_default_data_dir"]

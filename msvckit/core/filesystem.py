"""
File system utilities for msvckit.

This module provides:
- Safe file operations (atomic writes, safe deletion)
- URL path helpers (percent decoding, basenames)
- ZIP/VSIX member selection for payload extraction
"""

import os
import shutil
import tempfile
import zipfile
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple, Union
from urllib.parse import unquote

from msvckit.core.exceptions import ExtractionError


class FilesystemError(Exception):
    """Base exception for filesystem operations."""

    pass


# ============================================================================
# URL Helpers
# ============================================================================


def percent_decode(text: str) -> str:
    """
    Decode %XX escapes; invalid UTF-8 sequences are replaced.

    Example:
        >>> percent_decode("Windows%20SDK")
        'Windows SDK'
    """
    return unquote(text, errors="replace")


def basename_from_url(url: str) -> str:
    """
    Return the part of a URL after its last '/'.

    Example:
        >>> basename_from_url("https://example.com/a/b/payload.vsix")
        'payload.vsix'
    """
    return url.rsplit("/", 1)[-1]


# ============================================================================
# Archive Member Selection
# ============================================================================


class ZipKind(Enum):
    """Archive flavours, valued by the member prefix that gets installed."""

    VSIX = "Contents/"
    ZIP = ""

    @property
    def prefix(self) -> str:
        return self.value


def _reject_dot_components(path: str, archive_name: str) -> None:
    for part in path.split("/"):
        if part in (".", ".."):
            raise ExtractionError(
                f"ZIP filename contains '.' or '..' component: '{path}'", archive_name
            )


def select_zip_members(
    zf: zipfile.ZipFile,
    kind: ZipKind,
    strip_root_dir: bool = False,
    archive_name: str = "",
) -> List[Tuple[zipfile.ZipInfo, str]]:
    """
    Pick the archive members to install and compute their relative paths.

    Members are filtered to the kind's prefix (which is then removed),
    percent-decoded and, if requested, have their single shared root
    directory stripped. Directory entries are skipped.

    Args:
        zf: Open archive
        kind: ZipKind.VSIX or ZipKind.ZIP
        strip_root_dir: Remove one leading path segment shared by every member
        archive_name: Name used in error messages

    Returns:
        List of (member, relative '/'-separated path) in archive order

    Raises:
        ExtractionError: On '.'/'..' path components, or when root stripping
            is requested and members do not share one root directory
    """
    selected = []
    last_root_dir: Optional[str] = None

    for info in zf.infolist():
        filename = info.filename.replace("\\", "/")

        if not filename or filename.startswith("/"):
            continue

        _reject_dot_components(filename, archive_name)

        if not filename.startswith(kind.prefix) or filename.endswith("/"):
            continue

        sub_path = percent_decode(filename[len(kind.prefix) :])
        _reject_dot_components(sub_path, archive_name)

        if strip_root_dir:
            root_dir, sep, rest = sub_path.partition("/")
            if not sep:
                raise ExtractionError(
                    f"no root dir to strip from '{sub_path}'", archive_name
                )
            if last_root_dir is not None and last_root_dir != root_dir:
                raise ExtractionError(
                    f"root dir changed from '{last_root_dir}' to '{root_dir}', cannot strip",
                    archive_name,
                )
            last_root_dir = root_dir
            sub_path = rest

        sub_path = sub_path.lstrip("/")
        if sub_path:
            selected.append((info, sub_path))

    return selected


def copy_zip_member(zf: zipfile.ZipFile, info: zipfile.ZipInfo, destination: Path) -> None:
    """Write one archive member's content to `destination`."""
    with zf.open(info, "r") as src, open(destination, "wb") as dst:
        shutil.copyfileobj(src, dst)


# ============================================================================
# Safe File Operations
# ============================================================================


def atomic_write(
    file_path: Union[str, Path], content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Write file atomically using temp file + rename.

    This ensures the file is never in a partially-written state.
    If the write fails, the original file (if any) remains unchanged.

    Args:
        file_path: Path to write to
        content: Content to write (string or bytes)
        encoding: Text encoding (used only for string content)

    Example:
        >>> atomic_write('install/current', '{"state": "pending"}')
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Create temp file in same directory (ensures same filesystem)
    temp_fd, temp_path_str = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    temp_path = Path(temp_path_str)

    try:
        if isinstance(content, str):
            with open(temp_fd, "w", encoding=encoding, newline="\n") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
        else:
            with open(temp_fd, "wb") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())

        # Atomic rename (replaces destination if it exists)
        temp_path.replace(file_path)

    except Exception:
        temp_path.unlink(missing_ok=True)
        raise


def remove_file_if_exists(path: Union[str, Path]) -> bool:
    """
    Delete a file, treating a missing file as success.

    Returns:
        True if a file was removed, False if it did not exist
    """
    try:
        Path(path).unlink()
        return True
    except FileNotFoundError:
        return False


def safe_rmtree(
    path: Union[str, Path], require_prefix: Optional[Union[str, Path]] = None
) -> None:
    """
    Safely remove a directory tree with safeguards.

    Args:
        path: Directory to remove
        require_prefix: If specified, path must be under this directory

    Raises:
        ValueError: If path is not under require_prefix
        FilesystemError: If deletion fails

    Example:
        >>> safe_rmtree(install_dir / '.msi-staging', require_prefix=install_dir)
    """
    path = Path(path).resolve()

    if require_prefix is not None:
        require_prefix = Path(require_prefix).resolve()
        if not path.is_relative_to(require_prefix):
            raise ValueError(
                f"Refusing to delete '{path}': not under required prefix '{require_prefix}'"
            )

    if not path.exists():
        return

    if not path.is_dir():
        raise FilesystemError(f"Path is not a directory: {path}")

    try:
        shutil.rmtree(path)
    except OSError as e:
        raise FilesystemError(f"Failed to remove directory '{path}': {e}") from e


def update_file(path: Union[str, Path], content: bytes) -> bool:
    """
    Write `content` to `path` only if it differs from what is there.

    Returns:
        True if the file was (re)written
    """
    path = Path(path)
    try:
        if path.read_bytes() == content:
            return False
    except FileNotFoundError:
        pass
    atomic_write(path, content)
    return True


__all__ = [
    "FilesystemError",
    "ZipKind",
    "atomic_write",
    "basename_from_url",
    "copy_zip_member",
    "percent_decode",
    "remove_file_if_exists",
    "safe_rmtree",
    "select_zip_members",
    "update_file",
]

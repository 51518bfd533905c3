"""
Persisted install state for one install directory.

Every payload install is journalled under ``<install dir>/install/``:

- ``current``: the in-progress install (state ``pending``). It names the
  cache entry being installed and lists every file the install will place,
  as ``new`` (created by this payload, removed on rollback) or ``add``
  (already present, owned by another payload, never removed).
- ``<cache entry>.files``: the committed record (state ``committed``). Its
  existence means the payload is installed.

Both files are JSON, written with temp-file + rename so a reader never sees
a partial write.

Example:
    >>> manifest = InstallManifest(install_dir)
    >>> manifest.recover()
    >>> if not manifest.is_installed(entry):
    ...     state = manifest.begin(entry, records)
    ...     # place files
    ...     manifest.commit(state)
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from msvckit.core.exceptions import InstallError
from msvckit.core.filesystem import atomic_write, remove_file_if_exists

logger = logging.getLogger(__name__)

STATE_FORMAT_VERSION = 1
STATE_PENDING = "pending"
STATE_COMMITTED = "committed"
ACTION_NEW = "new"
ACTION_ADD = "add"


@dataclass(frozen=True)
class InstallRecord:
    """One file placed by an install: action is 'new' or 'add'."""

    action: str
    path: str

    def to_dict(self) -> dict:
        return {"action": self.action, "path": self.path}

    @staticmethod
    def from_dict(data: dict) -> "InstallRecord":
        action = data["action"]
        if action not in (ACTION_NEW, ACTION_ADD):
            raise ValueError(f"unknown install action '{action}'")
        return InstallRecord(action=action, path=data["path"])


@dataclass
class InstallState:
    """
    Journal of one payload install.

    Attributes:
        state: 'pending' or 'committed'
        cache_entry: Basename of the cache entry being installed
        records: Files placed, in install order
    """

    state: str
    cache_entry: str
    records: List[InstallRecord] = field(default_factory=list)

    @property
    def new_paths(self) -> List[str]:
        return [r.path for r in self.records if r.action == ACTION_NEW]

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "version": STATE_FORMAT_VERSION,
            "state": self.state,
            "cache_entry": self.cache_entry,
            "records": [r.to_dict() for r in self.records],
        }

    @staticmethod
    def from_dict(data: dict) -> "InstallState":
        """Create from dictionary loaded from JSON."""
        state = data["state"]
        if state not in (STATE_PENDING, STATE_COMMITTED):
            raise ValueError(f"unknown install state '{state}'")
        return InstallState(
            state=state,
            cache_entry=data["cache_entry"],
            records=[InstallRecord.from_dict(r) for r in data.get("records", [])],
        )


class InstallManifest:
    """
    Install journal of one install directory.

    Callers must hold the install directory lock.

    Attributes:
        install_dir: Install root of a target package
        journal_dir: ``<install_dir>/install``
    """

    def __init__(self, install_dir: Union[str, Path]):
        self.install_dir = Path(install_dir)
        self.journal_dir = self.install_dir / "install"

    @property
    def current_path(self) -> Path:
        return self.journal_dir / "current"

    def files_path(self, cache_entry: str) -> Path:
        return self.journal_dir / f"{cache_entry}.files"

    def is_installed(self, cache_entry: str) -> bool:
        return self.files_path(cache_entry).exists()

    def load(self, path: Path) -> Optional[InstallState]:
        """
        Read a journal file.

        Returns:
            The state, or None if the file does not exist

        Raises:
            InstallError: If the file is corrupted
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return InstallState.from_dict(data)
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, TypeError, KeyError, ValueError) as e:
            raise InstallError(f"Failed to load install journal {path}: {e}") from e

    def _save(self, path: Path, state: InstallState) -> None:
        atomic_write(path, json.dumps(state.to_dict(), indent=2))

    def recover(self) -> None:
        """
        Roll back an interrupted install, if any.

        Files recorded as ``new`` are deleted (already-missing files are
        fine); ``add`` files are left alone. If the interrupted install had
        already committed, only the stale ``current`` is removed.
        """
        stale = self.load(self.current_path)
        if stale is None:
            return

        if self.is_installed(stale.cache_entry):
            logger.info(f"{stale.cache_entry}: install was committed, removing stale journal")
        else:
            logger.info("found previous install manifest, cleaning up...")
            for path in stale.new_paths:
                logger.info(f"removing file '{path}'")
                remove_file_if_exists(path)

        remove_file_if_exists(self.current_path)

    def begin(self, cache_entry: str, records: List[InstallRecord]) -> InstallState:
        """Persist the pending journal before any file is placed."""
        state = InstallState(state=STATE_PENDING, cache_entry=cache_entry, records=list(records))
        self._save(self.current_path, state)
        return state

    def commit(self, state: InstallState) -> Path:
        """
        Mark an install as done: write ``<cache entry>.files``, then drop
        ``current``.

        Returns:
            Path of the committed record
        """
        committed = InstallState(
            state=STATE_COMMITTED, cache_entry=state.cache_entry, records=state.records
        )
        files_path = self.files_path(state.cache_entry)
        self._save(files_path, committed)
        remove_file_if_exists(self.current_path)
        return files_path


__all__ = [
    "ACTION_ADD",
    "ACTION_NEW",
    "InstallManifest",
    "InstallRecord",
    "InstallState",
]

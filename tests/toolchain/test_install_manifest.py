"""
Unit tests for the install journal.

Tests cover:
- Pending/committed JSON round trip
- Crash recovery of 'new' files while keeping 'add' files
- Stale journals of committed installs
- Corrupted journals
"""

import json

import pytest

from msvckit.core.exceptions import InstallError
from msvckit.toolchain.install_manifest import (
    ACTION_ADD,
    ACTION_NEW,
    InstallManifest,
    InstallRecord,
    InstallState,
)

ENTRY = "a" * 64 + "-tools.vsix"


@pytest.fixture
def manifest(tmp_path):
    return InstallManifest(tmp_path / "msvc-14.40.17.10")


class TestInstallState:
    """Tests for InstallState serialization."""

    def test_round_trip(self):
        state = InstallState(
            "pending", ENTRY, [InstallRecord(ACTION_NEW, "/x/a"), InstallRecord(ACTION_ADD, "/x/b")]
        )
        data = state.to_dict()
        assert data["version"] == 1
        assert InstallState.from_dict(data) == state
        assert state.new_paths == ["/x/a"]

    def test_rejects_unknown_action(self):
        with pytest.raises(ValueError):
            InstallRecord.from_dict({"action": "delete", "path": "/x"})


class TestInstallManifest:
    """Tests for InstallManifest."""

    def test_begin_then_commit(self, manifest):
        records = [InstallRecord(ACTION_NEW, str(manifest.install_dir / "bin" / "cl.exe"))]

        state = manifest.begin(ENTRY, records)
        current = json.loads(manifest.current_path.read_text())
        assert current["state"] == "pending"
        assert current["cache_entry"] == ENTRY
        assert not manifest.is_installed(ENTRY)

        files_path = manifest.commit(state)

        assert files_path == manifest.journal_dir / f"{ENTRY}.files"
        assert manifest.is_installed(ENTRY)
        assert not manifest.current_path.exists()
        committed = manifest.load(files_path)
        assert committed.state == "committed"
        assert committed.records == records

    def test_recover_after_crash(self, manifest):
        """Test an interrupted install loses its 'new' files and keeps 'add' files."""
        root = manifest.install_dir
        root.mkdir(parents=True)
        (root / "a").write_text("new a")
        (root / "c").write_text("shared c")
        manifest.begin(
            ENTRY,
            [
                InstallRecord(ACTION_NEW, str(root / "a")),
                InstallRecord(ACTION_NEW, str(root / "b")),  # never written
                InstallRecord(ACTION_ADD, str(root / "c")),
            ],
        )

        manifest.recover()

        assert not (root / "a").exists()
        assert not (root / "b").exists()
        assert (root / "c").read_text() == "shared c"
        assert not manifest.current_path.exists()
        assert not manifest.is_installed(ENTRY)

    def test_recover_committed_keeps_files(self, manifest):
        """Test a crash between commit and journal removal keeps the install."""
        root = manifest.install_dir
        root.mkdir(parents=True)
        (root / "a").write_text("a")
        state = manifest.begin(ENTRY, [InstallRecord(ACTION_NEW, str(root / "a"))])
        manifest.commit(state)
        manifest.begin(ENTRY, state.records)

        manifest.recover()

        assert (root / "a").exists()
        assert manifest.is_installed(ENTRY)
        assert not manifest.current_path.exists()

    def test_recover_nothing(self, manifest):
        manifest.recover()
        assert not manifest.journal_dir.exists()

    def test_corrupt_journal(self, manifest):
        manifest.journal_dir.mkdir(parents=True)
        manifest.current_path.write_text("{not json")
        with pytest.raises(InstallError, match="Failed to load install journal"):
            manifest.recover()

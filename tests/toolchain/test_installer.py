"""
Unit tests for payload installation.

Payload archives are placed straight into the cache so no network access is
needed.
"""

import io
import json
import logging
import zipfile
from unittest.mock import patch

import pytest

from msvckit.config.lockfile import parse_line
from msvckit.core.exceptions import ExtractionError, InstallError
from msvckit.core.filesystem import copy_zip_member
from msvckit.toolchain.cache import PayloadCache, cache_entry_name
from msvckit.toolchain.install_manifest import ACTION_ADD, InstallManifest, InstallRecord
from msvckit.toolchain.installer import PayloadInstaller, plan_records

VSIX_URL = "https://example.com/msvc/tools.vsix"


@pytest.fixture
def cache(tmp_path):
    return PayloadCache(tmp_path / "cache", max_retries=1)


@pytest.fixture
def installer(cache):
    return PayloadInstaller(cache)


@pytest.fixture
def cached_payload(cache, zip_bytes, sha256_hex):
    """Place an archive in the cache and return its lock file payload."""

    def _cached(target, url, entries):
        data = zip_bytes(entries)
        sha = sha256_hex(data)
        cache.cache_dir.mkdir(parents=True, exist_ok=True)
        cache.entry_path(sha, url).write_bytes(data)
        return parse_line(f"{target}|{url}|{sha}")

    return _cached


@pytest.fixture
def vsix(cached_payload):
    return cached_payload(
        "msvc-14.40.17.10",
        VSIX_URL,
        {
            "Contents/VC/Tools/MSVC/14.40.33807/bin/cl.exe": b"cl",
            "Contents/VC/Tools/MSVC/14.40.33807/include/vector": b"vector",
            "extension.vsixmanifest": b"<x/>",
        },
    )


class TestPlanRecords:
    def test_existing_files_are_added(self, tmp_path):
        (tmp_path / "exists").write_text("x")
        assert plan_records([tmp_path / "exists", tmp_path / "missing"]) == [
            InstallRecord("add", str(tmp_path / "exists")),
            InstallRecord("new", str(tmp_path / "missing")),
        ]


class TestPayloadInstaller:
    """Tests for PayloadInstaller.install()."""

    def test_installs_vsix_contents(self, installer, vsix, tmp_path):
        install_dir = tmp_path / "msvc-14.40.17.10"

        assert installer.install(install_dir, vsix) is True

        tools = install_dir / "VC" / "Tools" / "MSVC" / "14.40.33807"
        assert (tools / "bin" / "cl.exe").read_bytes() == b"cl"
        assert (tools / "include" / "vector").read_bytes() == b"vector"
        assert not (install_dir / "extension.vsixmanifest").exists()

        manifest = InstallManifest(install_dir)
        entry = cache_entry_name(vsix.sha256, VSIX_URL)
        assert manifest.is_installed(entry)
        assert not manifest.current_path.exists()

    def test_idempotent(self, installer, vsix, tmp_path, caplog):
        """Test a second install extracts nothing."""
        install_dir = tmp_path / "msvc-14.40.17.10"

        with patch("msvckit.toolchain.installer.copy_zip_member", wraps=copy_zip_member) as copy:
            with caplog.at_level(logging.INFO):
                assert installer.install(install_dir, vsix) is True
                assert installer.install(install_dir, vsix) is False

        assert copy.call_count == 2
        assert "ALREADY INSTALLED | tools.vsix" in caplog.text

    def test_existing_files_are_not_overwritten(self, installer, vsix, tmp_path):
        """Test files placed by another payload are recorded as 'add' and kept."""
        install_dir = tmp_path / "msvc-14.40.17.10"
        shared = install_dir / "VC" / "Tools" / "MSVC" / "14.40.33807" / "include" / "vector"
        shared.parent.mkdir(parents=True)
        shared.write_bytes(b"from another payload")

        installer.install(install_dir, vsix)

        assert shared.read_bytes() == b"from another payload"
        manifest = InstallManifest(install_dir)
        state = manifest.load(manifest.files_path(cache_entry_name(vsix.sha256, VSIX_URL)))
        assert InstallRecord(ACTION_ADD, str(shared)) in state.records

    def test_recovers_interrupted_install(self, installer, vsix, tmp_path):
        """Test a crash mid-extraction is rolled back by the next install."""
        install_dir = tmp_path / "msvc-14.40.17.10"
        calls = []

        def fail_second(zf, info, dest):
            calls.append(dest)
            if len(calls) == 2:
                raise OSError("disk full")
            copy_zip_member(zf, info, dest)

        with patch("msvckit.toolchain.installer.copy_zip_member", side_effect=fail_second):
            with pytest.raises(ExtractionError, match="disk full"):
                installer.install(install_dir, vsix)

        manifest = InstallManifest(install_dir)
        assert manifest.current_path.exists()
        assert calls[0].exists()

        assert installer.install(install_dir, vsix) is True
        assert not manifest.current_path.exists()
        assert (install_dir / "VC" / "Tools" / "MSVC" / "14.40.33807" / "bin" / "cl.exe").exists()

    def test_stale_journal_rolled_back_first(self, installer, vsix, tmp_path):
        """Test a stale journal loses its 'new' files, keeps 'add' files, then extraction runs."""
        install_dir = tmp_path / "msvc-14.40.17.10"
        install_dir.mkdir()
        for name in ("a", "b", "c"):
            (install_dir / name).write_text(name)
        InstallManifest(install_dir).begin(
            "0" * 64 + "-other.vsix",
            [
                InstallRecord("new", str(install_dir / "a")),
                InstallRecord("new", str(install_dir / "b")),
                InstallRecord("add", str(install_dir / "c")),
            ],
        )

        assert installer.install(install_dir, vsix) is True

        assert not (install_dir / "a").exists()
        assert not (install_dir / "b").exists()
        assert (install_dir / "c").read_text() == "c"
        assert (install_dir / "VC" / "Tools" / "MSVC" / "14.40.33807" / "bin" / "cl.exe").exists()

    def test_zip_strip_root_for_cmake(self, installer, cached_payload, tmp_path):
        url = "https://github.com/Kitware/CMake/releases/download/v3.30.2/cmake-3.30.2-windows-x86_64.zip"
        payload = cached_payload(
            "cmake-3.30.2",
            url,
            {
                "cmake-3.30.2-windows-x86_64/bin/cmake.exe": b"cmake",
                "cmake-3.30.2-windows-x86_64/share/cmake-3.30/Modules/X.cmake": b"x",
            },
        )
        install_dir = tmp_path / "cmake-3.30.2"

        installer.install(install_dir, payload)

        assert (install_dir / "bin" / "cmake.exe").read_bytes() == b"cmake"

    def test_duplicate_entries_first_wins(self, installer, tmp_path, cache, sha256_hex):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as zf:
            zf.writestr("ninja.exe", b"first")
            zf.writestr("ninja.exe", b"second")
        data = buffer.getvalue()
        sha = sha256_hex(data)
        url = "https://github.com/ninja-build/ninja/releases/download/v1.12.1/ninja-win.zip"
        cache.cache_dir.mkdir(parents=True)
        cache.entry_path(sha, url).write_bytes(data)

        install_dir = tmp_path / "ninja-1.12.1"
        installer.install(install_dir, parse_line(f"ninja-1.12.1|{url}|{sha}"))

        assert (install_dir / "ninja.exe").read_bytes() == b"first"

    def test_unsafe_archive_rejected(self, installer, cached_payload, tmp_path):
        payload = cached_payload("msvc-14.40.17.10", VSIX_URL, {"Contents/../evil.dll": b"x"})
        with pytest.raises(ExtractionError):
            installer.install(tmp_path / "msvc-14.40.17.10", payload)
        assert not (tmp_path / "evil.dll").exists()

    def test_msi_skipped_off_windows(self, installer, cached_payload, tmp_path, caplog):
        """Test MSI payloads are skipped with a warning and not marked installed."""
        url = "https://example.com/sdk/Windows SDK Desktop Headers x64-x86_en-us.msi"
        payload = cached_payload("sdk-10.0.22621.7", url, {"not": b"really an msi"})
        install_dir = tmp_path / "sdk-10.0.22621.7"

        with patch("msvckit.toolchain.installer.is_windows", return_value=False):
            with caplog.at_level(logging.WARNING):
                assert installer.install(install_dir, payload) is False

        assert "only supported on Windows" in caplog.text
        assert not InstallManifest(install_dir).is_installed(cache_entry_name(payload.sha256, url))

    def test_cab_payload_rejected(self, installer, tmp_path):
        cab = parse_line(f"|https://example.com/sdk/a.cab|{'f' * 64} a.cab")
        with pytest.raises(InstallError, match="cab payload"):
            installer.install(tmp_path / "sdk", cab)

    def test_committed_journal_is_json(self, installer, vsix, tmp_path):
        install_dir = tmp_path / "msvc-14.40.17.10"
        installer.install(install_dir, vsix)
        files_path = InstallManifest(install_dir).files_path(cache_entry_name(vsix.sha256, VSIX_URL))
        data = json.loads(files_path.read_text())
        assert data["state"] == "committed"
        assert len(data["records"]) == 2

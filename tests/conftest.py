"""
Pytest configuration and shared fixtures for msvckit tests.
"""

import hashlib
import io
import json
import zipfile
from pathlib import Path
from typing import Callable, Dict

import pytest

from msvckit.config.settings import Settings
from msvckit.core.directory import DataDir


def sha256_of(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def build_zip(entries: Dict[str, bytes]) -> bytes:
    """Build an in-memory ZIP whose members are `entries` (name -> content)."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in entries.items():
            zf.writestr(name, content)
    return buffer.getvalue()


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def zip_bytes() -> Callable[[Dict[str, bytes]], bytes]:
    """Factory building ZIP archive bytes from a name -> content mapping."""
    return build_zip


@pytest.fixture
def sha256_hex() -> Callable[[bytes], str]:
    """SHA256 hex digest helper."""
    return sha256_of


@pytest.fixture
def make_zip(tmp_path: Path) -> Callable[[str, Dict[str, bytes]], Path]:
    """Factory writing a ZIP archive to tmp_path and returning its path."""

    def _make(name: str, entries: Dict[str, bytes]) -> Path:
        path = tmp_path / name
        path.write_bytes(build_zip(entries))
        return path

    return _make


@pytest.fixture
def data_dir(tmp_path: Path) -> DataDir:
    """Empty msvckit data directory."""
    root = tmp_path / "data"
    root.mkdir()
    return DataDir(root)


@pytest.fixture
def settings(data_dir: DataDir) -> Settings:
    """Settings pointing at the temporary data directory."""
    return Settings(data_dir=data_dir.root_path, max_retries=1)


@pytest.fixture
def isolated_env(tmp_path: Path, monkeypatch) -> Path:
    """Isolate data directory lookups from the real environment."""
    fake_home = tmp_path / "home"
    fake_home.mkdir()
    monkeypatch.setenv("HOME", str(fake_home))
    monkeypatch.setenv("USERPROFILE", str(fake_home))
    monkeypatch.delenv("MSVCKIT_DATA_DIR", raising=False)
    monkeypatch.delenv("XDG_DATA_HOME", raising=False)
    return fake_home


@pytest.fixture
def vendor_manifest_text() -> str:
    """A small VS manifest covering each classified package form."""
    manifest = {
        "packages": [
            {
                "id": "Microsoft.VC.14.40.17.10.Tools.HostX64.TargetX64.base",
                "version": "14.40.33807",
                "payloads": [
                    {
                        "fileName": "payload.vsix",
                        "sha256": "A" * 64,
                        "url": "https://example.com/msvc/tools-hostx64-targetx64.vsix",
                    },
                    {
                        "fileName": "payload2.vsix",
                        "sha256": "b" * 64,
                        "url": "https://example.com/msvc/tools%20res.vsix",
                    },
                ],
            },
            {
                "id": "Microsoft.VC.14.40.17.10.CRT.Headers.base",
                "version": "14.40.33807",
                "payloads": [
                    {
                        "fileName": "payload.vsix",
                        "sha256": "c" * 64,
                        "url": "https://example.com/msvc/crt-headers.vsix",
                    }
                ],
            },
            {
                "id": "Microsoft.VC.14.40.17.10.Tools.HostX64.TargetX64.base.resources",
                "version": "14.40.33807",
                "language": "de-DE",
                "payloads": [
                    {
                        "fileName": "payload.vsix",
                        "sha256": "d" * 64,
                        "url": "https://example.com/msvc/resources-de.vsix",
                    }
                ],
            },
            {"id": "Microsoft.VisualStudio.Unrelated", "version": "1.0"},
            {
                "id": "Win10SDK_10.0.22621",
                "version": "10.0.22621.7",
                "payloads": [
                    {
                        "fileName": "Installers\\Windows SDK Desktop Headers x64-x86_en-us.msi",
                        "sha256": "e" * 64,
                        "url": "https://example.com/sdk/Windows%20SDK%20Desktop%20Headers%20x64-x86_en-us.msi",
                    },
                    {
                        "fileName": "Installers\\0123abcd.cab",
                        "sha256": "f" * 64,
                        "url": "https://example.com/sdk/0123abcd.cab",
                    },
                ],
            },
            {
                "id": "ninja-1.12.1",
                "version": "1.12.1",
                "payloads": [
                    {
                        "fileName": "ninja-win.zip",
                        "sha256": "1" * 64,
                        "url": "https://github.com/ninja-build/ninja/releases/download/v1.12.1/ninja-win.zip",
                    }
                ],
            },
        ]
    }
    return json.dumps(manifest)

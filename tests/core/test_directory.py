"""
Unit tests for data directory resolution.
"""

import os

import pytest

from msvckit.core.directory import DataDir, get_default_data_dir


@pytest.mark.skipif(os.name == "nt", reason="fixed location on Windows")
class TestDefaultDataDir:
    """Tests for get_default_data_dir()."""

    def test_xdg_data_home(self, isolated_env, monkeypatch, tmp_path):
        """Test XDG_DATA_HOME is honoured off Windows."""
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg"))
        assert get_default_data_dir() == tmp_path / "xdg" / "msvckit"

    def test_home_fallback(self, isolated_env):
        """Test ~/.local/share fallback."""
        assert get_default_data_dir() == isolated_env / ".local" / "share" / "msvckit"


class TestDataDir:
    """Tests for DataDir paths."""

    def test_paths(self, tmp_path):
        """Test well-known paths inside the data directory."""
        data = DataDir(tmp_path)
        assert data.default_cache_dir == tmp_path / "cache"
        assert data.install_dir("msvc-14.40.17.10") == tmp_path / "msvc-14.40.17.10"
        assert data.path("manifest", "vs-release", "latest") == tmp_path / "manifest" / "vs-release" / "latest"

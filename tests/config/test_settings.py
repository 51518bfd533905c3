"""
Unit tests for YAML settings loading.
"""

import logging

import pytest
import yaml

from msvckit.config.settings import CONFIG_FILENAME, Settings, load_settings
from msvckit.core.exceptions import ConfigError
from msvckit.core.locking import BLOCK_FOREVER
from msvckit.packages.manifest import ChannelKind, ManifestUpdate


def _write_config(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_defaults(self, isolated_env, tmp_path):
        settings = load_settings(data_dir=tmp_path / "data")
        assert settings == Settings(data_dir=tmp_path / "data")
        assert settings.lock_timeout == BLOCK_FOREVER
        assert settings.resolved_cache_dir == tmp_path / "data" / "cache"

    def test_config_in_data_dir(self, isolated_env, tmp_path):
        """Test msvckit.yaml inside the data directory is picked up."""
        data_dir = tmp_path / "data"
        _write_config(
            data_dir / CONFIG_FILENAME,
            {
                "cache_dir": str(tmp_path / "cache"),
                "channel": "preview",
                "manifest_update": "daily",
                "lock_timeout": 600,
                "http_timeout": 10,
                "max_retries": 5,
            },
        )

        settings = load_settings(data_dir=data_dir)

        assert settings.resolved_cache_dir == tmp_path / "cache"
        assert settings.channel is ChannelKind.PREVIEW
        assert settings.manifest_update is ManifestUpdate.DAILY
        assert settings.lock_timeout == 600
        assert settings.http_timeout == 10
        assert settings.max_retries == 5

    def test_env_data_dir(self, isolated_env, monkeypatch, tmp_path):
        monkeypatch.setenv("MSVCKIT_DATA_DIR", str(tmp_path / "env"))
        assert load_settings().data_dir == tmp_path / "env"

    def test_override_beats_env(self, isolated_env, monkeypatch, tmp_path):
        monkeypatch.setenv("MSVCKIT_DATA_DIR", str(tmp_path / "env"))
        assert load_settings(data_dir=tmp_path / "cli").data_dir == tmp_path / "cli"

    def test_explicit_config_data_dir(self, isolated_env, tmp_path):
        """Test data_dir from an explicit config file is used when nothing overrides it."""
        config = _write_config(tmp_path / "conf.yaml", {"data_dir": str(tmp_path / "from-config")})
        assert load_settings(config_path=config).data_dir == tmp_path / "from-config"

    def test_missing_explicit_config(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(config_path=tmp_path / "nope.yaml", data_dir=tmp_path)

    def test_invalid_yaml(self, tmp_path):
        config = tmp_path / "conf.yaml"
        config.write_text("channel: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_settings(config_path=config, data_dir=tmp_path)

    @pytest.mark.parametrize(
        "data,message",
        [
            ({"channel": "nightly"}, "'channel' must be"),
            ({"manifest_update": "weekly"}, "invalid manifest update value"),
            ({"lock_timeout": "soon"}, "'lock_timeout' must be a number"),
            ({"max_retries": 0}, "'max_retries' must be a positive integer"),
            ({"http_timeout": True}, "'http_timeout' must be a positive integer"),
        ],
    )
    def test_invalid_values(self, tmp_path, data, message):
        config = _write_config(tmp_path / "conf.yaml", data)
        with pytest.raises(ConfigError, match=message):
            load_settings(config_path=config, data_dir=tmp_path)

    def test_negative_lock_timeout_blocks(self, tmp_path):
        config = _write_config(tmp_path / "conf.yaml", {"lock_timeout": -5})
        assert load_settings(config_path=config, data_dir=tmp_path).lock_timeout == BLOCK_FOREVER

    def test_unknown_key_warns(self, tmp_path, caplog):
        config = _write_config(tmp_path / "conf.yaml", {"colour": "blue"})
        with caplog.at_level(logging.WARNING):
            load_settings(config_path=config, data_dir=tmp_path)
        assert "Ignoring unknown configuration key 'colour'" in caplog.text

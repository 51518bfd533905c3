"""YAML settings for msvckit.

Settings come from an optional ``msvckit.yaml`` file (``--config`` or
``<data dir>/msvckit.yaml``). Command-line options and the MSVCKIT_DATA_DIR
environment variable take precedence over the file.

Example ``msvckit.yaml``::

    cache_dir: D:/msvckit-cache
    channel: release
    manifest_update: daily
    lock_timeout: 600
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

import yaml

from msvckit.core.directory import DATA_DIR_ENV, DataDir, get_default_data_dir
from msvckit.core.exceptions import ConfigError
from msvckit.core.locking import BLOCK_FOREVER
from msvckit.packages.manifest import ChannelKind, ManifestUpdate

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "msvckit.yaml"

KNOWN_KEYS = (
    "data_dir",
    "cache_dir",
    "channel",
    "manifest_update",
    "lock_timeout",
    "http_timeout",
    "max_retries",
)


@dataclass
class Settings:
    """Resolved msvckit settings."""

    data_dir: Path
    cache_dir: Optional[Path] = None
    channel: ChannelKind = ChannelKind.RELEASE
    manifest_update: ManifestUpdate = ManifestUpdate.OFF
    lock_timeout: float = BLOCK_FOREVER
    http_timeout: int = 30
    max_retries: int = 3

    @property
    def data(self) -> DataDir:
        return DataDir(self.data_dir)

    @property
    def resolved_cache_dir(self) -> Path:
        return self.cache_dir if self.cache_dir is not None else self.data.default_cache_dir


def _load_yaml(config_path: Path) -> dict:
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: top level must be a mapping")
    return data


def _positive_int(data: dict, key: str, default: int) -> int:
    value = data.get(key, default)
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ConfigError(f"'{key}' must be a positive integer, got {value!r}")
    return value


def _parse_settings(data: dict, data_dir: Path) -> Settings:
    for key in data:
        if key not in KNOWN_KEYS:
            logger.warning(f"Ignoring unknown configuration key '{key}'")

    settings = Settings(data_dir=data_dir)

    if data.get("cache_dir") is not None:
        settings.cache_dir = Path(str(data["cache_dir"]))

    if "channel" in data:
        try:
            settings.channel = ChannelKind(data["channel"])
        except ValueError as e:
            raise ConfigError(
                f"'channel' must be 'release' or 'preview', got {data['channel']!r}"
            ) from e

    if "manifest_update" in data:
        try:
            settings.manifest_update = ManifestUpdate.parse(str(data["manifest_update"]))
        except ValueError as e:
            raise ConfigError(str(e)) from e

    if "lock_timeout" in data:
        timeout = data["lock_timeout"]
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            raise ConfigError(f"'lock_timeout' must be a number, got {timeout!r}")
        settings.lock_timeout = BLOCK_FOREVER if timeout < 0 else timeout

    settings.http_timeout = _positive_int(data, "http_timeout", settings.http_timeout)
    settings.max_retries = _positive_int(data, "max_retries", settings.max_retries)
    return settings


def load_settings(
    config_path: Optional[Union[str, Path]] = None,
    data_dir: Optional[Union[str, Path]] = None,
) -> Settings:
    """
    Load settings.

    The data directory is taken from `data_dir`, then MSVCKIT_DATA_DIR, then
    the config file's ``data_dir``, then the platform default. Without an
    explicit `config_path`, ``msvckit.yaml`` in the data directory is read if
    it exists.

    Args:
        config_path: Explicit configuration file (must exist)
        data_dir: Data directory override (``--data-dir``)

    Returns:
        Settings

    Raises:
        ConfigError: If the file is missing, invalid YAML, or has bad values
    """
    override = Path(data_dir) if data_dir else None
    if override is None and os.environ.get(DATA_DIR_ENV):
        override = Path(os.environ[DATA_DIR_ENV])

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigError(f"Configuration file not found: {config_path}")
    else:
        candidate = (override or get_default_data_dir()) / CONFIG_FILENAME
        config_path = candidate if candidate.is_file() else None

    data = _load_yaml(config_path) if config_path is not None else {}
    if config_path is not None:
        logger.debug(f"Loaded configuration from {config_path}")

    resolved_data_dir = override
    if resolved_data_dir is None and data.get("data_dir") is not None:
        resolved_data_dir = Path(str(data["data_dir"]))
    if resolved_data_dir is None:
        resolved_data_dir = get_default_data_dir()

    return _parse_settings(data, resolved_data_dir)


__all__ = ["CONFIG_FILENAME", "Settings", "load_settings"]

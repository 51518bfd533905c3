"""
Tests for the msvckit command-line interface.

Command handlers are exercised with the ToolchainManager mocked out.
"""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from msvckit.cli.parser import CLI
from msvckit.cli.utils import InvalidPackageError, parse_packages
from msvckit.core.exceptions import LockFileMismatchError
from msvckit.packages.identity import TargetPackage
from msvckit.packages.manifest import ManifestUpdate


@pytest.fixture
def cli():
    return CLI()


class TestArgumentParsing:
    """Tests for CLI argument parsing."""

    def test_install_args(self, cli):
        args = cli.parse_args(
            [
                "--data-dir",
                "/tmp/msvckit",
                "install",
                "msvc-14.40.17.10",
                "sdk-10.0.22621.7",
                "--lock-file",
                "msvc.lock",
                "--manifest-update",
                "daily",
            ]
        )
        assert args.command == "install"
        assert args.packages == ["msvc-14.40.17.10", "sdk-10.0.22621.7"]
        assert args.lock_file == "msvc.lock"
        assert args.manifest_update is ManifestUpdate.DAILY
        assert args.data_dir == Path("/tmp/msvckit")
        assert args.cache_dir is None

    def test_install_requires_lock_file(self, cli):
        with pytest.raises(SystemExit):
            cli.parse_args(["install", "msvc-14.40.17.10"])

    def test_invalid_manifest_update(self, cli):
        with pytest.raises(SystemExit):
            cli.parse_args(["install", "--lock-file", "x", "--manifest-update", "weekly"])

    def test_manifest_update_defaults_to_none(self, cli):
        args = cli.parse_args(["install", "--lock-file", "x"])
        assert args.manifest_update is None
        assert args.packages == []

    def test_fetch_args(self, cli):
        args = cli.parse_args(["fetch", "https://example.com/a.zip", "--cache-dir", "c"])
        assert args.url == "https://example.com/a.zip"
        assert args.cache_dir == "c"

    def test_no_command(self, cli, capsys):
        assert cli.run([]) == 1


class TestParsePackages:
    def test_sorted_unique(self):
        assert parse_packages(["sdk-10.0", "msvc-14.40", "sdk-10.0"]) == [
            TargetPackage.parse("msvc-14.40"),
            TargetPackage.parse("sdk-10.0"),
        ]

    def test_invalid(self):
        with pytest.raises(InvalidPackageError, match="invalid package 'msvc-14.x': invalid version"):
            parse_packages(["msvc-14.x"])


class TestCommands:
    """Tests for command dispatch."""

    def test_install(self, cli):
        manager = MagicMock()
        with patch("msvckit.cli.commands.install.create_manager", return_value=manager) as create:
            code = cli.run(
                ["install", "sdk-10.0.22621.7", "msvc-14.40.17.10", "--lock-file", "msvc.lock", "--cache-dir", "c"]
            )

        assert code == 0
        assert create.call_args.kwargs["cache_dir"] == "c"
        manager.install.assert_called_once_with(
            [TargetPackage.parse("msvc-14.40.17.10"), TargetPackage.parse("sdk-10.0.22621.7")],
            "msvc.lock",
            None,
        )

    def test_install_invalid_package(self, cli, capsys):
        with patch("msvckit.cli.commands.install.create_manager") as create:
            code = cli.run(["install", "gcc-13", "--lock-file", "msvc.lock"])

        assert code == 1
        create.assert_not_called()
        assert "invalid package 'gcc-13': unknown package name" in capsys.readouterr().err

    def test_errors_exit_1(self, cli):
        manager = MagicMock()
        manager.install.side_effect = LockFileMismatchError("still doesn't match")
        with patch("msvckit.cli.commands.install.create_manager", return_value=manager):
            assert cli.run(["install", "msvc-14.40", "--lock-file", "msvc.lock"]) == 1

    def test_keyboard_interrupt(self, cli):
        manager = MagicMock()
        manager.list_targets.side_effect = KeyboardInterrupt
        with patch("msvckit.cli.commands.list.create_manager", return_value=manager):
            assert cli.run(["list"]) == 130

    def test_list(self, cli, capsys):
        manager = MagicMock()
        manager.list_targets.return_value = [
            TargetPackage.parse("msvc-14.40.17.10"),
            TargetPackage.parse("ninja-1.12.1"),
        ]
        with patch("msvckit.cli.commands.list.create_manager", return_value=manager):
            assert cli.run(["list"]) == 0
        assert capsys.readouterr().out.splitlines() == ["msvc-14.40.17.10", "ninja-1.12.1"]

    def test_list_payloads(self, cli, capsys):
        manager = MagicMock()
        manager.list_payloads.return_value = [("payload.vsix", "Microsoft.VC.14.40.17.10.CRT.Headers.base")]
        with patch("msvckit.cli.commands.list_payloads.create_manager", return_value=manager):
            assert cli.run(["list-payloads"]) == 0
        assert capsys.readouterr().out == "payload.vsix (Microsoft.VC.14.40.17.10.CRT.Headers.base)\n"

    def test_fetch(self, cli, capsys):
        manager = MagicMock()
        manager.fetch.return_value = "ab" * 32
        with patch("msvckit.cli.commands.fetch.create_manager", return_value=manager):
            assert cli.run(["fetch", "https://github.com/x.zip"]) == 0
        assert capsys.readouterr().out.strip() == "ab" * 32

    def test_fetch_invalid_url(self, cli, capsys):
        with patch("msvckit.cli.commands.fetch.create_manager") as create:
            assert cli.run(["fetch", "not a url"]) == 1
        create.assert_not_called()
        assert "invalid URL" in capsys.readouterr().err

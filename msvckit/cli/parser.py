"""
msvckit CLI argument parser.

This module implements the command-line interface for msvckit using argparse.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from msvckit import __version__
from msvckit.packages.manifest import ManifestUpdate

logger = logging.getLogger(__name__)


class CLI:
    """msvckit command-line interface."""

    def __init__(self):
        """Initialize CLI with argument parser."""
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """
        Create argument parser with all subcommands.

        Returns:
            Configured ArgumentParser instance
        """
        parser = argparse.ArgumentParser(
            prog="msvckit",
            description="msvckit - MSVC toolchain package installer",
            epilog='Use "msvckit COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument("--version", action="version", version=f"msvckit {__version__}")
        parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")
        parser.add_argument(
            "--quiet",
            "-q",
            action="store_true",
            help="Enable minimal output (errors only)",
        )
        parser.add_argument(
            "--config",
            type=Path,
            metavar="PATH",
            help="Path to configuration file (default: <data dir>/msvckit.yaml)",
        )
        parser.add_argument(
            "--data-dir",
            type=Path,
            metavar="PATH",
            help="msvckit data directory (default: $MSVCKIT_DATA_DIR or platform default)",
        )

        # Subcommands
        subparsers = parser.add_subparsers(dest="command", help="Available commands", metavar="COMMAND")

        self._add_install_command(subparsers)
        self._add_list_command(subparsers)
        self._add_list_payloads_command(subparsers)
        self._add_fetch_command(subparsers)

        return parser

    def _add_install_command(self, subparsers):
        """Add 'install' subcommand."""
        parser = subparsers.add_parser(
            "install",
            help="Install packages",
            description="Install packages pinned by a lock file, regenerating it if needed",
        )
        parser.add_argument(
            "packages",
            nargs="*",
            metavar="PKG",
            help="Packages to install (e.g. msvc-14.40.17.10 sdk-10.0.22621.7)",
        )
        parser.add_argument("--lock-file", required=True, metavar="PATH", help="Path to lock file")
        parser.add_argument(
            "--manifest-update",
            type=ManifestUpdate.parse,
            default=None,
            metavar="off|daily|always",
            help="Manifest update policy (default: from configuration, else off)",
        )
        parser.add_argument("--cache-dir", metavar="DIR", help="Payload cache directory")

    def _add_list_command(self, subparsers):
        """Add 'list' subcommand."""
        subparsers.add_parser(
            "list",
            help="List all available packages",
            description="List every package the VS manifest can provide",
        )

    def _add_list_payloads_command(self, subparsers):
        """Add 'list-payloads' subcommand."""
        subparsers.add_parser(
            "list-payloads",
            help="List all payloads",
            description="List every neutral or en-US payload of the VS manifest",
        )

    def _add_fetch_command(self, subparsers):
        """Add 'fetch' subcommand."""
        parser = subparsers.add_parser(
            "fetch",
            help="Fetch a package URL",
            description="Download a ninja or cmake release asset into the cache and print its SHA256",
        )
        parser.add_argument("url", help="URL to fetch")
        parser.add_argument("--cache-dir", metavar="DIR", help="Payload cache directory")

    def parse_args(self, args: Optional[List[str]] = None):
        """
        Parse command-line arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Parsed arguments namespace
        """
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        parsed_args = self.parse_args(args)

        self._configure_logging(parsed_args)

        if not parsed_args.command:
            self.parser.print_help()
            return 1

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return 130  # Standard exit code for SIGINT
        except Exception as e:
            logger.error(f"Error: {e}")
            if parsed_args.verbose:
                import traceback

                traceback.print_exc()
            return 1

    def _configure_logging(self, args):
        """
        Configure logging based on verbose/quiet flags.

        Args:
            args: Parsed arguments with verbose/quiet flags
        """
        if args.verbose:
            level = logging.DEBUG
            format_str = "%(levelname)s [%(name)s] %(message)s"
        elif args.quiet:
            level = logging.ERROR
            format_str = "%(levelname)s: %(message)s"
        else:
            level = logging.INFO
            format_str = "%(message)s"

        logging.basicConfig(
            level=level,
            format=format_str,
            force=True,  # Reconfigure if already configured
        )

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        command_map = {
            "install": "msvckit.cli.commands.install",
            "list": "msvckit.cli.commands.list",
            "list-payloads": "msvckit.cli.commands.list_payloads",
            "fetch": "msvckit.cli.commands.fetch",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return 1

        module = importlib.import_module(module_name)
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()

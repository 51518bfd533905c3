"""
Install command implementation.

Installs target packages from a lock file, regenerating the lock file from
the VS manifest when it does not match the request.
"""

import logging

from msvckit.cli.utils import InvalidPackageError, create_manager, parse_packages, print_error

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the install command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    try:
        requested = parse_packages(args.packages)
    except InvalidPackageError as e:
        print_error(str(e))
        return 1

    logger.debug(f"Requested: {', '.join(str(p) for p in requested)}")
    manager = create_manager(args, cache_dir=args.cache_dir)
    manager.install(requested, args.lock_file, args.manifest_update)
    return 0

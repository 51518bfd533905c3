"""
Fetch command implementation.

Downloads a ninja or cmake release asset into the payload cache and prints
its SHA256, for pinning new tool versions.
"""

import logging
from urllib.parse import urlparse

from msvckit.cli.utils import create_manager, print_error

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the fetch command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    parsed = urlparse(args.url)
    if not parsed.scheme or not parsed.netloc:
        print_error(f"invalid URL '{args.url}'")
        return 1

    manager = create_manager(args, cache_dir=args.cache_dir)
    print(manager.fetch(args.url))
    return 0

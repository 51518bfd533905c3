"""
List command implementation.

Prints every target package the VS manifest can provide.
"""

from msvckit.cli.utils import create_manager


def run(args) -> int:
    """
    Run the list command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    manager = create_manager(args)
    for target in manager.list_targets():
        print(target)
    return 0

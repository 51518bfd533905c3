"""
List-payloads command implementation.
"""

from msvckit.cli.utils import create_manager


def run(args) -> int:
    """
    Run the list-payloads command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    manager = create_manager(args)
    for file_name, package_id in manager.list_payloads():
        print(f"{file_name} ({package_id})")
    return 0

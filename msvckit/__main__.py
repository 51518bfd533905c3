"""
Entry point for ``python -m msvckit``.
"""

from msvckit.cli.parser import main

if __name__ == "__main__":
    main()

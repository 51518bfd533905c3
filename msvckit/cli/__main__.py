"""
Entry point for running msvckit CLI as a module.

Usage: python -m msvckit.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()

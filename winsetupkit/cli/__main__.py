"""
Entry point for running WinSetupKit CLI as a module.

Usage: python -m winsetupkit.cli [command] [options]
"""

from .parser import main

if __name__ == "__main__":
    main()

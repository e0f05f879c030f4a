"""
Entry point for running WinSetupKit as a module.

Usage: python -m winsetupkit [command] [options]
"""

from winsetupkit.cli.parser import main

if __name__ == "__main__":
    main()

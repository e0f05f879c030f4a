"""
WinSetupKit CLI argument parser.

Headless front-end for the install engine: runs a catalog selection on a
background worker and prints progress to the console.
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path
from typing import List, Optional

from winsetupkit import __version__
from winsetupkit.config.settings import get_base_dir, load_settings
from winsetupkit.core.exceptions import ConfigurationError, WinSetupKitError
from winsetupkit.core.logsink import configure_logging

logger = logging.getLogger(__name__)

EXIT_FAILURES = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


class CLI:
    """WinSetupKit command-line interface."""

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
            prog="winsetupkit",
            description="WinSetupKit - Windows application installer",
            epilog='Use "winsetupkit COMMAND --help" for command-specific help',
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        # Global options
        parser.add_argument(
            "--version", action="version", version=f"WinSetupKit {__version__}"
        )
        parser.add_argument(
            "--verbose", "-v", action="store_true", help="Enable verbose output"
        )
        parser.add_argument(
            "--settings",
            type=Path,
            metavar="PATH",
            help="Path to settings file (default: <base dir>/settings.yaml)",
        )

        subparsers = parser.add_subparsers(
            dest="command", help="Available commands", metavar="COMMAND"
        )

        self._add_run_command(subparsers)
        self._add_resume_command(subparsers)
        self._add_status_command(subparsers)

        return parser

    def _add_run_command(self, subparsers):
        """Add 'run' subcommand."""
        parser = subparsers.add_parser(
            "run",
            help="Install applications from a catalog",
            description="Install the selected (or default) applications from a catalog",
        )
        parser.add_argument(
            "--catalog",
            type=Path,
            required=True,
            metavar="PATH",
            help="Catalog file (JSON or YAML)",
        )
        selection = parser.add_mutually_exclusive_group()
        selection.add_argument(
            "--select",
            metavar="KEYS",
            help="Comma-separated catalog keys to install",
        )
        selection.add_argument(
            "--defaults",
            action="store_true",
            help="Install the catalog defaults for this Windows release (default)",
        )
        parser.add_argument(
            "--no-package-manager",
            action="store_true",
            help="Install everything by direct download",
        )

    def _add_resume_command(self, subparsers):
        """Add 'resume' subcommand."""
        parser = subparsers.add_parser(
            "resume",
            help="Retry items left unfinished by an earlier run",
            description="Retry every item recorded as InProgress or Failed",
        )
        parser.add_argument(
            "--catalog",
            type=Path,
            required=True,
            metavar="PATH",
            help="Catalog file (JSON or YAML)",
        )
        parser.add_argument(
            "--no-package-manager",
            action="store_true",
            help="Install everything by direct download",
        )

    def _add_status_command(self, subparsers):
        """Add 'status' subcommand."""
        parser = subparsers.add_parser(
            "status",
            help="Show recorded install state",
            description="Show the operation-state records of earlier runs",
        )
        parser.add_argument(
            "--resumable",
            action="store_true",
            help="Only show items that 'resume' would retry",
        )
        parser.add_argument(
            "--clear",
            action="store_true",
            help="Remove every record",
        )

    def parse_args(self, args: Optional[List[str]] = None) -> argparse.Namespace:
        """Parse command-line arguments."""
        return self.parser.parse_args(args)

    def run(self, args: Optional[List[str]] = None) -> int:
        """
        Run CLI with given arguments.

        Args:
            args: Arguments to parse (uses sys.argv if None)

        Returns:
            Exit code (0 when no item failed, 1 on failures, 2 on
            configuration errors)
        """
        parsed_args = self.parse_args(args)

        if not parsed_args.command:
            self.parser.print_help()
            return EXIT_FAILURES

        try:
            settings_path = parsed_args.settings or get_base_dir() / "settings.yaml"
            settings = load_settings(settings_path, required=parsed_args.settings is not None)
        except ConfigurationError as e:
            configure_logging(verbose=parsed_args.verbose)
            logger.error(f"Configuration error: {e}")
            return EXIT_CONFIG_ERROR

        if getattr(parsed_args, "no_package_manager", False):
            settings.use_package_manager = False
        parsed_args.engine_settings = settings

        configure_logging(settings.log_file, verbose=parsed_args.verbose)

        try:
            return self._dispatch_command(parsed_args)
        except KeyboardInterrupt:
            logger.info("Operation cancelled by user")
            return EXIT_INTERRUPTED
        except ConfigurationError as e:
            logger.error(f"Configuration error: {e}")
            return EXIT_CONFIG_ERROR
        except WinSetupKitError as e:
            logger.error(f"Error: {e}")
            return EXIT_FAILURES

    def _dispatch_command(self, args) -> int:
        """
        Dispatch to appropriate command handler.

        Args:
            args: Parsed arguments with command field

        Returns:
            Exit code from command handler
        """
        command_map = {
            "run": "winsetupkit.cli.commands.run",
            "resume": "winsetupkit.cli.commands.resume",
            "status": "winsetupkit.cli.commands.status",
        }

        module_name = command_map.get(args.command)
        if not module_name:
            logger.error(f"Unknown command: {args.command}")
            return EXIT_FAILURES

        module = importlib.import_module(module_name)
        return module.run(args)


def main():
    """Main entry point for CLI."""
    cli = CLI()
    sys.exit(cli.run())


if __name__ == "__main__":
    main()

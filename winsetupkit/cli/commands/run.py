"""
Run command implementation.

Installs the selected catalog entries, or the defaults for this Windows
release when nothing is selected.
"""

import logging

from winsetupkit.cli.utils import (
    execute_run,
    open_catalog,
    print_report,
    report_exit_code,
    safe_print,
)
from winsetupkit.core.platform import detect_platform
from winsetupkit.orchestrator.orchestrator import InstallationOrchestrator

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the install command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 when no item failed, 130 when cancelled)
    """
    settings = args.engine_settings
    catalog = open_catalog(args.catalog)
    platform = detect_platform()

    if args.select:
        keys = [key.strip() for key in args.select.split(",") if key.strip()]
        entries = catalog.select(keys)
    else:
        entries = catalog.defaults(platform.release_tag)

    if not entries:
        safe_print("Nothing to install")
        return 0

    orchestrator = InstallationOrchestrator.from_settings(settings, platform=platform)
    report = execute_run(orchestrator, entries)
    print_report(report)
    return report_exit_code(report)

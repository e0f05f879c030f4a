"""
Resume command implementation.

Retries every item an earlier run left InProgress or Failed, from the start.
"""

import logging

from winsetupkit.cli.utils import (
    execute_run,
    open_catalog,
    print_report,
    report_exit_code,
    safe_print,
)
from winsetupkit.orchestrator.orchestrator import InstallationOrchestrator

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the resume command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 when no item failed, 130 when cancelled)
    """
    catalog = open_catalog(args.catalog)
    orchestrator = InstallationOrchestrator.from_settings(args.engine_settings)

    entries = orchestrator.resumable_entries(catalog)
    if not entries:
        safe_print("Nothing to resume")
        return 0

    safe_print(f"Resuming {len(entries)} item(s): {', '.join(e.id for e in entries)}")
    report = execute_run(orchestrator, entries)
    print_report(report)
    return report_exit_code(report)

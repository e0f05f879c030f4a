"""
Shared utilities for CLI commands.
"""

import logging
import time
from pathlib import Path
from typing import List

from winsetupkit.catalog.loader import Catalog, load_catalog
from winsetupkit.catalog.models import CatalogEntry
from winsetupkit.cli.parser import EXIT_FAILURES, EXIT_INTERRUPTED
from winsetupkit.orchestrator.context import ProgressEvent
from winsetupkit.orchestrator.orchestrator import InstallationOrchestrator
from winsetupkit.orchestrator.report import RunReport
from winsetupkit.orchestrator.worker import InstallWorker

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.2


def safe_print(message: str, file=None):
    """
    Print message with safe encoding handling for Windows console.

    Args:
        message: Message to print
        file: Output file (default: stdout)
    """
    try:
        print(message, file=file)
    except UnicodeEncodeError:
        print(message.encode("ascii", "replace").decode("ascii"), file=file)


def open_catalog(catalog_path: Path) -> Catalog:
    """
    Load a catalog and log the entries that were skipped.

    Raises:
        ConfigurationError: If the catalog cannot be read at all
    """
    catalog = load_catalog(catalog_path)
    for error in catalog.errors:
        logger.warning(f"Catalog entry skipped: {error}")
    logger.info(f"Loaded {len(catalog)} catalog entries from {catalog_path}")
    return catalog


def format_event(event: ProgressEvent) -> str:
    """Console line for a progress event."""
    prefix = f"[{event.current}/{event.total}] " if event.total else ""
    return f"{prefix}{event.message}"


def execute_run(orchestrator: InstallationOrchestrator, entries: List[CatalogEntry]) -> RunReport:
    """
    Run entries on a background worker and echo its progress.

    Ctrl+C requests cancellation; the item in progress runs to completion.

    Returns:
        RunReport

    Raises:
        StateStoreError: If the run was aborted
    """
    worker = InstallWorker(orchestrator, entries)
    worker.start()

    while worker.is_alive():
        try:
            _echo_events(worker)
            worker.join(POLL_INTERVAL)
        except KeyboardInterrupt:
            safe_print("Cancelling after the current item...")
            worker.cancel()

    worker.join()
    _echo_events(worker)
    return worker.result()


def print_report(report: RunReport):
    """Print the end-of-run summary."""
    safe_print("")
    safe_print(f"Summary: {report.summary()}")
    for result in report.results:
        safe_print(f"  {result.describe()}")
    if report.not_started:
        safe_print(f"  Not started: {', '.join(report.not_started)}")


def report_exit_code(report: RunReport) -> int:
    """Exit code for a finished run; a cancelled run counts as interrupted."""
    if report.cancelled:
        return EXIT_INTERRUPTED
    return EXIT_FAILURES if report.has_failures else 0


def _echo_events(worker: InstallWorker):
    for event in worker.drain_events():
        # log events are already on the console through logging
        if event.kind in ("item_started", "item_finished", "download"):
            safe_print(format_event(event))

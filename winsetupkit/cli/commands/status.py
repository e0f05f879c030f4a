"""
Status command implementation.

Shows the operation-state records written by earlier runs.
"""

import logging

from winsetupkit.cli.utils import safe_print
from winsetupkit.core.state import OperationStateStore

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the status command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    store = OperationStateStore(args.engine_settings.state_file)

    if args.clear:
        store.clear()
        safe_print(f"Cleared {store.state_file}")
        return 0

    if args.resumable:
        records = store.resumable()
    else:
        records = [
            record
            for _, items in sorted(store.load_all().items())
            for _, record in sorted(items.items())
        ]

    if not records:
        safe_print("No recorded operations")
        return 0

    for record in records:
        detail = record.data.get("error") or record.data.get("verified_path") or ""
        line = (
            f"{record.operation_type:<8} {record.item_id:<24} "
            f"{record.status.value:<11} {record.timestamp}"
        )
        safe_print(f"{line}  {detail}".rstrip())
    return 0

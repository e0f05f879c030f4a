"""
Installation orchestration: state machine, run context, report and worker.
"""

from .context import PackageManagerLatch, ProgressEvent, ProgressSink, RunContext
from .report import InstallAttempt, ItemOutcome, ItemResult, RunReport
from .orchestrator import RECORD_STATUS, InstallationOrchestrator
from .worker import InstallWorker

__all__ = [
    "PackageManagerLatch",
    "ProgressEvent",
    "ProgressSink",
    "RunContext",
    "InstallAttempt",
    "ItemOutcome",
    "ItemResult",
    "RunReport",
    "RECORD_STATUS",
    "InstallationOrchestrator",
    "InstallWorker",
]

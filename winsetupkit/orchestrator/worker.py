"""
Background worker running one orchestration.

The worker owns a single thread. Progress events go into a queue that the
UI thread drains on its own schedule, so nothing on the worker thread ever
touches UI state.
"""

import logging
import queue
import threading
from typing import Iterable, List, Optional

from winsetupkit.catalog.models import CatalogEntry
from winsetupkit.orchestrator.context import ProgressEvent, RunContext
from winsetupkit.orchestrator.orchestrator import InstallationOrchestrator
from winsetupkit.orchestrator.report import RunReport

logger = logging.getLogger(__name__)


class InstallWorker:
    """
    Run an orchestration on a background thread.

    Example:
        >>> worker = InstallWorker(orchestrator, entries)
        >>> worker.start()
        >>> while worker.is_alive():
        ...     for event in worker.drain_events():
        ...         print(event.message)
        ...     time.sleep(0.2)
        >>> report = worker.result()
    """

    def __init__(
        self,
        orchestrator: InstallationOrchestrator,
        entries: Iterable[CatalogEntry],
        run_id: Optional[str] = None,
    ):
        self.orchestrator = orchestrator
        self.entries = list(entries)
        self.events: "queue.Queue[ProgressEvent]" = queue.Queue()
        self.context = RunContext(progress_sink=self.events.put, run_id=run_id)
        self._report: Optional[RunReport] = None
        self._error: Optional[BaseException] = None
        self._thread = threading.Thread(
            target=self._run,
            name=f"winsetupkit-{self.context.run_id}",
            daemon=True,
        )

    def start(self):
        self._thread.start()

    def cancel(self):
        """Stop after the current item."""
        self.context.cancel()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def join(self, timeout: Optional[float] = None):
        self._thread.join(timeout)

    def drain_events(self) -> List[ProgressEvent]:
        """Take every event posted so far without blocking."""
        drained = []
        while True:
            try:
                drained.append(self.events.get_nowait())
            except queue.Empty:
                return drained

    def result(self) -> RunReport:
        """
        Report of the finished run.

        Raises:
            RuntimeError: If the worker has not finished
            StateStoreError: If the run was aborted by a state-store failure
        """
        if self._thread.is_alive() or (self._report is None and self._error is None):
            raise RuntimeError("Install worker has not finished")
        if self._error is not None:
            raise self._error
        return self._report

    def _run(self):
        try:
            self._report = self.orchestrator.run(self.entries, self.context)
        except Exception as e:
            logger.error(f"Run {self.context.run_id} aborted: {e}")
            self._error = e
            self.context.emit("run_failed", message=str(e), severity="ERROR")

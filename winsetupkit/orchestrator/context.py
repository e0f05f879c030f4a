"""
Per-run context shared between the orchestrator and its caller.

A RunContext carries everything a run needs that is not configuration:
the cancellation flag, the progress sink and the item counters. Nothing
here is module-global, so two runs never see each other's state.
"""

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from winsetupkit.core.logsink import severity_to_level
from winsetupkit.packages.base import PackageManagerAdapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """
    Progress notification posted by a run.

    Kinds: 'run_started', 'item_started', 'status', 'download', 'log',
    'item_finished', 'run_finished' and 'run_failed'.
    """

    kind: str
    item_id: Optional[str] = None
    message: str = ""
    severity: str = "INFO"
    current: int = 0
    """1-based index of the item being processed"""
    total: int = 0
    """Number of items in the run"""


ProgressSink = Callable[[ProgressEvent], None]


class RunContext:
    """
    State of one orchestration run.

    Example:
        >>> events = []
        >>> context = RunContext(progress_sink=events.append)
        >>> context.cancel()
        >>> context.cancelled
        True
    """

    def __init__(
        self,
        progress_sink: Optional[ProgressSink] = None,
        run_id: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Initialize run context.

        Args:
            progress_sink: Receives ProgressEvents (ignored if None)
            run_id: Run identifier (random if None)
            cancel_event: Shared cancellation flag (new one if None)
        """
        self.progress_sink = progress_sink
        self.run_id = run_id or uuid.uuid4().hex[:8]
        self.cancel_event = cancel_event or threading.Event()
        self.current = 0
        self.total = 0

    def cancel(self):
        """Request cancellation; observed before the next item starts."""
        if not self.cancel_event.is_set():
            logger.info(f"Cancellation requested for run {self.run_id}")
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def emit(
        self,
        kind: str,
        item_id: Optional[str] = None,
        message: str = "",
        severity: str = "INFO",
    ):
        """Post a progress event to the sink."""
        if self.progress_sink is None:
            return
        self.progress_sink(
            ProgressEvent(
                kind=kind,
                item_id=item_id,
                message=message,
                severity=severity,
                current=self.current,
                total=self.total,
            )
        )

    def log(self, message: str, severity: str = "INFO", item_id: Optional[str] = None):
        """Write a message to the log and forward it as a 'log' event."""
        logger.log(severity_to_level(severity), message)
        self.emit("log", item_id=item_id, message=message, severity=severity)


class PackageManagerLatch:
    """
    Run-wide decision whether the package manager may be used.

    Decided the first time an item needs it. It can only go from
    available to unavailable; once down it stays down for the rest of
    the run.

    Example:
        >>> latch = PackageManagerLatch(WingetAdapter(), enabled=True)
        >>> if entry.package_manager_id and latch.available:
        ...     latch.used = True
    """

    def __init__(self, adapter: PackageManagerAdapter, enabled: bool = True):
        """
        Initialize latch.

        Args:
            adapter: Package manager adapter
            enabled: False when the package manager is disabled in settings
        """
        self.adapter = adapter
        self.enabled = enabled
        self.reason = ""
        self.used = False
        self._available: Optional[bool] = None

    @property
    def decided(self) -> bool:
        return self._available is not None

    @property
    def available(self) -> bool:
        if self._available is None:
            self._decide()
        return self._available

    def _decide(self):
        # is_available may bootstrap; never ask it on an incompatible host
        if not self.enabled:
            self._available, self.reason = False, "disabled in settings"
        elif not self.adapter.is_host_compatible():
            self._available, self.reason = False, "host build is below the supported minimum"
        elif not self.adapter.is_available():
            self._available, self.reason = False, f"{self.adapter.name} is not available"
        else:
            self._available = True

        if self._available:
            logger.info(f"Package manager {self.adapter.name} available")
        else:
            logger.info(f"Package manager not used: {self.reason}")

    def downgrade(self, reason: str):
        """Switch to direct downloads for the rest of the run."""
        if self._available:
            logger.warning(f"Using direct downloads for the rest of the run: {reason}")
        self._available = False
        self.reason = reason

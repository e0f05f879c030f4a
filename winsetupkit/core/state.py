"""
Operation-state persistence for WinSetupKit.

Every status transition of an install attempt is recorded in a single JSON
snapshot keyed by operation type and item id. On the next start the snapshot
is read back to find work left in progress or failed by an earlier run.

The file is rewritten in full on every save (read-modify-write). It is a
snapshot, not an append log: at most one record exists per key and the last
write wins.

File format:
    {
      "install": {
        "git": {"Status": "Succeeded", "Timestamp": "2026-10-19T10:00:00", "Data": {}}
      }
    }

Example:
    >>> from winsetupkit.core.state import OperationStateStore, OperationStatus
    >>>
    >>> store = OperationStateStore(Path("state.json"))
    >>> store.save("install", "git", OperationStatus.IN_PROGRESS, {"stage": "download"})
    >>> for record in store.resumable("install"):
    ...     print(record.item_id, record.status.value)
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from filelock import FileLock, Timeout as LockTimeout

from winsetupkit.core.exceptions import StateStoreError
from winsetupkit.core.filesystem import atomic_write

logger = logging.getLogger(__name__)

INSTALL_OPERATION = "install"


class OperationStatus(Enum):
    """Persisted status of one (operation type, item) pair."""

    PENDING = "Pending"
    IN_PROGRESS = "InProgress"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    SKIPPED = "Skipped"

    @property
    def is_resumable(self) -> bool:
        return self in (OperationStatus.IN_PROGRESS, OperationStatus.FAILED)


@dataclass
class OperationStateRecord:
    """
    Snapshot of the last known status of one operation.

    Attributes:
        operation_type: Operation family (e.g. 'install')
        item_id: Catalog item key
        status: Last recorded status
        timestamp: ISO 8601 time of the last write
        data: Free-form details (stage, method, resolved URL, error)
    """

    operation_type: str
    item_id: str
    status: OperationStatus
    timestamp: str
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to the on-disk representation."""
        return {
            "Status": self.status.value,
            "Timestamp": self.timestamp,
            "Data": self.data,
        }

    @classmethod
    def from_dict(cls, operation_type: str, item_id: str, data: dict):
        """
        Build a record from its on-disk representation.

        Raises:
            ValueError: If the status is unknown
            KeyError: If the status is missing
        """
        return cls(
            operation_type=operation_type,
            item_id=item_id,
            status=OperationStatus(data["Status"]),
            timestamp=data.get("Timestamp", ""),
            data=dict(data.get("Data") or {}),
        )


class OperationStateStore:
    """
    Durable key-value record of operation attempts.

    The orchestrator is the only writer; calls are serialized by the single
    worker. A file lock additionally keeps a second engine process from
    interleaving a write.

    Attributes:
        state_file: Path to the JSON snapshot
    """

    def __init__(self, state_file: Path, lock_timeout: float = 10):
        """
        Initialize state store.

        Args:
            state_file: Path to the JSON snapshot (created on first save)
            lock_timeout: Seconds to wait for the state-file lock
        """
        self.state_file = Path(state_file)
        self.lock_timeout = lock_timeout
        self._lock_path = self.state_file.with_name(self.state_file.name + ".lock")

    def save(
        self,
        operation_type: str,
        item_id: str,
        status: OperationStatus,
        data: Optional[dict] = None,
    ) -> OperationStateRecord:
        """
        Record the status of one operation, replacing any previous record.

        Args:
            operation_type: Operation family (e.g. 'install')
            item_id: Catalog item key
            status: Status to record
            data: Optional details stored alongside the status

        Returns:
            The record that was written

        Raises:
            StateStoreError: If the snapshot cannot be written
        """
        record = OperationStateRecord(
            operation_type=operation_type,
            item_id=item_id,
            status=status,
            timestamp=datetime.now().isoformat(timespec="seconds"),
            data=dict(data or {}),
        )

        try:
            self.state_file.parent.mkdir(parents=True, exist_ok=True)
            with FileLock(self._lock_path, timeout=self.lock_timeout):
                snapshot = self._read_snapshot()
                snapshot.setdefault(operation_type, {})[item_id] = record.to_dict()
                atomic_write(self.state_file, json.dumps(snapshot, indent=2))
        except LockTimeout as e:
            raise StateStoreError(
                f"Could not lock {self.state_file} after {self.lock_timeout}s. "
                "Another WinSetupKit process may be running."
            ) from e
        except (OSError, TypeError, ValueError) as e:
            raise StateStoreError(f"Failed to write {self.state_file}: {e}") from e

        logger.debug(f"Saved state {operation_type}/{item_id} = {status.value}")
        return record

    def load(self, operation_type: str, item_id: str) -> Optional[OperationStateRecord]:
        """
        Load the record for one operation.

        Returns:
            The record, or None if nothing was recorded
        """
        return self.load_all().get(operation_type, {}).get(item_id)

    def load_all(self) -> Dict[str, Dict[str, OperationStateRecord]]:
        """
        Load every record.

        Malformed records are dropped with a warning; a corrupted file loads
        as empty.

        Returns:
            Nested map {operation_type: {item_id: record}}
        """
        records: Dict[str, Dict[str, OperationStateRecord]] = {}
        for operation_type, items in self._read_snapshot().items():
            if not isinstance(items, dict):
                logger.warning(f"Ignoring malformed operation group: {operation_type}")
                continue
            for item_id, raw in items.items():
                try:
                    record = OperationStateRecord.from_dict(operation_type, item_id, raw)
                except (KeyError, ValueError, TypeError, AttributeError) as e:
                    logger.warning(
                        f"Ignoring malformed state record {operation_type}/{item_id}: {e}"
                    )
                    continue
                records.setdefault(operation_type, {})[item_id] = record
        return records

    def resumable(self, operation_type: Optional[str] = None) -> List[OperationStateRecord]:
        """
        Records left InProgress or Failed by an earlier run.

        Args:
            operation_type: Restrict to one operation family

        Returns:
            Resumable records, ordered by operation type then item id
        """
        candidates = []
        for op_type, items in sorted(self.load_all().items()):
            if operation_type is not None and op_type != operation_type:
                continue
            for item_id in sorted(items):
                record = items[item_id]
                if record.status.is_resumable:
                    candidates.append(record)
        return candidates

    def clear(self):
        """Remove every record."""
        try:
            with FileLock(self._lock_path, timeout=self.lock_timeout):
                atomic_write(self.state_file, json.dumps({}, indent=2))
        except (LockTimeout, OSError) as e:
            raise StateStoreError(f"Failed to clear {self.state_file}: {e}") from e
        logger.info("Cleared operation state")

    def _read_snapshot(self) -> dict:
        if not self.state_file.exists():
            return {}

        try:
            with open(self.state_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Invalid state file {self.state_file}, treating as empty: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Invalid state file {self.state_file}, treating as empty")
            return {}
        return data

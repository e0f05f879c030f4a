"""
Install attempts and the end-of-run report.
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from winsetupkit.core.status import AttemptStatus, InstallMethod, InstallStage


@dataclass
class InstallAttempt:
    """
    One item's install attempt within a run.

    Owned by the orchestrator for the duration of the run and discarded
    afterwards; its last status is what ends up in the state store.
    """

    item_id: str
    method: Optional[InstallMethod] = None
    resolved_url: Optional[str] = None
    status: AttemptStatus = AttemptStatus.PENDING
    error_detail: Optional[str] = None
    stage: Optional[InstallStage] = None
    verified_path: Optional[Path] = None
    exit_code: Optional[int] = None

    def fail(self, stage: InstallStage, error: str):
        self.status = AttemptStatus.FAILED
        self.stage = stage
        self.error_detail = error

    def to_data(self) -> Dict[str, Any]:
        """Details stored with the operation-state record."""
        data: Dict[str, Any] = {"attempt": self.status.value}
        if self.method is not None:
            data["method"] = self.method.value
        if self.stage is not None:
            data["stage"] = self.stage.value
        if self.resolved_url:
            data["url"] = self.resolved_url
        if self.exit_code is not None:
            data["exit_code"] = self.exit_code
        if self.error_detail:
            data["error"] = self.error_detail
        if self.verified_path is not None:
            data["verified_path"] = str(self.verified_path)
        return data


class ItemOutcome(Enum):
    """Final outcome of an item in a run."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class ItemResult:
    """Per-item line of the run report."""

    item_id: str
    display_name: str
    outcome: ItemOutcome
    method: Optional[InstallMethod] = None
    stage: Optional[InstallStage] = None
    error: Optional[str] = None
    resolved_url: Optional[str] = None
    verified_path: Optional[Path] = None
    reason: Optional[str] = None
    """Why the item was skipped"""

    @classmethod
    def from_attempt(cls, display_name: str, attempt: InstallAttempt) -> "ItemResult":
        outcome = (
            ItemOutcome.SUCCEEDED
            if attempt.status is AttemptStatus.SUCCEEDED
            else ItemOutcome.FAILED
        )
        return cls(
            item_id=attempt.item_id,
            display_name=display_name,
            outcome=outcome,
            method=attempt.method,
            stage=attempt.stage,
            error=attempt.error_detail if outcome is ItemOutcome.FAILED else None,
            resolved_url=attempt.resolved_url,
            verified_path=attempt.verified_path,
        )

    def describe(self) -> str:
        """One-line description for logs and the console."""
        if self.outcome is ItemOutcome.SKIPPED:
            return f"{self.display_name}: skipped ({self.reason})"
        if self.outcome is ItemOutcome.FAILED:
            stage = self.stage.value if self.stage else "unknown"
            return f"{self.display_name}: failed at {stage}: {self.error}"
        method = self.method.value if self.method else "already installed"
        return f"{self.display_name}: installed ({method})"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "display_name": self.display_name,
            "outcome": self.outcome.value,
            "method": self.method.value if self.method else None,
            "stage": self.stage.value if self.stage else None,
            "error": self.error,
            "resolved_url": self.resolved_url,
            "verified_path": str(self.verified_path) if self.verified_path else None,
            "reason": self.reason,
        }


@dataclass
class RunReport:
    """
    Aggregate result of an orchestration run.

    Example:
        >>> report = orchestrator.run(entries, context)
        >>> print(report.summary())
        3 succeeded, 1 failed, 2 skipped
    """

    results: List[ItemResult] = field(default_factory=list)
    cancelled: bool = False
    package_manager_used: bool = False
    not_started: List[str] = field(default_factory=list)
    """Item ids never started because the run was cancelled"""

    def add(self, result: ItemResult):
        self.results.append(result)

    def _with_outcome(self, outcome: ItemOutcome) -> List[ItemResult]:
        return [r for r in self.results if r.outcome is outcome]

    @property
    def succeeded(self) -> List[ItemResult]:
        return self._with_outcome(ItemOutcome.SUCCEEDED)

    @property
    def failed(self) -> List[ItemResult]:
        return self._with_outcome(ItemOutcome.FAILED)

    @property
    def skipped(self) -> List[ItemResult]:
        return self._with_outcome(ItemOutcome.SKIPPED)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)

    def get(self, item_id: str) -> Optional[ItemResult]:
        for result in self.results:
            if result.item_id == item_id:
                return result
        return None

    def summary(self) -> str:
        text = (
            f"{len(self.succeeded)} succeeded, {len(self.failed)} failed, "
            f"{len(self.skipped)} skipped"
        )
        if self.cancelled:
            text += f" (cancelled, {len(self.not_started)} not started)"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
            "cancelled": self.cancelled,
            "not_started": list(self.not_started),
            "package_manager_used": self.package_manager_used,
            "items": [r.to_dict() for r in self.results],
        }

"""
Installation orchestrator.

Drives each selected catalog entry through the install state machine:

    Pending -> Skipped (not applicable to this Windows release)
    Pending -> Succeeded (already installed)
    Pending -> package manager -> Succeeded
                              \\-> direct download -> Succeeded | Failed

Every status transition is written to the operation-state store before the
next step runs. The first record for an item is already InProgress, so a
crash at any point leaves it resumable. Items are processed strictly one
after another; cancellation is observed between items only.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional

import requests

from winsetupkit.catalog.loader import Catalog
from winsetupkit.catalog.models import CatalogEntry
from winsetupkit.config.settings import EngineSettings
from winsetupkit.core.download import DownloadProgress, format_progress
from winsetupkit.core.exceptions import (
    IncompatibleHost,
    PackageManagerError,
    PackageManagerNotFoundError,
    StateStoreError,
    WinSetupKitError,
)
from winsetupkit.core.logsink import SUCCESS
from winsetupkit.core.platform import PlatformInfo, detect_platform
from winsetupkit.core.state import INSTALL_OPERATION, OperationStateStore, OperationStatus
from winsetupkit.core.status import AttemptStatus, InstallMethod, InstallStage
from winsetupkit.installer.direct import DirectInstaller
from winsetupkit.installer.executor import InstallerExecutor
from winsetupkit.orchestrator.context import PackageManagerLatch, RunContext
from winsetupkit.orchestrator.report import InstallAttempt, ItemOutcome, ItemResult, RunReport
from winsetupkit.packages.base import PackageManagerAdapter
from winsetupkit.packages.winget import WingetAdapter
from winsetupkit.resolver.base import create_session
from winsetupkit.resolver.url_resolver import UrlResolver

logger = logging.getLogger(__name__)

RECORD_STATUS = {
    AttemptStatus.PENDING: OperationStatus.IN_PROGRESS,
    AttemptStatus.DOWNLOADING: OperationStatus.IN_PROGRESS,
    AttemptStatus.INSTALLING: OperationStatus.IN_PROGRESS,
    AttemptStatus.VERIFYING: OperationStatus.IN_PROGRESS,
    AttemptStatus.SUCCEEDED: OperationStatus.SUCCEEDED,
    AttemptStatus.FAILED: OperationStatus.FAILED,
}

_STAGE_FOR_STATUS = {
    AttemptStatus.DOWNLOADING: InstallStage.DOWNLOAD,
    AttemptStatus.INSTALLING: InstallStage.INSTALL,
    AttemptStatus.VERIFYING: InstallStage.VERIFY,
}


class InstallationOrchestrator:
    """
    Install catalog entries with the package manager or by direct download.

    Example:
        >>> orchestrator = InstallationOrchestrator.from_settings(settings)
        >>> report = orchestrator.run(catalog.select(["git", "vscode"]), RunContext())
        >>> print(report.summary())
    """

    def __init__(
        self,
        adapter: PackageManagerAdapter,
        direct_installer: DirectInstaller,
        resolver: UrlResolver,
        store: OperationStateStore,
        platform: Optional[PlatformInfo] = None,
        use_package_manager: bool = True,
    ):
        """
        Initialize orchestrator.

        Args:
            adapter: Package manager adapter
            direct_installer: Direct-download installer
            resolver: URL resolver for direct downloads
            store: Operation-state store
            platform: Host information (auto-detected if None)
            use_package_manager: False to always install by direct download
        """
        self.adapter = adapter
        self.direct_installer = direct_installer
        self.resolver = resolver
        self.store = store
        self.platform = platform or detect_platform()
        self.use_package_manager = use_package_manager

    @classmethod
    def from_settings(
        cls,
        settings: EngineSettings,
        platform: Optional[PlatformInfo] = None,
        session: Optional[requests.Session] = None,
        run_id: Optional[str] = None,
    ) -> "InstallationOrchestrator":
        """
        Build an orchestrator with the default collaborators.

        Args:
            settings: Engine settings
            platform: Host information (auto-detected if None)
            session: HTTP session shared by resolver and downloads
            run_id: Scratch directory suffix

        Returns:
            InstallationOrchestrator
        """
        platform = platform or detect_platform()
        session = session or create_session()
        temp_root = Path(settings.temp_root)

        adapter = WingetAdapter(
            platform=platform,
            min_build=settings.min_package_manager_build,
            timeout=settings.package_manager_timeout,
            bootstrap_url=settings.package_manager_bootstrap_url,
            download_dir=temp_root,
            session=session,
            network_timeout=settings.network_timeout,
        )
        direct_installer = DirectInstaller(
            temp_root,
            executor=InstallerExecutor(timeout=settings.installer_timeout),
            run_id=run_id,
            timeout=settings.network_timeout,
            max_retries=settings.download_retries,
            backoff_seconds=settings.retry_backoff,
            session=session,
        )
        resolver = UrlResolver(session=session, timeout=settings.network_timeout)
        store = OperationStateStore(settings.state_file)

        return cls(
            adapter,
            direct_installer,
            resolver,
            store,
            platform=platform,
            use_package_manager=settings.use_package_manager,
        )

    def run(self, entries: Iterable[CatalogEntry], context: Optional[RunContext] = None) -> RunReport:
        """
        Install entries one after another.

        Args:
            entries: Entries to install, in order
            context: Run context (a fresh one if None)

        Returns:
            RunReport

        Raises:
            StateStoreError: If the state file cannot be written (aborts the run)
        """
        context = context or RunContext()
        entries = list(entries)
        context.total = len(entries)
        release_tag = self.platform.release_tag

        logger.info(f"Starting run {context.run_id}: {len(entries)} item(s) on {self.platform}")
        context.emit("run_started", message=f"Installing {len(entries)} item(s)")

        latch = PackageManagerLatch(self.adapter, enabled=self.use_package_manager)
        report = RunReport()

        try:
            for index, entry in enumerate(entries, start=1):
                if context.cancelled:
                    report.cancelled = True
                    report.not_started = [e.id for e in entries[index - 1:]]
                    logger.warning(
                        f"Run cancelled, {len(report.not_started)} item(s) not started"
                    )
                    break
                context.current = index
                report.add(self._process(entry, release_tag, latch, context))
        finally:
            self.direct_installer.cleanup()
        report.package_manager_used = latch.used

        logger.info(f"Run {context.run_id} finished: {report.summary()}")
        context.emit(
            "run_finished",
            message=report.summary(),
            severity="ERROR" if report.has_failures else "SUCCESS",
        )
        return report

    def resume(self, catalog: Catalog, context: Optional[RunContext] = None) -> RunReport:
        """
        Re-run items an earlier run left InProgress or Failed.

        Each item starts again from Pending.

        Args:
            catalog: Catalog to look the items up in
            context: Run context (a fresh one if None)

        Returns:
            RunReport of the resumed items
        """
        return self.run(self.resumable_entries(catalog), context)

    def resumable_entries(self, catalog: Catalog) -> List[CatalogEntry]:
        """Catalog entries with a resumable install record."""
        entries = []
        for record in self.store.resumable(INSTALL_OPERATION):
            entry = catalog.get(record.item_id)
            if entry is None:
                logger.warning(f"Resumable item '{record.item_id}' is no longer in the catalog")
                continue
            logger.info(f"Resuming {record.item_id} (last status {record.status.value})")
            entries.append(entry)
        return entries

    def _process(
        self,
        entry: CatalogEntry,
        release_tag: str,
        latch: PackageManagerLatch,
        context: RunContext,
    ) -> ItemResult:
        context.emit("item_started", entry.id, f"Processing {entry.display_name}")

        try:
            ensure_applicable(entry, release_tag)
        except IncompatibleHost as e:
            return self._skip(entry, release_tag, str(e), context)

        attempt = InstallAttempt(item_id=entry.id)
        self._persist(attempt)

        try:
            self._install(entry, attempt, latch, context)
        except StateStoreError:
            raise
        except WinSetupKitError as e:
            attempt.fail(attempt.stage or InstallStage.INSTALL, str(e))
            self._persist(attempt)

        result = ItemResult.from_attempt(entry.display_name, attempt)
        if result.outcome is ItemOutcome.SUCCEEDED:
            logger.log(SUCCESS, f"[{entry.id}] {result.describe()}")
            context.emit("item_finished", entry.id, result.describe(), severity="SUCCESS")
        else:
            logger.error(
                f"[{entry.id}] failed at stage {result.stage.value if result.stage else 'unknown'}: "
                f"{result.error}"
            )
            context.emit("item_finished", entry.id, result.describe(), severity="ERROR")
        return result

    def _skip(
        self, entry: CatalogEntry, release_tag: str, reason: str, context: RunContext
    ) -> ItemResult:
        logger.info(f"[{entry.id}] skipped: {reason}")
        self.store.save(
            INSTALL_OPERATION,
            entry.id,
            OperationStatus.SKIPPED,
            {"reason": "incompatible", "release": release_tag},
        )
        result = ItemResult(entry.id, entry.display_name, ItemOutcome.SKIPPED, reason=reason)
        context.emit("item_finished", entry.id, result.describe(), severity="WARNING")
        return result

    def _install(
        self,
        entry: CatalogEntry,
        attempt: InstallAttempt,
        latch: PackageManagerLatch,
        context: RunContext,
    ):
        descriptor = entry.download

        if descriptor is not None and descriptor.verification_paths:
            verification = self.direct_installer.verify(descriptor)
            if verification.success:
                context.log(
                    f"[{entry.id}] already installed at {verification.matched_path}",
                    item_id=entry.id,
                )
                attempt.stage = InstallStage.VERIFY
                attempt.verified_path = verification.matched_path
                attempt.status = AttemptStatus.SUCCEEDED
                self._persist(attempt)
                return

        pm_error = None
        if entry.package_manager_id and latch.available:
            pm_error = self._install_with_package_manager(entry, attempt, latch, context)
            if pm_error is None:
                return

        if descriptor is None:
            if pm_error:
                error = f"{pm_error}; no direct download available"
            else:
                error = "Package manager unavailable and no direct download available"
            attempt.fail(InstallStage.INSTALL, error)
            self._persist(attempt)
            return

        if pm_error:
            context.log(
                f"[{entry.id}] {pm_error}, falling back to direct download",
                "WARNING",
                entry.id,
            )
        self._install_direct(entry, attempt, context)

    def _install_with_package_manager(
        self,
        entry: CatalogEntry,
        attempt: InstallAttempt,
        latch: PackageManagerLatch,
        context: RunContext,
    ) -> Optional[str]:
        """Returns None on success, else the failure detail."""
        latch.used = True
        attempt.method = InstallMethod.PACKAGE_MANAGER
        attempt.stage = InstallStage.INSTALL
        attempt.status = AttemptStatus.INSTALLING
        self._persist(attempt)
        context.emit(
            "status",
            entry.id,
            f"Installing {entry.display_name} with {self.adapter.name}",
        )

        try:
            result = self.adapter.install(entry.package_manager_id)
        except PackageManagerNotFoundError as e:
            latch.downgrade(str(e))
            return f"{self.adapter.name} unavailable: {e}"
        except PackageManagerError as e:
            return f"{self.adapter.name} install failed: {e}"

        attempt.exit_code = result.exit_code
        if result.succeeded:
            attempt.status = AttemptStatus.SUCCEEDED
            self._persist(attempt)
            return None

        if result.exit_code is None:
            return f"{self.adapter.name} install timed out"
        return f"{self.adapter.name} install exited with {result.exit_code}"

    def _install_direct(self, entry: CatalogEntry, attempt: InstallAttempt, context: RunContext):
        descriptor = entry.download
        attempt.method = InstallMethod.DIRECT_DOWNLOAD
        attempt.exit_code = None
        attempt.error_detail = None

        url = None
        if descriptor.needs_download:
            attempt.stage = InstallStage.RESOLVE
            attempt.status = AttemptStatus.DOWNLOADING
            self._persist(attempt)
            context.emit("status", entry.id, f"Resolving download for {entry.display_name}")
            resolved = self.resolver.resolve(descriptor, entry.display_name)
            url = resolved.url
            attempt.resolved_url = url

        def on_stage(status: AttemptStatus):
            attempt.status = status
            attempt.stage = _STAGE_FOR_STATUS.get(status, attempt.stage)
            self._persist(attempt)
            context.emit("status", entry.id, f"{entry.display_name}: {status.value}")

        last_percent = [-1]

        def on_progress(progress: DownloadProgress):
            percent = int(progress.percentage)
            if percent != last_percent[0]:
                last_percent[0] = percent
                context.emit("download", entry.id, format_progress(progress))

        outcome = self.direct_installer.download_and_install(
            entry.id, url, descriptor, on_stage=on_stage, on_progress=on_progress
        )

        attempt.exit_code = outcome.exit_code
        attempt.verified_path = outcome.verified_path
        if outcome.succeeded:
            attempt.stage = outcome.stage
            attempt.status = AttemptStatus.SUCCEEDED
        else:
            attempt.fail(outcome.stage, outcome.error or "Installation failed")
        self._persist(attempt)

    def _persist(self, attempt: InstallAttempt):
        self.store.save(
            INSTALL_OPERATION,
            attempt.item_id,
            RECORD_STATUS[attempt.status],
            attempt.to_data(),
        )


def ensure_applicable(entry: CatalogEntry, release_tag: str):
    """
    Check an entry against the host's Windows release.

    Raises:
        IncompatibleHost: If the entry does not apply to the release
    """
    if not entry.is_applicable(release_tag):
        raise IncompatibleHost(f"not applicable to {release_tag}")

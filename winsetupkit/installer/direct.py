"""
Direct-download installation.

Downloads an installer to a per-run scratch directory, runs it, verifies
the result on disk and deletes the installer again. Verification happens
regardless of the installer's exit code because several silent installers
report nonzero on success. The installer is deleted whatever the outcome.
"""

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests

from winsetupkit.catalog.models import DownloadDescriptor, InstallerKind
from winsetupkit.core.download import DownloadProgress, download_file
from winsetupkit.core.exceptions import (
    DownloadError,
    InstallerExecutionError,
    VerificationFailure,
)
from winsetupkit.core.filesystem import remove_file, safe_rmtree
from winsetupkit.core.status import AttemptStatus, InstallStage
from winsetupkit.installer.executor import SUCCESS_EXIT_CODES, InstallerExecutor
from winsetupkit.installer.verifier import VerificationResult, verify_installation

logger = logging.getLogger(__name__)

StageCallback = Callable[[AttemptStatus], None]


@dataclass
class DirectInstallOutcome:
    """
    Outcome of a direct-download install.

    Attributes:
        succeeded: Whether the install was verified
        stage: Last stage reached (where the failure happened, if any)
        error: Failure detail
        verified_path: Path that proved the install
        exit_code: Installer exit code, when it ran
    """

    succeeded: bool
    stage: InstallStage
    error: Optional[str] = None
    verified_path: Optional[Path] = None
    exit_code: Optional[int] = None


class DirectInstaller:
    """
    Download, run and verify installers.

    Example:
        >>> installer = DirectInstaller(Path("C:/Temp/winsetupkit"))
        >>> outcome = installer.download_and_install("git", url, entry.download)
        >>> outcome.succeeded, outcome.verified_path
    """

    def __init__(
        self,
        temp_root: Path,
        executor: Optional[InstallerExecutor] = None,
        run_id: Optional[str] = None,
        timeout: float = 15,
        max_retries: int = 1,
        backoff_seconds: float = 2.0,
        session: Optional[requests.Session] = None,
        environ=None,
    ):
        """
        Initialize direct installer.

        Args:
            temp_root: Root of the scratch directories
            executor: Installer executor (default timeout if None)
            run_id: Scratch directory suffix (random if None)
            timeout: Download timeout in seconds
            max_retries: Download retries after the first attempt
            backoff_seconds: Delay before a download retry
            session: HTTP session used for downloads
            environ: Environment for verification path expansion
        """
        self.temp_root = Path(temp_root)
        self.executor = executor or InstallerExecutor()
        self.run_id = run_id or uuid.uuid4().hex[:8]
        self.timeout = timeout
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds
        self.session = session
        self.environ = environ

    @property
    def scratch_dir(self) -> Path:
        return self.temp_root / f"run-{self.run_id}"

    def installer_path(self, item_id: str, descriptor: DownloadDescriptor) -> Path:
        """Scratch location of an item's installer."""
        return self.scratch_dir / f"{item_id}{descriptor.extension}"

    def verify(self, descriptor: DownloadDescriptor) -> VerificationResult:
        """Check the descriptor's verification paths."""
        return verify_installation(descriptor.verification_paths, self.environ)

    def download_and_install(
        self,
        item_id: str,
        url: Optional[str],
        descriptor: DownloadDescriptor,
        on_stage: Optional[StageCallback] = None,
        on_progress: Optional[Callable[[DownloadProgress], None]] = None,
    ) -> DirectInstallOutcome:
        """
        Install one item from a direct download.

        Args:
            item_id: Catalog item key (names the installer file)
            url: Resolved download URL (unused for feature installs)
            descriptor: Download descriptor
            on_stage: Called on each status transition, before the stage runs
            on_progress: Download progress callback

        Returns:
            DirectInstallOutcome
        """
        notify = on_stage or (lambda status: None)

        if descriptor.installer_kind is InstallerKind.FEATURE_INSTALL:
            return self._install_features(item_id, descriptor, notify)

        installer = self.installer_path(item_id, descriptor)
        notify(AttemptStatus.DOWNLOADING)
        try:
            download_file(
                url,
                installer,
                timeout=self.timeout,
                max_retries=self.max_retries,
                backoff_seconds=self.backoff_seconds,
                session=self.session,
                progress_callback=on_progress,
            )
        except (DownloadError, ValueError) as e:
            logger.error(f"[{item_id}] download failed: {e}")
            return DirectInstallOutcome(False, InstallStage.DOWNLOAD, error=str(e))

        exit_code = None
        launch_error = None
        try:
            notify(AttemptStatus.INSTALLING)
            try:
                if descriptor.installer_kind is InstallerKind.MSI:
                    result = self.executor.run_msi(installer, descriptor.silent_args)
                else:
                    result = self.executor.run_exe(installer, descriptor.silent_args)
                exit_code = result.returncode
                if not result.succeeded:
                    logger.warning(
                        f"[{item_id}] installer exited with {exit_code}, verifying anyway"
                    )
            except InstallerExecutionError as e:
                launch_error = str(e)
                logger.error(f"[{item_id}] install failed: {e}")

            notify(AttemptStatus.VERIFYING)
            return self._verify_outcome(item_id, descriptor, exit_code, launch_error)
        finally:
            if remove_file(installer):
                logger.debug(f"[{item_id}] removed installer {installer}")

    def cleanup(self):
        """Remove this run's scratch directory (best-effort)."""
        try:
            safe_rmtree(self.scratch_dir, require_prefix=self.temp_root)
        except Exception as e:
            logger.warning(f"Could not remove scratch directory {self.scratch_dir}: {e}")

    def _install_features(
        self, item_id: str, descriptor: DownloadDescriptor, notify: StageCallback
    ) -> DirectInstallOutcome:
        notify(AttemptStatus.INSTALLING)
        try:
            results = self.executor.run_feature_commands(descriptor.commands)
        except InstallerExecutionError as e:
            logger.error(f"[{item_id}] feature install failed: {e}")
            return DirectInstallOutcome(False, InstallStage.INSTALL, error=str(e))

        failed = [r for r in results if not r.succeeded]
        exit_code = failed[0].returncode if failed else 0

        notify(AttemptStatus.VERIFYING)
        if descriptor.verification_paths:
            return self._verify_outcome(item_id, descriptor, exit_code, None)

        if failed:
            error = f"{len(failed)} of {len(results)} command(s) failed: {failed[0].command}"
            return DirectInstallOutcome(False, InstallStage.INSTALL, error=error, exit_code=exit_code)
        return DirectInstallOutcome(True, InstallStage.VERIFY, exit_code=exit_code)

    def _verify_outcome(
        self,
        item_id: str,
        descriptor: DownloadDescriptor,
        exit_code: Optional[int],
        launch_error: Optional[str],
    ) -> DirectInstallOutcome:
        if not descriptor.verification_paths:
            # Nothing to inspect: the exit code is all there is
            if launch_error is None and exit_code is not None and exit_code in SUCCESS_EXIT_CODES:
                return DirectInstallOutcome(True, InstallStage.INSTALL, exit_code=exit_code)
            error = launch_error or f"Installer exited with {exit_code}"
            return DirectInstallOutcome(False, InstallStage.INSTALL, error=error, exit_code=exit_code)

        verification = self.verify(descriptor)
        if verification.success:
            logger.info(f"[{item_id}] verified at {verification.matched_path}")
            return DirectInstallOutcome(
                True,
                InstallStage.VERIFY,
                verified_path=verification.matched_path,
                exit_code=exit_code,
            )

        if launch_error is not None:
            return DirectInstallOutcome(
                False, InstallStage.INSTALL, error=launch_error, exit_code=exit_code
            )

        failure = VerificationFailure(item_id, verification.checked)
        logger.error(f"[{item_id}] verify failed: {failure}")
        return DirectInstallOutcome(
            False, InstallStage.VERIFY, error=str(failure), exit_code=exit_code
        )


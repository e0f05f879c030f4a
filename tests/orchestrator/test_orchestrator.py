"""
Unit tests for the installation orchestrator.

The package manager adapter, direct installer and resolver are mocks; the
operation-state store is real and lives in a temporary directory.
"""

from pathlib import Path
from unittest.mock import Mock

import pytest

from winsetupkit.catalog.loader import load_catalog
from winsetupkit.catalog.models import CatalogEntry, DownloadDescriptor, InstallerKind
from winsetupkit.core.exceptions import (
    IncompatibleHost,
    PackageManagerNotFoundError,
    StateStoreError,
    UrlResolutionError,
)
from winsetupkit.core.platform import WIN11
from winsetupkit.core.state import INSTALL_OPERATION, OperationStatus
from winsetupkit.core.status import AttemptStatus, InstallMethod, InstallStage
from winsetupkit.installer.direct import DirectInstaller, DirectInstallOutcome
from winsetupkit.installer.verifier import VerificationResult
from winsetupkit.orchestrator.context import RunContext
from winsetupkit.orchestrator.orchestrator import InstallationOrchestrator, ensure_applicable
from winsetupkit.orchestrator.report import ItemOutcome
from winsetupkit.packages.base import PackageInstallResult, PackageManagerAdapter
from winsetupkit.resolver.base import ResolvedUrl

FOO_URL = "https://downloads.example.com/Foo-1.0-x64.exe"
FOO_PATH = Path("C:/Program Files/Foo/foo.exe")


def foo_entry(item_id="foo", package_id="Foo.Foo", download=True, **kwargs):
    descriptor = None
    if download:
        descriptor = DownloadDescriptor(
            url_template=FOO_URL,
            silent_args=["/S"],
            verification_paths=["%ProgramFiles%\\Foo\\foo.exe"],
        )
    return CatalogEntry(
        item_id,
        item_id.title(),
        package_manager_id=package_id,
        download=descriptor,
        **kwargs,
    )


@pytest.fixture
def adapter():
    adapter = Mock(spec=PackageManagerAdapter)
    adapter.name = "winget"
    adapter.is_host_compatible.return_value = True
    adapter.is_available.return_value = True
    adapter.install.return_value = PackageInstallResult(True, 0)
    return adapter


@pytest.fixture
def direct_installer():
    installer = Mock()
    installer.verify.return_value = VerificationResult(False)
    installer.download_and_install.return_value = DirectInstallOutcome(
        True, InstallStage.VERIFY, verified_path=FOO_PATH, exit_code=0
    )
    return installer


@pytest.fixture
def resolver():
    resolver = Mock()
    resolver.resolve.return_value = ResolvedUrl(FOO_URL)
    return resolver


@pytest.fixture
def store(state_store):
    return Mock(wraps=state_store)


@pytest.fixture
def orchestrator(adapter, direct_installer, resolver, store, windows11):
    return InstallationOrchestrator(adapter, direct_installer, resolver, store, platform=windows11)


def saved_statuses(store, item_id):
    return [c.args[2] for c in store.save.call_args_list if c.args[1] == item_id]


class TestSkipIncompatible:
    """Test items not applicable to the host release."""

    def test_skipped_item_touches_nothing(
        self, adapter, direct_installer, resolver, store, windows10
    ):
        """Test a Windows 11-only item on Windows 10 is skipped untouched."""
        orchestrator = InstallationOrchestrator(
            adapter, direct_installer, resolver, store, platform=windows10
        )
        entry = foo_entry("sandbox", applicable_on={WIN11})

        report = orchestrator.run([entry])

        result = report.get("sandbox")
        assert result.outcome is ItemOutcome.SKIPPED
        assert result.reason == "not applicable to win10"
        adapter.install.assert_not_called()
        direct_installer.verify.assert_not_called()
        direct_installer.download_and_install.assert_not_called()
        resolver.resolve.assert_not_called()
        adapter.is_host_compatible.assert_not_called()
        adapter.is_available.assert_not_called()
        assert report.package_manager_used is False
        assert saved_statuses(store, "sandbox") == [OperationStatus.SKIPPED]

    def test_ensure_applicable(self):
        entry = foo_entry(applicable_on={WIN11})

        ensure_applicable(entry, WIN11)
        with pytest.raises(IncompatibleHost):
            ensure_applicable(entry, "win10")


class TestPackageManager:
    """Test the package manager path."""

    def test_install_with_package_manager(self, orchestrator, adapter, direct_installer, store):
        """Test a package manager success needs no download."""
        report = orchestrator.run([foo_entry()])

        result = report.get("foo")
        assert result.outcome is ItemOutcome.SUCCEEDED
        assert result.method is InstallMethod.PACKAGE_MANAGER
        assert report.package_manager_used is True
        adapter.install.assert_called_once_with("Foo.Foo")
        direct_installer.download_and_install.assert_not_called()
        assert saved_statuses(store, "foo") == [
            OperationStatus.IN_PROGRESS,
            OperationStatus.IN_PROGRESS,
            OperationStatus.SUCCEEDED,
        ]

    def test_incompatible_host_never_asks_package_manager(
        self, orchestrator, adapter, direct_installer
    ):
        """Test an old build goes straight to direct download."""
        adapter.is_host_compatible.return_value = False

        report = orchestrator.run([foo_entry()])

        adapter.is_available.assert_not_called()
        adapter.install.assert_not_called()
        assert report.package_manager_used is False
        assert report.get("foo").method is InstallMethod.DIRECT_DOWNLOAD
        direct_installer.download_and_install.assert_called_once()

    def test_disabled_in_settings(self, adapter, direct_installer, resolver, store, windows11):
        orchestrator = InstallationOrchestrator(
            adapter,
            direct_installer,
            resolver,
            store,
            platform=windows11,
            use_package_manager=False,
        )

        orchestrator.run([foo_entry()])

        adapter.is_host_compatible.assert_not_called()
        adapter.install.assert_not_called()

    def test_failure_falls_back_to_direct(self, orchestrator, adapter, direct_installer):
        """Test a failed package manager install falls back to direct download."""
        adapter.install.return_value = PackageInstallResult(False, 1603, "error")

        report = orchestrator.run([foo_entry()])

        result = report.get("foo")
        assert result.outcome is ItemOutcome.SUCCEEDED
        assert result.method is InstallMethod.DIRECT_DOWNLOAD
        assert result.verified_path == FOO_PATH
        direct_installer.download_and_install.assert_called_once()

    def test_failure_without_direct_download(self, orchestrator, adapter):
        """Test an item with no direct download fails at install."""
        adapter.install.return_value = PackageInstallResult(False, None, "timed out")

        report = orchestrator.run([foo_entry(download=False)])

        result = report.get("foo")
        assert result.outcome is ItemOutcome.FAILED
        assert result.stage is InstallStage.INSTALL
        assert "winget install timed out" in result.error
        assert "no direct download available" in result.error

    def test_unavailable_without_direct_download(self, orchestrator, adapter):
        adapter.is_available.return_value = False

        report = orchestrator.run([foo_entry(download=False)])

        assert report.get("foo").outcome is ItemOutcome.FAILED
        assert report.get("foo").error.startswith("Package manager unavailable")

    def test_not_found_downgrades_for_rest_of_run(self, orchestrator, adapter, direct_installer):
        """Test a vanished package manager is not tried again in the run."""
        adapter.install.side_effect = PackageManagerNotFoundError("winget executable disappeared")

        report = orchestrator.run([foo_entry("foo"), foo_entry("bar", package_id="Bar.Bar")])

        assert adapter.install.call_count == 1
        assert direct_installer.download_and_install.call_count == 2
        assert [r.outcome for r in report.results] == [ItemOutcome.SUCCEEDED] * 2

    def test_not_asked_without_package_id(self, orchestrator, adapter, direct_installer):
        """Test an item with only a direct download never asks the package manager."""
        report = orchestrator.run([foo_entry(package_id=None)])

        adapter.is_host_compatible.assert_not_called()
        adapter.is_available.assert_not_called()
        assert report.package_manager_used is False
        direct_installer.download_and_install.assert_called_once()

    def test_decided_once_per_run(self, orchestrator, adapter):
        orchestrator.run([foo_entry("foo"), foo_entry("bar", package_id="Bar.Bar")])

        adapter.is_available.assert_called_once()
        assert adapter.install.call_count == 2


class TestDirectDownload:
    """Test the direct-download path."""

    def test_already_installed(self, orchestrator, adapter, direct_installer, resolver, store):
        """Test an item already on disk is not downloaded or installed."""
        direct_installer.verify.return_value = VerificationResult(True, matched_path=FOO_PATH)

        report = orchestrator.run([foo_entry()])

        result = report.get("foo")
        assert result.outcome is ItemOutcome.SUCCEEDED
        assert result.method is None
        assert result.verified_path == FOO_PATH
        adapter.install.assert_not_called()
        resolver.resolve.assert_not_called()
        direct_installer.download_and_install.assert_not_called()
        assert saved_statuses(store, "foo") == [
            OperationStatus.IN_PROGRESS,
            OperationStatus.SUCCEEDED,
        ]
        adapter.is_host_compatible.assert_not_called()
        adapter.is_available.assert_not_called()

    def test_each_stage_persisted(self, orchestrator, adapter, direct_installer, store):
        """Test every transition reaches the store before the next stage."""
        adapter.is_available.return_value = False
        persisted = []

        def download_and_install(item_id, url, descriptor, on_stage=None, on_progress=None):
            for status in (
                AttemptStatus.DOWNLOADING,
                AttemptStatus.INSTALLING,
                AttemptStatus.VERIFYING,
            ):
                on_stage(status)
                persisted.append(store.load(INSTALL_OPERATION, item_id).data["attempt"])
            return DirectInstallOutcome(True, InstallStage.VERIFY, verified_path=FOO_PATH)

        direct_installer.download_and_install.side_effect = download_and_install

        orchestrator.run([foo_entry()])

        assert persisted == ["downloading", "installing", "verifying"]
        record = store.load(INSTALL_OPERATION, "foo")
        assert record.status is OperationStatus.SUCCEEDED
        assert record.data["method"] == "direct_download"
        assert record.data["url"] == FOO_URL
        assert record.data["verified_path"] == str(FOO_PATH)

    def test_resolved_url_passed_to_installer(self, orchestrator, adapter, direct_installer, resolver):
        adapter.is_available.return_value = False
        resolver.resolve.return_value = ResolvedUrl("https://mirror.example.com/foo.exe", True, "x")

        orchestrator.run([foo_entry()])

        resolver.resolve.assert_called_once()
        assert direct_installer.download_and_install.call_args[0][1] == (
            "https://mirror.example.com/foo.exe"
        )

    def test_resolution_failure(self, orchestrator, adapter, direct_installer, resolver, store):
        """Test an unresolvable URL fails the item at resolve."""
        adapter.is_available.return_value = False
        resolver.resolve.side_effect = UrlResolutionError("Foo", "no release asset matches")

        report = orchestrator.run([foo_entry()])

        result = report.get("foo")
        assert result.outcome is ItemOutcome.FAILED
        assert result.stage is InstallStage.RESOLVE
        direct_installer.download_and_install.assert_not_called()
        record = store.load(INSTALL_OPERATION, "foo")
        assert record.status is OperationStatus.FAILED
        assert record.data["stage"] == "resolve"

    def test_install_failure_recorded(self, orchestrator, adapter, direct_installer, store):
        adapter.is_available.return_value = False
        direct_installer.download_and_install.return_value = DirectInstallOutcome(
            False, InstallStage.VERIFY, error="No verification path exists for foo (1 checked)"
        )

        report = orchestrator.run([foo_entry()])

        assert report.has_failures
        assert report.get("foo").describe() == (
            "Foo: failed at verify: No verification path exists for foo (1 checked)"
        )
        assert store.load(INSTALL_OPERATION, "foo").status is OperationStatus.FAILED

    def test_feature_install_not_resolved(self, orchestrator, adapter, direct_installer, resolver):
        """Test feature installs skip URL resolution."""
        adapter.is_available.return_value = False
        entry = CatalogEntry(
            "sandbox",
            "Windows Sandbox",
            download=DownloadDescriptor(
                installer_kind=InstallerKind.FEATURE_INSTALL,
                commands=["dism /online /enable-feature /featurename:Containers-DisposableClientVM"],
            ),
        )

        orchestrator.run([entry])

        resolver.resolve.assert_not_called()
        assert direct_installer.download_and_install.call_args[0][1] is None


class TestRunLifecycle:
    """Test run-wide behavior."""

    def test_one_failure_does_not_stop_the_run(self, orchestrator, adapter):
        adapter.install.side_effect = [
            PackageInstallResult(False, 1),
            PackageInstallResult(True, 0),
        ]

        report = orchestrator.run(
            [foo_entry("foo", download=False), foo_entry("bar", package_id="Bar.Bar")]
        )

        assert [r.outcome for r in report.results] == [ItemOutcome.FAILED, ItemOutcome.SUCCEEDED]
        assert report.summary() == "1 succeeded, 1 failed, 0 skipped"

    def test_cancellation_between_items(self, orchestrator, adapter, direct_installer):
        """Test cancelling stops before the next item starts."""
        context = RunContext()

        def sink(event):
            if event.kind == "item_finished":
                context.cancel()

        context.progress_sink = sink
        entries = [foo_entry("foo"), foo_entry("bar"), foo_entry("baz")]

        report = orchestrator.run(entries, context)

        assert [r.item_id for r in report.results] == ["foo"]
        assert report.cancelled is True
        assert report.not_started == ["bar", "baz"]
        assert adapter.install.call_count == 1
        direct_installer.cleanup.assert_called_once()

    def test_state_store_failure_aborts(
        self, adapter, direct_installer, resolver, windows11
    ):
        """Test an unwritable state file aborts the run."""
        store = Mock()
        store.save.side_effect = StateStoreError("Failed to write state.json")
        orchestrator = InstallationOrchestrator(
            adapter, direct_installer, resolver, store, platform=windows11
        )

        with pytest.raises(StateStoreError):
            orchestrator.run([foo_entry()])

        adapter.install.assert_not_called()
        direct_installer.cleanup.assert_called_once()

    def test_progress_events(self, orchestrator):
        events = []

        orchestrator.run([foo_entry()], RunContext(progress_sink=events.append))

        kinds = [e.kind for e in events]
        assert kinds[0] == "run_started"
        assert kinds[-1] == "run_finished"
        assert "item_started" in kinds
        assert "item_finished" in kinds
        finished = [e for e in events if e.kind == "item_finished"][0]
        assert (finished.current, finished.total) == (1, 1)
        assert finished.severity == "SUCCESS"

    def test_empty_run(self, orchestrator, direct_installer):
        report = orchestrator.run([])

        assert report.results == []
        direct_installer.cleanup.assert_called_once()

    def test_unusable_scratch_directory_fails_items_only(
        self, adapter, resolver, store, windows11, temp_dir
    ):
        """Test a scratch root blocked by a file fails each item and the run completes."""
        adapter.is_available.return_value = False
        (temp_dir / "scratch").write_text("not a directory", encoding="utf-8")
        direct_installer = DirectInstaller(temp_dir / "scratch", run_id="test", environ={})
        orchestrator = InstallationOrchestrator(
            adapter, direct_installer, resolver, store, platform=windows11
        )

        report = orchestrator.run([foo_entry("foo"), foo_entry("bar")])

        assert [r.outcome for r in report.results] == [ItemOutcome.FAILED] * 2
        assert report.get("bar").stage is InstallStage.DOWNLOAD
        assert store.load(INSTALL_OPERATION, "foo").status is OperationStatus.FAILED

    def test_crash_keeps_failed_item_resumable(self, orchestrator, state_store, direct_installer):
        """Test a crash right after the first save leaves a failed item resumable."""
        state_store.save(INSTALL_OPERATION, "foo", OperationStatus.FAILED, {"stage": "download"})
        direct_installer.verify.side_effect = KeyboardInterrupt

        with pytest.raises(KeyboardInterrupt):
            orchestrator.run([foo_entry()])

        assert [r.item_id for r in state_store.resumable(INSTALL_OPERATION)] == ["foo"]
        assert state_store.load(INSTALL_OPERATION, "foo").status is OperationStatus.IN_PROGRESS
        direct_installer.cleanup.assert_called_once()


class TestResume:
    """Test recovery of interrupted runs."""

    def test_resume_restarts_from_start(self, orchestrator, state_store, store, catalog_file):
        """Test an item left InProgress is re-run from the start."""
        state_store.save(INSTALL_OPERATION, "git", OperationStatus.IN_PROGRESS, {"stage": "download"})
        state_store.save(INSTALL_OPERATION, "7zip", OperationStatus.SUCCEEDED)
        store.save.reset_mock()

        report = orchestrator.resume(load_catalog(catalog_file))

        assert [r.item_id for r in report.results] == ["git"]
        first = [c for c in store.save.call_args_list if c.args[1] == "git"][0]
        assert first.args[2] is OperationStatus.IN_PROGRESS
        assert first.args[3] == {"attempt": "pending"}
        assert state_store.load(INSTALL_OPERATION, "git").status is OperationStatus.SUCCEEDED

    def test_resumable_entries_ignore_unknown_items(self, orchestrator, state_store, catalog_file):
        state_store.save(INSTALL_OPERATION, "removed-app", OperationStatus.FAILED)
        state_store.save(INSTALL_OPERATION, "pycharm", OperationStatus.FAILED)

        entries = orchestrator.resumable_entries(load_catalog(catalog_file))

        assert [e.id for e in entries] == ["pycharm"]

    def test_nothing_to_resume(self, orchestrator, catalog_file, adapter):
        report = orchestrator.resume(load_catalog(catalog_file))

        assert report.results == []
        adapter.install.assert_not_called()

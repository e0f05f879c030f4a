"""
Centralized exception hierarchy for WinSetupKit.

Every failure raised by the installation engine derives from
WinSetupKitError. Failures are item-scoped: the orchestrator catches them
per catalog item and records them in the run report. StateStoreError is the
only exception that aborts a run.
"""


# ============================================================================
# Base Exceptions
# ============================================================================


class WinSetupKitError(Exception):
    """Base exception for all WinSetupKit errors."""

    pass


# ============================================================================
# Network Exceptions
# ============================================================================


class NetworkError(WinSetupKitError):
    """Base exception for URL resolution and download failures."""

    pass


class DownloadError(NetworkError):
    """Raised when an installer download cannot be completed."""

    pass


class UrlResolutionError(NetworkError):
    """Raised when no download URL can be produced, fallback included."""

    def __init__(self, display_name: str, reason: str = ""):
        self.display_name = display_name
        self.reason = reason
        msg = f"Could not resolve download URL for {display_name}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


# ============================================================================
# Installer Exceptions
# ============================================================================


class InstallerExecutionError(WinSetupKitError):
    """Installer could not be launched, timed out or exited with failure."""

    def __init__(self, message: str, exit_code=None):
        self.exit_code = exit_code
        super().__init__(message)


class VerificationFailure(WinSetupKitError):
    """Installer ran but none of the expected files exist."""

    def __init__(self, item_id: str, checked=None):
        self.item_id = item_id
        self.checked = list(checked or [])
        super().__init__(
            f"No verification path exists for {item_id} "
            f"({len(self.checked)} checked)"
        )


# ============================================================================
# Configuration Exceptions
# ============================================================================


class ConfigurationError(WinSetupKitError):
    """Catalog entry is malformed or missing a required field."""

    pass


class SettingsError(ConfigurationError):
    """Engine settings file is invalid."""

    pass


class IncompatibleHost(WinSetupKitError):
    """Operation does not apply to the detected Windows version."""

    pass


# ============================================================================
# State Store Exceptions
# ============================================================================


class StateStoreError(WinSetupKitError):
    """Operation-state file could not be written. Aborts the run."""

    pass


# ============================================================================
# Package Manager Exceptions
# ============================================================================


class PackageManagerError(WinSetupKitError):
    """Base exception for package manager errors."""

    pass


class PackageManagerNotFoundError(PackageManagerError):
    """Package manager not found or not installed."""

    pass


class PackageManagerBootstrapError(PackageManagerError):
    """Package manager could not be registered or installed on this host."""

    pass

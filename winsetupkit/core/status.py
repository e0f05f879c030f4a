"""
Status vocabularies shared by the installer and the orchestrator.
"""

from enum import Enum


class AttemptStatus(Enum):
    """Status of one install attempt within a run."""

    PENDING = "pending"
    DOWNLOADING = "downloading"
    INSTALLING = "installing"
    VERIFYING = "verifying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class InstallMethod(Enum):
    """How an item was (or is being) installed."""

    PACKAGE_MANAGER = "package_manager"
    DIRECT_DOWNLOAD = "direct_download"


class InstallStage(Enum):
    """Stage an error is attributed to."""

    RESOLVE = "resolve"
    DOWNLOAD = "download"
    INSTALL = "install"
    VERIFY = "verify"

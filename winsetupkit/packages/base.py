"""
Base package manager abstraction for WinSetupKit.

The orchestrator talks to the host package manager only through this
interface, so the installation flow can be exercised without a real one.

Classes:
    PackageInstallResult: Outcome of one package-manager install
    PackageManagerAdapter: Abstract base class for package manager adapters
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PackageInstallResult:
    """
    Outcome of a package-manager install.

    Attributes:
        succeeded: True when the package manager exited with 0
        exit_code: Exit code, or None if the process timed out or never ran
        output: Captured output (for the log)
    """

    succeeded: bool
    exit_code: Optional[int]
    output: str = ""


class PackageManagerAdapter(ABC):
    """
    Abstract base class for host package manager adapters.

    Abstract Methods:
        is_available(): Whether the package manager can be used (may bootstrap it)
        is_host_compatible(): Whether the OS build supports the package manager
        install(): Install one package non-interactively
        get_installed_version(): Installed version of a package, if any
    """

    name = "package-manager"

    @abstractmethod
    def is_available(self) -> bool:
        """
        Check whether the package manager can be used on this host.

        Implementations may attempt a one-time bootstrap when the executable
        is missing on a compatible host.

        Returns:
            True if installs can be attempted
        """
        pass

    @abstractmethod
    def is_host_compatible(self) -> bool:
        """
        Check whether the host OS build supports the package manager.

        Returns:
            True if the build number meets the documented minimum
        """
        pass

    @abstractmethod
    def install(self, package_id: str) -> PackageInstallResult:
        """
        Install a package non-interactively.

        Args:
            package_id: Package manager identifier

        Returns:
            PackageInstallResult; success means exit code 0

        Raises:
            PackageManagerNotFoundError: If the package manager is unavailable
        """
        pass

    @abstractmethod
    def get_installed_version(self, package_id: str) -> Optional[str]:
        """
        Query the installed version of a package.

        Args:
            package_id: Package manager identifier

        Returns:
            Version string, or None if not installed or unknown
        """
        pass

"""
winget adapter.

Installs packages through the Windows Package Manager. winget first shipped
for Windows 10 1709 (build 16299); older hosts never use it.

When winget is missing on a compatible host, a one-time bootstrap is tried:
1. Re-register the App Installer package if it is already on disk
2. Download the App Installer bundle and install it
If both fail the adapter reports itself unavailable for the rest of the run.
"""

import logging
import os
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional

import requests

from winsetupkit.config.settings import DEFAULT_BOOTSTRAP_URL
from winsetupkit.core.download import download_file
from winsetupkit.core.exceptions import (
    DownloadError,
    PackageManagerBootstrapError,
    PackageManagerNotFoundError,
)
from winsetupkit.core.filesystem import remove_file
from winsetupkit.core.platform import PlatformInfo, detect_platform
from winsetupkit.packages.base import PackageInstallResult, PackageManagerAdapter

logger = logging.getLogger(__name__)

MIN_WINGET_BUILD = 16299

APP_INSTALLER_PACKAGE = "Microsoft.DesktopAppInstaller"

REGISTER_SCRIPT = (
    f"$pkg = Get-AppxPackage -Name {APP_INSTALLER_PACKAGE}; "
    "if (-not $pkg) { exit 2 }; "
    "Add-AppxPackage -DisableDevelopmentMode -Register "
    "(Join-Path $pkg.InstallLocation 'AppxManifest.xml')"
)

INSTALL_FLAGS = [
    "--exact",
    "--silent",
    "--accept-package-agreements",
    "--accept-source-agreements",
    "--disable-interactivity",
]


def powershell_command(script: str) -> List[str]:
    """Build a non-interactive PowerShell invocation for a script."""
    return [
        "powershell.exe",
        "-NoProfile",
        "-NonInteractive",
        "-ExecutionPolicy",
        "Bypass",
        "-Command",
        script,
    ]


class WingetAdapter(PackageManagerAdapter):
    """
    Package manager adapter for winget.

    Example:
        >>> winget = WingetAdapter()
        >>> if winget.is_available():
        ...     result = winget.install("Git.Git")
        ...     print(result.succeeded, result.exit_code)
    """

    name = "winget"

    def __init__(
        self,
        platform: Optional[PlatformInfo] = None,
        min_build: int = MIN_WINGET_BUILD,
        timeout: float = 1800,
        bootstrap_url: str = DEFAULT_BOOTSTRAP_URL,
        download_dir: Optional[Path] = None,
        session: Optional[requests.Session] = None,
        executable: Optional[Path] = None,
        network_timeout: float = 15,
    ):
        """
        Initialize winget adapter.

        Args:
            platform: Host information (auto-detected if None)
            min_build: Minimum Windows build supporting winget
            timeout: Seconds to wait for one winget install
            bootstrap_url: App Installer bundle URL used by the bootstrap
            download_dir: Where the bootstrap bundle is downloaded
            session: HTTP session for the bootstrap download
            executable: Explicit winget path (skips discovery)
            network_timeout: Timeout for the bootstrap download
        """
        self.platform = platform or detect_platform()
        self.min_build = min_build
        self.timeout = timeout
        self.bootstrap_url = bootstrap_url
        self.download_dir = Path(download_dir) if download_dir else Path(tempfile.gettempdir())
        self.session = session
        self.network_timeout = network_timeout
        self._executable = Path(executable) if executable else None
        self._bootstrap_attempted = False

    @property
    def executable(self) -> Optional[Path]:
        return self._executable

    def is_host_compatible(self) -> bool:
        compatible = self.platform.is_windows and self.platform.build >= self.min_build
        if not compatible:
            logger.debug(
                f"winget not supported on {self.platform} (minimum build {self.min_build})"
            )
        return compatible

    def find_executable(self) -> Optional[Path]:
        """
        Locate winget on PATH or at the per-user App Execution Alias.

        Returns:
            Path to winget.exe, or None
        """
        found = shutil.which("winget")
        if found:
            return Path(found)

        local_appdata = os.environ.get("LOCALAPPDATA")
        if local_appdata:
            candidate = Path(local_appdata) / "Microsoft" / "WindowsApps" / "winget.exe"
            if candidate.exists():
                return candidate
        return None

    def is_available(self) -> bool:
        if not self.is_host_compatible():
            return False

        if self._executable is None:
            self._executable = self.find_executable()

        if self._executable is None and not self._bootstrap_attempted:
            self._bootstrap_attempted = True
            try:
                self._executable = self.bootstrap()
            except PackageManagerBootstrapError as e:
                logger.warning(f"winget unavailable: {e}")

        return self._executable is not None

    def bootstrap(self) -> Path:
        """
        Make winget available on a compatible host.

        Returns:
            Path to winget after bootstrap

        Raises:
            PackageManagerBootstrapError: If neither registration nor
                installation produced a working winget
        """
        logger.info("winget not found, trying to register App Installer")
        if self._register_existing_package():
            exe = self.find_executable()
            if exe is not None:
                logger.info(f"winget registered at {exe}")
                return exe

        logger.info(f"Installing App Installer from {self.bootstrap_url}")
        if self._install_from_download():
            exe = self.find_executable()
            if exe is not None:
                logger.info(f"winget installed at {exe}")
                return exe

        raise PackageManagerBootstrapError(
            "App Installer could not be registered or installed"
        )

    def install(self, package_id: str) -> PackageInstallResult:
        if not self.is_available():
            raise PackageManagerNotFoundError("winget is not available on this host")

        cmd = [str(self._executable), "install", "--id", package_id] + INSTALL_FLAGS
        logger.info(f"winget install {package_id}")
        try:
            completed = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.timeout, check=False
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"winget install {package_id} timed out after {self.timeout}s")
            return PackageInstallResult(False, None, "timed out")
        except FileNotFoundError as e:
            # winget vanished mid-run (App Installer being updated or removed)
            self._executable = None
            raise PackageManagerNotFoundError(f"winget executable disappeared: {e}") from e
        except OSError as e:
            logger.warning(f"winget install {package_id} could not start: {e}")
            return PackageInstallResult(False, None, str(e))

        output = (completed.stdout or "") + (completed.stderr or "")
        succeeded = completed.returncode == 0
        if not succeeded:
            logger.warning(f"winget install {package_id} exited with {completed.returncode}")
        return PackageInstallResult(succeeded, completed.returncode, output)

    def get_installed_version(self, package_id: str) -> Optional[str]:
        if not self.is_available():
            return None

        cmd = [
            str(self._executable),
            "list",
            "--id",
            package_id,
            "--exact",
            "--accept-source-agreements",
            "--disable-interactivity",
        ]
        try:
            completed = subprocess.run(
                cmd, capture_output=True, text=True, timeout=120, check=False
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.debug(f"winget list {package_id} failed: {e}")
            return None

        if completed.returncode != 0:
            return None
        return parse_list_version(completed.stdout or "", package_id)

    def _register_existing_package(self) -> bool:
        try:
            completed = subprocess.run(
                powershell_command(REGISTER_SCRIPT),
                capture_output=True,
                text=True,
                timeout=300,
                check=False,
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.debug(f"App Installer registration failed: {e}")
            return False
        if completed.returncode != 0:
            logger.debug(f"App Installer registration exited with {completed.returncode}")
        return completed.returncode == 0

    def _install_from_download(self) -> bool:
        bundle = self.download_dir / f"{APP_INSTALLER_PACKAGE}.msixbundle"
        try:
            download_file(
                self.bootstrap_url,
                bundle,
                timeout=self.network_timeout,
                session=self.session,
            )
        except DownloadError as e:
            logger.warning(f"App Installer download failed: {e}")
            return False

        try:
            completed = subprocess.run(
                powershell_command(f"Add-AppxPackage -Path '{bundle}'"),
                capture_output=True,
                text=True,
                timeout=600,
                check=False,
            )
            return completed.returncode == 0
        except (subprocess.TimeoutExpired, OSError) as e:
            logger.warning(f"App Installer installation failed: {e}")
            return False
        finally:
            remove_file(bundle)


def parse_list_version(output: str, package_id: str) -> Optional[str]:
    """
    Extract the installed version from `winget list` output.

    Args:
        output: Table printed by winget list
        package_id: Package id to look for (case-insensitive)

    Returns:
        Version column of the package's row, or None

    Example:
        >>> parse_list_version("Name Id Version\\n---\\nGit Git.Git 2.49.0 winget", "Git.Git")
        '2.49.0'
    """
    wanted = package_id.lower()
    for line in re.split(r"[\r\n]+", output):
        tokens = line.split()
        for index, token in enumerate(tokens):
            if token.lower() == wanted and index + 1 < len(tokens):
                return tokens[index + 1]
    return None

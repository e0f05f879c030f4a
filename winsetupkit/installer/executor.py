"""
Installer execution.

Runs downloaded installers unattended and waits for them to exit:

- EXE: the binary itself, with the silent arguments on one command line
- MSI: the Windows Installer service (msiexec /i)
- Feature installs: OS feature-enablement commands (dism, PowerShell), run
  verbatim through the shell
"""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Union

from winsetupkit.core.exceptions import InstallerExecutionError

logger = logging.getLogger(__name__)

# 3010 and 1641: success, reboot required / initiated
SUCCESS_EXIT_CODES = frozenset({0, 3010, 1641})


@dataclass
class ExecutionResult:
    """Result of running one installer or command."""

    command: Union[str, List[str]]
    returncode: int
    output: str = ""

    @property
    def succeeded(self) -> bool:
        return self.returncode in SUCCESS_EXIT_CODES


def build_exe_command(installer: Path, args: Sequence[str]) -> str:
    """
    Build the command line for an EXE installer.

    Example:
        >>> build_exe_command(Path("C:/tmp/git.exe"), ["/VERYSILENT", "/NORESTART"])
        '"C:/tmp/git.exe" /VERYSILENT /NORESTART'
    """
    command = f'"{installer}"'
    if args:
        command += " " + " ".join(args)
    return command


def build_msi_command(installer: Path, args: Sequence[str]) -> str:
    """
    Build the msiexec command line for an MSI package.

    Example:
        >>> build_msi_command(Path("C:/tmp/7zip.msi"), ["/qn"])
        'msiexec.exe /i "C:/tmp/7zip.msi" /qn'
    """
    command = f'msiexec.exe /i "{installer}"'
    if args:
        command += " " + " ".join(args)
    return command


class InstallerExecutor:
    """
    Runs installers synchronously with a bounded timeout.

    Attributes:
        timeout: Seconds to wait for one installer or command
    """

    def __init__(self, timeout: float = 3600):
        self.timeout = timeout

    def run_exe(self, installer: Path, args: Sequence[str]) -> ExecutionResult:
        """
        Launch an EXE installer and wait for it.

        Raises:
            InstallerExecutionError: If the installer cannot be launched or times out
        """
        return self._run(build_exe_command(installer, args), capture=False)

    def run_msi(self, installer: Path, args: Sequence[str]) -> ExecutionResult:
        """
        Install an MSI package through msiexec and wait for it.

        Raises:
            InstallerExecutionError: If msiexec cannot be launched or times out
        """
        return self._run(build_msi_command(installer, args), capture=False)

    def run_feature_commands(self, commands: Sequence[str]) -> List[ExecutionResult]:
        """
        Run feature-enablement commands in order.

        Every command runs even if an earlier one failed; dism commonly
        exits nonzero when a feature is already enabled.

        Raises:
            InstallerExecutionError: If a command cannot be launched or times out
        """
        results = []
        for command in commands:
            result = self._run(command, capture=True, shell=True)
            if not result.succeeded:
                logger.warning(f"Command exited with {result.returncode}: {command}")
            results.append(result)
        return results

    def _run(self, command: str, capture: bool, shell: bool = False) -> ExecutionResult:
        logger.debug(f"Running: {command}")
        try:
            if capture:
                completed = subprocess.run(
                    command,
                    shell=shell,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                    check=False,
                )
                output = (completed.stdout or "") + (completed.stderr or "")
            else:
                # Installers may leave child processes holding inherited pipes
                completed = subprocess.run(
                    command,
                    shell=shell,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    timeout=self.timeout,
                    check=False,
                )
                output = ""
        except subprocess.TimeoutExpired as e:
            raise InstallerExecutionError(
                f"Timed out after {self.timeout}s: {command}"
            ) from e
        except OSError as e:
            raise InstallerExecutionError(f"Failed to launch {command}: {e}") from e

        logger.debug(f"Exit code {completed.returncode}: {command}")
        return ExecutionResult(command=command, returncode=completed.returncode, output=output)

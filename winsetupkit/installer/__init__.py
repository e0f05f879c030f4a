"""
Direct-download installation: execution and verification of installers.
"""

from .executor import (
    ExecutionResult,
    InstallerExecutor,
    SUCCESS_EXIT_CODES,
    build_exe_command,
    build_msi_command,
)
from .verifier import (
    VerificationResult,
    expand_path_template,
    resolve_verification_path,
    verify_installation,
)
from .direct import DirectInstallOutcome, DirectInstaller

__all__ = [
    "ExecutionResult",
    "InstallerExecutor",
    "SUCCESS_EXIT_CODES",
    "build_exe_command",
    "build_msi_command",
    "VerificationResult",
    "expand_path_template",
    "resolve_verification_path",
    "verify_installation",
    "DirectInstallOutcome",
    "DirectInstaller",
]

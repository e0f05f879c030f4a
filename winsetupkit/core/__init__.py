"""
Core functionality for WinSetupKit.

This package contains the foundational modules that other components depend on.
"""

from .exceptions import (
    WinSetupKitError,
    NetworkError,
    DownloadError,
    UrlResolutionError,
    InstallerExecutionError,
    VerificationFailure,
    ConfigurationError,
    SettingsError,
    IncompatibleHost,
    StateStoreError,
    PackageManagerError,
    PackageManagerNotFoundError,
    PackageManagerBootstrapError,
)

from .platform import (
    PlatformInfo,
    detect_platform,
    parse_build_number,
    clear_platform_cache,
    WIN10,
    WIN11,
)

from .state import (
    OperationStateStore,
    OperationStateRecord,
    OperationStatus,
    INSTALL_OPERATION,
)

__all__ = [
    "WinSetupKitError",
    "NetworkError",
    "DownloadError",
    "UrlResolutionError",
    "InstallerExecutionError",
    "VerificationFailure",
    "ConfigurationError",
    "SettingsError",
    "IncompatibleHost",
    "StateStoreError",
    "PackageManagerError",
    "PackageManagerNotFoundError",
    "PackageManagerBootstrapError",
    "PlatformInfo",
    "detect_platform",
    "parse_build_number",
    "clear_platform_cache",
    "WIN10",
    "WIN11",
    "OperationStateStore",
    "OperationStateRecord",
    "OperationStatus",
    "INSTALL_OPERATION",
]

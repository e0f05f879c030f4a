"""
Host package manager integration.
"""

from .base import PackageInstallResult, PackageManagerAdapter
from .winget import MIN_WINGET_BUILD, WingetAdapter, parse_list_version

__all__ = [
    "PackageInstallResult",
    "PackageManagerAdapter",
    "MIN_WINGET_BUILD",
    "WingetAdapter",
    "parse_list_version",
]

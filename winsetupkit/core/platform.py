"""
Host detection for WinSetupKit.

Detects the operating system, architecture and Windows build number used to
decide catalog applicability (Windows 10 vs Windows 11) and package manager
compatibility.

Usage:
    from winsetupkit.core.platform import detect_platform

    platform_info = detect_platform()
    print(platform_info.release_tag)   # 'win10' or 'win11'
    print(platform_info.build)         # e.g. 22631
"""

import functools
import platform
import re
from dataclasses import dataclass

# First Windows 11 build. Anything below is reported as Windows 10.
WINDOWS_11_MIN_BUILD = 22000

WIN10 = "win10"
WIN11 = "win11"


@dataclass(frozen=True)
class PlatformInfo:
    """
    Host platform information.

    Attributes:
        os: Operating system ('windows', 'linux', 'macos')
        arch: CPU architecture ('x64', 'arm64', 'x86')
        os_version: Raw OS version string (e.g., '10.0.19045')
        build: Windows build number, 0 when unknown or not Windows
    """

    os: str
    arch: str
    os_version: str
    build: int = 0

    @property
    def is_windows(self) -> bool:
        return self.os == "windows"

    @property
    def release_tag(self) -> str:
        """
        Catalog applicability tag for this host.

        Returns:
            'win11' for build 22000 and newer, 'win10' otherwise

        Example:
            >>> PlatformInfo('windows', 'x64', '10.0.22631', 22631).release_tag
            'win11'
        """
        return WIN11 if self.build >= WINDOWS_11_MIN_BUILD else WIN10

    def __str__(self) -> str:
        return f"{self.os}-{self.arch} v{self.os_version} (build {self.build})"


@functools.lru_cache(maxsize=1)
def detect_platform() -> PlatformInfo:
    """
    Detect current platform information.

    Cached: detection runs once per process.

    Returns:
        PlatformInfo for the running host
    """
    os_name = _detect_os()
    version = platform.version()
    return PlatformInfo(
        os=os_name,
        arch=_detect_architecture(),
        os_version=version,
        build=parse_build_number(version) if os_name == "windows" else 0,
    )


def parse_build_number(version: str) -> int:
    """
    Extract the build number from a Windows version string.

    Args:
        version: Version such as '10.0.19045' or '10.0.22631.4317'

    Returns:
        Build number, or 0 if the string has no build component

    Example:
        >>> parse_build_number('10.0.19045')
        19045
    """
    match = re.match(r"^\s*\d+\.\d+\.(\d+)", version or "")
    return int(match.group(1)) if match else 0


def _detect_os() -> str:
    system = platform.system().lower()
    if system == "windows":
        return "windows"
    elif system == "darwin":
        return "macos"
    return system


def _detect_architecture() -> str:
    machine = platform.machine().lower()

    if machine in ("x86_64", "amd64", "x64"):
        return "x64"
    elif machine in ("aarch64", "arm64"):
        return "arm64"
    elif machine in ("i386", "i686", "x86"):
        return "x86"
    return machine


def clear_platform_cache():
    """Clear the cached platform detection result."""
    detect_platform.cache_clear()

"""
Pytest configuration and shared fixtures for WinSetupKit tests.
"""

import json
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from winsetupkit.core.platform import PlatformInfo
from winsetupkit.core.state import OperationStateStore


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


# ============================================================================
# Shared Test Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create temporary directory for test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def windows11() -> PlatformInfo:
    """Windows 11 23H2 host."""
    return PlatformInfo("windows", "x64", "10.0.22631", 22631)


@pytest.fixture
def windows10() -> PlatformInfo:
    """Windows 10 22H2 host."""
    return PlatformInfo("windows", "x64", "10.0.19045", 19045)


@pytest.fixture
def legacy_windows10() -> PlatformInfo:
    """Windows 10 1507 host, older than winget supports."""
    return PlatformInfo("windows", "x64", "10.0.10240", 10240)


@pytest.fixture
def state_store(temp_dir: Path) -> OperationStateStore:
    """State store backed by a file in a temporary directory."""
    return OperationStateStore(temp_dir / "state" / "state.json")


@pytest.fixture
def sample_catalog_data() -> dict:
    """Catalog with one entry of each install flavor."""
    return {
        "Development": [
            {
                "Name": "Git",
                "Key": "git",
                "Default": True,
                "Win10": True,
                "Win11": True,
                "WingetId": "Git.Git",
                "DirectDownload": {
                    "Url": "https://api.github.com/repos/git-for-windows/git/releases/latest",
                    "UrlType": "github",
                    "AssetPattern": "Git-*-64-bit.exe",
                    "FallbackUrl": "https://github.com/git-for-windows/git/releases/download/v2.49.0.windows.1/Git-2.49.0-64-bit.exe",
                    "Arguments": "/VERYSILENT /NORESTART",
                    "VerificationPaths": ["%ProgramFiles%\\Git\\cmd\\git.exe"],
                },
            },
            {
                "Name": "PyCharm Community",
                "Key": "pycharm",
                "Default": False,
                "DirectDownload": {
                    "Url": "https://data.services.jetbrains.com/products/releases?code=PCC&latest=true&type=release",
                    "UrlType": "JetBrains",
                    "FallbackUrl": "https://download.jetbrains.com/python/pycharm-community-2025.1.exe",
                    "Arguments": ["/S"],
                    "VerificationPaths": [
                        "%ProgramFiles%\\JetBrains\\PyCharm Community Edition*\\bin\\pycharm64.exe"
                    ],
                },
            },
        ],
        "System": [
            {
                "Name": "Windows Sandbox",
                "Key": "sandbox",
                "Default": True,
                "Win10": False,
                "Win11": True,
                "DirectDownload": {
                    "InstallerType": "FeatureInstall",
                    "Commands": [
                        "dism /online /enable-feature /featurename:Containers-DisposableClientVM /all /norestart"
                    ],
                },
            },
            {
                "Name": "7-Zip",
                "Key": "7zip",
                "Default": True,
                "PackageManagerId": "7zip.7zip",
            },
        ],
    }


@pytest.fixture
def catalog_file(temp_dir: Path, sample_catalog_data: dict) -> Path:
    """Sample catalog written as JSON."""
    path = temp_dir / "apps.json"
    path.write_text(json.dumps(sample_catalog_data, indent=2), encoding="utf-8")
    return path

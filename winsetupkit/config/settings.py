"""YAML settings for the WinSetupKit engine.

Every setting has a default, so the settings file is optional. Example
winsetupkit.yaml:

    temp_root: D:/scratch/winsetupkit
    network_timeout: 20
    installer_timeout: 1800
"""

import logging
import os
import platform
import tempfile
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from winsetupkit.core.exceptions import SettingsError

logger = logging.getLogger(__name__)

DEFAULT_BOOTSTRAP_URL = "https://aka.ms/getwinget"


def get_base_dir() -> Path:
    """
    Directory holding the state file and logs.

    Returns:
        %LOCALAPPDATA%/winsetupkit on Windows, ~/.winsetupkit elsewhere
    """
    if platform.system() == "Windows":
        local_appdata = os.environ.get("LOCALAPPDATA")
        if local_appdata:
            return Path(local_appdata) / "winsetupkit"
        return Path.home() / "AppData" / "Local" / "winsetupkit"
    return Path.home() / ".winsetupkit"


def _default_temp_root() -> Path:
    return Path(tempfile.gettempdir()) / "winsetupkit"


@dataclass
class EngineSettings:
    """Engine settings."""

    temp_root: Path = field(default_factory=_default_temp_root)
    state_file: Path = field(default_factory=lambda: get_base_dir() / "state.json")
    log_file: Optional[Path] = field(
        default_factory=lambda: get_base_dir() / "logs" / "winsetupkit.log"
    )
    network_timeout: float = 15
    download_retries: int = 1
    retry_backoff: float = 2.0
    installer_timeout: float = 3600
    package_manager_timeout: float = 1800
    min_package_manager_build: int = 16299
    package_manager_bootstrap_url: str = DEFAULT_BOOTSTRAP_URL
    use_package_manager: bool = True


_PATH_FIELDS = {"temp_root", "state_file", "log_file"}
_POSITIVE_FIELDS = {
    "network_timeout",
    "installer_timeout",
    "package_manager_timeout",
    "min_package_manager_build",
}


def load_settings(settings_path: Optional[Path] = None, required: bool = False) -> EngineSettings:
    """
    Load engine settings from a YAML file.

    Args:
        settings_path: Path to the YAML file; defaults are used when None
        required: If True, a missing file is an error

    Returns:
        Parsed settings

    Raises:
        SettingsError: If the file is missing (when required) or invalid
    """
    if settings_path is None:
        return EngineSettings()

    settings_path = Path(settings_path)
    if not settings_path.exists():
        if required:
            raise SettingsError(f"Settings file not found: {settings_path}")
        logger.debug(f"Settings file not found (optional): {settings_path}")
        return EngineSettings()

    try:
        with open(settings_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise SettingsError(f"Invalid YAML in {settings_path}: {e}")

    return settings_from_dict(data or {})


def settings_from_dict(data: Dict[str, Any]) -> EngineSettings:
    """
    Build settings from a mapping, validating keys and values.

    Raises:
        SettingsError: On unknown keys or invalid values
    """
    if not isinstance(data, dict):
        raise SettingsError("Settings must be a mapping")

    known = {f.name for f in fields(EngineSettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise SettingsError(f"Unknown setting(s): {', '.join(unknown)}")

    values: Dict[str, Any] = {}
    for key, value in data.items():
        if key in _PATH_FIELDS:
            if value is None and key == "log_file":
                values[key] = None
                continue
            if not isinstance(value, str) or not value:
                raise SettingsError(f"'{key}' must be a non-empty path string")
            values[key] = Path(os.path.expandvars(value)).expanduser()
        elif key == "use_package_manager":
            if not isinstance(value, bool):
                raise SettingsError("'use_package_manager' must be true or false")
            values[key] = value
        elif key == "package_manager_bootstrap_url":
            if not isinstance(value, str) or not value.startswith("http"):
                raise SettingsError("'package_manager_bootstrap_url' must be an http(s) URL")
            values[key] = value
        elif key == "download_retries":
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise SettingsError("'download_retries' must be a non-negative integer")
            values[key] = value
        else:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise SettingsError(f"'{key}' must be a number")
            if key in _POSITIVE_FIELDS and value <= 0:
                raise SettingsError(f"'{key}' must be positive")
            if value < 0:
                raise SettingsError(f"'{key}' must not be negative")
            values[key] = int(value) if key == "min_package_manager_build" else value

    return EngineSettings(**values)

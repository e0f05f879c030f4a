"""
Engine configuration for WinSetupKit.
"""

from .settings import (
    EngineSettings,
    get_base_dir,
    load_settings,
    settings_from_dict,
)

__all__ = [
    "EngineSettings",
    "get_base_dir",
    "load_settings",
    "settings_from_dict",
]

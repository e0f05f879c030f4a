"""
Catalog loading.

The catalog file groups applications by category:

    {
      "Development": [
        {
          "Name": "Git",
          "Key": "git",
          "Default": true,
          "Win10": true,
          "Win11": true,
          "PackageManagerId": "Git.Git",
          "DirectDownload": {
            "Url": "https://api.github.com/repos/git-for-windows/git/releases/latest",
            "UrlType": "github",
            "AssetPattern": "Git-*-64-bit.exe",
            "FallbackUrl": "https://github.com/git-for-windows/git/releases/download/v2.49.0.windows.1/Git-2.49.0-64-bit.exe",
            "Extension": ".exe",
            "Arguments": "/VERYSILENT /NORESTART",
            "VerificationPaths": ["%ProgramFiles%\\\\Git\\\\cmd\\\\git.exe"]
          }
        }
      ]
    }

JSON and YAML files are both accepted. Malformed entries are skipped and
reported; the rest of the catalog still loads.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

import yaml

from winsetupkit.catalog.models import (
    CatalogEntry,
    DownloadDescriptor,
    InstallerKind,
    UrlKind,
)
from winsetupkit.core.exceptions import ConfigurationError
from winsetupkit.core.platform import WIN10, WIN11

logger = logging.getLogger(__name__)

_URL_KIND_ALIASES = {
    "direct": UrlKind.DIRECT,
    "redirect": UrlKind.REDIRECT,
    "github": UrlKind.RELEASE_ASSET_PATTERN,
    "release": UrlKind.RELEASE_ASSET_PATTERN,
    "releaseassetpattern": UrlKind.RELEASE_ASSET_PATTERN,
    "vendorapi": UrlKind.VENDOR_API,
    "jetbrains": UrlKind.VENDOR_API,
    "scrape": UrlKind.SCRAPE_LATEST,
    "scrapelatest": UrlKind.SCRAPE_LATEST,
}

_INSTALLER_KIND_ALIASES = {
    "exe": InstallerKind.EXE,
    "msi": InstallerKind.MSI,
    "feature": InstallerKind.FEATURE_INSTALL,
    "featureinstall": InstallerKind.FEATURE_INSTALL,
}

_ARGUMENT_PATTERN = re.compile(r'(?:[^\s"]+|"[^"]*")+')


@dataclass
class Catalog:
    """
    Loaded catalog.

    Attributes:
        entries: Valid entries in file order
        errors: Messages for entries that were skipped
    """

    entries: List[CatalogEntry] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def __iter__(self) -> Iterator[CatalogEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, item_id: str) -> Optional[CatalogEntry]:
        for entry in self.entries:
            if entry.id == item_id:
                return entry
        return None

    def categories(self) -> Dict[str, List[CatalogEntry]]:
        grouped: Dict[str, List[CatalogEntry]] = {}
        for entry in self.entries:
            grouped.setdefault(entry.category, []).append(entry)
        return grouped

    def defaults(self, release_tag: Optional[str] = None) -> List[CatalogEntry]:
        """
        Entries selected by default, optionally limited to a host release.

        Args:
            release_tag: 'win10' or 'win11'; None keeps every default entry
        """
        return [
            entry
            for entry in self.entries
            if entry.default and (release_tag is None or entry.is_applicable(release_tag))
        ]

    def select(self, item_ids: Iterable[str]) -> List[CatalogEntry]:
        """
        Entries for the given ids, in the order requested.

        Raises:
            ConfigurationError: If an id is not in the catalog
        """
        selected = []
        for item_id in item_ids:
            entry = self.get(item_id)
            if entry is None:
                raise ConfigurationError(f"Unknown catalog item: {item_id}")
            selected.append(entry)
        return selected


def load_catalog(catalog_path: Path) -> Catalog:
    """
    Load a catalog file.

    Args:
        catalog_path: Path to a .json, .yaml or .yml catalog

    Returns:
        Catalog with valid entries and the errors of skipped ones

    Raises:
        ConfigurationError: If the file is missing or not parseable at all
    """
    catalog_path = Path(catalog_path)
    if not catalog_path.exists():
        raise ConfigurationError(f"Catalog file not found: {catalog_path}")

    try:
        with open(catalog_path, "r", encoding="utf-8-sig") as f:
            if catalog_path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (json.JSONDecodeError, yaml.YAMLError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Invalid catalog file {catalog_path}: {e}")

    catalog = parse_catalog(data)
    logger.info(
        f"Loaded {len(catalog.entries)} catalog entries from {catalog_path}"
        + (f" ({len(catalog.errors)} skipped)" if catalog.errors else "")
    )
    return catalog


def parse_catalog(data: Any) -> Catalog:
    """
    Build a catalog from parsed data grouped by category.

    Raises:
        ConfigurationError: If the top level is not a mapping of lists
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Catalog must be a mapping of category to entries")

    catalog = Catalog()
    seen = set()
    for category, items in data.items():
        if not isinstance(items, list):
            raise ConfigurationError(f"Catalog category '{category}' must be a list")
        for index, raw in enumerate(items):
            try:
                entry = parse_entry(raw, category=str(category))
                if entry.id in seen:
                    raise ConfigurationError(f"Duplicate catalog key: {entry.id}")
            except ConfigurationError as e:
                message = f"{category}[{index}]: {e}"
                logger.warning(f"Skipping catalog entry {message}")
                catalog.errors.append(message)
                continue
            seen.add(entry.id)
            catalog.entries.append(entry)
    return catalog


def parse_entry(raw: Any, category: str = "") -> CatalogEntry:
    """
    Build one catalog entry from its raw mapping.

    Raises:
        ConfigurationError: If required fields are missing or invalid
    """
    if not isinstance(raw, dict):
        raise ConfigurationError("Catalog entry must be a mapping")

    key = raw.get("Key")
    name = raw.get("Name")
    if not isinstance(key, str) or not key:
        raise ConfigurationError("Catalog entry is missing 'Key'")
    if not isinstance(name, str) or not name:
        raise ConfigurationError(f"Catalog entry '{key}' is missing 'Name'")

    applicable_on = set()
    if _as_bool(raw.get("Win10", True), "Win10"):
        applicable_on.add(WIN10)
    if _as_bool(raw.get("Win11", True), "Win11"):
        applicable_on.add(WIN11)

    package_manager_id = raw.get("PackageManagerId", raw.get("WingetId")) or None
    if package_manager_id is not None and not isinstance(package_manager_id, str):
        raise ConfigurationError(f"Catalog entry '{key}' has an invalid package id")

    download_raw = raw.get("DirectDownload")
    download = parse_download(download_raw, key) if download_raw else None

    return CatalogEntry(
        id=key,
        display_name=name,
        category=category,
        package_manager_id=package_manager_id,
        default=_as_bool(raw.get("Default", False), "Default"),
        applicable_on=frozenset(applicable_on),
        download=download,
    )


def parse_download(raw: Any, key: str = "") -> DownloadDescriptor:
    """
    Build a download descriptor from its raw mapping.

    Raises:
        ConfigurationError: If fields are invalid for the declared URL type
    """
    if not isinstance(raw, dict):
        raise ConfigurationError(f"DirectDownload of '{key}' must be a mapping")

    url_type = str(raw.get("UrlType", "direct"))
    url_kind = _URL_KIND_ALIASES.get(_normalize_tag(url_type))
    if url_kind is None:
        raise ConfigurationError(f"Unknown UrlType '{url_type}' for '{key}'")

    extension = str(raw.get("Extension") or "")
    installer_type = raw.get("InstallerType")
    if installer_type:
        installer_kind = _INSTALLER_KIND_ALIASES.get(_normalize_tag(str(installer_type)))
        if installer_kind is None:
            raise ConfigurationError(
                f"Unknown InstallerType '{installer_type}' for '{key}'"
            )
    elif extension.lower().lstrip(".") == "msi":
        installer_kind = InstallerKind.MSI
    else:
        installer_kind = InstallerKind.EXE

    return DownloadDescriptor(
        url_template=str(raw.get("Url") or ""),
        url_kind=url_kind,
        fallback_url=str(raw.get("FallbackUrl") or ""),
        installer_kind=installer_kind,
        silent_args=_as_args(raw.get("Arguments"), key),
        verification_paths=_as_string_list(raw.get("VerificationPaths"), "VerificationPaths", key),
        asset_pattern=str(raw.get("AssetPattern") or ""),
        extension=extension,
        commands=_as_string_list(raw.get("Commands"), "Commands", key),
    )


def _normalize_tag(value: str) -> str:
    return value.replace("_", "").replace("-", "").replace(" ", "").lower()


def _as_bool(value: Any, name: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"'{name}' must be true or false")
    return value


def _as_args(value: Any, key: str) -> tuple:
    if value is None:
        return ()
    if isinstance(value, str):
        # Whitespace outside double quotes separates arguments; quotes are kept
        return tuple(_ARGUMENT_PATTERN.findall(value))
    return _as_string_list(value, "Arguments", key)


def _as_string_list(value: Any, name: str, key: str) -> tuple:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigurationError(f"'{name}' of '{key}' must be a list of strings")
    return tuple(value)

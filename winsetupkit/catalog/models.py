"""
Catalog data model.

A catalog entry describes one installable application: how to install it
through the package manager and, optionally, how to install it from a direct
download. Entries are validated when they are built, so the engine never sees
a half-specified descriptor.

Classes:
    UrlKind: How a download URL is obtained
    InstallerKind: How a downloaded installer is executed
    DownloadDescriptor: Direct-download recipe for one application
    CatalogEntry: One installable application
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional, Tuple
from urllib.parse import parse_qs, urlparse

from winsetupkit.core.exceptions import ConfigurationError
from winsetupkit.core.platform import WIN10, WIN11


class UrlKind(Enum):
    """Resolution strategy for a download URL."""

    DIRECT = "direct"
    REDIRECT = "redirect"
    RELEASE_ASSET_PATTERN = "release_asset_pattern"
    VENDOR_API = "vendor_api"
    SCRAPE_LATEST = "scrape_latest"


class InstallerKind(Enum):
    """Execution strategy for an installer."""

    EXE = "exe"
    MSI = "msi"
    FEATURE_INSTALL = "feature_install"


_DEFAULT_EXTENSIONS = {
    InstallerKind.EXE: ".exe",
    InstallerKind.MSI: ".msi",
    InstallerKind.FEATURE_INSTALL: "",
}

VENDOR_API_CODE_PARAM = "code"


@dataclass(frozen=True)
class DownloadDescriptor:
    """
    Direct-download recipe.

    Which optional fields are meaningful depends on url_kind and
    installer_kind; __post_init__ enforces it.

    Attributes:
        url_template: Download URL, API endpoint or page, depending on url_kind
        url_kind: Resolution strategy
        fallback_url: URL used whenever resolution fails
        installer_kind: How the installer is run
        silent_args: Installer arguments for an unattended install
        verification_paths: Path templates whose existence proves success
        asset_pattern: Glob for RELEASE_ASSET_PATTERN
        extension: Installer file extension (derived from installer_kind if empty)
        commands: Feature-enablement commands for FEATURE_INSTALL

    Example:
        descriptor = DownloadDescriptor(
            url_template="https://api.github.com/repos/git-for-windows/git/releases/latest",
            url_kind=UrlKind.RELEASE_ASSET_PATTERN,
            asset_pattern="Git-*-64-bit.exe",
            fallback_url="https://github.com/.../Git-2.49.0-64-bit.exe",
            silent_args=("/VERYSILENT", "/NORESTART"),
            verification_paths=("%ProgramFiles%\\Git\\cmd\\git.exe",),
        )
    """

    url_template: str = ""
    url_kind: UrlKind = UrlKind.DIRECT
    fallback_url: str = ""
    installer_kind: InstallerKind = InstallerKind.EXE
    silent_args: Tuple[str, ...] = ()
    verification_paths: Tuple[str, ...] = ()
    asset_pattern: str = ""
    extension: str = ""
    commands: Tuple[str, ...] = ()

    def __post_init__(self):
        """Validate the descriptor for its url_kind and installer_kind."""
        if not isinstance(self.url_kind, UrlKind):
            raise ConfigurationError(f"url_kind must be UrlKind, got {self.url_kind!r}")
        if not isinstance(self.installer_kind, InstallerKind):
            raise ConfigurationError(
                f"installer_kind must be InstallerKind, got {self.installer_kind!r}"
            )

        # Normalize list inputs; frozen dataclass needs object.__setattr__
        for name in ("silent_args", "verification_paths", "commands"):
            value = getattr(self, name)
            if isinstance(value, str):
                raise ConfigurationError(f"{name} must be a sequence of strings")
            object.__setattr__(self, name, tuple(value))

        if self.installer_kind is InstallerKind.FEATURE_INSTALL:
            if not self.commands:
                raise ConfigurationError("Feature installs require at least one command")
        else:
            if self.commands:
                raise ConfigurationError(
                    "commands are only valid for feature installs"
                )
            if not self.url_template and not self.fallback_url:
                raise ConfigurationError(
                    "Direct downloads require a URL or a fallback URL"
                )
            # Scrape rules carry their own vendor page
            if (
                self.url_kind not in (UrlKind.DIRECT, UrlKind.SCRAPE_LATEST)
                and not self.url_template
            ):
                raise ConfigurationError(
                    f"{self.url_kind.value} downloads require a URL template"
                )

        if self.asset_pattern and self.url_kind is not UrlKind.RELEASE_ASSET_PATTERN:
            raise ConfigurationError(
                "asset_pattern is only valid for release_asset_pattern downloads"
            )

        if self.url_kind is UrlKind.VENDOR_API and not vendor_product_code(
            self.url_template
        ):
            raise ConfigurationError(
                f"Vendor API URL is missing the '{VENDOR_API_CODE_PARAM}' "
                f"query parameter: {self.url_template}"
            )

        extension = self.extension or _DEFAULT_EXTENSIONS[self.installer_kind]
        if extension and not extension.startswith("."):
            extension = f".{extension}"
        object.__setattr__(self, "extension", extension.lower())

    @property
    def needs_download(self) -> bool:
        return self.installer_kind is not InstallerKind.FEATURE_INSTALL


@dataclass(frozen=True)
class CatalogEntry:
    """
    One installable application.

    Attributes:
        id: Stable key (used in the state file)
        display_name: Human readable name
        category: Catalog group the entry was loaded from
        package_manager_id: Package manager identifier, if any
        default: Selected by default in the checklist
        applicable_on: OS release tags ('win10', 'win11') the entry applies to
        download: Direct-download recipe, if any
    """

    id: str
    display_name: str
    category: str = ""
    package_manager_id: Optional[str] = None
    default: bool = False
    applicable_on: FrozenSet[str] = field(default_factory=lambda: frozenset({WIN10, WIN11}))
    download: Optional[DownloadDescriptor] = None

    def __post_init__(self):
        """Validate entry fields."""
        if not self.id:
            raise ConfigurationError("Catalog entry id cannot be empty")
        if not self.display_name:
            raise ConfigurationError(f"Catalog entry '{self.id}' has no display name")
        object.__setattr__(self, "applicable_on", frozenset(self.applicable_on))
        unknown = self.applicable_on - {WIN10, WIN11}
        if unknown:
            raise ConfigurationError(
                f"Catalog entry '{self.id}' has unknown OS tags: {sorted(unknown)}"
            )
        if not self.package_manager_id and self.download is None:
            raise ConfigurationError(
                f"Catalog entry '{self.id}' has neither a package manager id "
                f"nor a direct download"
            )

    def is_applicable(self, release_tag: str) -> bool:
        """Check whether the entry applies to a host release tag."""
        return release_tag in self.applicable_on


def vendor_product_code(url_template: str) -> Optional[str]:
    """
    Extract the product code from a vendor API URL.

    Example:
        >>> vendor_product_code("https://data.services.jetbrains.com/products/releases?code=PCC&latest=true")
        'PCC'
    """
    values = parse_qs(urlparse(url_template or "").query).get(VENDOR_API_CODE_PARAM)
    return values[0] if values else None

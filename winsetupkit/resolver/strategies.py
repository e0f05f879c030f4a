"""
URL resolution strategies for direct, redirect, release-asset and vendor-API
downloads.
"""

import fnmatch
import logging
from typing import Any, List

from winsetupkit.catalog.models import DownloadDescriptor, vendor_product_code
from winsetupkit.core.exceptions import UrlResolutionError
from winsetupkit.resolver.base import ResolverStrategy

logger = logging.getLogger(__name__)

INSTALLER_SUFFIXES = (".exe", ".msi", ".msix", ".msixbundle")


class DirectStrategy(ResolverStrategy):
    """Return the URL template unchanged. Never touches the network."""

    def resolve(self, descriptor: DownloadDescriptor, display_name: str) -> str:
        if not descriptor.url_template:
            raise UrlResolutionError(display_name, "no URL configured")
        return descriptor.url_template


class RedirectStrategy(ResolverStrategy):
    """
    Follow one redirect hop by hand.

    Vendors publish "latest" links that answer with a 30x pointing at the
    versioned installer. The Location header is the download URL.
    """

    def resolve(self, descriptor: DownloadDescriptor, display_name: str) -> str:
        response = self.session.head(
            descriptor.url_template, allow_redirects=False, timeout=self.timeout
        )
        location = response.headers.get("Location")
        if not location:
            raise UrlResolutionError(
                display_name,
                f"no redirect from {descriptor.url_template} (HTTP {response.status_code})",
            )
        logger.debug(f"{display_name}: redirect resolved to {location}")
        return location


class ReleaseAssetStrategy(ResolverStrategy):
    """
    Pick an installer from a releases API response.

    Accepted response shapes:
    - a list of assets
    - a release object with an "assets" list (GitHub /releases/latest)
    - a list of releases, of which the first is used (GitHub /releases)

    The first asset whose name matches the descriptor's glob (case-sensitive)
    wins. Without a pattern the first asset with an installer suffix wins.
    """

    def resolve(self, descriptor: DownloadDescriptor, display_name: str) -> str:
        assets = _extract_assets(self._get_json(descriptor.url_template))
        asset = select_asset(assets, descriptor.asset_pattern)
        if asset is None:
            raise UrlResolutionError(
                display_name,
                f"no release asset matches '{descriptor.asset_pattern or '*installer*'}'",
            )
        url = asset.get("browser_download_url") or asset.get("url")
        if not url:
            raise UrlResolutionError(display_name, f"asset {asset['name']} has no URL")
        logger.debug(f"{display_name}: selected release asset {asset['name']}")
        return url


class VendorApiStrategy(ResolverStrategy):
    """
    Query a vendor product API.

    Response shape: {<code>: [{"downloads": {"windows": {"link": ...}}}]},
    with <code> taken from the 'code' query parameter of the URL template.
    """

    def resolve(self, descriptor: DownloadDescriptor, display_name: str) -> str:
        code = vendor_product_code(descriptor.url_template)
        if not code:
            raise UrlResolutionError(display_name, "no product code in URL template")

        data = self._get_json(descriptor.url_template)
        releases = data.get(code) if isinstance(data, dict) else None
        if not releases:
            raise UrlResolutionError(display_name, f"no releases for product {code}")

        link = releases[0]["downloads"]["windows"]["link"]
        if not link:
            raise UrlResolutionError(display_name, "empty Windows download link")
        return link


def _extract_assets(data: Any) -> List[dict]:
    if isinstance(data, dict):
        assets = data.get("assets", [])
    elif isinstance(data, list):
        if data and isinstance(data[0], dict) and "assets" in data[0]:
            assets = data[0]["assets"]
        else:
            assets = data
    else:
        assets = []
    return [a for a in assets if isinstance(a, dict) and isinstance(a.get("name"), str)]


def select_asset(assets: List[dict], pattern: str):
    """
    Pick the first asset matching a glob, or the first installer.

    Args:
        assets: Asset objects with a 'name'
        pattern: Case-sensitive glob; empty selects by installer suffix

    Returns:
        The selected asset, or None

    Example:
        >>> select_asset([{"name": "Git-2.50.0-32-bit.exe"}, {"name": "Git-2.50.0-64-bit.exe"}],
        ...              "Git-*-64-bit.exe")
        {'name': 'Git-2.50.0-64-bit.exe'}
    """
    for asset in assets:
        name = asset["name"]
        if pattern:
            if fnmatch.fnmatchcase(name, pattern):
                return asset
        elif name.lower().endswith(INSTALLER_SUFFIXES):
            return asset
    return None

"""
Download URL resolution.

One strategy per UrlKind:

    DIRECT                 : DirectStrategy
    REDIRECT               : RedirectStrategy (HEAD, Location header)
    RELEASE_ASSET_PATTERN  : ReleaseAssetStrategy (releases API + glob)
    VENDOR_API             : VendorApiStrategy (product JSON API)
    SCRAPE_LATEST          : ScrapeLatestStrategy (vendor page + version regex)

UrlResolver dispatches on the kind and falls back to the descriptor's
fallback URL on failure.
"""

from .base import ResolvedUrl, ResolverStrategy, create_session
from .scrape import DEFAULT_SCRAPE_RULES, ScrapeLatestStrategy, ScrapeRule
from .strategies import (
    DirectStrategy,
    RedirectStrategy,
    ReleaseAssetStrategy,
    VendorApiStrategy,
    select_asset,
)
from .url_resolver import UrlResolver

__all__ = [
    "ResolvedUrl",
    "ResolverStrategy",
    "create_session",
    "DEFAULT_SCRAPE_RULES",
    "ScrapeLatestStrategy",
    "ScrapeRule",
    "DirectStrategy",
    "RedirectStrategy",
    "ReleaseAssetStrategy",
    "VendorApiStrategy",
    "select_asset",
    "UrlResolver",
]

"""
URL resolution facade.

UrlResolver picks the strategy for a descriptor's UrlKind and applies the
fallback rule: any network or parse failure yields the descriptor's fallback
URL. Only when there is no fallback either does resolution fail.
"""

import logging
from typing import Dict, Iterable, Optional

import requests

from winsetupkit.catalog.models import DownloadDescriptor, UrlKind
from winsetupkit.core.exceptions import NetworkError, UrlResolutionError
from winsetupkit.resolver.base import (
    DEFAULT_TIMEOUT,
    ResolvedUrl,
    ResolverStrategy,
    create_session,
)
from winsetupkit.resolver.scrape import ScrapeLatestStrategy, ScrapeRule
from winsetupkit.resolver.strategies import (
    DirectStrategy,
    RedirectStrategy,
    ReleaseAssetStrategy,
    VendorApiStrategy,
)

logger = logging.getLogger(__name__)

# Raised by strategies on malformed responses
_PARSE_ERRORS = (ValueError, KeyError, IndexError, TypeError, AttributeError)


class UrlResolver:
    """
    Resolve download descriptors to concrete URLs.

    Example:
        >>> resolver = UrlResolver(timeout=15)
        >>> result = resolver.resolve(entry.download, entry.display_name)
        >>> if result.used_fallback:
        ...     print(f"Using fallback: {result.error}")
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        scrape_rules: Optional[Iterable[ScrapeRule]] = None,
        strategies: Optional[Dict[UrlKind, ResolverStrategy]] = None,
    ):
        """
        Initialize resolver.

        Args:
            session: HTTP session shared by all strategies
            timeout: Per-request timeout in seconds
            scrape_rules: Vendor scrape rules (defaults to the built-in set)
            strategies: Override strategies per UrlKind
        """
        self.session = session or create_session()
        self.timeout = timeout
        self.strategies: Dict[UrlKind, ResolverStrategy] = {
            UrlKind.DIRECT: DirectStrategy(self.session, timeout),
            UrlKind.REDIRECT: RedirectStrategy(self.session, timeout),
            UrlKind.RELEASE_ASSET_PATTERN: ReleaseAssetStrategy(self.session, timeout),
            UrlKind.VENDOR_API: VendorApiStrategy(self.session, timeout),
            UrlKind.SCRAPE_LATEST: ScrapeLatestStrategy(
                self.session, timeout, rules=scrape_rules
            ),
        }
        if strategies:
            self.strategies.update(strategies)

    def resolve(self, descriptor: DownloadDescriptor, display_name: str) -> ResolvedUrl:
        """
        Resolve a descriptor to a download URL.

        Args:
            descriptor: Download descriptor
            display_name: Application name

        Returns:
            ResolvedUrl; used_fallback is set when the strategy failed

        Raises:
            UrlResolutionError: If the strategy failed and there is no fallback
        """
        strategy = self.strategies[descriptor.url_kind]

        try:
            url = strategy.resolve(descriptor, display_name)
            logger.info(f"Resolved {display_name} download URL: {url}")
            return ResolvedUrl(url=url)
        except (requests.RequestException, NetworkError) + _PARSE_ERRORS as e:
            error = f"{type(e).__name__}: {e}"

        if descriptor.fallback_url:
            logger.warning(
                f"Could not resolve {display_name} ({descriptor.url_kind.value}): "
                f"{error}. Using fallback URL {descriptor.fallback_url}"
            )
            return ResolvedUrl(url=descriptor.fallback_url, used_fallback=True, error=error)

        logger.error(f"Could not resolve {display_name} and no fallback URL exists: {error}")
        raise UrlResolutionError(display_name, error)

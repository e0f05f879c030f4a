"""
Base URL resolution strategy.

A strategy turns a download descriptor of one UrlKind into a concrete URL.
Strategies raise on any failure; applying the fallback URL is the job of
UrlResolver, so each strategy stays a plain, independently testable lookup.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import requests

from winsetupkit.catalog.models import DownloadDescriptor

DEFAULT_TIMEOUT = 15

USER_AGENT = "winsetupkit/0.1"


@dataclass(frozen=True)
class ResolvedUrl:
    """
    Result of URL resolution.

    Attributes:
        url: URL to download
        used_fallback: True if the descriptor's fallback URL was used
        error: Why the strategy failed, when the fallback was used
    """

    url: str
    used_fallback: bool = False
    error: Optional[str] = None


class ResolverStrategy(ABC):
    """
    Abstract base class for one URL resolution strategy.

    Attributes:
        session: HTTP session shared by all strategies
        timeout: Per-request timeout in seconds
    """

    def __init__(self, session: Optional[requests.Session] = None, timeout: float = DEFAULT_TIMEOUT):
        self.session = session or create_session()
        self.timeout = timeout

    @abstractmethod
    def resolve(self, descriptor: DownloadDescriptor, display_name: str) -> str:
        """
        Resolve a concrete download URL.

        Args:
            descriptor: Download descriptor of this strategy's UrlKind
            display_name: Application name (used for vendor-specific rules)

        Returns:
            Download URL

        Raises:
            UrlResolutionError: If no URL can be derived
            requests.RequestException: On network failure
        """
        pass

    def _get_json(self, url: str):
        response = self.session.get(
            url,
            timeout=self.timeout,
            headers={"Accept": "application/json"},
        )
        response.raise_for_status()
        return response.json()


def create_session() -> requests.Session:
    """Create an HTTP session with the engine's User-Agent."""
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    return session

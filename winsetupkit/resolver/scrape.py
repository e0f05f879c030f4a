"""
Scrape-latest-version strategy.

Some vendors publish neither an API nor a stable "latest" link. For those
the engine fetches a vendor page, extracts the newest version with a
vendor-specific pattern and builds the download URL from a template.

The patterns depend on the vendors' page markup and break when it changes;
the descriptor's fallback URL covers that case.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from winsetupkit.catalog.models import DownloadDescriptor
from winsetupkit.core.exceptions import UrlResolutionError
from winsetupkit.resolver.base import ResolverStrategy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScrapeRule:
    """
    Version scraping rule for one vendor.

    Attributes:
        name: Rule name
        match: Lower-case substring of the application's display name
        page_url: Page to fetch
        pattern: Regex whose first group is the version
        url_template: Download URL with {version} and {version_compact}
    """

    name: str
    match: str
    page_url: str
    pattern: str
    url_template: str

    def build_url(self, version: str) -> str:
        return self.url_template.format(
            version=version, version_compact=version.replace(".", "")
        )


DEFAULT_SCRAPE_RULES = (
    ScrapeRule(
        name="python",
        match="python",
        page_url="https://www.python.org/downloads/windows/",
        pattern=r"Latest Python 3 Release - Python (3\.\d+\.\d+)",
        url_template="https://www.python.org/ftp/python/{version}/python-{version}-amd64.exe",
    ),
    ScrapeRule(
        name="vlc",
        match="vlc",
        page_url="https://get.videolan.org/vlc/last/win64/",
        pattern=r"vlc-(\d+\.\d+\.\d+)-win64\.exe",
        url_template="https://get.videolan.org/vlc/last/win64/vlc-{version}-win64.exe",
    ),
    ScrapeRule(
        name="7zip",
        match="7-zip",
        page_url="https://www.7-zip.org/",
        pattern=r"Download 7-Zip (\d+\.\d+)",
        url_template="https://www.7-zip.org/a/7z{version_compact}-x64.exe",
    ),
)


class ScrapeLatestStrategy(ResolverStrategy):
    """Resolve a download URL by scraping the vendor's latest version."""

    def __init__(self, session=None, timeout: float = 15, rules: Optional[Iterable[ScrapeRule]] = None):
        super().__init__(session=session, timeout=timeout)
        self.rules = tuple(rules) if rules is not None else DEFAULT_SCRAPE_RULES

    def find_rule(self, display_name: str) -> Optional[ScrapeRule]:
        name = (display_name or "").lower()
        for rule in self.rules:
            if rule.match in name:
                return rule
        return None

    def resolve(self, descriptor: DownloadDescriptor, display_name: str) -> str:
        rule = self.find_rule(display_name)
        if rule is None:
            raise UrlResolutionError(display_name, "no scrape rule for this application")

        page_url = descriptor.url_template or rule.page_url
        response = self.session.get(page_url, timeout=self.timeout)
        response.raise_for_status()

        match = re.search(rule.pattern, response.text)
        if not match:
            raise UrlResolutionError(
                display_name, f"version pattern not found on {page_url}"
            )

        version = match.group(1)
        logger.debug(f"{display_name}: scraped version {version}")
        return rule.build_url(version)

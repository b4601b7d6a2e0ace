from __future__ import annotations

from typing import Dict, List, Optional, Protocol
from urllib.parse import quote_plus, urlparse

PURPOSES = (
    "search-results",
    "result-title",
    "result-link",
    "result-description",
    "result-snippet",
)


class SearchEngineAdapter(Protocol):
    """
    Interface for engine-specific knowledge: how to build a search URL and
    which hand-maintained selectors usually work on its result pages.
    Keep this small and stable so adapters rarely break across upgrades.
    """

    name: str
    domains: List[str]  # e.g. ["bing.com", "www.bing.com"]

    def matches(self, url: str) -> bool:
        """Return True if ``url`` is served by this engine."""
        ...

    def build_search_url(self, query: str) -> str:
        ...

    def curated_selector(self, purpose: str) -> Optional[str]:
        """Maintained selector for ``purpose``, or None when there is none."""
        ...

    @property
    def results_hint(self) -> Optional[str]:
        """Selector worth waiting for before reading a results page."""
        ...


def hostname_of(url: str) -> str:
    return (urlparse(url).hostname or "").lower()


class CuratedEngine:
    """Shared plumbing for adapters backed by a static selector table."""

    name = ""
    domains: List[str] = []
    search_url = ""
    selectors: Dict[str, str] = {}

    def matches(self, url: str) -> bool:
        host = hostname_of(url)
        return any(host == d or host.endswith("." + d) for d in self.domains)

    def build_search_url(self, query: str) -> str:
        return self.search_url.format(query=quote_plus(query))

    def curated_selector(self, purpose: str) -> Optional[str]:
        return self.selectors.get(purpose)

    @property
    def results_hint(self) -> Optional[str]:
        return self.selectors.get("search-results")

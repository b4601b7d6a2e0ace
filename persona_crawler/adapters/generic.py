from __future__ import annotations

from typing import List, Optional


class GenericAdapter:
    """
    Engine-agnostic fallback used when no specific adapter matches.
    It knows no curated selectors, so resolution relies on generated ones.
    """
    name = "generic"
    domains: List[str] = []  # matches any

    def matches(self, url: str) -> bool:  # pragma: no cover - trivial
        return True

    def build_search_url(self, query: str) -> str:
        raise ValueError("the generic adapter cannot build search URLs")

    def curated_selector(self, purpose: str) -> Optional[str]:
        return None

    @property
    def results_hint(self) -> Optional[str]:
        return None

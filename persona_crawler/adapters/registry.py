from __future__ import annotations

import logging
from typing import List, Optional
from importlib import metadata

from .base import SearchEngineAdapter
from .generic import GenericAdapter
from .search_engines import BingAdapter, DuckDuckGoAdapter, GoogleAdapter

logger = logging.getLogger(__name__)


class AdapterRegistry:
    """
    Registry for search-engine adapters.
    Supports built-ins, runtime registration, and entry-point plugins.
    """
    def __init__(self) -> None:
        self._adapters: List[SearchEngineAdapter] = [
            GenericAdapter(),
            GoogleAdapter(),
            DuckDuckGoAdapter(),
            BingAdapter(),
        ]

    # ---- Introspection / Management ----

    def register(self, adapter: SearchEngineAdapter) -> None:
        self._adapters.append(adapter)

    @property
    def adapters(self) -> List[SearchEngineAdapter]:
        return list(self._adapters)

    def get(self, name: str) -> Optional[SearchEngineAdapter]:
        key = (name or "").lower()
        # Later registrations override built-ins of the same name.
        for a in reversed(self._adapters[1:]):
            if a.name == key:
                return a
        return None

    def match(self, url: str) -> SearchEngineAdapter:
        # Prefer specific adapters over generic fallback (kept first in list).
        for a in self._adapters[1:]:
            if a.matches(url):
                return a
        return self._adapters[0]  # generic

    # ---- Discovery ----

    def discover_entry_points(self, group: str = "persona_crawler.engines") -> int:
        """
        Discover third-party adapters installed as entry points.
        Returns count of newly registered adapters.
        """
        added = 0
        for ep in metadata.entry_points().select(group=group):
            try:
                adapter_cls = ep.load()
                self.register(adapter_cls())
                added += 1
            except Exception as exc:
                # Plugins are optional; a broken one must not stop the run.
                logger.warning("Failed to load engine adapter %s: %r", ep.name, exc)
        return added

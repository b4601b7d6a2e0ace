from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Optional

from . import scoring
from .cache import CACHE_EXPIRY_SECONDS, MAX_FAILURE_COUNT, CacheKey, SelectorCache
from ..adapters.registry import AdapterRegistry
from ..drivers.base import PageDriver
from ..errors import DriverError

logger = logging.getLogger(__name__)


class SelectorResolver:
    """
    Finds a working CSS selector for an (engine, purpose) pair on a live page.

    Resolution order, first hit wins:

    1. cached selector that still matches text on this page
    2. selector generated from the best semantically named candidate
    3. the engine's curated selector
    4. selector for the best element under the adaptive page heuristic
    5. a purpose-level catch-all (never validated, never cached)

    ``get_selector`` always returns a usable string; a tier that blows up is
    logged and skipped.
    """

    def __init__(
        self,
        registry: Optional[AdapterRegistry] = None,
        *,
        ttl: float = CACHE_EXPIRY_SECONDS,
        max_failures: int = MAX_FAILURE_COUNT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.registry = registry or AdapterRegistry()
        self.cache = SelectorCache(ttl=ttl, max_failures=max_failures, clock=clock)

    async def get_selector(self, driver: PageDriver, engine: str, purpose: str) -> str:
        key: CacheKey = (engine, purpose)

        try:
            selector = await self._from_cache(driver, key)
            if selector:
                return selector
        except Exception:
            logger.exception("Cached selector check failed for %s:%s", engine, purpose)

        tiers = (
            ("generated", self._generate),
            ("curated", self._curated),
            ("adaptive", self._adaptive),
        )
        for label, tier in tiers:
            try:
                candidate = await tier(driver, engine, purpose)
                if candidate and await self.validate_selector(driver, candidate):
                    self.cache.put(key, candidate)
                    logger.debug("Using %s selector for %s:%s: %s", label, engine, purpose, candidate)
                    return candidate
            except Exception:
                logger.exception("Selector tier %s failed for %s:%s", label, engine, purpose)

        fallback = scoring.basic_fallback(purpose)
        logger.warning("Falling back to basic selector for %s:%s: %s", engine, purpose, fallback)
        return fallback

    async def validate_selector(self, driver: PageDriver, selector: str) -> bool:
        """At least one match, and at least one match with visible text."""
        try:
            elements = await driver.query_selector_all(selector)
        except DriverError as exc:
            logger.debug("Selector %r rejected: %s", selector, exc)
            return False
        return any(el.text.strip() for el in elements)

    def record_failure(self, engine: str, purpose: str) -> None:
        """A resolved selector produced nothing useful downstream."""
        self.cache.record_failure((engine, purpose))

    def regenerate_selector(self, engine: str, purpose: str) -> None:
        logger.info("Regenerating selector for %s:%s", engine, purpose)
        self.cache.discard((engine, purpose))

    def cache_stats(self) -> Dict[str, int]:
        successful = failed = 0
        for _, entry in self.cache.items():
            if entry.success_count > entry.failure_count:
                successful += 1
            else:
                failed += 1
        return {"total": len(self.cache), "successful": successful, "failed": failed}

    def clear(self) -> None:
        self.cache.clear()

    # ---- Tiers ---------------------------------------------------------------

    async def _from_cache(self, driver: PageDriver, key: CacheKey) -> Optional[str]:
        entry = self.cache.get(key)
        if entry is None:
            return None
        if await self.validate_selector(driver, entry.selector):
            self.cache.record_success(key)
            return entry.selector
        self.cache.record_failure(key)
        return None

    async def _generate(self, driver: PageDriver, engine: str, purpose: str) -> Optional[str]:
        scope = scoring.CANDIDATE_SCOPES.get(purpose)
        if not scope:
            return None
        elements = await driver.query_selector_all(scope)
        best = scoring.pick_best(elements, lambda el: scoring.semantic_score(el, purpose))
        if best is None:
            logger.debug("No semantic candidates for %s:%s", engine, purpose)
            return None
        return scoring.build_selector(best, scoring.PURPOSE_TOKENS.get(purpose, ()))

    async def _curated(self, driver: PageDriver, engine: str, purpose: str) -> Optional[str]:
        adapter = self.registry.get(engine)
        if adapter is None:
            return None
        return adapter.curated_selector(purpose)

    async def _adaptive(self, driver: PageDriver, engine: str, purpose: str) -> Optional[str]:
        elements = await driver.query_selector_all("*")
        best = scoring.pick_best(elements, scoring.adaptive_score)
        if best is None:
            return None
        return scoring.build_selector(best)

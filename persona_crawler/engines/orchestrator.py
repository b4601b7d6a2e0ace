from __future__ import annotations

import asyncio
import json
import logging
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .base import Abandon, CrawlReport, CrawlStrategy, Ok, Outcome, Retry
from ..adapters.registry import AdapterRegistry
from ..config import CrawlConfig
from ..extraction.extractor import ContentExtractor
from ..extraction.models import ExtractedRecord
from ..resolver.manager import SelectorResolver
from ..storage.dataset import Dataset
from ..storage.queue import CrawlRequest, RequestQueue
from ..storage.workspace import RunInfo, StorageIsolationManager
from ..utils.loader import load_symbol
from ..utils.logging import setup_logging
from ..utils.parsing import normalize_url

logger = logging.getLogger(__name__)


class CrawlOrchestrator:
    """
    Runs URLs through three fetch strategies, most capable first.

    Each strategy gets its own worker pool reading its own queue lane. A
    request that exhausts one strategy is re-queued for the next; after the
    last one it is abandoned and simply missing from the results.
    - Orchestrator owns the workspace, queue and dataset.
    - Strategies own page loading.
    - The extractor owns parsing.
    """

    def __init__(
        self,
        config: Optional[CrawlConfig] = None,
        *,
        strategies: Optional[Sequence[CrawlStrategy]] = None,
        storage: Optional[StorageIsolationManager] = None,
        registry: Optional[AdapterRegistry] = None,
        resolver: Optional[SelectorResolver] = None,
        extractor: Optional[ContentExtractor] = None,
    ) -> None:
        self.config = config or CrawlConfig()
        self.registry = registry or AdapterRegistry()
        self.resolver = resolver or SelectorResolver(
            self.registry,
            ttl=self.config.selector_cache_ttl,
            max_failures=self.config.selector_max_failures,
        )
        self.extractor = extractor or ContentExtractor(self.resolver)
        self.storage = storage or StorageIsolationManager(
            self.config.storage_base_path,
            self.config.run_id,
            cleanup_on_exit=self.config.cleanup_on_exit,
            retain_on_error=self.config.retain_on_error,
        )
        self.workspace = self.storage
        self._strategy_override = list(strategies) if strategies is not None else None
        self.strategies: List[CrawlStrategy] = []
        self.queue: Optional[RequestQueue] = None
        self.dataset: Optional[Dataset] = None
        self.last_report: Optional[CrawlReport] = None
        self._initialized = False
        self._closed = False

    # ---- Lifecycle -----------------------------------------------------------

    async def initialize(self) -> None:
        if self._initialized:
            return
        if self._closed:
            raise RuntimeError("orchestrator is closed")
        self.config.validate()
        if self.config.log_level:
            setup_logging(self.config.log_level)

        self.storage.initialize()
        if self.config.storage_namespace:
            self.workspace = self.storage.create_child(self.config.storage_namespace)
            self.workspace.initialize()
        info = self.workspace.get_run_info()
        logger.info("Using temporary storage %s at %s", info.run_id, info.path)

        self.queue = RequestQueue(self.workspace.path_for("queue"), lanes=3)
        self.dataset = Dataset(self.workspace.path_for("dataset"))

        self.strategies = self._build_strategies()
        for index, strategy in enumerate(self.strategies, start=1):
            strategy.attach(index, self.extractor, is_last=index == len(self.strategies))
            try:
                await strategy.start()
            except Exception as exc:
                # Its requests will fail and escalate; the run goes on.
                logger.warning("Strategy %s failed to start: %r", strategy.name, exc)

        self._initialized = True
        logger.info("Engine initialized with strategies: %s", ", ".join(s.name for s in self.strategies))

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            for strategy in self.strategies:
                try:
                    await strategy.close()
                except Exception as exc:
                    logger.warning("Error closing strategy %s: %r", strategy.name, exc)
        finally:
            if self.config.retain_workspace:
                self.storage.detach()
                logger.info("Retaining workspace at %s", self.workspace.path)
            else:
                self.storage.cleanup()

    async def __aenter__(self) -> "CrawlOrchestrator":
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _build_strategies(self) -> List[CrawlStrategy]:
        if self._strategy_override is not None:
            strategies = self._strategy_override
        else:
            # Dynamic loading so strategies can be swapped from config.
            strategies = [
                load_symbol(dotted)(self.config.strategy_config(index))
                for index, dotted in enumerate(self.config.strategies, start=1)
            ]
        if len(strategies) != 3:
            raise ValueError("exactly three strategies are required")
        return list(strategies)

    # ---- Public API ----------------------------------------------------------

    async def scrape_urls(self, urls: Iterable[str]) -> List[ExtractedRecord]:
        """Extract every reachable URL; unreachable ones are left out."""
        await self._prepare()
        order: List[str] = []
        for url in urls:
            url = normalize_url(url.strip())
            if not url:
                continue
            if self.queue.add(CrawlRequest(url=url, user_data={"is_scrape_request": True})):
                order.append(url)
        logger.info("Starting scrape of %s URLs", len(order))
        return await self._run(order)

    async def scrape_queries(self, pairs: Iterable[Tuple[str, str]]) -> List[ExtractedRecord]:
        """Search-seed mode: ``(query, engine)`` pairs become results-page requests."""
        await self._prepare()
        order: List[str] = []
        for query, engine in pairs:
            adapter = self.registry.get(engine)
            if adapter is None:
                logger.warning("Unsupported search engine %r; skipping query %r", engine, query)
                continue
            url = adapter.build_search_url(query)
            request = CrawlRequest(
                url=url,
                purpose="search-results",
                user_data={"is_search_page": True, "query": query, "engine": adapter.name},
            )
            if self.queue.add(request):
                order.append(url)
        logger.info("Starting search across %s seed pages", len(order))
        return await self._run(order)

    def selector_stats(self) -> Dict[str, int]:
        return self.resolver.cache_stats()

    def get_storage_info(self) -> RunInfo:
        return self.workspace.get_run_info()

    # ---- Internals -----------------------------------------------------------

    async def _prepare(self) -> None:
        if self._closed:
            raise RuntimeError("orchestrator is closed")
        await self.initialize()
        self.dataset.drop()
        self.queue.reset()

    async def _run(self, order: List[str]) -> List[ExtractedRecord]:
        report = CrawlReport(requested=len(order))
        workers = [
            asyncio.create_task(self._worker(strategy, report))
            for strategy in self.strategies
            for _ in range(strategy.config.max_concurrency)
        ]
        try:
            await asyncio.gather(*workers)
        finally:
            for task in workers:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            if not self.queue.is_drained():
                dropped = self.queue.discard_pending()
                logger.warning("Run aborted; dropped %s queued requests", dropped)

        report.records = self.dataset.unique(order)
        self.last_report = report
        self._write_state(report)
        logger.info(
            "Scrape finished: %s/%s URLs extracted, %s abandoned",
            len(report.records), report.requested, len(report.abandoned),
        )
        return report.records

    async def _worker(self, strategy: CrawlStrategy, report: CrawlReport) -> None:
        while True:
            request = await self.queue.get(strategy.index, timeout=0.1)
            if request is None:
                # Other lanes may still escalate work into ours.
                if self.queue.is_drained() or self._closed:
                    return
                continue
            try:
                outcome = await strategy.handle(request)
            except Exception:
                logger.exception("Unexpected fault in %s handling %s", strategy.name, request.url)
                self.queue.mark_handled(request, "failed")
                raise
            self._apply(request, outcome, strategy, report)

    def _apply(self, request: CrawlRequest, outcome: Outcome, strategy: CrawlStrategy, report: CrawlReport) -> None:
        if isinstance(outcome, Ok):
            self.dataset.push(outcome.record)
            report.strategy_counts[strategy.name] = report.strategy_counts.get(strategy.name, 0) + 1
            self.queue.mark_handled(request, "done")
            return

        if isinstance(outcome, Retry) and outcome.next_strategy <= len(self.strategies):
            logger.info("Escalating %s to strategy %s (%s)", request.url, outcome.next_strategy, outcome.reason)
            # Enqueue before releasing the current entry so the queue never looks drained.
            self.queue.add(request.escalate(outcome.reason, outcome.next_strategy))
            self.queue.mark_handled(request, "escalated")
            return

        reason = outcome.reason
        logger.warning("Abandoned %s after all strategies failed: %s", request.url, reason)
        report.abandoned.append(request.url)
        self.queue.mark_handled(request, "abandoned")

    def _write_state(self, report: CrawlReport) -> None:
        info = self.workspace.get_run_info()
        summary = {
            "run_id": info.run_id,
            "requested": report.requested,
            "extracted": len(report.records),
            "abandoned": report.abandoned,
            "strategy_counts": report.strategy_counts,
            "selector_stats": self.selector_stats(),
            "config": self.config.to_dict(),
        }
        path = self.workspace.path_for("state") / "summary.json"
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(summary, f, indent=2, ensure_ascii=False)
        except OSError as exc:
            logger.warning("Failed to write run summary %s: %r", path, exc)

from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncContextManager, Dict, List, Optional, Union

from ..config import StrategyConfig
from ..drivers.base import PageDriver
from ..extraction.extractor import ContentExtractor
from ..extraction.models import ExtractedRecord
from ..storage.queue import CrawlRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ok:
    record: ExtractedRecord


@dataclass(frozen=True)
class Retry:
    next_strategy: int
    reason: str


@dataclass(frozen=True)
class Abandon:
    reason: str


Outcome = Union[Ok, Retry, Abandon]


@dataclass
class LoadedPage:
    """What a strategy hands the extractor: a driver plus fetch facts."""
    driver: PageDriver
    status_code: int = 200


@dataclass
class CrawlReport:
    records: List[ExtractedRecord] = field(default_factory=list)
    abandoned: List[str] = field(default_factory=list)
    requested: int = 0
    strategy_counts: Dict[str, int] = field(default_factory=dict)  # strategy -> records


class CrawlStrategy(ABC):
    """
    One way of loading a page. The orchestrator runs a worker pool per
    strategy; each request gets ``retries + 1`` attempts here before the
    handler answers Retry (or Abandon for the last strategy).
    """

    name = "strategy"

    def __init__(self, config: StrategyConfig) -> None:
        self.config = config
        self.index = 0
        self.is_last = False
        self.extractor: Optional[ContentExtractor] = None

    def attach(self, index: int, extractor: ContentExtractor, *, is_last: bool) -> None:
        self.index = index
        self.extractor = extractor
        self.is_last = is_last

    async def start(self) -> None:
        """Acquire long-lived resources (browsers, sessions)."""

    async def close(self) -> None:
        """Release whatever :meth:`start` acquired."""

    @abstractmethod
    def open_page(self, request: CrawlRequest) -> AsyncContextManager[LoadedPage]:
        """Load ``request.url``; raise on navigation or HTTP failure."""

    async def handle(self, request: CrawlRequest) -> Outcome:
        if self.extractor is None:
            raise RuntimeError(f"strategy {self.name} used before attach()")

        last_exc: Optional[BaseException] = None
        for attempt in range(self.config.retries + 1):
            try:
                record = await asyncio.wait_for(self._attempt(request), timeout=self.config.request_timeout)
                return Ok(record)
            except asyncio.CancelledError:
                raise
            except Exception as exc:  # broad catch to keep the run moving
                last_exc = exc
                logger.debug("%s attempt %s failed for %s: %r", self.name, attempt + 1, request.url, exc)
                if attempt < self.config.retries and self.config.retry_backoff > 0:
                    await asyncio.sleep(min(self.config.retry_backoff * 2 ** attempt, 5))

        reason = f"{self.name}: {last_exc!r}"
        logger.info("%s failed to process %s after %s attempts", self.name, request.url, self.config.retries + 1)
        if self.is_last:
            return Abandon(reason)
        return Retry(self.index + 1, reason)

    async def _attempt(self, request: CrawlRequest) -> ExtractedRecord:
        started = time.perf_counter()
        async with self.open_page(request) as loaded:
            load_time = time.perf_counter() - started
            return await self.extractor.extract(
                loaded.driver,
                request,
                strategy=self.name,
                load_time=load_time,
                status_code=loaded.status_code,
            )

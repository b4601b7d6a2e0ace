from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Dict, Iterable, Optional

import pytest

from persona_crawler.config import CrawlConfig, StrategyConfig
from persona_crawler.drivers.soup_driver import SoupPageDriver
from persona_crawler.engines.base import CrawlStrategy, LoadedPage
from persona_crawler.errors import FetchError


def page(title: str, *paragraphs: str, extra: str = "") -> str:
    body = "".join(f"<p>{p}</p>" for p in paragraphs)
    return f"<html><head><title>{title}</title></head><body><h1>{title}</h1>{body}{extra}</body></html>"


class FakeStrategy(CrawlStrategy):
    """Serves canned HTML; URLs in ``failing`` raise like a dead host."""

    def __init__(
        self,
        name: str,
        pages: Optional[Dict[str, str]] = None,
        failing: Iterable[str] = (),
        default: Optional[str] = None,
        retries: int = 0,
        max_concurrency: int = 2,
    ) -> None:
        super().__init__(
            StrategyConfig(
                name=name,
                max_concurrency=max_concurrency,
                request_timeout=5.0,
                retries=retries,
                retry_backoff=0,
            )
        )
        self.name = name
        self.pages = dict(pages or {})
        self.failing = set(failing)
        self.default = default
        self.attempts: Dict[str, int] = {}
        self.started = False
        self.closed = False

    async def start(self) -> None:
        self.started = True

    async def close(self) -> None:
        self.closed = True

    @asynccontextmanager
    async def open_page(self, request):
        self.attempts[request.url] = self.attempts.get(request.url, 0) + 1
        if request.url in self.failing:
            raise FetchError(request.url, f"{self.name} cannot reach host")
        html = self.pages.get(request.url, self.default)
        if html is None:
            raise FetchError(request.url, "no such page")
        yield LoadedPage(driver=SoupPageDriver(html, request.url))


@pytest.fixture
def config(tmp_path) -> CrawlConfig:
    return CrawlConfig(
        storage_base_path=str(tmp_path / "storage"),
        cleanup_on_exit=False,
        retries=0,
        retry_backoff=0,
        max_concurrency=2,
    )


@pytest.fixture
def fake_strategy():
    return FakeStrategy


@pytest.fixture
def make_page():
    return page

from __future__ import annotations

from types import SimpleNamespace

import pytest
from playwright.async_api import Error as PlaywrightError

from persona_crawler.config import CrawlConfig
from persona_crawler.engines.base import Ok, Retry
from persona_crawler.engines.browser_engine import FullBrowserStrategy, LightBrowserStrategy
from persona_crawler.extraction.extractor import ContentExtractor
from persona_crawler.storage.queue import CrawlRequest
from persona_crawler.utils.http import USER_AGENTS

from conftest import page


class FakeRoute:
    def __init__(self, resource_type: str) -> None:
        self.request = SimpleNamespace(resource_type=resource_type)
        self.outcome = None

    async def abort(self) -> None:
        self.outcome = "aborted"

    async def continue_(self) -> None:
        self.outcome = "continued"


class FakePage:
    def __init__(self, html: str, status: int = 200, final_url: str = "", idle_error: bool = False) -> None:
        self.html = html
        self.status = status
        self.url = final_url
        self.idle_error = idle_error
        self.load_states = []
        self.timeouts = {}

    def set_default_navigation_timeout(self, ms) -> None:
        self.timeouts["navigation"] = ms

    def set_default_timeout(self, ms) -> None:
        self.timeouts["default"] = ms

    async def goto(self, url, wait_until=None):
        self.wait_until = wait_until
        self.url = self.url or url
        return SimpleNamespace(status=self.status)

    async def wait_for_load_state(self, state, timeout=None) -> None:
        self.load_states.append((state, timeout))
        if self.idle_error:
            raise PlaywrightError("Timeout exceeded while waiting for networkidle")

    async def content(self) -> str:
        return self.html


class FakeContext:
    def __init__(self, page: FakePage) -> None:
        self.page = page
        self.routes = []
        self.closed = False

    async def route(self, pattern, handler) -> None:
        self.routes.append((pattern, handler))

    async def new_page(self) -> FakePage:
        return self.page

    async def close(self) -> None:
        self.closed = True


class FakeBrowser:
    def __init__(self, page: FakePage) -> None:
        self.page = page
        self.contexts = []
        self.options = []

    async def new_context(self, **options) -> FakeContext:
        self.options.append(options)
        context = FakeContext(self.page)
        self.contexts.append(context)
        return context


def make(cls, index, **overrides):
    cfg = CrawlConfig(retries=0, retry_backoff=0, **overrides)
    strategy = cls(cfg.strategy_config(index))
    strategy.attach(index, ContentExtractor(), is_last=False)
    return strategy


async def route(strategy, resource_type: str) -> str:
    fake = FakeRoute(resource_type)
    await strategy.route_request(fake)
    return fake.outcome


async def test_full_browser_blocks_only_noise():
    strategy = make(FullBrowserStrategy, 1)
    assert await route(strategy, "font") == "aborted"
    assert await route(strategy, "beacon") == "aborted"
    assert await route(strategy, "image") == "continued"
    assert await route(strategy, "document") == "continued"


async def test_light_browser_also_blocks_heavy_resources():
    strategy = make(LightBrowserStrategy, 2)
    for resource_type in ("image", "media", "stylesheet", "font"):
        assert await route(strategy, resource_type) == "aborted"
    assert await route(strategy, "document") == "continued"
    assert await route(strategy, "script") == "continued"


def test_context_options_rotate_user_agents():
    fixed = make(FullBrowserStrategy, 1, rotate_user_agents=False).context_options()
    assert fixed["user_agent"] == USER_AGENTS[0]
    assert "Accept-Language" in fixed["extra_http_headers"]

    rotating = make(FullBrowserStrategy, 1)
    agents = {rotating.context_options()["user_agent"] for _ in range(50)}
    assert agents <= set(USER_AGENTS)
    assert len(agents) > 1


async def test_full_browser_waits_for_network_idle():
    strategy = make(FullBrowserStrategy, 1, network_idle_timeout=2.0)
    page_ = FakePage("<html></html>", idle_error=True)
    await strategy.settle(page_)
    assert page_.load_states == [("networkidle", 2000.0)]

    quiet = make(FullBrowserStrategy, 1, wait_for_network_idle=False)
    page_ = FakePage("<html></html>")
    await quiet.settle(page_)
    assert page_.load_states == []


async def test_light_browser_does_not_wait_for_network():
    strategy = make(LightBrowserStrategy, 2)
    page_ = FakePage("<html></html>")
    await strategy.settle(page_)
    assert page_.load_states == []


async def test_open_page_uses_final_url_and_closes_context():
    html = page("Jane Doe", "Jane Doe builds robots in Austin, Texas.", extra='<a href="projects">Projects</a>')
    fake_page = FakePage(html, final_url="https://jane.example/people/jane/")
    browser = FakeBrowser(fake_page)
    strategy = make(FullBrowserStrategy, 1, request_timeout=30.0)
    strategy._browser = browser

    outcome = await strategy.handle(CrawlRequest(url="https://jane.example/go/jane"))

    assert isinstance(outcome, Ok)
    record = outcome.record
    assert record.url == "https://jane.example/go/jane"
    assert record.technical.final_url == "https://jane.example/people/jane/"
    assert record.technical.javascript_enabled is True
    assert record.technical.strategy == "full-browser"
    assert record.links[0].url == "https://jane.example/people/jane/projects"

    assert fake_page.wait_until == "load"
    assert fake_page.timeouts == {"navigation": 30000.0, "default": 30000.0}
    [context] = browser.contexts
    assert context.closed
    assert [pattern for pattern, _ in context.routes] == ["**/*"]
    assert browser.options[0]["user_agent"] in USER_AGENTS


@pytest.mark.parametrize("status", [403, 503])
async def test_http_error_status_escalates(status):
    browser = FakeBrowser(FakePage("<html><body>denied</body></html>", status=status))
    strategy = make(LightBrowserStrategy, 2)
    strategy._browser = browser

    outcome = await strategy.handle(CrawlRequest(url="https://jane.example/", strategy_index=2))

    assert isinstance(outcome, Retry)
    assert outcome.next_strategy == 3
    assert f"HTTP {status}" in outcome.reason
    assert browser.contexts[0].closed

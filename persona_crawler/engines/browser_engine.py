from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional

from playwright.async_api import Browser, Error as PlaywrightError, Playwright, Route, async_playwright

from .base import CrawlStrategy, LoadedPage
from ..drivers.playwright_driver import PlaywrightPageDriver
from ..errors import FetchError
from ..storage.queue import CrawlRequest
from ..utils.http import build_headers, pick_user_agent

logger = logging.getLogger(__name__)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
    "--disable-blink-features=AutomationControlled",
]


def app_data_dir() -> Path:
    base = os.getenv("LOCALAPPDATA") or str(Path.home() / ".persona-crawler")
    p = Path(base) / "persona-crawler"
    p.mkdir(parents=True, exist_ok=True)
    return p


def configure_browsers_path() -> None:
    """Point Playwright at a per-user browser cache unless the caller already did."""
    if "PLAYWRIGHT_BROWSERS_PATH" not in os.environ:
        os.environ["PLAYWRIGHT_BROWSERS_PATH"] = str(app_data_dir() / "ms-playwright")


class BrowserStrategy(CrawlStrategy):
    """Shared Playwright plumbing: one browser per strategy, one context per request."""

    wait_until = "load"

    def __init__(self, config) -> None:
        super().__init__(config)
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None

    async def start(self) -> None:
        if self._browser is not None:
            return
        configure_browsers_path()
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(
            headless=self.config.headless, args=LAUNCH_ARGS
        )
        logger.debug("%s launched chromium", self.name)

    async def close(self) -> None:
        if self._browser is not None:
            await self._browser.close()
            self._browser = None
        if self._playwright is not None:
            await self._playwright.stop()
            self._playwright = None

    @asynccontextmanager
    async def open_page(self, request: CrawlRequest) -> AsyncIterator[LoadedPage]:
        if self._browser is None:
            await self.start()
        context = await self._browser.new_context(**self.context_options())
        try:
            if self.config.block_resources:
                await context.route("**/*", self.route_request)

            page = await context.new_page()
            timeout_ms = self.config.request_timeout * 1000
            page.set_default_navigation_timeout(timeout_ms)
            page.set_default_timeout(timeout_ms)
            response = await page.goto(request.url, wait_until=self.wait_until)
            status = response.status if response is not None else 200
            if status >= 400:
                raise FetchError(request.url, f"HTTP {status}")
            await self.settle(page)
            yield LoadedPage(driver=PlaywrightPageDriver(page), status_code=status)
        finally:
            await context.close()

    def context_options(self) -> Dict[str, Any]:
        """Per-request browser context: fresh user agent, browser-like headers."""
        return {
            "user_agent": pick_user_agent(rotate=self.config.rotate_user_agents),
            "extra_http_headers": build_headers(),
        }

    async def route_request(self, route: Route) -> None:
        if route.request.resource_type in self.config.block_resources:
            await route.abort()
        else:
            await route.continue_()

    async def settle(self, page) -> None:
        """Hook for strategy-specific waiting after navigation."""


class FullBrowserStrategy(BrowserStrategy):
    """Most capable strategy: full rendering, waits for the network to go quiet."""

    name = "full-browser"
    wait_until = "load"

    async def settle(self, page) -> None:
        if not self.config.wait_for_network_idle:
            return
        try:
            await page.wait_for_load_state(
                "networkidle", timeout=self.config.network_idle_timeout * 1000
            )
        except PlaywrightError as exc:
            # Busy pages never go idle; read what has rendered so far.
            logger.debug("Network never went idle on %s: %r", page.url, exc)


class LightBrowserStrategy(BrowserStrategy):
    """Scripts run, but only until the DOM is parsed; heavy resources are blocked."""

    name = "light-browser"
    wait_until = "domcontentloaded"

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from aiohttp import ClientSession

from .base import CrawlStrategy, LoadedPage
from ..drivers.soup_driver import SoupPageDriver
from ..errors import FetchError
from ..storage.queue import CrawlRequest
from ..utils.http import build_headers, create_session, fetch_text, pick_user_agent

logger = logging.getLogger(__name__)


class StaticHtmlStrategy(CrawlStrategy):
    """
    Last-resort strategy: plain HTTP fetch, BeautifulSoup parse, no scripts.
    Cheap enough to run at full concurrency.
    """

    name = "static-html"

    def __init__(self, config) -> None:
        super().__init__(config)
        self._session: Optional[ClientSession] = None

    async def start(self) -> None:
        if self._session is None:
            self._session = create_session()

    async def close(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    @asynccontextmanager
    async def open_page(self, request: CrawlRequest) -> AsyncIterator[LoadedPage]:
        if self._session is None:
            await self.start()
        headers = build_headers(pick_user_agent(rotate=self.config.rotate_user_agents))
        status, final_url, html = await fetch_text(
            self._session,
            request.url,
            timeout=self.config.request_timeout,
            headers=headers,
        )
        if not html.strip():
            raise FetchError(request.url, "empty body")
        yield LoadedPage(driver=SoupPageDriver(html, final_url), status_code=status)

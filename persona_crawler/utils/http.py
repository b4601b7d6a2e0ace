from __future__ import annotations

import random
from typing import Dict, Optional, Sequence, Tuple
from aiohttp import ClientSession, ClientTimeout
import aiohttp
from bs4 import UnicodeDammit
import logging

logger = logging.getLogger(__name__)

USER_AGENTS: Tuple[str, ...] = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)

_BASE_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Upgrade-Insecure-Requests": "1",
}


def pick_user_agent(agents: Sequence[str] = USER_AGENTS, rotate: bool = True) -> str:
    if not rotate:
        return agents[0]
    return random.choice(agents)


def build_headers(user_agent: Optional[str] = None) -> Dict[str, str]:
    """Browser-like request headers so servers answer as they would a person."""
    headers = dict(_BASE_HEADERS)
    if user_agent:
        headers["User-Agent"] = user_agent
    return headers


async def fetch_text(
    session: ClientSession,
    url: str,
    *,
    timeout: float = 15.0,
    headers: Optional[Dict[str, str]] = None,
) -> Tuple[int, str, str]:
    """
    Fetch a URL and return ``(status, final url, body text)``. Redirects are
    followed; raises on network errors and on 4xx/5xx.
    """
    async with session.get(url, headers=headers or {}, timeout=ClientTimeout(total=timeout)) as resp:
        resp.raise_for_status()
        body = await resp.read()
        return resp.status, str(resp.url), decode_body(body, resp.charset)


def decode_body(body: bytes, declared: Optional[str] = None) -> str:
    """Decode a response body, sniffing the charset when the server omits or misstates it."""
    dammit = UnicodeDammit(body, [declared] if declared else [], is_html=True)
    if dammit.unicode_markup is None:
        logger.debug("Could not detect charset; decoding with replacement characters")
        return body.decode("utf-8", errors="replace")
    return dammit.unicode_markup


def create_session() -> ClientSession:
    """
    Create a shared aiohttp ClientSession.
    """
    # Note: caller is responsible for closing the session (await session.close()).
    connector = aiohttp.TCPConnector(limit=0)  # unlimited; concurrency managed by worker pools
    return aiohttp.ClientSession(connector=connector)

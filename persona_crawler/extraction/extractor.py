from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from .contact import extract_addresses, extract_emails, extract_phones, extract_social_links
from .models import (
    ContactInfo,
    ExtractedRecord,
    ImageRef,
    LinkRef,
    PageMetadata,
    QualityInfo,
    SearchResult,
    TechnicalInfo,
)
from ..drivers.base import PageDriver
from ..resolver.manager import SelectorResolver
from ..storage.queue import CrawlRequest

logger = logging.getLogger(__name__)

MIN_PARAGRAPH_CHARS = 20
RICH_TEXT_CHARS = 500
RESULTS_WAIT_SECONDS = 5.0
PROFESSIONAL_TITLE_WORDS = ("ceo", "founder")
PROFESSIONAL_TEXT_WORDS = ("experience", "company")


def content_quality(paragraph_count: int, has_personal: bool, has_professional: bool) -> str:
    if paragraph_count > 5 and (has_personal or has_professional):
        return "high"
    if paragraph_count > 2:
        return "medium"
    return "low"


def relevance_score(
    *,
    has_personal: bool,
    has_professional: bool,
    has_social: bool,
    content_length: int,
    social_link_count: int,
) -> int:
    """Additive relevance, capped at 100. Weights are fixed; do not tune casually."""
    score = 0
    if has_personal:
        score += 30
    if has_professional:
        score += 25
    if has_social:
        score += 20
    if content_length > RICH_TEXT_CHARS:
        score += 15
    if social_link_count > 1:
        score += 10
    return min(100, score)


def _meta(soup: BeautifulSoup, **attrs: str) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content"):
        return tag["content"].strip()
    return ""


class ContentExtractor:
    """
    Turns a loaded page into an :class:`ExtractedRecord`.

    Works from the page HTML so every strategy is read the same way; the
    resolver is consulted only for search engine result pages.
    """

    def __init__(self, resolver: Optional[SelectorResolver] = None) -> None:
        self.resolver = resolver or SelectorResolver()

    async def extract(
        self,
        driver: PageDriver,
        request: CrawlRequest,
        *,
        strategy: str,
        load_time: float = 0.0,
        status_code: int = 200,
    ) -> ExtractedRecord:
        html = await driver.content()
        page_url = driver.url or request.url
        soup = BeautifulSoup(html, "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()

        host = (urlparse(page_url).hostname or "").lower()
        title = self._title(soup)
        description = _meta(soup, name="description") or _meta(soup, property="og:description")

        headings: Dict[str, Tuple[str, ...]] = {
            f"h{level}": tuple(
                t for t in (h.get_text(" ", strip=True) for h in soup.find_all(f"h{level}")) if t
            )
            for level in range(1, 7)
        }
        paragraphs = tuple(
            t for t in (p.get_text(" ", strip=True) for p in soup.find_all("p"))
            if len(t) > MIN_PARAGRAPH_CHARS
        )
        links = self._links(soup, page_url, host)
        images = tuple(
            ImageRef(src=img.get("src", ""), alt=img.get("alt", ""), title=img.get("title", ""))
            for img in soup.find_all("img", src=True)
        )
        social_links = extract_social_links(links)

        body = soup.body or soup
        body_text = body.get_text(" ", strip=True)
        contact = ContactInfo(
            emails=extract_emails(body_text),
            phones=extract_phones(body_text),
            addresses=extract_addresses(body_text),
        )

        text = " ".join(paragraphs)
        has_personal = bool(contact)
        has_professional = any(w in title.lower() for w in PROFESSIONAL_TITLE_WORDS) or any(
            w in p.lower() for p in paragraphs for w in PROFESSIONAL_TEXT_WORDS
        )
        has_social = bool(social_links)
        quality = QualityInfo(
            has_personal_info=has_personal,
            has_professional_info=has_professional,
            has_social_media=has_social,
            content_quality=content_quality(len(paragraphs), has_personal, has_professional),
            relevance_score=relevance_score(
                has_personal=has_personal,
                has_professional=has_professional,
                has_social=has_social,
                content_length=len(text),
                social_link_count=len(social_links),
            ),
        )

        search_results: Tuple[SearchResult, ...] = ()
        engine = request.user_data.get("engine")
        if engine:
            search_results = await self.extract_search_results(driver, soup, engine, page_url)

        return ExtractedRecord(
            url=request.url,
            title=title,
            domain=host,
            description=description,
            text=text,
            headings=headings,
            paragraphs=paragraphs,
            links=links,
            images=images,
            social_links=social_links,
            contact=contact,
            metadata=self._metadata(soup, description),
            technical=TechnicalInfo(
                load_time=load_time,
                content_length=len(body_text),
                strategy=strategy,
                javascript_enabled=driver.javascript_enabled,
                final_url=page_url,
                status_code=status_code,
            ),
            quality=quality,
            search_results=search_results,
            user_data=dict(request.user_data),
        )

    async def extract_search_results(
        self, driver: PageDriver, soup: BeautifulSoup, engine: str, page_url: str
    ) -> Tuple[SearchResult, ...]:
        adapter = self.resolver.registry.get(engine)
        if adapter is not None and adapter.results_hint:
            await driver.wait_for_selector(adapter.results_hint, timeout=RESULTS_WAIT_SECONDS)

        container_sel = await self.resolver.get_selector(driver, engine, "search-results")
        title_sel = await self.resolver.get_selector(driver, engine, "result-title")
        link_sel = await self.resolver.get_selector(driver, engine, "result-link")
        desc_sel = await self.resolver.get_selector(driver, engine, "result-description")

        results: List[SearchResult] = []
        seen = set()
        try:
            containers = soup.select(container_sel)
        except Exception as exc:
            logger.debug("Results selector %r unusable on parsed page: %r", container_sel, exc)
            containers = []
        for node in containers:
            title_el = self._select_one(node, title_sel)
            link_el = self._select_one(node, link_sel) or node.select_one("a[href]")
            if title_el is None or link_el is None or not link_el.get("href"):
                continue
            url = urljoin(page_url, link_el["href"])
            title = title_el.get_text(" ", strip=True)
            if not title or url in seen:
                continue
            seen.add(url)
            desc_el = self._select_one(node, desc_sel)
            results.append(
                SearchResult(
                    title=title,
                    url=url,
                    snippet=desc_el.get_text(" ", strip=True) if desc_el else "",
                    rank=len(results) + 1,
                )
            )

        if not results:
            logger.info("No results extracted for %s with selector %r", engine, container_sel)
            self.resolver.record_failure(engine, "search-results")
        return tuple(results)

    # ---- Helpers -------------------------------------------------------------

    @staticmethod
    def _select_one(node, selector: str):
        try:
            return node.select_one(selector)
        except Exception:
            return None

    @staticmethod
    def _title(soup: BeautifulSoup) -> str:
        if soup.title and soup.title.get_text(strip=True):
            return soup.title.get_text(strip=True)
        h1 = soup.find("h1")
        return h1.get_text(" ", strip=True) if h1 else ""

    @staticmethod
    def _links(soup: BeautifulSoup, page_url: str, host: str) -> Tuple[LinkRef, ...]:
        out: List[LinkRef] = []
        for a in soup.find_all("a", href=True):
            text = a.get_text(" ", strip=True)
            href = a["href"].strip()
            if not text or not href or href.startswith(("javascript:", "mailto:", "tel:")):
                continue
            absolute = urljoin(page_url, href)
            link_host = (urlparse(absolute).hostname or "").lower()
            if not link_host:
                continue
            out.append(LinkRef(text=text, url=absolute, is_external=link_host != host))
        return tuple(out)

    @staticmethod
    def _metadata(soup: BeautifulSoup, description: str) -> PageMetadata:
        keywords = _meta(soup, name="keywords")
        return PageMetadata(
            description=description,
            keywords=tuple(k.strip() for k in keywords.split(",") if k.strip()),
            author=_meta(soup, name="author"),
            og_title=_meta(soup, property="og:title"),
            og_description=_meta(soup, property="og:description"),
            og_image=_meta(soup, property="og:image"),
            twitter_title=_meta(soup, name="twitter:title"),
            twitter_description=_meta(soup, name="twitter:description"),
            twitter_image=_meta(soup, name="twitter:image"),
        )

from __future__ import annotations

from aiohttp import web
from aiohttp.test_utils import TestServer

from persona_crawler.config import CrawlConfig
from persona_crawler.engines.base import Abandon, Ok, Retry
from persona_crawler.engines.simple_engine import StaticHtmlStrategy
from persona_crawler.extraction.extractor import ContentExtractor
from persona_crawler.storage.queue import CrawlRequest
from persona_crawler.utils.http import decode_body

from conftest import page

seen_agents = []


async def profile(request):
    seen_agents.append(request.headers.get("User-Agent"))
    return web.Response(
        text=page("Jane Doe", "Jane Doe builds robots in Austin, Texas."),
        content_type="text/html",
    )


async def missing(request):
    raise web.HTTPNotFound()


async def blank(request):
    return web.Response(text="   ", content_type="text/html")


async def moved(request):
    raise web.HTTPFound("/people/jane/")


async def people(request):
    return web.Response(
        text=page("Jane Doe", "Jane Doe builds robots in Austin, Texas.", extra='<a href="projects">Projects</a>'),
        content_type="text/html",
    )


async def latin1(request):
    html = page("Jane Doe", "Jane Doe ouvre un caf\u00e9 \u00e0 Montr\u00e9al avec Zo\u00eb.")
    # No charset in the header and none in the markup.
    return web.Response(body=html.encode("latin-1"), content_type="text/html")


def make_strategy(index=3, is_last=True):
    cfg = CrawlConfig(retries=1, retry_backoff=0, request_timeout=5.0)
    strategy = StaticHtmlStrategy(cfg.strategy_config(3))
    strategy.attach(index, ContentExtractor(), is_last=is_last)
    return strategy


async def serve():
    app = web.Application()
    app.router.add_get("/jane", profile)
    app.router.add_get("/missing", missing)
    app.router.add_get("/blank", blank)
    app.router.add_get("/go/jane", moved)
    app.router.add_get("/people/jane/", people)
    app.router.add_get("/latin1", latin1)
    server = TestServer(app)
    await server.start_server()
    return server


async def test_fetches_and_extracts():
    server = await serve()
    strategy = make_strategy()
    await strategy.start()
    try:
        url = str(server.make_url("/jane"))
        outcome = await strategy.handle(CrawlRequest(url=url))
    finally:
        await strategy.close()
        await server.close()

    assert isinstance(outcome, Ok)
    record = outcome.record
    assert record.title == "Jane Doe"
    assert record.technical.strategy == "static-html"
    assert record.technical.status_code == 200
    assert record.technical.javascript_enabled is False
    assert seen_agents and seen_agents[-1].startswith("Mozilla/5.0")


async def test_http_errors_escalate_or_abandon():
    server = await serve()
    middle = make_strategy(index=2, is_last=False)
    last = make_strategy()
    try:
        retry = await middle.handle(CrawlRequest(url=str(server.make_url("/missing")), strategy_index=2))
        abandon = await last.handle(CrawlRequest(url=str(server.make_url("/blank"))))
    finally:
        await middle.close()
        await last.close()
        await server.close()

    assert isinstance(retry, Retry)
    assert retry.next_strategy == 3
    assert "404" in retry.reason
    assert isinstance(abandon, Abandon)
    assert "empty body" in abandon.reason


async def test_redirects_resolve_against_final_url():
    server = await serve()
    strategy = make_strategy()
    try:
        url = str(server.make_url("/go/jane"))
        outcome = await strategy.handle(CrawlRequest(url=url))
    finally:
        await strategy.close()
        await server.close()

    assert isinstance(outcome, Ok)
    record = outcome.record
    assert record.url == url
    assert record.technical.final_url.endswith("/people/jane/")
    projects = next(link for link in record.links if link.text == "Projects")
    assert projects.url.endswith("/people/jane/projects")
    assert not projects.is_external


async def test_undeclared_charset_still_yields_record():
    server = await serve()
    strategy = make_strategy()
    try:
        outcome = await strategy.handle(CrawlRequest(url=str(server.make_url("/latin1"))))
    finally:
        await strategy.close()
        await server.close()

    assert isinstance(outcome, Ok)
    assert outcome.record.title == "Jane Doe"
    assert "Montr" in outcome.record.text


def test_decode_body_prefers_declared_charset():
    assert decode_body("café".encode("utf-8"), "utf-8") == "café"
    assert decode_body("café".encode("latin-1"), "latin-1") == "café"
    assert decode_body(b"plain text") == "plain text"

from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging
import os

try:
    from fastapi import FastAPI, HTTPException
    from pydantic import BaseModel, Field
except Exception as exc:  # pragma: no cover - optional dependency
    raise RuntimeError(
        "FastAPI not installed. Install with `pip install persona-crawler[api]` "
        "or avoid using the API server."
    ) from exc

from ..config import CrawlConfig
from ..engines.orchestrator import CrawlOrchestrator
from ..errors import ConfigError
from ..utils.logging import setup_logging
from ..version import __version__

logger = logging.getLogger(__name__)

app = FastAPI(title="persona_crawler API", version=__version__)


class ScrapeRequest(BaseModel):
    urls: List[str]
    max_concurrency: Optional[int] = None
    storage_namespace: Optional[str] = None


class SearchRequest(BaseModel):
    queries: List[str]
    engines: List[str] = Field(default_factory=lambda: ["duckduckgo"])
    max_concurrency: Optional[int] = None


def _config(max_concurrency: Optional[int], namespace: Optional[str] = None) -> CrawlConfig:
    cfg = CrawlConfig.from_env()
    if max_concurrency is not None:
        cfg.max_concurrency = max_concurrency
    if namespace:
        cfg.storage_namespace = namespace
    # The server process outlives runs; cleanup happens in close().
    cfg.cleanup_on_exit = False
    try:
        cfg.validate()
    except ConfigError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    return cfg


def _respond(orchestrator: CrawlOrchestrator, records) -> Dict[str, Any]:
    report = orchestrator.last_report
    return {
        "requested": report.requested if report else 0,
        "abandoned": report.abandoned if report else [],
        "records": [r.to_dict() for r in records],
        "selector_stats": orchestrator.selector_stats(),
    }


@app.get("/health")
async def health() -> Dict[str, str]:
    return {"status": "ok", "version": __version__}


@app.post("/scrape")
async def scrape(req: ScrapeRequest) -> Dict[str, Any]:
    if not req.urls:
        raise HTTPException(status_code=422, detail="urls cannot be empty")
    cfg = _config(req.max_concurrency, req.storage_namespace)
    async with CrawlOrchestrator(cfg) as orchestrator:
        records = await orchestrator.scrape_urls(req.urls)
        return _respond(orchestrator, records)


@app.post("/search")
async def search(req: SearchRequest) -> Dict[str, Any]:
    if not req.queries:
        raise HTTPException(status_code=422, detail="queries cannot be empty")
    cfg = _config(req.max_concurrency)
    pairs = [(q, e) for e in req.engines for q in req.queries]
    async with CrawlOrchestrator(cfg) as orchestrator:
        records = await orchestrator.scrape_queries(pairs)
        return _respond(orchestrator, records)


def serve(host: str = "127.0.0.1", port: int = 8000) -> None:
    """Run the API with uvicorn; host and port default from the environment."""
    try:
        import uvicorn  # type: ignore
    except Exception as exc:  # pragma: no cover - optional dep
        raise SystemExit("To run the API, install dependencies: pip install persona-crawler[api]") from exc
    setup_logging()
    uvicorn.run(
        app,
        host=os.getenv("PERSONA_CRAWLER_HOST", host),
        port=int(os.getenv("PERSONA_CRAWLER_PORT", str(port))),
    )

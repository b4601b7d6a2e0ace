from __future__ import annotations

from .base import CuratedEngine


class GoogleAdapter(CuratedEngine):
    name = "google"
    domains = ["google.com"]
    search_url = "https://www.google.com/search?q={query}"
    selectors = {
        "search-results": ".g, .tF2Cxc, .rc, #search .g",
        "result-title": "h3, .r a h3, .LC20lb",
        "result-link": ".r a, .yuRUbf a",
        "result-description": ".st, .VwiC3b",
        "result-snippet": ".st, .VwiC3b",
    }


class DuckDuckGoAdapter(CuratedEngine):
    name = "duckduckgo"
    domains = ["duckduckgo.com"]
    search_url = "https://duckduckgo.com/?q={query}"
    selectors = {
        "search-results": ".results .result, .result, .web-result",
        "result-title": ".result__title a, .result__a",
        "result-link": ".result__title a, .result__a",
        "result-description": ".result__snippet",
        "result-snippet": ".result__snippet",
    }


class BingAdapter(CuratedEngine):
    name = "bing"
    domains = ["bing.com"]
    search_url = "https://www.bing.com/search?q={query}"
    selectors = {
        "search-results": ".b_algo, .b_searchResult, .b_ans",
        "result-title": ".b_title a, h2 a",
        "result-link": ".b_title a, h2 a",
        "result-description": ".b_caption, .b_snippet",
        "result-snippet": ".b_caption, .b_snippet",
    }

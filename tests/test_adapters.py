from __future__ import annotations

from persona_crawler.adapters.registry import AdapterRegistry
from persona_crawler.adapters.search_engines import GoogleAdapter


def test_search_urls_are_encoded():
    registry = AdapterRegistry()
    assert registry.get("google").build_search_url("jane doe & co") == (
        "https://www.google.com/search?q=jane+doe+%26+co"
    )
    assert registry.get("DuckDuckGo").build_search_url("jane") == "https://duckduckgo.com/?q=jane"
    assert registry.get("bing").build_search_url("jane").startswith("https://www.bing.com/search?q=")


def test_lookup_and_matching():
    registry = AdapterRegistry()
    assert registry.get("generic") is None
    assert registry.get("altavista") is None
    assert registry.match("https://www.bing.com/search?q=x").name == "bing"
    assert registry.match("https://duckduckgo.com/?q=x").name == "duckduckgo"
    assert registry.match("https://jane.example/").name == "generic"


def test_curated_tables():
    google = GoogleAdapter()
    assert google.curated_selector("result-title")
    assert google.curated_selector("unknown-purpose") is None
    assert google.results_hint == google.curated_selector("search-results")


def test_registration_overrides_builtin():
    class Custom(GoogleAdapter):
        selectors = {"search-results": ".custom"}

    registry = AdapterRegistry()
    registry.register(Custom())
    assert registry.get("google").curated_selector("search-results") == ".custom"


def test_discover_entry_points_without_plugins():
    registry = AdapterRegistry()
    before = len(registry.adapters)
    added = registry.discover_entry_points(group="persona_crawler.tests.none")
    assert added == 0
    assert len(registry.adapters) == before

from __future__ import annotations

import json

import pytest

from persona_crawler.config import CrawlConfig, LIGHT_BLOCK_RESOURCES
from persona_crawler.engines.simple_engine import StaticHtmlStrategy
from persona_crawler.errors import ConfigError
from persona_crawler.utils.loader import load_symbol


def test_strategy_configs():
    cfg = CrawlConfig(max_concurrency=5)
    full, light, static = (cfg.strategy_config(i) for i in (1, 2, 3))

    assert [s.name for s in (full, light, static)] == ["full-browser", "light-browser", "static-html"]
    assert [s.max_concurrency for s in (full, light, static)] == [5, 2, 5]
    assert full.wait_for_network_idle and not light.wait_for_network_idle
    assert set(LIGHT_BLOCK_RESOURCES) <= set(light.block_resources)
    assert static.block_resources == []


def test_light_strategy_keeps_one_worker():
    assert CrawlConfig(max_concurrency=1).strategy_config(2).max_concurrency == 1


@pytest.mark.parametrize(
    "changes",
    [
        {"max_concurrency": 0},
        {"request_timeout": 0},
        {"retries": -1},
        {"strategies": ["a.b:C"]},
        {"selector_max_failures": 0},
        {"storage_base_path": ""},
    ],
)
def test_validate_rejects(changes):
    cfg = CrawlConfig(**changes)
    with pytest.raises(ConfigError):
        cfg.validate()


def test_defaults_validate():
    CrawlConfig().validate()


def test_from_env(monkeypatch):
    monkeypatch.setenv("PERSONA_CRAWLER_MAX_CONCURRENCY", "8")
    monkeypatch.setenv("PERSONA_CRAWLER_RETRIES", "0")
    monkeypatch.setenv("PERSONA_CRAWLER_HEADLESS", "no")
    monkeypatch.setenv("PERSONA_CRAWLER_STORAGE_PATH", "/tmp/runs")
    monkeypatch.setenv("PERSONA_CRAWLER_BLOCK_RESOURCES", "font, image")
    monkeypatch.delenv("PERSONA_CRAWLER_RUN_ID", raising=False)

    cfg = CrawlConfig.from_env()
    assert cfg.max_concurrency == 8
    assert cfg.retries == 0
    assert cfg.headless is False
    assert cfg.storage_base_path == "/tmp/runs"
    assert cfg.block_resources == ["font", "image"]
    assert cfg.run_id is None
    assert len(cfg.strategies) == 3


def test_from_file_migrates_v1(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"max_concurrency": 3, "storage_dir": "old-storage", "persist_storage": 1}),
        encoding="utf-8",
    )
    cfg = CrawlConfig.from_file(path)
    assert cfg.schema_version == 2
    assert cfg.max_concurrency == 3
    assert cfg.storage_base_path == "old-storage"
    assert cfg.retain_workspace is True


def test_load_symbol():
    assert load_symbol("persona_crawler.engines.simple_engine:StaticHtmlStrategy") is StaticHtmlStrategy
    assert load_symbol("persona_crawler.engines.simple_engine.StaticHtmlStrategy") is StaticHtmlStrategy


@pytest.mark.parametrize(
    "dotted",
    ["StaticHtmlStrategy", "persona_crawler.nope:Thing", "persona_crawler.engines.simple_engine:Nope"],
)
def test_load_symbol_errors(dotted):
    with pytest.raises(ConfigError):
        load_symbol(dotted)

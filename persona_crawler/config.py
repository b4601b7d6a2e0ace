from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import List, Optional, Dict, Any
import os
import json

from .errors import ConfigError
from .version import CONFIG_SCHEMA_VERSION

DEFAULT_STRATEGIES = [
    "persona_crawler.engines.browser_engine:FullBrowserStrategy",
    "persona_crawler.engines.browser_engine:LightBrowserStrategy",
    "persona_crawler.engines.simple_engine:StaticHtmlStrategy",
]

DEFAULT_BLOCK_RESOURCES = ["font", "texttrack", "object", "beacon", "csp_report"]

# The light renderer trades fidelity for speed.
LIGHT_BLOCK_RESOURCES = DEFAULT_BLOCK_RESOURCES + ["image", "media", "stylesheet"]


@dataclass
class StrategyConfig:
    """Per-strategy knobs handed to a worker pool."""
    name: str
    max_concurrency: int
    request_timeout: float
    retries: int
    retry_backoff: float = 1.0
    block_resources: List[str] = field(default_factory=list)
    wait_for_network_idle: bool = True
    network_idle_timeout: float = 10.0
    rotate_user_agents: bool = True
    headless: bool = True


@dataclass
class CrawlConfig:
    """
    Canonical configuration object passed throughout the engine.
    Keep it dataclass-only (no heavy deps) to stay upgrade-friendly.
    """
    schema_version: int = CONFIG_SCHEMA_VERSION
    max_concurrency: int = 5
    request_timeout: float = 60.0
    retries: int = 2
    retry_backoff: float = 1.0
    wait_for_network_idle: bool = True
    network_idle_timeout: float = 10.0
    rotate_user_agents: bool = True
    block_resources: List[str] = field(default_factory=lambda: list(DEFAULT_BLOCK_RESOURCES))
    headless: bool = True
    # Dotted paths for the three fetch strategies, most capable first.
    strategies: List[str] = field(default_factory=lambda: list(DEFAULT_STRATEGIES))
    # Workspace
    storage_base_path: str = "temp-storage"
    run_id: Optional[str] = None
    storage_namespace: Optional[str] = None
    cleanup_on_exit: bool = True
    retain_on_error: bool = False
    retain_workspace: bool = False
    # Selector cache
    selector_cache_ttl: float = 24 * 60 * 60
    selector_max_failures: int = 3
    log_level: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def strategy_config(self, index: int) -> StrategyConfig:
        """
        Build the settings for strategy ``index`` (1-based). Heavier
        renderers get fewer concurrent workers.
        """
        if index == 1:
            return StrategyConfig(
                name="full-browser",
                max_concurrency=self.max_concurrency,
                request_timeout=self.request_timeout,
                retries=self.retries,
                retry_backoff=self.retry_backoff,
                block_resources=list(self.block_resources),
                wait_for_network_idle=self.wait_for_network_idle,
                network_idle_timeout=self.network_idle_timeout,
                rotate_user_agents=self.rotate_user_agents,
                headless=self.headless,
            )
        if index == 2:
            return StrategyConfig(
                name="light-browser",
                max_concurrency=max(1, self.max_concurrency // 2),
                request_timeout=self.request_timeout,
                retries=self.retries,
                retry_backoff=self.retry_backoff,
                block_resources=sorted(set(self.block_resources) | set(LIGHT_BLOCK_RESOURCES)),
                wait_for_network_idle=False,
                network_idle_timeout=self.network_idle_timeout,
                rotate_user_agents=self.rotate_user_agents,
                headless=self.headless,
            )
        return StrategyConfig(
            name="static-html",
            max_concurrency=self.max_concurrency,
            request_timeout=self.request_timeout,
            retries=self.retries,
            retry_backoff=self.retry_backoff,
            wait_for_network_idle=False,
            network_idle_timeout=self.network_idle_timeout,
            rotate_user_agents=self.rotate_user_agents,
            headless=self.headless,
        )

    # ---------- Loaders ----------

    @classmethod
    def from_env(cls) -> "CrawlConfig":
        """
        Build config from environment variables (all optional).
        """
        def _get(name: str, default: str) -> str:
            return os.getenv(name, default)

        def _bool(name: str, default: bool) -> bool:
            raw = os.getenv(name)
            if raw is None:
                return default
            return raw.strip().lower() in ("1", "true", "yes", "y", "on")

        blocked = _get("PERSONA_CRAWLER_BLOCK_RESOURCES", ",".join(DEFAULT_BLOCK_RESOURCES))
        strategies = _get("PERSONA_CRAWLER_STRATEGIES", ",".join(DEFAULT_STRATEGIES))

        return cls(
            max_concurrency=int(_get("PERSONA_CRAWLER_MAX_CONCURRENCY", "5")),
            request_timeout=float(_get("PERSONA_CRAWLER_REQUEST_TIMEOUT", "60.0")),
            retries=int(_get("PERSONA_CRAWLER_RETRIES", "2")),
            retry_backoff=float(_get("PERSONA_CRAWLER_RETRY_BACKOFF", "1.0")),
            wait_for_network_idle=_bool("PERSONA_CRAWLER_WAIT_FOR_NETWORK_IDLE", True),
            network_idle_timeout=float(_get("PERSONA_CRAWLER_NETWORK_IDLE_TIMEOUT", "10.0")),
            rotate_user_agents=_bool("PERSONA_CRAWLER_ROTATE_USER_AGENTS", True),
            block_resources=[r.strip() for r in blocked.split(",") if r.strip()],
            headless=_bool("PERSONA_CRAWLER_HEADLESS", True),
            strategies=[s.strip() for s in strategies.split(",") if s.strip()],
            storage_base_path=_get("PERSONA_CRAWLER_STORAGE_PATH", "temp-storage"),
            run_id=os.getenv("PERSONA_CRAWLER_RUN_ID") or None,
            storage_namespace=os.getenv("PERSONA_CRAWLER_STORAGE_NAMESPACE") or None,
            cleanup_on_exit=_bool("PERSONA_CRAWLER_CLEANUP_ON_EXIT", True),
            retain_on_error=_bool("PERSONA_CRAWLER_RETAIN_ON_ERROR", False),
            retain_workspace=_bool("PERSONA_CRAWLER_RETAIN_WORKSPACE", False),
            log_level=os.getenv("PERSONA_CRAWLER_LOG_LEVEL") or None,
        )

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> "CrawlConfig":
        """
        Load configuration from a JSON file. Supports schema migration for future versions.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        data = migrate_config(data)
        return cls(**data)

    # ---------- Validation ----------

    def validate(self) -> None:
        if self.max_concurrency <= 0:
            raise ConfigError("max_concurrency must be > 0")
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be > 0")
        if self.retries < 0:
            raise ConfigError("retries must be >= 0")
        if len(self.strategies) != 3:
            raise ConfigError("exactly three strategies are required (heavy, light, static)")
        if self.selector_max_failures <= 0:
            raise ConfigError("selector_max_failures must be > 0")
        if not self.storage_base_path:
            raise ConfigError("storage_base_path cannot be empty")


def migrate_config(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Migrate config dict to the latest schema version.
    Keep this pure and additive. Add migrations here as you bump schema.
    """
    schema = raw.get("schema_version", 1)

    if schema < 2:
        # v1 used a single "storage_dir" and a boolean "persist_storage".
        if "storage_dir" in raw:
            raw.setdefault("storage_base_path", raw.pop("storage_dir"))
        if "persist_storage" in raw:
            raw.setdefault("retain_workspace", bool(raw.pop("persist_storage")))
        raw["schema_version"] = 2

    raw.setdefault("schema_version", CONFIG_SCHEMA_VERSION)
    return raw
